"""Core SQLAlchemy models (2.x style) for the intake schema.

One row per form submission. Uploaded document metadata lives in six JSON
list columns so a submission is read and written as a single document.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Submission(Base):
    """Form submissions table."""
    __tablename__ = "submissions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)

    first_name: Mapped[str | None] = mapped_column(String(255))
    last_name: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(320))
    phone: Mapped[str | None] = mapped_column(String(64))
    address: Mapped[str | None] = mapped_column(Text)
    city: Mapped[str | None] = mapped_column(String(255))
    zip_code: Mapped[str | None] = mapped_column(String(32))
    country: Mapped[str | None] = mapped_column(String(255))
    tax_number: Mapped[str | None] = mapped_column(String(64))
    vat_number: Mapped[str | None] = mapped_column(String(64))
    bank_details: Mapped[str | None] = mapped_column(Text)
    hourly_rate: Mapped[float | None] = mapped_column(Float)
    half_hour_rate: Mapped[float | None] = mapped_column(Float)

    # Document lists: [{originalname, mimetype, size, path?, filename?}, ...]
    identity_document: Mapped[list[dict]] = mapped_column(JSON, default=list, nullable=False)
    residency_proof: Mapped[list[dict]] = mapped_column(JSON, default=list, nullable=False)
    qualifications: Mapped[list[dict]] = mapped_column(JSON, default=list, nullable=False)
    business_permit: Mapped[list[dict]] = mapped_column(JSON, default=list, nullable=False)
    liability_insurance: Mapped[list[dict]] = mapped_column(JSON, default=list, nullable=False)
    company_statutes: Mapped[list[dict]] = mapped_column(JSON, default=list, nullable=False)

    ip_address: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_submissions_created_at", "created_at"),
        Index("ix_submissions_email", "email"),
    )
