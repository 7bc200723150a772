"""Pydantic schemas shared by the pipeline, the store and the API."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class FileRecord(BaseModel):
    """Metadata for one uploaded file.

    ``path`` and ``filename`` are only set when the bytes were kept on disk.
    """
    originalname: str
    mimetype: str
    size: int = Field(ge=0)
    path: str | None = None
    filename: str | None = None

    def to_document(self) -> dict:
        return self.model_dump(exclude_none=True)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubmissionCreate(_CamelModel):
    """Scalar profile fields as submitted by the form.

    Unknown keys are ignored; blank strings become None.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    zip_code: str | None = None
    country: str | None = None
    tax_number: str | None = None
    vat_number: str | None = None
    bank_details: str | None = None
    hourly_rate: float | None = None
    half_hour_rate: float | None = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class SubmissionOut(_CamelModel):
    """Listing projection: no provenance, no update/version metadata."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    zip_code: str | None = None
    country: str | None = None
    tax_number: str | None = None
    vat_number: str | None = None
    bank_details: str | None = None
    hourly_rate: float | None = None
    half_hour_rate: float | None = None
    identity_document: list[FileRecord] = Field(default_factory=list)
    residency_proof: list[FileRecord] = Field(default_factory=list)
    qualifications: list[FileRecord] = Field(default_factory=list)
    business_permit: list[FileRecord] = Field(default_factory=list)
    liability_insurance: list[FileRecord] = Field(default_factory=list)
    company_statutes: list[FileRecord] = Field(default_factory=list)
    created_at: datetime
