"""Persistence and listing of submissions."""
from __future__ import annotations

import logging

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from . import models
from .db import Database
from .pipelines.assembler import AssembledSubmission
from .pipelines.classify import DocumentCategory
from .schemas import SubmissionCreate, SubmissionOut

logger = logging.getLogger(__name__)

# Document category -> Submission column
CATEGORY_COLUMNS: dict[DocumentCategory, str] = {
    DocumentCategory.IDENTITY_DOCUMENT: "identity_document",
    DocumentCategory.RESIDENCY_PROOF: "residency_proof",
    DocumentCategory.QUALIFICATIONS: "qualifications",
    DocumentCategory.BUSINESS_PERMIT: "business_permit",
    DocumentCategory.LIABILITY_INSURANCE: "liability_insurance",
    DocumentCategory.COMPANY_STATUTES: "company_statutes",
}


class PersistenceError(Exception):
    """Raised when a submission cannot be saved or read."""
    pass


class SubmissionStore:
    """Reads and writes ``Submission`` rows through the shared database handle.

    Email uniqueness, when enabled, is the unique index created by
    ``Database.connect``; a violation surfaces from ``save``.
    """

    def __init__(self, database: Database):
        self.database = database

    async def save(self, assembled: AssembledSubmission) -> str:
        """Insert one submission and return its id.

        Raises:
            PersistenceError: invalid scalar values, constraint violation
                (e.g. a repeated email when uniqueness is enforced) or an
                unreachable database.
        """
        try:
            scalars = SubmissionCreate.model_validate(assembled.fields)
        except ValidationError as e:
            raise PersistenceError(f"Submission failed validation: {e}") from e

        submission = models.Submission(
            **scalars.model_dump(),
            ip_address=assembled.ip_address,
            user_agent=assembled.user_agent,
        )
        for category, column in CATEGORY_COLUMNS.items():
            records = assembled.files.get(category, [])
            setattr(submission, column, [record.to_document() for record in records])

        try:
            async with self.database.session() as session:
                session.add(submission)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not save submission: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Database unreachable: {e}") from e

        logger.info("Saved submission %s (%d file(s))", submission.id, assembled.file_count)
        return submission.id

    async def list_recent(self) -> list[SubmissionOut]:
        """All submissions, newest first, without provenance fields."""
        query = select(models.Submission).order_by(models.Submission.created_at.desc())
        try:
            async with self.database.session() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"Could not list submissions: {e}") from e

        return [SubmissionOut.model_validate(row) for row in rows]
