"""Routing of multipart parts into scalar fields or document categories."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from starlette.datastructures import UploadFile

logger = logging.getLogger(__name__)


class DocumentCategory(str, Enum):
    """Recognized upload categories, valued by their form field name."""
    IDENTITY_DOCUMENT = "identityDocument"
    RESIDENCY_PROOF = "residencyProof"
    QUALIFICATIONS = "qualifications"
    BUSINESS_PERMIT = "businessPermit"
    LIABILITY_INSURANCE = "liabilityInsurance"
    COMPANY_STATUTES = "companyStatutes"


_CATEGORIES_BY_FIELD = {category.value: category for category in DocumentCategory}


@dataclass(frozen=True)
class ScalarField:
    name: str
    value: str


@dataclass(frozen=True)
class FilePart:
    category: DocumentCategory
    upload: UploadFile


def category_for(field_name: str) -> DocumentCategory | None:
    """Map a form field name to its document category, if any."""
    return _CATEGORIES_BY_FIELD.get(field_name)


def classify_part(field_name: str, value: str | UploadFile) -> ScalarField | FilePart | None:
    """Decide what one multipart part is.

    Returns None for parts that are dropped: files under an unknown field
    name and scalars without a field name.
    """
    if isinstance(value, UploadFile):
        category = category_for(field_name)
        if category is None:
            logger.debug("Dropping file part under unrecognized field %r", field_name)
            return None
        return FilePart(category=category, upload=value)

    if not field_name:
        logger.debug("Dropping scalar part without a field name")
        return None
    return ScalarField(name=field_name, value=value)
