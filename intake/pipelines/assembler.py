"""Fold a multipart stream into one submission.

Receiving: each part is classified in arrival order and file parts are fully
drained through the sink before the next part is taken.
Assembling: the collected scalars and file lists are merged with request
provenance into an ``AssembledSubmission``. This step is pure.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Iterable

from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import ClientDisconnect, Request

from ..schemas import FileRecord
from .classify import DocumentCategory, FilePart, ScalarField, classify_part
from .sinks import FileSink

logger = logging.getLogger(__name__)

UNKNOWN_USER_AGENT = "Unknown"


class StreamError(Exception):
    """Raised when the multipart body cannot be read to the end."""
    pass


def _empty_file_lists() -> dict[DocumentCategory, list[FileRecord]]:
    return {category: [] for category in DocumentCategory}


@dataclass
class CollectedParts:
    """Everything read from the body, before merging."""
    fields: dict[str, str] = field(default_factory=dict)
    files: dict[DocumentCategory, list[FileRecord]] = field(default_factory=_empty_file_lists)
    dropped: int = 0


@dataclass
class AssembledSubmission:
    """A submission ready to be persisted."""
    fields: dict[str, str]
    files: dict[DocumentCategory, list[FileRecord]]
    ip_address: str | None
    user_agent: str

    @property
    def file_count(self) -> int:
        return sum(len(records) for records in self.files.values())


async def iter_form_parts(
    request: Request,
    *,
    max_files: int,
    max_fields: int,
) -> AsyncIterator[tuple[str, str | UploadFile]]:
    """Yield ``(field_name, value)`` pairs in the order the client sent them.

    Parser and transport failures surface as ``StreamError``. Spooled uploads
    are closed when the generator finishes.
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.lower().startswith("multipart/form-data"):
        raise StreamError(f"Expected multipart/form-data, got {content_type or 'no content type'!r}")

    try:
        form = await request.form(max_files=max_files, max_fields=max_fields)
    # Starlette turns parser errors into a 400 HTTPException when running inside an app
    except (MultiPartException, HTTPException, ClientDisconnect) as e:
        raise StreamError(f"Could not read multipart body: {e}") from e

    try:
        for name, value in form.multi_items():
            yield name, value
    finally:
        await form.close()


async def collect_parts(
    parts: AsyncIterator[tuple[str, str | UploadFile]] | Iterable[tuple[str, str | UploadFile]],
    sink: FileSink,
) -> CollectedParts:
    """Classify every part and drain every accepted file."""
    collected = CollectedParts()

    if not hasattr(parts, "__aiter__"):
        parts = _as_async(parts)

    async for name, value in parts:
        part = classify_part(name, value)
        if isinstance(part, FilePart):
            record = await sink.accept(part.upload)
            collected.files[part.category].append(record)
        elif isinstance(part, ScalarField):
            collected.fields[part.name] = part.value
        else:
            collected.dropped += 1

    if collected.dropped:
        logger.info("Dropped %d unrecognized part(s)", collected.dropped)
    return collected


def build_submission(
    collected: CollectedParts,
    *,
    client_ip: str | None,
    user_agent: str | None,
) -> AssembledSubmission:
    """Merge collected parts with provenance; every category is present."""
    files = _empty_file_lists()
    for category, records in collected.files.items():
        files[category] = list(records)

    return AssembledSubmission(
        fields=dict(collected.fields),
        files=files,
        ip_address=client_ip,
        user_agent=user_agent or UNKNOWN_USER_AGENT,
    )


async def _as_async(items: Iterable[tuple[str, str | UploadFile]]) -> AsyncIterator[tuple[str, str | UploadFile]]:
    for item in items:
        yield item
