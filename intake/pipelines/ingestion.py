"""Per-request orchestration of the ingestion pipeline.

States: RECEIVING -> ASSEMBLING -> PERSISTING -> RESPONDING, or FAILED from
any of the first three. Errors propagate unchanged to the caller, which maps
them to HTTP responses.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Iterable

from starlette.datastructures import UploadFile

from ..store import SubmissionStore
from .assembler import AssembledSubmission, build_submission, collect_parts
from .sinks import FileSink

logger = logging.getLogger(__name__)


class IngestionState(str, Enum):
    """Where one ingestion is in its lifecycle."""
    RECEIVING = "receiving"
    ASSEMBLING = "assembling"
    PERSISTING = "persisting"
    RESPONDING = "responding"
    FAILED = "failed"


@dataclass
class IngestionResult:
    submission_id: str
    submission: AssembledSubmission


class SubmissionIngestion:
    """One instance per inbound request."""

    def __init__(self, sink: FileSink, store: SubmissionStore):
        self.sink = sink
        self.store = store
        self.state = IngestionState.RECEIVING
        self.failed_in: IngestionState | None = None

    async def run(
        self,
        parts: AsyncIterator[tuple[str, str | UploadFile]] | Iterable[tuple[str, str | UploadFile]],
        *,
        client_ip: str | None,
        user_agent: str | None,
    ) -> IngestionResult:
        try:
            collected = await collect_parts(parts, self.sink)

            self._advance(IngestionState.ASSEMBLING)
            assembled = build_submission(collected, client_ip=client_ip, user_agent=user_agent)

            self._advance(IngestionState.PERSISTING)
            submission_id = await self.store.save(assembled)
        except Exception:
            self.failed_in = self.state
            self._advance(IngestionState.FAILED)
            raise

        self._advance(IngestionState.RESPONDING)
        return IngestionResult(submission_id=submission_id, submission=assembled)

    def _advance(self, state: IngestionState) -> None:
        logger.debug("Ingestion %s -> %s", self.state.value, state.value)
        self.state = state
