"""File sinks: what happens to the bytes of an uploaded document.

Two strategies exist, chosen by ``UPLOAD_MODE`` at startup:

- ``persist``: bytes are streamed to the upload directory under a generated
  name and the record carries ``path`` and ``filename``.
- ``metadata``: bytes are drained and counted but not kept.

Both drain the part completely before returning, so ``size`` is always the
final byte count.
"""
from __future__ import annotations

import logging
import secrets
import time
from pathlib import Path, PureWindowsPath
from typing import AsyncIterator

import anyio
from starlette.datastructures import UploadFile

from ..config import Settings, UploadMode
from ..schemas import FileRecord

logger = logging.getLogger(__name__)

DEFAULT_MIMETYPE = "application/octet-stream"
# Common filesystem limit for a single path component
MAX_NAME_BYTES = 255


class FileTooLargeError(Exception):
    """Raised when one file exceeds the configured size cap."""

    def __init__(self, filename: str, limit: int):
        super().__init__(f"{filename!r} exceeds the {limit} byte limit")
        self.filename = filename
        self.limit = limit


class StorageError(Exception):
    """Raised when file bytes cannot be written to durable storage."""
    pass


class FileSink:
    """Shared draining logic; subclasses decide where chunks go."""

    def __init__(self, *, max_file_size: int, chunk_size: int = 64 * 1024):
        self.max_file_size = max_file_size
        self.chunk_size = chunk_size

    async def prepare(self) -> None:
        """Startup hook."""

    async def accept(self, upload: UploadFile) -> FileRecord:
        raise NotImplementedError

    async def _chunks(self, upload: UploadFile) -> AsyncIterator[bytes]:
        received = 0
        while chunk := await upload.read(self.chunk_size):
            received += len(chunk)
            if received > self.max_file_size:
                raise FileTooLargeError(upload.filename or "", self.max_file_size)
            yield chunk

    @staticmethod
    def _base_record(upload: UploadFile, size: int) -> dict:
        return {
            "originalname": upload.filename or "",
            "mimetype": upload.content_type or DEFAULT_MIMETYPE,
            "size": size,
        }


class MetadataOnlyFileSink(FileSink):
    """Counts bytes and records descriptive metadata only."""

    async def accept(self, upload: UploadFile) -> FileRecord:
        size = 0
        async for chunk in self._chunks(upload):
            size += len(chunk)
        return FileRecord(**self._base_record(upload, size))


class PersistingFileSink(FileSink):
    """Streams bytes into the upload directory."""

    def __init__(self, upload_dir: Path | str, *, max_file_size: int, chunk_size: int = 64 * 1024):
        super().__init__(max_file_size=max_file_size, chunk_size=chunk_size)
        self.upload_dir = Path(upload_dir).absolute()

    async def prepare(self) -> None:
        await anyio.Path(self.upload_dir).mkdir(parents=True, exist_ok=True)
        logger.info("Upload directory ready: %s", self.upload_dir)

    @staticmethod
    def storage_name(original: str | None) -> str:
        """``<epoch-ms>-<random>-<basename>``; the basename drops any client path.

        Long basenames are shortened, extension kept, so the UTF-8 name fits
        in ``MAX_NAME_BYTES``.
        """
        prefix = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}-"
        base = PureWindowsPath(original or "").name or "upload"
        budget = MAX_NAME_BYTES - len(prefix.encode())
        if len(base.encode()) <= budget:
            return prefix + base

        stem, dot, ext = base.rpartition(".")
        suffix = f"{dot}{ext}" if stem else ""
        if len(suffix.encode()) > budget // 2:
            suffix = ""
        stem_bytes = (stem if suffix else base).encode()[: budget - len(suffix.encode())]
        return prefix + stem_bytes.decode("utf-8", errors="ignore") + suffix

    async def accept(self, upload: UploadFile) -> FileRecord:
        name = self.storage_name(upload.filename)
        target = self.upload_dir / name
        size = 0
        try:
            async with await anyio.open_file(target, "wb") as out:
                async for chunk in self._chunks(upload):
                    await out.write(chunk)
                    size += len(chunk)
        except FileTooLargeError:
            await anyio.Path(target).unlink(missing_ok=True)
            raise
        except OSError as e:
            raise StorageError(f"Could not write {target}: {e}") from e

        logger.debug("Stored %s (%d bytes)", target, size)
        return FileRecord(**self._base_record(upload, size), path=str(target), filename=name)


def build_file_sink(settings: Settings) -> FileSink:
    """Pick the sink for the configured upload mode."""
    uploads = settings.uploads
    if uploads.mode == UploadMode.METADATA:
        return MetadataOnlyFileSink(max_file_size=uploads.max_file_size, chunk_size=uploads.chunk_size)
    return PersistingFileSink(
        uploads.dir,
        max_file_size=uploads.max_file_size,
        chunk_size=uploads.chunk_size,
    )
