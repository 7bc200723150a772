from __future__ import annotations

import uuid
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from intake.api import create_app
from intake.config import (
    DatabaseSettings,
    LoggingSettings,
    MailSettings,
    RateLimitSettings,
    Settings,
    UploadMode,
    UploadSettings,
)


def make_settings(
    tmp_path: Path,
    *,
    unique_email: bool = True,
    mode: UploadMode = UploadMode.PERSIST,
    max_file_size: int = 20 * 1024 * 1024,
    max_requests: int = 100,
) -> Settings:
    return Settings(
        environment="testing",
        unique_email=unique_email,
        db=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'intake.db'}"),
        uploads=UploadSettings(dir=tmp_path / "uploads", mode=mode, max_file_size=max_file_size),
        rate_limit=RateLimitSettings(window_seconds=900, max_requests=max_requests),
        mail=MailSettings(enabled=False, api_key=None),
        logging=LoggingSettings(level="DEBUG", format="text"),
    )


def multipart_body(fields: list[tuple[str, str]]) -> tuple[bytes, dict[str, str]]:
    """Encode scalar-only multipart bodies (httpx falls back to urlencoded without files)."""
    boundary = uuid.uuid4().hex
    chunks = []
    for name, value in fields:
        chunks.append(
            f'--{boundary}\r\nContent-Disposition: form-data; name="{name}"\r\n\r\n{value}\r\n'.encode()
        )
    chunks.append(f"--{boundary}--\r\n".encode())
    headers = {"Content-Type": f"multipart/form-data; boundary={boundary}"}
    return b"".join(chunks), headers


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def client(settings: Settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client
