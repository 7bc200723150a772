from pathlib import Path

from fastapi.testclient import TestClient

from intake.api import create_app
from intake.config import UploadMode
from tests.conftest import make_settings, multipart_body

PDF = ("application/pdf", b"%PDF-1.4 fake document")


def _file(name: str, content: bytes = PDF[1], content_type: str = PDF[0]):
    return (name, content, content_type)


def _submit(client: TestClient, data: dict, files: list | None = None):
    if not files:
        body, headers = multipart_body(list(data.items()))
        return client.post("/api/submit-form", content=body, headers=headers)
    return client.post("/api/submit-form", data=data, files=files)


def _list(client: TestClient) -> dict:
    response = client.get("/api/submissions")
    assert response.status_code == 200
    return response.json()


def test_submit_and_list_example_submission(client: TestClient) -> None:
    response = _submit(
        client,
        {"firstName": "Anna", "lastName": "Keller", "email": "a@x.com"},
        [("identityDocument", _file("passport.pdf"))],
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Form submitted successfully!"
    assert body["data"]["id"]

    listing = _list(client)
    assert listing["success"] is True
    assert listing["count"] == 1
    record = listing["data"][0]
    assert record["id"] == body["data"]["id"]
    assert record["firstName"] == "Anna"
    assert len(record["identityDocument"]) == 1
    doc = record["identityDocument"][0]
    assert doc["originalname"] == "passport.pdf"
    assert doc["mimetype"] == "application/pdf"
    assert doc["size"] == len(PDF[1])
    assert Path(doc["path"]).read_bytes() == PDF[1]
    assert doc["filename"].endswith("-passport.pdf")


def test_file_counts_match_parts_per_category(client: TestClient) -> None:
    files = [
        ("qualifications", _file("diploma.pdf")),
        ("qualifications", _file("certificate.pdf")),
        ("companyStatutes", _file("statutes.pdf")),
        ("profilePicture", _file("me.png", b"png", "image/png")),
    ]
    response = _submit(client, {"email": "q@x.com", "favouriteColour": "blue"}, files)
    assert response.status_code == 200

    record = _list(client)["data"][0]
    assert [d["originalname"] for d in record["qualifications"]] == ["diploma.pdf", "certificate.pdf"]
    assert len(record["companyStatutes"]) == 1
    assert record["identityDocument"] == []
    assert "profilePicture" not in record
    assert "favouriteColour" not in record


def test_submission_without_files_has_six_empty_lists(client: TestClient) -> None:
    response = _submit(client, {"firstName": "Lea", "email": "lea@x.com"})
    assert response.status_code == 200

    record = _list(client)["data"][0]
    for key in (
        "identityDocument",
        "residencyProof",
        "qualifications",
        "businessPermit",
        "liabilityInsurance",
        "companyStatutes",
    ):
        assert record[key] == []


def test_listing_is_newest_first_and_hides_provenance(client: TestClient) -> None:
    for i in range(3):
        assert _submit(client, {"firstName": f"person-{i}", "email": f"p{i}@x.com"}).status_code == 200

    listing = _list(client)
    assert listing["count"] == 3
    assert [r["firstName"] for r in listing["data"]] == ["person-2", "person-1", "person-0"]
    for record in listing["data"]:
        for hidden in ("ipAddress", "userAgent", "updatedAt", "version"):
            assert hidden not in record
        assert "createdAt" in record


def test_listing_is_empty_initially(client: TestClient) -> None:
    assert _list(client) == {"success": True, "count": 0, "data": []}


def test_oversized_file_is_rejected_without_saving(tmp_path: Path) -> None:
    settings = make_settings(tmp_path, max_file_size=1024)
    with TestClient(create_app(settings)) as client:
        response = _submit(
            client,
            {"email": "big@x.com"},
            [("identityDocument", _file("huge.pdf", b"0" * 4096))],
        )
        assert response.status_code == 413
        assert response.json() == {"success": False, "message": "File too large"}
        assert _list(client)["count"] == 0
    assert list((tmp_path / "uploads").iterdir()) == []


def test_duplicate_email_fails_with_generic_error(client: TestClient) -> None:
    assert _submit(client, {"email": "same@x.com"}).status_code == 200

    response = _submit(client, {"email": "same@x.com"})
    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Internal server error"}
    assert _list(client)["count"] == 1


def test_duplicate_email_allowed_when_uniqueness_disabled(tmp_path: Path) -> None:
    with TestClient(create_app(make_settings(tmp_path, unique_email=False))) as client:
        assert _submit(client, {"email": "same@x.com"}).status_code == 200
        assert _submit(client, {"email": "same@x.com"}).status_code == 200
        assert _list(client)["count"] == 2


def test_metadata_mode_records_no_storage_location(tmp_path: Path) -> None:
    with TestClient(create_app(make_settings(tmp_path, mode=UploadMode.METADATA))) as client:
        response = _submit(client, {"email": "m@x.com"}, [("residencyProof", _file("bill.pdf"))])
        assert response.status_code == 200

        doc = _list(client)["data"][0]["residencyProof"][0]
        assert doc == {"originalname": "bill.pdf", "mimetype": "application/pdf", "size": len(PDF[1])}
    assert not (tmp_path / "uploads").exists()


def test_invalid_rate_value_is_an_internal_error(client: TestClient) -> None:
    response = _submit(client, {"email": "r@x.com", "hourlyRate": "plenty"})
    assert response.status_code == 500
    assert response.json()["message"] == "Internal server error"
    assert _list(client)["count"] == 0


def test_non_multipart_body_is_an_internal_error(client: TestClient) -> None:
    response = client.post("/api/submit-form", json={"email": "j@x.com"})
    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Internal server error"}


def test_rate_limit_rejects_excess_requests_before_the_pipeline(tmp_path: Path) -> None:
    with TestClient(create_app(make_settings(tmp_path, max_requests=2))) as client:
        assert _submit(client, {"email": "1@x.com"}).status_code == 200
        assert _submit(client, {"email": "2@x.com"}).status_code == 200

        response = _submit(client, {"email": "3@x.com"})
        assert response.status_code == 429
        assert response.json() == {"success": False, "message": "Too many requests from this IP"}

        client.app.state.rate_limiter.reset()
        emails = {r["email"] for r in _list(client)["data"]}
        assert emails == {"1@x.com", "2@x.com"}


def test_unknown_route_returns_not_found_envelope(client: TestClient) -> None:
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Endpoint not found"}


def test_mail_is_sent_after_successful_submission(client: TestClient) -> None:
    calls = []

    class StubNotifier:
        async def send_confirmation(self, submission_id, submission):
            calls.append((submission_id, submission.fields.get("email")))
            return True

    client.app.state.notifier = StubNotifier()
    response = _submit(client, {"email": "mail@x.com"})

    assert calls == [(response.json()["data"]["id"], "mail@x.com")]


def test_mail_failure_does_not_affect_response(client: TestClient) -> None:
    class FailingNotifier:
        async def send_confirmation(self, submission_id, submission):
            raise RuntimeError("smtp down")

    client.app.state.notifier = FailingNotifier()
    response = _submit(client, {"email": "nomail@x.com"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert _list(client)["count"] == 1


def test_responses_carry_security_headers(client: TestClient) -> None:
    response = client.get("/health")
    assert response.json() == {"status": "ok", "version": "0.1.0"}
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["x-frame-options"] == "SAMEORIGIN"


def test_cors_allows_configured_frontend(client: TestClient) -> None:
    response = client.options(
        "/api/submissions",
        headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "GET"},
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


def test_unhandled_error_returns_generic_envelope_with_security_headers(tmp_path: Path) -> None:
    class ExplodingStore:
        async def save(self, assembled):
            raise RuntimeError("kaboom")

    app = create_app(make_settings(tmp_path))
    with TestClient(app, raise_server_exceptions=False) as client:
        app.state.store = ExplodingStore()
        response = _submit(client, {"email": "boom@x.com"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "An unexpected error occurred"}
    assert "kaboom" not in response.text
    assert response.headers["x-content-type-options"] == "nosniff"


def test_very_long_client_filename_is_accepted(client: TestClient) -> None:
    original = "a" * 250 + ".pdf"
    response = _submit(client, {"email": "long@x.com"}, [("identityDocument", _file(original))])
    assert response.status_code == 200

    doc = _list(client)["data"][0]["identityDocument"][0]
    assert doc["originalname"] == original
    assert len(doc["filename"].encode()) <= 255
    assert Path(doc["path"]).read_bytes() == PDF[1]
