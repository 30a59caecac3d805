from __future__ import annotations

from typing import Iterable

import pytest
from fastapi.testclient import TestClient

from . import app as app_module
from .settings import settings


@pytest.fixture
def client(tmp_path, monkeypatch) -> Iterable[TestClient]:
    monkeypatch.setattr(settings, "data_dir", str(tmp_path))
    monkeypatch.setattr(settings, "smtp_user", "")
    monkeypatch.setattr(settings, "smtp_password", "")
    monkeypatch.setattr(settings, "public_base_url", "")
    with TestClient(app_module.app, raise_server_exceptions=False) as test_client:
        yield test_client


def _events():
    return [
        {"id": "jan", "title": "Demotion", "approximateDate": "2024-01-10"},
        {"id": "summer", "title": "First comment", "approximateDate": "Summer 2023"},
        {"id": "dec", "title": "Write-up", "approximateDate": "2023-12-01"},
    ]


def _submission_payload(user_id: str = "user-1"):
    return {
        "userId": user_id,
        "userEmail": "ana@example.com",
        "contactInfo": {"firstName": "Ana", "lastName": "Diaz", "email": "ana@example.com"},
        "employerInfo": {"companyName": "Acme"},
        "events": _events(),
        "complaints": [
            {"id": "c1", "title": "Told HR", "complaintDate": "2023-08-01", "relatedEventIds": ["summer"]}
        ],
    }


def test_health_endpoints(client: TestClient) -> None:
    for path in ("/health", "/health/live", "/health/ready"):
        res = client.get(path)
        assert res.status_code == 200, res.text
        assert res.json()["status"] == "ok"
        assert res.headers["X-Request-ID"]
    assert client.get("/health/ready").json()["store"] == "sqlite"


def test_request_id_is_echoed(client: TestClient) -> None:
    res = client.get("/health", headers={"X-Request-ID": "abc-123"})

    assert res.headers["X-Request-ID"] == "abc-123"


def test_parse_date(client: TestClient) -> None:
    res = client.post("/api/dates/parse", json={"text": "Early March 2024"})
    assert res.status_code == 200, res.text
    data = res.json()
    assert data["instant"].startswith("2024-03-05")
    assert data["isExact"] is False
    assert data["display"] == "Early March 2024"

    exact = client.post("/api/dates/parse", json={"text": "2024-03-15"}).json()
    assert exact["isExact"] is True
    assert exact["display"] == "03/15/2024"


def test_timeline_chronological_and_toggle(client: TestClient) -> None:
    res = client.post("/api/timeline", json={"events": _events()})
    assert res.status_code == 200, res.text
    data = res.json()
    assert [entry["id"] for entry in data["entries"]] == ["summer", "dec", "jan"]
    assert data["totalEntries"] == 3
    assert data["mode"] == "chronological"

    toggled = client.post("/api/timeline/toggle", json={"events": _events()}).json()
    assert toggled["mode"] == "custom"
    assert toggled["customOrder"] == ["summer", "dec", "jan"]


def test_timeline_merges_complaints(client: TestClient) -> None:
    payload = {
        "events": _events(),
        "complaints": [{"id": "c1", "title": "Told HR", "complaintDate": "2023-08-01"}],
        "mode": "custom",
        "customOrder": ["jan", "summer", "dec"],
    }
    data = client.post("/api/timeline", json=payload).json()

    assert [entry["id"] for entry in data["entries"]] == ["complaint_c1", "jan", "summer", "dec"]
    assert data["entries"][0]["kind"] == "complaint"


def test_move_event(client: TestClient) -> None:
    payload = {"events": _events(), "mode": "custom", "customOrder": ["jan", "summer", "dec"], "draggedId": "dec", "targetIndex": 0}
    res = client.post("/api/timeline/move", json=payload)
    assert res.status_code == 200, res.text
    assert res.json()["customOrder"] == ["dec", "jan", "summer"]

    payload["mode"] = "chronological"
    assert client.post("/api/timeline/move", json=payload).status_code == 409


def test_sort_and_reorder(client: TestClient) -> None:
    entries = [
        {"id": "a", "approximateDate": "Summer 2023"},
        {"id": "b", "approximateDate": "2024-01-10"},
    ]
    sorted_ids = [entry["id"] for entry in client.post("/api/timeline/sort", json={"entries": entries}).json()["entries"]]
    assert sorted_ids == ["b", "a"]

    res = client.post("/api/timeline/reorder", json={"order": ["a", "b", "c"], "draggedId": "c", "targetIndex": -3})
    assert res.json() == {"order": ["c", "a", "b"], "moved": True}

    res = client.post("/api/timeline/reorder", json={"order": ["a", "b"], "draggedId": "complaint_c1", "targetIndex": 0})
    assert res.json() == {"order": ["a", "b"], "moved": False}


def test_complaint_create_link_and_event_delete(client: TestClient) -> None:
    event = _events()[1]
    res = client.post(
        "/api/complaints",
        json={
            "userId": "user-1",
            "event": event,
            "title": "Told HR",
            "description": "Written complaint",
            "complaintTo": "HR",
            "complaintDate": "2023-08-01",
        },
    )
    assert res.status_code == 200, res.text
    created = res.json()
    complaint = created["complaints"][0]
    assert created["event"]["complaintId"] == complaint["id"]
    assert complaint["relatedEventIds"] == ["summer"]

    linked = client.post(
        "/api/complaints",
        json={"event": _events()[2], "complaints": created["complaints"], "complaintId": complaint["id"]},
    ).json()
    assert linked["complaints"][0]["relatedEventIds"] == ["summer", "dec"]
    assert linked["event"]["complaintId"] == complaint["id"]

    missing = client.post("/api/complaints", json={"event": event, "complaintId": "nope"})
    assert missing.status_code == 404

    incomplete = client.post("/api/complaints", json={"event": event, "title": "Only a title"})
    assert incomplete.status_code == 422

    res = client.post(
        "/api/events/delete",
        json={"events": _events(), "complaints": linked["complaints"], "eventId": "summer"},
    )
    data = res.json()
    assert [e["id"] for e in data["events"]] == ["dec", "jan"]
    assert data["complaints"][0]["relatedEventIds"] == ["dec"]


def test_submission_lifecycle(client: TestClient) -> None:
    client.put("/api/drafts/user-1/events", json={"value": _events()})

    res = client.post("/api/submissions", json=_submission_payload())
    assert res.status_code == 200, res.text
    data = res.json()
    assert data["created"] is True
    assert data["notification"]["success"] is False
    submission_id = data["id"]

    # Saving again updates the same document.
    again = client.post("/api/submissions", json=_submission_payload()).json()
    assert again["id"] == submission_id
    assert again["created"] is False

    # Drafts are cleared once the submission is stored.
    assert client.get("/api/drafts/user-1/events").status_code == 404

    fetched = client.get("/api/submissions/user-1")
    assert fetched.status_code == 200
    assert [event["id"] for event in fetched.json()["events"]] == ["dec", "jan", "summer"]

    review = client.get("/api/submissions/user-1/review")
    assert review.status_code == 200
    assert review.headers["content-type"].startswith("text/html")
    assert "Told HR" in review.text
    assert client.get("/api/submissions/user-1/review", params={"mode": "sideways"}).status_code == 400

    assert client.delete(f"/api/submissions/{submission_id}").status_code == 204
    assert client.get("/api/submissions/user-1").status_code == 404
    assert client.delete(f"/api/submissions/{submission_id}").status_code == 404


def test_submission_requires_events(client: TestClient) -> None:
    payload = _submission_payload()
    payload["events"] = []

    assert client.post("/api/submissions", json=payload).status_code == 422


def test_attachment_upload_and_download(client: TestClient) -> None:
    res = client.post(
        "/api/attachments/user-1/summer",
        files=[
            ("files", ("note.txt", b"hello", "text/plain")),
            ("files", ("photo.png", b"\x89PNG", "image/png")),
        ],
    )
    assert res.status_code == 200, res.text
    data = res.json()
    assert data["uploaded"] == 2 and data["failed"] == 0
    url = data["attachments"][0]["url"]
    assert url.startswith("/files/timeline-attachments/user-1/summer/")

    download = client.get(url)
    assert download.status_code == 200
    assert download.content == b"hello"
    assert client.get("/files/timeline-attachments/user-1/summer/missing.txt").status_code == 404


def test_attachment_rejects_disallowed_type(client: TestClient) -> None:
    res = client.post(
        "/api/attachments/user-1/summer",
        files=[("files", ("tool.exe", b"MZ", "application/x-msdownload"))],
    )

    assert res.status_code == 400


def test_drafts(client: TestClient) -> None:
    res = client.put("/api/drafts/user-1/contact_info", json={"value": {"firstName": "Ana"}})
    assert res.status_code == 200, res.text
    assert res.json()["expiresAt"]

    assert client.get("/api/drafts/user-1/contact_info").json()["value"] == {"firstName": "Ana"}
    assert client.get("/api/drafts/user-1/unknown_key").status_code == 400

    assert client.delete("/api/drafts/user-1/contact_info").status_code == 204
    assert client.get("/api/drafts/user-1/contact_info").status_code == 404

    client.put("/api/drafts/user-1/current_step", json={"value": 2})
    assert client.delete("/api/drafts/user-1").status_code == 204
    assert client.get("/api/drafts/user-1/current_step").status_code == 404


def test_notification_check_without_credentials(client: TestClient) -> None:
    res = client.get("/api/notifications/check")

    assert res.status_code == 400
    assert res.json()["password"] == "Not set"


def test_uploaded_markup_is_never_served_as_html(client: TestClient) -> None:
    res = client.post(
        "/api/attachments/u1/e1",
        files=[("files", ("evil.html", b"<script>alert(1)</script>", "image/png"))],
    )
    assert res.status_code == 200, res.text
    url = res.json()["attachments"][0]["url"]
    assert url.endswith(".png")

    download = client.get(url)
    assert download.status_code == 200
    assert not download.headers["content-type"].startswith("text/html")
    assert download.headers["x-content-type-options"] == "nosniff"
    assert download.headers["content-disposition"].startswith("attachment")


def test_delete_attachment(client: TestClient) -> None:
    res = client.post("/api/attachments/u1/e1", files=[("files", ("note.txt", b"hi", "text/plain"))])
    url = res.json()["attachments"][0]["url"]

    assert client.delete("/api/attachments", params={"url": url}).status_code == 204
    assert client.get(url).status_code == 404
    assert client.delete("/api/attachments", params={"url": url}).status_code == 404
    assert client.delete("/api/attachments", params={"url": "/elsewhere/a/b/c.txt"}).status_code == 400


def test_update_submission_status(client: TestClient) -> None:
    submission_id = client.post("/api/submissions", json=_submission_payload()).json()["id"]

    res = client.patch(f"/api/submissions/{submission_id}/status", json={"status": "reviewed"})
    assert res.status_code == 200, res.text
    assert res.json()["status"] == "reviewed"
    assert client.get("/api/submissions/user-1").json()["status"] == "reviewed"

    assert client.patch("/api/submissions/missing/status", json={"status": "reviewed"}).status_code == 404
    assert client.patch(f"/api/submissions/{submission_id}/status", json={"status": "lost"}).status_code == 422


def test_reorder_never_moves_complaint_entries(client: TestClient) -> None:
    res = client.post(
        "/api/timeline/reorder",
        json={"order": ["a", "complaint_c1", "b"], "draggedId": "complaint_c1", "targetIndex": 0},
    )

    assert res.json() == {"order": ["a", "complaint_c1", "b"], "moved": False}


def test_run_serves_the_app_with_uvicorn(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(app_module.uvicorn, "run", lambda *args, **kwargs: calls.append((args, kwargs)))
    monkeypatch.setattr(settings, "host", "0.0.0.0")
    monkeypatch.setattr(settings, "port", 9000)

    app_module.run()

    (args, kwargs), = calls
    assert args == (app_module.app,)
    assert kwargs["host"] == "0.0.0.0"
    assert kwargs["port"] == 9000
