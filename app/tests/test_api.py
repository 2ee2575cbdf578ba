import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_clock, get_notifier, get_storage
from app.core.config import settings
from app.db.session import get_db
from app.main import app
from conftest import evaluation_payload

TAKER = {"X-Taker-Id": "taker-1"}


@pytest.fixture
def client(session_factory, clock, storage, notifier):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def evaluation(client):
    payload = evaluation_payload(with_essay=True).model_dump(mode="json")
    response = client.post("/api/v1/evaluations", json=payload)
    assert response.status_code == 201
    return response.json()


def _start(client, evaluation):
    return client.post(f"/api/v1/evaluations/{evaluation['id']}/start", headers=TAKER)


def test_health_check(client):
    assert client.get("/").json()["status"] == "ok"


def test_created_evaluation_hides_the_answer_key(client, evaluation):
    assert evaluation["max_score"] == 10
    assert all("correct_answer" not in q for q in evaluation["questions"])

    fetched = client.get(f"/api/v1/evaluations/{evaluation['id']}").json()
    assert fetched == evaluation


def test_invalid_evaluation(client):
    payload = evaluation_payload(passing_score=50).model_dump(mode="json")
    response = client.post("/api/v1/evaluations", json=payload)
    assert response.status_code == 422
    assert response.json()["code"] == "invalid_evaluation"


def test_unknown_evaluation(client):
    response = client.get("/api/v1/evaluations/0b7f4a4e-0000-4000-8000-000000000000")
    assert response.status_code == 404
    assert response.json()["code"] == "evaluation_not_found"


def test_start_then_resume(client, evaluation):
    first = _start(client, evaluation)
    assert first.status_code == 201
    assert first.json()["resumed"] is False
    assert len(first.json()["questions"]) == 3

    second = _start(client, evaluation)
    assert second.status_code == 200
    assert second.json()["resumed"] is True
    assert second.json()["session_id"] == first.json()["session_id"]


def test_taker_header_is_required(client, evaluation):
    response = client.post(f"/api/v1/evaluations/{evaluation['id']}/start")
    assert response.status_code == 422


def test_unpublished_evaluation_is_forbidden(client, evaluation):
    client.put(f"/api/v1/evaluations/{evaluation['id']}/publish", json={"published": False})
    response = _start(client, evaluation)
    assert response.status_code == 403
    assert response.json()["code"] == "not_available"


def test_full_attempt(client, clock, evaluation, tmp_path, monkeypatch):
    session_id = _start(client, evaluation).json()["session_id"]
    q1, q2, essay = (q["id"] for q in evaluation["questions"])
    base = f"/api/v1/sessions/{session_id}"

    clock.advance(minutes=1)
    saved = client.put(f"{base}/drafts/{q1}", json={"answer": "Paris"}, headers=TAKER)
    assert saved.status_code == 200
    assert client.get(f"{base}/drafts", headers=TAKER).json()["answers"] == {q1: "Paris"}

    status = client.get(f"{base}/status", headers=TAKER).json()
    assert status["status"] == "active"
    assert status["time_remaining_seconds"] == 540

    upload = client.post(
        f"{base}/attachments",
        files={"file": ("proof.txt", b"n/2 heads", "text/plain")},
        headers=TAKER,
    )
    assert upload.status_code == 201
    reference = upload.json()["reference"]

    clock.advance(minutes=1)
    submitted = client.post(
        f"{base}/submit",
        json={"answers": {q2: "5", essay: "Averages converge."}, "attachments": [reference]},
        headers=TAKER,
    )
    assert submitted.status_code == 200
    body = submitted.json()
    assert body["score"] == 2
    assert body["max_score"] == 5
    assert body["provisional"] is True
    assert body["status"] == "submitted"

    again = client.post(f"{base}/submit", json={"answers": {q2: "4"}}, headers=TAKER)
    assert again.status_code == 409
    assert again.json()["code"] == "session_already_submitted"

    result = client.get(f"{base}/result", headers=TAKER).json()
    assert result["scores"]["status"] == "Pending review"
    assert result["attachments"] == [reference]
    assert [d["status"] for d in result["details"]] == ["correct", "incorrect", "pending"]

    graded = client.put(
        f"/api/v1/results/{body['result_id']}/questions/{essay}/grade",
        json={"score": 5, "feedback": "Clear"},
    )
    assert graded.status_code == 200
    assert graded.json()["scores"]["provisional"] is False
    assert graded.json()["scores"]["max_score"] == 10
    assert graded.json()["scores"]["score"] == 7

    too_high = client.put(
        f"/api/v1/results/{body['result_id']}/questions/{essay}/grade",
        json={"score": 8},
    )
    assert too_high.status_code == 422
    assert too_high.json()["code"] == "score_out_of_range"

    monkeypatch.setattr(settings, "REPORTS_DIR", str(tmp_path / "reports"))
    download = client.get(f"{base}/result", params={"download": "true"}, headers=TAKER)
    assert download.status_code == 200
    assert download.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    )

    stats = client.get(f"/api/v1/evaluations/{evaluation['id']}/stats").json()
    assert stats["total_submissions"] == 1
    assert stats["graded_submissions"] == 1


def test_submit_after_deadline_is_gone(client, clock, evaluation):
    session_id = _start(client, evaluation).json()["session_id"]
    clock.advance(minutes=11)

    response = client.post(f"/api/v1/sessions/{session_id}/submit", json={}, headers=TAKER)
    assert response.status_code == 410
    assert response.json()["code"] == "session_expired"

    status = client.get(f"/api/v1/sessions/{session_id}/status", headers=TAKER).json()
    assert status["status"] == "expired"
    assert status["time_remaining_seconds"] == 0


def test_draft_for_unknown_question(client, evaluation):
    session_id = _start(client, evaluation).json()["session_id"]
    response = client.put(
        f"/api/v1/sessions/{session_id}/drafts/not-a-question",
        json={"answer": "x"},
        headers=TAKER,
    )
    assert response.status_code == 422
    assert response.json()["code"] == "unknown_question"


def test_sessions_are_private_to_their_taker(client, evaluation):
    session_id = _start(client, evaluation).json()["session_id"]
    response = client.get(
        f"/api/v1/sessions/{session_id}/status", headers={"X-Taker-Id": "intruder"}
    )
    assert response.status_code == 404


def test_oversized_upload(client, evaluation):
    session_id = _start(client, evaluation).json()["session_id"]
    response = client.post(
        f"/api/v1/sessions/{session_id}/attachments",
        files={"file": ("big.bin", b"x" * 4096, "application/octet-stream")},
        headers=TAKER,
    )
    assert response.status_code == 413
    assert response.json()["code"] == "attachment_rejected"


def test_result_before_submit(client, evaluation):
    session_id = _start(client, evaluation).json()["session_id"]
    response = client.get(f"/api/v1/sessions/{session_id}/result", headers=TAKER)
    assert response.status_code == 404
    assert response.json()["code"] == "result_not_found"
