"""
Tests for the generation and question admin endpoints.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from qbank.models.models import GenerationJob, Question
from qbank.services import storage


class TestStatusEndpoints:

    @pytest.mark.unit
    def test_status_lists_seeded_catalog(self, client: TestClient):
        response = client.get("/api/admin/generation/status")
        assert response.status_code == 200
        data = response.json()
        assert data["enabled"] is True
        assert data["total_target"] == 12500
        assert data["total_generated"] == 0
        assert data["model"] == "test-model"
        assert len(data["subjects"]) == 19
        assert data["subjects"][0]["subject"] == "Management of Care"
        assert data["by_category"]["TEAS"]["target"] == 2500

    @pytest.mark.unit
    def test_pause_and_resume(self, client: TestClient, db: Session):
        assert client.post("/api/admin/generation/pause").json() == {"enabled": False}
        assert storage.is_auto_generation_enabled(db) is False
        assert client.get("/api/admin/generation/status").json()["enabled"] is False

        assert client.post("/api/admin/generation/resume").json() == {"enabled": True}
        db.expire_all()
        assert storage.is_auto_generation_enabled(db) is True

    @pytest.mark.unit
    def test_trigger_runs_one_cycle(self, client: TestClient, fake_llm, db: Session):
        response = client.post("/api/admin/generation/trigger")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["saved"] == 10
        assert fake_llm.requested_counts == [10]
        assert db.query(Question).count() == 10

    @pytest.mark.unit
    def test_trigger_while_paused(self, client: TestClient, fake_llm):
        client.post("/api/admin/generation/pause")
        assert client.post("/api/admin/generation/trigger").json()["status"] == "disabled"
        assert fake_llm.calls == []


class TestJobEndpoints:

    @pytest.mark.unit
    def test_create_job(self, client: TestClient):
        response = client.post(
            "/api/admin/generation/jobs",
            json={"category": "NCLEX", "topic": "Insulin", "total_count": 20},
            headers={"X-User-Id": "admin-7"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["total_count"] == 20
        job = data["jobs"][0]
        assert job["status"] == "pending"
        assert job["created_by"] == "admin-7"
        assert job["batch_size"] == 5
        assert job["progress_percent"] == 0.0

    @pytest.mark.unit
    def test_create_distributed_jobs(self, client: TestClient):
        response = client.post(
            "/api/admin/generation/jobs",
            json={
                "category": "NCLEX",
                "topic": "Cardiac Medications",
                "total_count": 10,
                "areas_to_cover": "Beta Blockers; ACE Inhibitors; Anticoagulants",
            },
        )
        assert response.status_code == 201
        counts = [(j["topic"], j["total_count"]) for j in response.json()["jobs"]]
        assert counts == [("Beta Blockers", 4), ("ACE Inhibitors", 3), ("Anticoagulants", 3)]

    @pytest.mark.unit
    def test_create_job_validation(self, client: TestClient):
        bad_category = client.post(
            "/api/admin/generation/jobs",
            json={"category": "USMLE", "topic": "x", "total_count": 5},
        )
        assert bad_category.status_code == 422

        too_few = client.post(
            "/api/admin/generation/jobs",
            json={"category": "TEAS", "topic": "x", "total_count": 2, "areas_to_cover": "a, b, c"},
        )
        assert too_few.status_code == 400

    @pytest.mark.unit
    def test_job_lifecycle(self, client: TestClient, make_job, db: Session):
        job = make_job(status="running", error_count=2, last_error="boom")
        base = f"/api/admin/generation/jobs/{job.id}"

        assert client.get(base).json()["status"] == "running"

        paused = client.post(f"{base}/pause")
        assert paused.status_code == 200
        assert paused.json()["status"] == "paused"

        resumed = client.post(f"{base}/resume").json()
        assert resumed["status"] == "pending"
        assert resumed["error_count"] == 0
        assert resumed["last_error"] is None

        assert client.post(f"{base}/resume").status_code == 409

        deleted = client.delete(base)
        assert deleted.status_code == 200
        assert db.query(GenerationJob).count() == 0
        assert client.get(base).status_code == 404

    @pytest.mark.unit
    def test_unknown_job_404(self, client: TestClient):
        assert client.get("/api/admin/generation/jobs/999").status_code == 404
        assert client.post("/api/admin/generation/jobs/999/pause").status_code == 404
        assert client.delete("/api/admin/generation/jobs/999").status_code == 404

    @pytest.mark.unit
    def test_pause_completed_job_409(self, client: TestClient, make_job):
        job = make_job(status="completed", total_count=5, generated_count=5)
        assert client.post(f"/api/admin/generation/jobs/{job.id}/pause").status_code == 409

    @pytest.mark.unit
    def test_list_jobs(self, client: TestClient, make_job):
        make_job()
        make_job(status="failed")
        data = client.get("/api/admin/generation/jobs").json()
        assert data["total"] == 2
        failed = client.get("/api/admin/generation/jobs", params={"status": "failed"}).json()
        assert failed["total"] == 1
        assert client.get("/api/admin/generation/jobs", params={"status": "bogus"}).status_code == 400

    @pytest.mark.unit
    def test_logs_after_job_tick(self, client: TestClient, make_job, runtime, fake_llm):
        job = make_job(total_count=5)
        fake_llm.fail_next(message="quota exceeded")

        result = asyncio.run(runtime.queue.tick())
        assert result.status == "failed"

        logs = client.get("/api/admin/generation/logs", params={"job_id": job.id}).json()
        assert len(logs) == 1
        assert logs[0]["status"] == "failed"
        assert "quota exceeded" in logs[0]["error_message"]


class TestQuestionAdmin:

    @pytest.mark.unit
    def test_stats_and_delete_by_topic(self, client: TestClient, fake_llm):
        client.post("/api/admin/generation/trigger")

        stats = client.get("/api/admin/questions/stats").json()
        assert stats["total"] == 10
        assert stats["by_category"] == {"NCLEX": 10}

        response = client.delete(
            "/api/admin/questions/by-topic",
            params={"category": "NCLEX", "subject": "Management of Care"},
        )
        assert response.status_code == 200
        assert response.json()["deleted"] == 10
        assert client.get("/api/admin/questions/stats").json()["total"] == 0


class TestAdminToken:

    @pytest.mark.unit
    def test_token_required_when_configured(self, client: TestClient, monkeypatch):
        monkeypatch.setenv("ADMIN_API_TOKEN", "s3cret")

        assert client.get("/api/admin/generation/status").status_code == 401
        wrong = client.get(
            "/api/admin/generation/status", headers={"Authorization": "Bearer nope"}
        )
        assert wrong.status_code == 403
        ok = client.get(
            "/api/admin/generation/status", headers={"Authorization": "Bearer s3cret"}
        )
        assert ok.status_code == 200
        assert client.get("/api/admin/questions/stats").status_code == 401
