"""Tests for API endpoints."""

import asyncio
import uuid
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from adjudicator.api.routes import app, get_store
from adjudicator.schemas import DeclinedClaimResult
from conftest import InMemoryClaimStore, make_claim


@pytest.fixture
def test_client(store: InMemoryClaimStore) -> TestClient:
    """Create a test client backed by the in-memory store.

    Returns:
        TestClient: FastAPI test client (lifespan not run)
    """
    app.dependency_overrides[get_store] = lambda: store
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_overrides():
    """Remove dependency overrides after each test."""
    yield
    app.dependency_overrides.clear()


class TestPipelineJobEndpoints:
    """Test suite for pipeline job submission and status."""

    def test_create_job_enqueues(self, test_client: TestClient, store: InMemoryClaimStore) -> None:
        """Test that a submitted CSV creates a pending job and enqueues it."""
        with patch("adjudicator.api.routes.run_pipeline_job") as task:
            response = test_client.post(
                "/v1/pipeline/jobs", json={"csv": "a,b\nT-1,x\n", "batch_size": 5}
            )

        assert response.status_code == 202
        data = response.json()
        assert data["status"] == "pending"
        job_id = uuid.UUID(data["job_id"])
        task.delay.assert_called_once_with(str(job_id))
        assert store.jobs[job_id].batch_size == 5
        assert store.jobs[job_id].csv_content == "a,b\nT-1,x\n"

    def test_create_job_default_batch_size(self, test_client: TestClient, store: InMemoryClaimStore) -> None:
        """Test that an omitted batch size falls back to the configured default."""
        with patch("adjudicator.api.routes.run_pipeline_job"), patch(
            "adjudicator.api.routes.settings.pipeline_batch_size", 7
        ):
            response = test_client.post("/v1/pipeline/jobs", json={"csv": "a,b\n"})

        job_id = uuid.UUID(response.json()["job_id"])
        assert store.jobs[job_id].batch_size == 7

    def test_enqueue_failure_marks_job_failed(self, test_client: TestClient, store: InMemoryClaimStore) -> None:
        """Test that a broker outage gives 503 and a failed job."""
        task = MagicMock()
        task.delay.side_effect = ConnectionError("redis down")
        with patch("adjudicator.api.routes.run_pipeline_job", task):
            response = test_client.post("/v1/pipeline/jobs", json={"csv": "a,b\n"})

        assert response.status_code == 503
        (job,) = store.jobs.values()
        assert job.status == "failed"
        assert "redis down" in job.error_message

    @pytest.mark.parametrize(
        "body",
        [{"csv": ""}, {}, {"csv": "a,b\n", "batch_size": 0}],
    )
    def test_create_job_validation(self, test_client: TestClient, body: dict) -> None:
        """Test that an empty CSV or a non-positive batch size is rejected."""
        with patch("adjudicator.api.routes.run_pipeline_job") as task:
            response = test_client.post("/v1/pipeline/jobs", json=body)

        assert response.status_code == 422
        task.delay.assert_not_called()

    def test_get_job(self, test_client: TestClient, store: InMemoryClaimStore) -> None:
        """Test that a job's progress is returned without its CSV."""
        job = asyncio.run(store.create_job("a,b\n", batch_size=3))
        store.jobs[job.id] = job.model_copy(update={"claims_processed": 2, "status": "processing"})

        response = test_client.get(f"/v1/pipeline/jobs/{job.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "processing"
        assert data["claims_processed"] == 2
        assert "csv_content" not in data

    def test_get_unknown_job(self, test_client: TestClient) -> None:
        """Test that an unknown job id gives 404."""
        response = test_client.get(f"/v1/pipeline/jobs/{uuid.uuid4()}")

        assert response.status_code == 404

    def test_get_job_invalid_id(self, test_client: TestClient) -> None:
        """Test that a malformed job id fails validation."""
        assert test_client.get("/v1/pipeline/jobs/not-a-uuid").status_code == 422

    def test_list_jobs_newest_first(self, test_client: TestClient, store: InMemoryClaimStore) -> None:
        """Test that jobs are listed in reverse creation order."""
        first = asyncio.run(store.create_job("a\n"))
        second = asyncio.run(store.create_job("b\n"))

        response = test_client.get("/v1/pipeline/jobs")

        assert response.status_code == 200
        assert [j["id"] for j in response.json()] == [str(second.id), str(first.id)]


class TestReportingEndpoints:
    """Test suite for accuracy and health."""

    def test_accuracy(self, test_client: TestClient, store: InMemoryClaimStore) -> None:
        """Test that stored decisions are scored against ground truth."""
        asyncio.run(store.upsert_claim(make_claim("T-1", approved_benefit_amount=0.0)))
        asyncio.run(store.upsert_claim(make_claim("T-2")))
        store.results["T-1"] = DeclinedClaimResult(
            tracking_number="T-1",
            tenant_name="Jane Doe",
            max_benefit=2500.0,
            monthly_rent=1200.0,
            is_first_month_paid=False,
            first_month_paid_evidence="none",
            is_first_month_sdi_premium_paid=False,
            first_month_sdi_premium_paid_evidence="none",
            decision_summary="Declined.",
        )

        response = test_client.get("/v1/accuracy")

        assert response.status_code == 200
        data = response.json()
        assert data["metrics"]["total_claims"] == 1
        assert data["metrics"]["status_accuracy"]["accuracy"] == 100.0
        assert data["claims"][0]["tracking_number"] == "T-1"

    def test_store_unavailable(self) -> None:
        """Test that endpoints answer 503 before the store is initialised."""
        response = TestClient(app).get("/v1/pipeline/jobs")

        assert response.status_code == 503

    def test_health_without_engine(self) -> None:
        """Test that health reports 503 when the database is not initialised."""
        response = TestClient(app).get("/v1/health")

        assert response.status_code == 503
