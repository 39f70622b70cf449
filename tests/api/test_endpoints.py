"""
API endpoint tests
"""

from datetime import datetime

import httpx
import pytest
import pytest_asyncio

from api.main import app
from api.dependencies import get_db
from ingestion.audit import record_pipeline_run
from schemas.pipeline import PipelineRunResult
from tests.factories import add_carelog, carelog_row


@pytest_asyncio.fixture
async def client(db_session):
    """Create test client with database override"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


def at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 3, day, hour, minute)


@pytest_asyncio.fixture
async def visits(db_session, organization, caregivers):
    """
    Ada: an on-time 2h visit and a late-ish visit with 30 minutes overtime.
    Grace: a late, short visit and a cancellation.
    """
    ada, grace = caregivers
    franchisor = organization["franchisor_id"]
    await add_carelog(db_session, ada, at(1, 9), at(1, 11), clock_in_actual_datetime=at(1, 9),
                      clock_out_actual_datetime=at(1, 11), status="completed",
                      general_comment_char_count=100, franchisor_id=franchisor)
    await add_carelog(db_session, ada, at(2, 9), at(2, 10), clock_in_actual_datetime=at(2, 9, 10),
                      clock_out_actual_datetime=at(2, 10, 40), status="completed",
                      general_comment_char_count=50, franchisor_id=franchisor)
    await add_carelog(db_session, grace, at(3, 9), at(3, 10), clock_in_actual_datetime=at(3, 9, 20),
                      clock_out_actual_datetime=at(3, 10), status="completed",
                      general_comment_char_count=30, franchisor_id=franchisor)
    await add_carelog(db_session, grace, at(4, 9), at(4, 10), status="cancelled",
                      general_comment_char_count=0, franchisor_id=franchisor)
    return caregivers


@pytest.mark.asyncio
async def test_root(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["endpoints"]["carelogs"] == "/carelogs"
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    response = await client.get("/", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_endpoint_database_connected(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database_connected"] is True
        assert data["recent_runs"] == []

    @pytest.mark.asyncio
    async def test_failed_latest_run_degrades(self, client, db_session):
        await record_pipeline_run(
            db_session,
            PipelineRunResult(entity="carelog", source_type="file", success=False),
            "broken.csv"
        )

        data = (await client.get("/health")).json()

        assert data["status"] == "degraded"
        assert data["recent_runs"][0]["status"] == "failed"


class TestCaregivers:

    @pytest.mark.asyncio
    async def test_list_with_pagination(self, client, caregivers):
        response = await client.get("/caregivers", params={"limit": 1})

        assert response.status_code == 200
        data = response.json()
        assert [c["id"] for c in data["items"]] == caregivers[:1]
        assert data["items"][0]["first_name"] == "Ada"
        assert data["pagination"] == {
            "total_items": 2, "limit": 1, "offset": 0, "has_next": True, "has_previous": False
        }

    @pytest.mark.asyncio
    async def test_status_filter(self, client, caregivers):
        data = (await client.get("/caregivers", params={"status": "deactivated"})).json()
        assert data["items"] == []
        assert data["filters_applied"] == {"status": "deactivated"}

        active = (await client.get("/caregivers/active")).json()
        assert active["pagination"]["total_items"] == 2

    @pytest.mark.asyncio
    async def test_get_and_not_found(self, client, caregivers):
        response = await client.get(f"/caregivers/{caregivers[1]}")
        assert response.status_code == 200
        assert response.json()["last_name"] == "Hopper"

        assert (await client.get("/caregivers/9999")).status_code == 404

    @pytest.mark.asyncio
    async def test_create(self, client, organization):
        payload = {
            "first_name": " Katherine ",
            "last_name": "Johnson",
            "email": " KJ@Example.COM ",
            "gender": "F",
            "caregiver_id": "EXT-42",
            "franchisor_id": organization["franchisor_id"],
            "hourly_rate": "$30",
        }

        response = await client.post("/caregivers", json=payload)

        assert response.status_code == 201
        data = response.json()
        assert data["first_name"] == "Katherine"
        assert data["email"] == "kj@example.com"
        assert data["gender"] == "female"
        assert data["external_system_id"] == "EXT-42"
        assert data["system_name"] == "legacy_csv"
        assert data["status"] == "active"

        duplicate = await client.post("/caregivers", json={**payload, "caregiver_id": "EXT-43"})
        assert duplicate.status_code == 409
        assert duplicate.json()["detail"]["category"] == "duplicate"

    @pytest.mark.asyncio
    async def test_create_invalid(self, client):
        response = await client.post("/caregivers", json={"first_name": "Solo"})

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["category"] == "validation"
        assert detail["errors"] == ["Missing or invalid required fields: last_name"]

    @pytest.mark.asyncio
    async def test_create_with_unknown_franchisor(self, client):
        response = await client.post("/caregivers", json={"first_name": "A", "last_name": "B", "franchisor_id": 404})

        assert response.status_code == 422
        assert response.json()["detail"]["category"] == "foreign_key"

    @pytest.mark.asyncio
    async def test_delete(self, client, caregivers):
        response = await client.delete(f"/caregivers/{caregivers[0]}")
        assert response.status_code == 204
        assert (await client.get(f"/caregivers/{caregivers[0]}")).status_code == 404

    @pytest.mark.asyncio
    async def test_delete_with_carelogs_refused(self, client, visits):
        response = await client.delete(f"/caregivers/{visits[0]}")
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_update(self, client, caregivers, organization):
        ada, grace = caregivers
        payload = {"status": "terminated", "email": " ADA@Example.com ", "hourly_rate": "$25"}

        response = await client.put(f"/caregivers/{ada}", json=payload)

        assert response.status_code == 200
        data = response.json()
        assert data["first_name"] == "Ada"
        assert data["email"] == "ada@example.com"
        assert data["sstatus"] == "terminated"
        assert data["status"] == "deactivated"
        assert data["hourly_rate"] == "25.00"
        assert data["franchisor_id"] == organization["franchisor_id"]

        # re-sending its own email is not a collision
        again = await client.put(f"/caregivers/{ada}", json={"email": "ada@example.com", "last_name": "King"})
        assert again.status_code == 200
        assert again.json()["last_name"] == "King"

        taken = await client.put(f"/caregivers/{grace}", json={"email": "ada@example.com"})
        assert taken.status_code == 409
        assert taken.json()["detail"]["category"] == "duplicate"

    @pytest.mark.asyncio
    async def test_update_rejections(self, client, caregivers):
        assert (await client.put("/caregivers/9999", json={"first_name": "Nobody"})).status_code == 404

        blank = await client.put(f"/caregivers/{caregivers[0]}", json={"last_name": ""})
        assert blank.status_code == 422
        assert blank.json()["detail"]["errors"] == ["Missing or invalid required fields: last_name"]

        orphan = await client.put(f"/caregivers/{caregivers[0]}", json={"franchisor_id": 404})
        assert orphan.status_code == 422
        assert orphan.json()["detail"]["category"] == "foreign_key"

        unchanged = (await client.get(f"/caregivers/{caregivers[0]}")).json()
        assert unchanged["last_name"] == "Lovelace"


class TestCarelogs:

    @pytest.mark.asyncio
    async def test_create_get_delete(self, client, caregivers):
        payload = {**carelog_row(1, caregivers[0]), "status": "Done"}

        created = await client.post("/carelogs", json=payload)

        assert created.status_code == 201
        carelog = created.json()
        assert carelog["external_id"] == "CL-001"
        assert carelog["status"] == "completed"
        assert carelog["start_datetime"] == "2024-03-01T09:00:00"

        fetched = await client.get(f"/carelogs/{carelog['id']}")
        assert fetched.json()["caregiver_id"] == caregivers[0]

        assert (await client.post("/carelogs", json=payload)).status_code == 409

        assert (await client.delete(f"/carelogs/{carelog['id']}")).status_code == 204
        assert (await client.get(f"/carelogs/{carelog['id']}")).status_code == 404

    @pytest.mark.asyncio
    async def test_create_rejects_bad_rows(self, client, caregivers):
        reversed_clock = {**carelog_row(1, caregivers[0]), "clock_out_actual_datetime": "2024-03-01 08:00:00"}
        response = await client.post("/carelogs", json=reversed_clock)
        assert response.status_code == 422
        assert response.json()["detail"]["errors"] == [
            "clock_out_actual_datetime must be after clock_in_actual_datetime"
        ]

        orphan = await client.post("/carelogs", json=carelog_row(2, 9999))
        assert orphan.status_code == 422
        assert orphan.json()["detail"]["category"] == "foreign_key"

    @pytest.mark.asyncio
    async def test_filters(self, client, visits):
        ada, grace = visits

        data = (await client.get("/carelogs", params={"caregiver_id": grace})).json()
        assert data["pagination"]["total_items"] == 2
        assert {c["caregiver_id"] for c in data["items"]} == {grace}

        cancelled = (await client.get("/carelogs", params={"status": "cancelled"})).json()
        assert [c["status"] for c in cancelled["items"]] == ["cancelled"]
        assert cancelled["filters_applied"] == {"status": "cancelled"}

        newest_first = (await client.get("/carelogs")).json()["items"]
        assert [c["start_datetime"][:10] for c in newest_first] == [
            "2024-03-04", "2024-03-03", "2024-03-02", "2024-03-01"
        ]

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, client):
        assert (await client.get("/carelogs", params={"status": "lost"})).status_code == 422

    @pytest.mark.asyncio
    async def test_update(self, client, caregivers):
        first = (await client.post("/carelogs", json=carelog_row(1, caregivers[0]))).json()
        await client.post("/carelogs", json=carelog_row(2, caregivers[0]))

        response = await client.put(
            f"/carelogs/{first['id']}", json={"status": "canceled", "general_comment_char_count": "75"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "cancelled"
        assert data["general_comment_char_count"] == 75
        assert data["external_id"] == "CL-001"
        assert data["start_datetime"] == "2024-03-01T09:00:00"

        moved = await client.put(f"/carelogs/{first['id']}", json={"caregiver_id": caregivers[1]})
        assert moved.json()["caregiver_id"] == caregivers[1]

    @pytest.mark.asyncio
    async def test_update_rejections(self, client, caregivers):
        first = (await client.post("/carelogs", json=carelog_row(1, caregivers[0]))).json()
        await client.post("/carelogs", json=carelog_row(2, caregivers[0]))
        url = f"/carelogs/{first['id']}"

        assert (await client.put("/carelogs/9999", json={"status": "completed"})).status_code == 404

        reversed_window = await client.put(url, json={"end_datetime": "2024-03-01 08:00:00"})
        assert reversed_window.status_code == 422
        assert reversed_window.json()["detail"]["errors"] == ["end_datetime must be after start_datetime"]

        taken = await client.put(url, json={"carelog_id": "CL-002"})
        assert taken.status_code == 409

        orphan = await client.put(url, json={"caregiver_id": 9999})
        assert orphan.status_code == 422
        assert orphan.json()["detail"]["category"] == "foreign_key"

        stored = (await client.get(url)).json()
        assert stored["external_id"] == "CL-001"
        assert stored["caregiver_id"] == caregivers[0]


class TestAnalytics:

    @pytest.mark.asyncio
    async def test_top_caregivers(self, client, visits):
        data = (await client.get("/analytics/top-caregivers")).json()

        assert data["metric"] == "top_caregivers"
        ada, grace = data["items"]
        assert ada["name"] == "Ada Lovelace"
        assert ada["total_visits"] == 2
        assert ada["total_visit_minutes"] == pytest.approx(210.0)
        assert ada["avg_visit_minutes"] == pytest.approx(105.0)
        assert ada["avg_clock_in_deviation_minutes"] == pytest.approx(5.0)
        assert ada["on_time_count"] == 1
        assert ada["performance_score"] == pytest.approx(2.15)
        assert grace["performance_score"] == pytest.approx(0.6)

    @pytest.mark.asyncio
    async def test_limit(self, client, visits):
        data = (await client.get("/analytics/top-caregivers", params={"limit": 1})).json()
        assert len(data["items"]) == 1

    @pytest.mark.asyncio
    async def test_low_reliability(self, client, visits):
        items = (await client.get("/analytics/low-reliability")).json()["items"]

        assert items[0]["name"] == "Grace Hopper"
        assert (items[0]["late_arrivals"], items[0]["cancellations"], items[0]["early_departures"]) == (1, 1, 0)
        assert (items[1]["late_arrivals"], items[1]["cancellations"]) == (0, 0)

    @pytest.mark.asyncio
    async def test_detailed_comments(self, client, visits):
        items = (await client.get("/analytics/detailed-comments")).json()["items"]

        assert [(i["name"], i["total_comment_chars"]) for i in items] == [("Ada Lovelace", 150), ("Grace Hopper", 30)]
        assert items[0]["avg_comment_length"] == pytest.approx(75.0)

    @pytest.mark.asyncio
    async def test_overtime(self, client, visits):
        items = (await client.get("/analytics/overtime")).json()["items"]

        assert len(items) == 1
        assert items[0]["caregiver_id"] == visits[0]
        assert items[0]["total_overtime_minutes"] == pytest.approx(30.0)

    @pytest.mark.asyncio
    async def test_franchise_performance(self, client, visits, organization):
        [franchise] = (await client.get("/analytics/franchise-performance")).json()["items"]

        assert franchise["franchisor_id"] == organization["franchisor_id"]
        assert franchise["total_visits"] == 4
        assert franchise["completed_visits"] == 3
        assert franchise["avg_comment_length"] == pytest.approx(45.0)
        assert franchise["total_overtime_minutes"] == pytest.approx(10.0)

    @pytest.mark.asyncio
    async def test_empty_store(self, client):
        data = (await client.get("/analytics/overtime")).json()
        assert data["items"] == []


class TestETL:

    @pytest.mark.asyncio
    async def test_run_and_list(self, client, caregivers, carelog_csv):
        path = carelog_csv([carelog_row(i, caregivers[0]) for i in range(1, 4)])

        response = await client.post("/etl/carelog/run", json={
            "source": {"type": "file", "path": str(path)},
            "options": {"batch_size": 10},
        })

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "success"
        assert data["result"]["loaded_count"] == 3
        assert data["result"]["state"] == "completed"

        runs = (await client.get("/etl/runs", params={"entity": "carelog"})).json()
        assert runs["total"] == 1
        assert runs["runs"][0]["run_id"] == data["run_id"]
        assert runs["runs"][0]["records_loaded"] == 3

    @pytest.mark.asyncio
    async def test_validate_only_run(self, client, caregivers, carelog_csv):
        path = carelog_csv([carelog_row(1, caregivers[0])])

        data = (await client.post("/etl/carelog/run", json={
            "source": {"type": "file", "path": str(path)},
            "options": {"validate_only": True},
        })).json()

        assert data["result"]["validate_only"] is True
        assert data["result"]["loaded_count"] == 0
        assert (await client.get("/carelogs")).json()["items"] == []

    @pytest.mark.asyncio
    async def test_configuration_errors(self, client):
        unknown = await client.post("/etl/visits/run", json={"source": {"type": "file", "path": "x.csv"}})
        assert unknown.status_code == 422
        assert unknown.json()["detail"]["category"] == "configuration"

        bad_batch = await client.post("/etl/carelog/run", json={
            "source": {"type": "file", "path": "x.csv"},
            "options": {"batch_size": 0},
        })
        assert bad_batch.status_code == 422

    @pytest.mark.asyncio
    async def test_unreadable_source(self, client, tmp_path):
        response = await client.post("/etl/caregiver/run", json={
            "source": {"type": "file", "path": str(tmp_path / "missing.csv")},
            "options": {"max_retries": 1},
        })

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["result"]["success"] is False
        assert detail["result"]["errors"][0].startswith("[extract] attempt 1/1 failed")

        runs = (await client.get("/etl/runs")).json()
        assert runs["runs"][0]["status"] == "failed"

    @pytest.mark.asyncio
    async def test_runs_unknown_entity(self, client):
        assert (await client.get("/etl/runs", params={"entity": "visits"})).status_code == 422
