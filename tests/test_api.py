import httpx
import pytest
from fastapi import FastAPI

from codefest.header_util import APP_NAME
from codefest.main import app, configure_cors
from codefest.routes.competition import get_competition_service
from codefest.services.competition_service import CompetitionService
from codefest.services.search import InMemorySearchIndex

pytestmark = pytest.mark.anyio


@pytest.fixture
async def client(session_factory):
    search_index = InMemorySearchIndex()

    async def _service():
        async with session_factory() as db:
            yield CompetitionService(db, search_index)

    app.dependency_overrides[get_competition_service] = _service
    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
            yield http
    finally:
        app.dependency_overrides.clear()


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}


async def test_competition_lifecycle(client):
    created = await client.post(
        "/api/competitions",
        json={"name": "CodeFest", "location": "Colombo", "start_date": "2017-05-01", "end_date": "2017-05-02"},
    )
    assert created.status_code == 201
    body = created.json()
    assert created.headers["location"] == f"/api/competitions/{body['id']}"

    updated = await client.put("/api/competitions", json={**body, "description": "Annual coding festival"})
    assert updated.status_code == 200
    assert updated.headers[f"x-{APP_NAME.lower()}-alert"].startswith("A competition is updated")

    listing = await client.get("/api/competitions", params={"page": 0, "size": 5, "sort": "name,desc"})
    assert listing.status_code == 200
    assert listing.headers["x-total-count"] == "1"
    assert [item["id"] for item in listing.json()] == [body["id"]]

    found = await client.get("/api/_search/competitions", params={"query": "festival"})
    assert found.status_code == 200
    assert [item["name"] for item in found.json()] == ["CodeFest"]

    deleted = await client.delete(f"/api/competitions/{body['id']}")
    assert deleted.status_code == 200
    assert deleted.content == b""

    missing = await client.get(f"/api/competitions/{body['id']}")
    assert missing.status_code == 404


async def test_create_with_id_returns_400_and_failure_alert(client):
    response = await client.post("/api/competitions", json={"id": 12, "name": "Preset"})

    assert response.status_code == 400
    assert response.headers[f"x-{APP_NAME.lower()}-error"] == "error.idexists"

    listing = await client.get("/api/competitions")
    assert listing.json() == []


async def test_invalid_payload_is_422(client):
    response = await client.post(
        "/api/competitions",
        json={"name": "Backwards", "start_date": "2017-05-02", "end_date": "2017-05-01"},
    )
    assert response.status_code == 422


async def test_invalid_sort_is_400(client):
    response = await client.get("/api/competitions", params={"sort": "secret,asc"})
    assert response.status_code == 400


async def test_search_requires_query(client):
    response = await client.get("/api/_search/competitions")
    assert response.status_code == 422


@pytest.mark.parametrize("method", ["get", "delete"])
async def test_out_of_range_ids_are_rejected(client, method):
    response = await getattr(client, method)("/api/competitions/99999999999999999999")
    assert response.status_code == 422


async def test_out_of_range_page_is_400(client):
    response = await client.get("/api/competitions", params={"page": 10**19})
    assert response.status_code == 400


async def test_create_with_out_of_range_id_is_422(client):
    response = await client.post("/api/competitions", json={"id": 10**20, "name": "Huge"})
    assert response.status_code == 422


async def test_cors_exposes_alert_and_paging_headers():
    cors_app = FastAPI()
    configure_cors(cors_app, "http://ui.example")

    @cors_app.get("/ping")
    async def ping():
        return {"ok": True}

    transport = httpx.ASGITransport(app=cors_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        response = await http.get("/ping", headers={"Origin": "http://ui.example"})

    exposed = {name.strip().lower() for name in response.headers["access-control-expose-headers"].split(",")}
    assert {
        "location",
        "link",
        "x-total-count",
        f"x-{APP_NAME.lower()}-alert",
        f"x-{APP_NAME.lower()}-error",
        f"x-{APP_NAME.lower()}-params",
    } <= exposed
