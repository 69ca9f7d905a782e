# tests/functional/test_main.py
from httpx import AsyncClient
from fastapi import status

from adminhub.db.database import transactions_available


async def test_liveness_check(client: AsyncClient):
    response = await client.get("/healthz")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "live"}

async def test_readiness_without_database(client: AsyncClient):
    # Startup is patched, so no database handle exists
    response = await client.get("/readyz")
    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    body = response.json()
    assert body["status"] == "not_ready"
    assert body["database"]["error"] == "Database not connected"

async def test_health_reports_database_and_storage(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["status"] == "ERROR"
    assert body["database"]["connected"] is False
    assert set(body["kyc_storage"]) == {"configured", "container"}
    assert "uptime" in body["application"]

def test_transactions_unavailable_before_connect():
    assert transactions_available() is False
