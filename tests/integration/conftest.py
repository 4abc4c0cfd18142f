"""Integration test fixtures: the ASGI app over a per-test database."""

from collections.abc import AsyncGenerator
from typing import Any

import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from activity_ledger.api.app import create_app
from activity_ledger.config import Settings
from activity_ledger.database import Database

API = "/api/v1"


@pytest_asyncio.fixture
async def app(settings: Settings, database: Database) -> FastAPI:
    """Application bound to the test database."""
    return create_app(settings=settings, database=database)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def post_ok(client: AsyncClient, path: str, payload: dict[str, Any]) -> dict[str, Any]:
    """POST under the API prefix and return the created resource."""
    response = await client.post(f"{API}{path}", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest_asyncio.fixture
async def api_worker(client: AsyncClient) -> dict[str, Any]:
    return await post_ok(
        client, "/workers", {"name": "Ana Torres", "hourlyRate": 20.0, "specialty": "electrical"}
    )


@pytest_asyncio.fixture
async def api_client(client: AsyncClient) -> dict[str, Any]:
    return await post_ok(
        client,
        "/clients",
        {
            "name": "Acme Facilities",
            "contactName": "Dana Reyes",
            "email": "dana@acme.example",
            "billingRate": 50.0,
        },
    )


@pytest_asyncio.fixture
async def api_contract(client: AsyncClient, api_client: dict[str, Any]) -> dict[str, Any]:
    return await post_ok(
        client,
        "/contracts",
        {
            "clientId": api_client["id"],
            "orderNumber": "PO-1001",
            "totalHours": 10,
            "startDate": "2025-01-01T00:00:00Z",
            "endDate": "2025-12-31T00:00:00Z",
        },
    )
