"""Test fixtures for HTTP API tests."""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from chess_arena.main import create_app

API = "/api/v1"

ADMIN_HEADERS = {"X-User-Id": "admin-1", "X-User-Roles": "admin"}


def user_headers(user_id: str) -> dict[str, str]:
    return {"X-User-Id": user_id}


@pytest_asyncio.fixture
async def client(services) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to an app sharing the test's services."""
    app = create_app(services=services)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


async def create_match(client: AsyncClient, white: str = "alice", black: str = "bob") -> dict:
    response = await client.post(
        f"{API}/admin/matches",
        json={"whitePlayerId": white, "blackPlayerId": black},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def create_tournament(client: AsyncClient, **body) -> dict:
    response = await client.post(
        f"{API}/admin/tournaments",
        json={"name": "HTTP Cup", **body},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 201, response.text
    return response.json()
