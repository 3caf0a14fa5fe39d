"""Tests for registration, login and token handling."""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from conftest import API, auth, register_customer, register_owner
from queuekill.core.security import create_access_token, decode_access_token


@pytest.mark.asyncio
async def test_register_customer(async_client: AsyncClient):
    """POST /auth/register-customer returns the user and a usable token."""
    data = await register_customer(async_client, email="  Casey@Example.COM ")
    assert data["user"]["email"] == "casey@example.com"
    assert data["user"]["role"] == "CUSTOMER"
    assert "hashedPassword" not in data["user"]

    payload = decode_access_token(data["token"])
    assert payload["sub"] == str(data["user"]["id"])
    assert payload["role"] == "CUSTOMER"


@pytest.mark.asyncio
async def test_register_owner_creates_restaurant_and_queue(async_client: AsyncClient):
    data = await register_owner(async_client)
    assert data["user"]["role"] == "OWNER"
    assert data["restaurant"]["name"] == "Luigi's Trattoria"
    assert data["restaurant"]["ownerId"] == data["user"]["id"]
    assert data["queue"]["name"] == "Main Queue"
    assert data["queue"]["restaurantId"] == data["restaurant"]["id"]


@pytest.mark.asyncio
async def test_register_owner_without_queue(async_client: AsyncClient):
    data = await register_owner(async_client, queue_name=None)
    assert data["queue"] is None


@pytest.mark.asyncio
async def test_duplicate_email_rejected(async_client: AsyncClient):
    """The same email cannot register twice, whatever the role."""
    await register_customer(async_client)
    resp = await async_client.post(
        f"{API}/auth/register-owner",
        json={
            "email": "customer@example.com",
            "password": "secret123",
            "name": "Again",
            "restaurantName": "Dup",
            "restaurantAddress": "Somewhere",
        },
    )
    assert resp.status_code == 409
    assert resp.json() == {"success": False, "error": "Email already registered"}


@pytest.mark.asyncio
async def test_register_validation_details(async_client: AsyncClient):
    resp = await async_client.post(
        f"{API}/auth/register-customer",
        json={"email": "not-an-email", "password": "123", "name": ""},
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Validation error"
    fields = {d["field"] for d in body["details"]}
    assert {"email", "password", "name"} <= fields


@pytest.mark.asyncio
async def test_register_owner_requires_restaurant(async_client: AsyncClient):
    resp = await async_client.post(
        f"{API}/auth/register-owner",
        json={"email": "o@example.com", "password": "secret123", "name": "O"},
    )
    assert resp.status_code == 400
    fields = {d["field"] for d in resp.json()["details"]}
    assert {"restaurantName", "restaurantAddress"} <= fields


@pytest.mark.asyncio
async def test_login_success(async_client: AsyncClient):
    await register_customer(async_client)
    resp = await async_client.post(
        f"{API}/auth/login", json={"email": "customer@example.com", "password": "secret123"}
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["user"]["email"] == "customer@example.com"
    assert decode_access_token(data["token"]) is not None


@pytest.mark.asyncio
async def test_login_wrong_password(async_client: AsyncClient):
    """Wrong password and unknown email give the same message."""
    await register_customer(async_client)
    wrong = await async_client.post(
        f"{API}/auth/login", json={"email": "customer@example.com", "password": "nope-nope"}
    )
    unknown = await async_client.post(
        f"{API}/auth/login", json={"email": "ghost@example.com", "password": "secret123"}
    )
    assert wrong.status_code == 401
    assert unknown.status_code == 401
    assert wrong.json()["error"] == unknown.json()["error"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_me_returns_profile(async_client: AsyncClient):
    data = await register_customer(async_client)
    resp = await async_client.get(f"{API}/auth/me", headers=auth(data["token"]))
    assert resp.status_code == 200
    me = resp.json()["data"]
    assert me["id"] == data["user"]["id"]
    assert me["name"] == "Casey Customer"
    assert "createdAt" in me


@pytest.mark.asyncio
async def test_me_requires_token(async_client: AsyncClient):
    resp = await async_client.get(f"{API}/auth/me")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_expired_token_rejected(async_client: AsyncClient):
    data = await register_customer(async_client)
    expired = create_access_token(data["user"]["id"], role="CUSTOMER", expires_delta=timedelta(seconds=-1))
    resp = await async_client.get(f"{API}/auth/me", headers=auth(expired))
    assert resp.status_code == 401
    assert resp.json()["error"] == "Invalid or expired token"


@pytest.mark.asyncio
async def test_token_for_deleted_user_rejected(async_client: AsyncClient):
    token = create_access_token(987654, role="CUSTOMER")
    resp = await async_client.get(f"{API}/auth/me", headers=auth(token))
    assert resp.status_code == 401


def test_non_access_token_type_rejected():
    from jose import jwt

    from queuekill.core.config import settings

    token = jwt.encode({"sub": "1", "type": "refresh"}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    assert decode_access_token(token) is None


@pytest.mark.asyncio
async def test_unknown_route_envelope(async_client: AsyncClient):
    resp = await async_client.get(f"{API}/nowhere")
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "error": f"Route GET {API}/nowhere not found"}


@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get(f"{API}/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "API is running"
    assert body["data"]["db"] is True
