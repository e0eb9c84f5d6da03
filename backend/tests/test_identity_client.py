"""Identity provider admin client against a mocked HTTP API."""
import json

import httpx
import pytest

from app.domain.common.errors import ConfigurationError, UpstreamStoreError
from app.infra.identity.client import IdentityAdminClient


def _client(handler) -> tuple[IdentityAdminClient, httpx.AsyncClient]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return IdentityAdminClient("http://identity.test/", "service-key", http_client=http), http


async def test_create_user_sends_confirmed_user_with_role():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "u-1", "email": "d@example.com"})

    client, http = _client(handler)
    async with http:
        user = await client.create_user("d@example.com", "pw", "driver")

    assert (user.id, user.email) == ("u-1", "d@example.com")
    request = seen[0]
    assert str(request.url) == "http://identity.test/auth/v1/admin/users"
    assert request.headers["apikey"] == "service-key"
    assert request.headers["authorization"] == "Bearer service-key"
    assert json.loads(request.content) == {
        "email": "d@example.com",
        "password": "pw",
        "email_confirm": True,
        "user_metadata": {"role": "driver"},
    }


async def test_create_user_error_message_is_surfaced():
    client, http = _client(lambda request: httpx.Response(422, json={"msg": "User already registered"}))
    async with http:
        with pytest.raises(UpstreamStoreError) as exc:
            await client.create_user("d@example.com", "pw", "driver")
    assert exc.value.message == "User already registered"


async def test_delete_user_treats_not_found_as_already_gone():
    responses = iter([
        httpx.Response(200, json={}),
        httpx.Response(404, json={"msg": "User not found"}),
        httpx.Response(400, json={"message": "user not found"}),
    ])
    client, http = _client(lambda request: next(responses))
    async with http:
        assert await client.delete_user("u-1") is True
        assert await client.delete_user("u-1") is False
        assert await client.delete_user("u-1") is False


async def test_list_users_reads_paged_envelope():
    def handler(request):
        assert request.url.params["page"] == "2"
        assert request.url.params["per_page"] == "1000"
        return httpx.Response(200, json={"users": [{"id": "u-1", "email": "a@b.c"}, {"email": "no-id"}]})

    client, http = _client(handler)
    async with http:
        users = await client.list_users(2, 1000)
    assert [(u.id, u.email) for u in users] == [("u-1", "a@b.c")]


async def test_unreachable_provider_and_missing_config():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    client, http = _client(handler)
    async with http:
        with pytest.raises(UpstreamStoreError):
            await client.list_users(1, 10)

    with pytest.raises(ConfigurationError):
        await IdentityAdminClient("", "").list_users(1, 10)
