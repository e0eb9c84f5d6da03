"""Admin client for the external identity provider (GoTrue-compatible admin API)."""
import logging
from typing import Any, Optional

import httpx

from app.domain.accounts.models import IdentityUser
from app.domain.common.errors import ConfigurationError, UpstreamStoreError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class IdentityAdminClient:
    """Creates, deletes and lists identity users with the privileged key."""

    def __init__(
        self,
        base_url: str,
        service_role_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_role_key = service_role_key
        self.http_client = http_client
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if not self.base_url or not self.service_role_key:
            raise ConfigurationError()
        url = f"{self.base_url}/auth/v1/admin{path}"
        try:
            if self.http_client is not None:
                return await self.http_client.request(method, url, headers=self._headers(), **kwargs)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(method, url, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.error("Identity provider %s %s failed: %s", method, path, e)
            raise UpstreamStoreError(f"Identity provider unreachable: {e}") from e

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text or f"HTTP {resp.status_code}"
        return body.get("msg") or body.get("message") or body.get("error") or f"HTTP {resp.status_code}"

    async def create_user(self, email: str, password: str, role: str) -> IdentityUser:
        resp = await self._request("POST", "/users", json={
            "email": email,
            "password": password,
            "email_confirm": True,
            "user_metadata": {"role": role},
        })
        if resp.status_code >= 400:
            raise UpstreamStoreError(self._error_message(resp))
        data = resp.json()
        logger.info("Created identity user %s (%s)", data.get("id"), role)
        return IdentityUser(id=data["id"], email=data.get("email"))

    async def delete_user(self, user_id: str) -> bool:
        resp = await self._request("DELETE", f"/users/{user_id}")
        if resp.status_code == 404:
            return False
        if resp.status_code >= 400:
            message = self._error_message(resp)
            if "not found" in message.lower():
                return False
            raise UpstreamStoreError(message)
        return True

    async def list_users(self, page: int, per_page: int) -> list[IdentityUser]:
        resp = await self._request("GET", "/users", params={"page": page, "per_page": per_page})
        if resp.status_code >= 400:
            raise UpstreamStoreError(self._error_message(resp))
        data = resp.json()
        users = data.get("users", []) if isinstance(data, dict) else data
        return [IdentityUser(id=u["id"], email=u.get("email")) for u in users if u.get("id")]
