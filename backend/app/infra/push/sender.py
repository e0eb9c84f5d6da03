"""Push notification sender via FCM HTTP v1 (Firebase Cloud Messaging)."""
import asyncio
import base64
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol

import httpx

from app.domain.common.errors import ConfigurationError
from app.settings import settings

logger = logging.getLogger(__name__)

FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
# Refresh the cached OAuth token this long before it actually expires
TOKEN_REFRESH_MARGIN = timedelta(seconds=60)


class PushGateway(Protocol):
    async def send(self, token: str, title: str, body: str, data: Optional[dict[str, str]] = None) -> dict[str, Any]:
        ...


def parse_service_account(raw: str) -> dict[str, Any]:
    """Service account JSON, given either raw or base64-encoded."""
    raw = (raw or "").strip()
    if not raw:
        raise ConfigurationError("FIREBASE_SERVICE_ACCOUNT_JSON not configured")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        data = json.loads(base64.b64decode(raw).decode("utf-8"))
    if not isinstance(data, dict):
        raise ConfigurationError("FIREBASE_SERVICE_ACCOUNT_JSON is not a JSON object")
    return data


def build_message(token: str, title: str, body: str, data: Optional[dict[str, str]] = None) -> dict[str, Any]:
    """FCM v1 message: high priority on Android, default sound on APNs."""
    message: dict[str, Any] = {
        "token": token,
        "notification": {"title": title, "body": body},
        "android": {"priority": "high"},
        "apns": {"payload": {"aps": {"sound": "default"}}},
    }
    if data:
        # FCM data payload: all values must be strings
        message["data"] = {str(k): str(v) for k, v in data.items() if v is not None}
    return {"message": message}


class FcmPushGateway:
    """Sends one FCM message per device token with a cached OAuth access token."""

    def __init__(
        self,
        project_id: str,
        service_account_json: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.project_id = project_id
        self.service_account_json = service_account_json
        self.http_client = http_client
        self.timeout = timeout
        self._credential = None
        self._access_token: Optional[str] = None
        self._expires_at: Optional[datetime] = None

    def _get_credential(self):
        if self._credential is None:
            from firebase_admin import credentials
            self._credential = credentials.Certificate(parse_service_account(self.service_account_json))
        return self._credential

    def _fetch_access_token(self) -> tuple[str, datetime]:
        info = self._get_credential().get_access_token()
        expiry = info.expiry or (datetime.now(timezone.utc) + timedelta(hours=1))
        # google-auth reports expiry as naive UTC
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return info.access_token, expiry

    async def access_token(self) -> str:
        """Cached token, refreshed 60 s before expiry."""
        now = datetime.now(timezone.utc)
        if self._access_token and self._expires_at and self._expires_at - TOKEN_REFRESH_MARGIN > now:
            return self._access_token
        token, expiry = await asyncio.to_thread(self._fetch_access_token)
        self._access_token, self._expires_at = token, expiry
        logger.info("FCM access token refreshed, valid until %s", expiry.isoformat())
        return token

    async def _post(self, url: str, headers: dict[str, str], payload: dict[str, Any]) -> httpx.Response:
        if self.http_client is not None:
            return await self.http_client.post(url, headers=headers, json=payload)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, headers=headers, json=payload)

    async def send(self, token: str, title: str, body: str, data: Optional[dict[str, str]] = None) -> dict[str, Any]:
        """Send one message. Returns ``{"success": bool, "messageId"|"error": ...}``."""
        access = await self.access_token()
        resp = await self._post(
            FCM_SEND_URL.format(project_id=self.project_id),
            {"Authorization": f"Bearer {access}", "Content-Type": "application/json"},
            build_message(token, title, body, data),
        )
        try:
            result = resp.json()
        except ValueError:
            result = {}
        if resp.status_code >= 400:
            error = (result.get("error") or {}).get("message") if isinstance(result.get("error"), dict) else None
            logger.warning("FCM send failed HTTP_%s for token %s...: %s", resp.status_code, token[:20], result)
            return {"success": False, "error": error or "FCM error"}
        return {"success": True, "messageId": result.get("name")}


_gateway: Optional[FcmPushGateway] = None


def get_push_gateway() -> FcmPushGateway:
    """Process-wide gateway (keeps the token cache). Raises when push is not configured."""
    global _gateway
    if not settings.firebase_project_id:
        raise ConfigurationError("FIREBASE_PROJECT_ID not configured")
    if _gateway is None or _gateway.project_id != settings.firebase_project_id:
        _gateway = FcmPushGateway(settings.firebase_project_id, settings.firebase_service_account_json)
    return _gateway
