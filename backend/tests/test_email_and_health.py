"""Admin email endpoint, email providers and the health check."""
import pytest

from app.infra.messaging.email_base import (
    ConsoleEmailService,
    SendGridEmailService,
    get_email_service,
)
from app.readiness import check_push, check_scheduler, is_ready

from conftest import add_profile, auth_headers


async def test_send_admin_email_without_provider_is_queued(client, admin_headers):
    resp = await client.post("/send-admin-email", headers=admin_headers, json={
        "to": "driver@example.com", "subject": "Document expiry", "html": "<p>Please renew</p>",
    })

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["provider"] == "queue"


async def test_send_admin_email_requires_to_and_subject(client, admin_headers):
    resp = await client.post("/send-admin-email", headers=admin_headers, json={"to": "x@example.com"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing required fields: to, subject"}


async def test_send_admin_email_is_admin_only(client, db_session):
    merchant = await add_profile(db_session, role="merchant")
    resp = await client.post("/send-admin-email", headers=auth_headers(merchant), json={"to": "a@b.c", "subject": "s"})
    assert resp.status_code == 403


async def test_send_failure_is_500(app, client, admin_headers):
    class Broken(ConsoleEmailService):
        async def send(self, to_email, subject, html=None):
            raise RuntimeError("provider down")

    app.dependency_overrides[get_email_service] = lambda: Broken()
    resp = await client.post("/send-admin-email", headers=admin_headers, json={"to": "a@b.c", "subject": "s"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "provider down"}


def test_email_service_selection(test_settings):
    from app.settings import get_config_store

    assert isinstance(get_email_service(), ConsoleEmailService)
    get_config_store().update({"sendgrid_api_key": "SG.test"})
    service = get_email_service()
    assert isinstance(service, SendGridEmailService)
    assert service.api_key == "SG.test"


async def test_sendgrid_non_2xx_raises(monkeypatch):
    service = SendGridEmailService("SG.test", "noreply@dispatch.local", "Dispatch Admin")
    monkeypatch.setattr(service, "_send_sync", lambda to, subject, html: 400)
    with pytest.raises(RuntimeError):
        await service.send("a@b.c", "s")


async def test_health_reports_checks(client, monkeypatch):
    from app import readiness

    async def database_ok():
        return True, "ok"

    monkeypatch.setattr(readiness, "check_database", database_ok)
    resp = await client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["checks"]["config"] == "ok"
    assert body["checks"]["scheduler"] == "ok"


async def test_health_is_503_without_jwt_secret(client, monkeypatch, test_settings):
    from app import readiness
    from app.settings import get_config_store

    async def database_ok():
        return True, "ok"

    monkeypatch.setattr(readiness, "check_database", database_ok)
    get_config_store().update({"jwt_secret": ""})
    resp = await client.get("/health")

    assert resp.status_code == 503
    assert resp.json()["checks"]["config"] == "jwt_secret not configured"


def test_optional_checks_do_not_block_readiness(test_settings):
    from app.settings import get_config_store

    get_config_store().update({"firebase_service_account_json": "", "scheduled_order_cron_secret": "", "service_role_key": ""})
    checks = {
        "config": (True, "ok"),
        "database": (True, "ok"),
        "scheduler": check_scheduler(),
        "push": check_push(),
    }
    ready, summary = is_ready(checks)
    assert ready is True
    assert summary["push"] == "firebase_service_account_json not configured"
    assert summary["scheduler"] == "no scheduler secret configured"
