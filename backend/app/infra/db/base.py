"""Declarative base, the JSON column type and DATABASE_URL handling."""
import os
import ssl
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# JSONB on Postgres, plain JSON elsewhere (sqlite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

_SYNC_PG_PREFIXES = ("postgresql://", "postgres://")


def normalize_async_pg_url(url: str) -> str:
    """Point a plain postgres URL at the asyncpg driver; other URLs pass through."""
    cleaned = (url or "").strip()
    for prefix in _SYNC_PG_PREFIXES:
        if cleaned.startswith(prefix):
            return "postgresql+asyncpg://" + cleaned[len(prefix):]
    return cleaned


def _ssl_for(sslmode: list[str]):
    if sslmode != ["require"]:
        return None
    if os.environ.get("DATABASE_SSL_VERIFY", "false").strip().lower() in ("true", "1"):
        return True
    # Managed Postgres hosts commonly present certificates the container cannot verify.
    unverified = ssl.create_default_context()
    unverified.check_hostname = False
    unverified.verify_mode = ssl.CERT_NONE
    return unverified


def async_pg_connect_args(url: str) -> dict:
    """asyncpg rejects sslmode; sslmode=require becomes an ``ssl`` connect arg instead."""
    ssl_arg = _ssl_for(parse_qs(urlparse(url).query, keep_blank_values=True).get("sslmode", []))
    return {} if ssl_arg is None else {"ssl": ssl_arg}


def async_pg_url_without_sslmode(url: str) -> str:
    parsed = urlparse(url)
    query = parse_qs(parsed.query, keep_blank_values=True)
    if query.pop("sslmode", None) is None:
        return url
    return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))


def engine_target(database_url: str) -> tuple[str, dict]:
    """Return ``(url, connect_args)`` ready for create_async_engine."""
    url = normalize_async_pg_url(database_url)
    return async_pg_url_without_sslmode(url), async_pg_connect_args(url)


class Base(DeclarativeBase):
    """Base class for bookings, profiles, wallets and the rest of the shared store."""


# Models register themselves via app/infra/db/models/__init__.py, which imports this
# module; importing models here would be circular.
