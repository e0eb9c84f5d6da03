"""Access-token verification.

Tokens are issued by the external identity provider as HS256 JWTs signed with
the shared project secret. We only verify them; issuance happens elsewhere.
"""
import logging
from typing import Any, Optional

import jwt

from app.domain.common.errors import AuthenticationError
from app.settings import settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    token = authorization[7:].strip()
    return token or None


def decode_access_token(token: str, secret: Optional[str] = None, audience: Optional[str] = None) -> dict[str, Any]:
    """Decode and verify an access token; raise AuthenticationError when invalid."""
    try:
        return jwt.decode(
            token,
            secret or settings.jwt_secret,
            algorithms=[ALGORITHM],
            audience=audience or settings.jwt_audience,
        )
    except jwt.PyJWTError as e:
        logger.info("Rejected access token: %s", e)
        raise AuthenticationError("Invalid or expired token") from e


def get_subject(token: str) -> str:
    """User id (``sub``) of a valid access token."""
    payload = decode_access_token(token)
    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError("Invalid or expired token")
    return str(subject)
