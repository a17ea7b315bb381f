"""
Bearer token helpers.

Tokens are issued elsewhere; this module only decodes them into an Actor.
``create_access_token`` exists for tooling and tests.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, cast

import jwt
from jwt import PyJWTError

from .core.actor import Actor
from .core.config import settings

logger = logging.getLogger(__name__)


class InvalidTokenError(Exception):
    """Raised when a bearer token cannot be turned into an Actor."""


def _secret_value(secret_obj: Any) -> str:
    getter = getattr(secret_obj, "get_secret_value", None)
    if callable(getter):
        return cast(str, getter())
    return cast(str, secret_obj)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode; ``sub`` and ``kind`` identify the actor
        expires_delta: Optional expiration time delta
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, _secret_value(settings.secret_key), algorithm=settings.algorithm)


def create_actor_token(actor: Actor, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token({"sub": actor.id, "kind": actor.kind.value}, expires_delta)


def decode_access_token(token: str) -> Dict[str, Any]:
    payload_raw = jwt.decode(
        token,
        _secret_value(settings.secret_key),
        algorithms=[settings.algorithm],
        options={"verify_aud": False},
    )
    return cast(Dict[str, Any], payload_raw)


def actor_from_token(token: str) -> Actor:
    """Decode ``token`` and build the Actor from its ``sub``/``kind`` claims."""
    try:
        payload = decode_access_token(token)
    except PyJWTError as exc:
        logger.debug("Rejected bearer token: %s", exc)
        raise InvalidTokenError("Could not validate credentials") from exc

    subject = payload.get("sub")
    kind = payload.get("kind")
    if not subject or not kind:
        raise InvalidTokenError("Token is missing actor claims")
    try:
        return Actor(kind=kind, id=str(subject))
    except ValueError as exc:
        raise InvalidTokenError(f"Invalid actor claims: {exc}") from exc
