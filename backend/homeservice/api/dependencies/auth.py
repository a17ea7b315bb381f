# backend/homeservice/api/dependencies/auth.py
"""
Authentication dependencies.

The core only ever sees an explicit Actor. A missing or undecodable token is
rejected here with 401, before any domain authorization (403) is evaluated.
"""

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from ...auth import InvalidTokenError, actor_from_token
from ...core.actor import Actor

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


def get_current_actor(token: str | None = Depends(oauth2_scheme)) -> Actor:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return actor_from_token(token)
    except InvalidTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        )
