"""Authentication boundary exposed as a FastAPI dependency.

``require_user`` resolves the calling user's id or raises 401. With
``AUTH_ENABLED=true`` the id comes from a verified bearer token; otherwise the
``X-User-Id`` header is trusted so local development needs no token service.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .token_factory import decode_token
from ..exceptions import AuthenticationError

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

MAX_USER_ID_LENGTH = 50


@dataclass(frozen=True)
class AuthContext:
    """Resolved identity of the caller."""

    user_id: str


def require_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    x_user_id: Optional[str] = Header(default=None),
) -> AuthContext:
    if settings.auth_enabled:
        if credentials is None:
            raise AuthenticationError("Missing authentication token")
        payload = decode_token(
            credentials.credentials, settings.jwt_secret_key, settings.jwt_algorithm
        )
        if payload is None:
            raise AuthenticationError("Invalid or expired token")
        return AuthContext(user_id=payload.sub)

    user_id = (x_user_id or "").strip()
    if not user_id:
        raise AuthenticationError("Missing X-User-Id header")
    if len(user_id) > MAX_USER_ID_LENGTH:
        raise AuthenticationError("Malformed user id")
    return AuthContext(user_id=user_id)
