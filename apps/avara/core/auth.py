"""Bearer-token authentication.

Tokens are HS256 JWTs issued by the account service. The user id is taken
from ``sub``, then ``userId``, then ``id``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from avara.core.exceptions import AuthenticationError, ConfigurationError
from avara.core.settings import settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str | None = None
    roles: tuple[str, ...] = field(default_factory=tuple)


def decode_token(token: str, *, secret: str | None = None, algorithm: str | None = None) -> CurrentUser:
    if secret is None:
        if settings.jwt_secret is None or not settings.jwt_secret.get_secret_value():
            raise ConfigurationError("JWT_SECRET is not configured")
        secret = settings.jwt_secret.get_secret_value()
    algorithm = algorithm or settings.jwt_algorithm

    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.PyJWTError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise AuthenticationError("Unauthorized: invalid token") from exc

    user_id = payload.get("sub") or payload.get("userId") or payload.get("id")
    if not user_id:
        raise AuthenticationError("Unauthorized: token has no subject")

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    return CurrentUser(id=str(user_id), email=payload.get("email"), roles=tuple(str(r) for r in roles))


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser:
    """FastAPI dependency resolving the caller from the Authorization header."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Unauthorized: missing token")
    return decode_token(credentials.credentials)


__all__ = ["CurrentUser", "bearer_scheme", "decode_token", "get_current_user"]
