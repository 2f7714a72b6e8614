"""
Bearer-token authentication.

Tokens are JWTs verified with python-jose.  Identity-provider claims
(``uid``/``sub``, ``email``, ``name`` and Firebase's
``firebase.sign_in_provider``) are mapped onto an AuthenticatedUser.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from commons import ApiError
from configs.config import get_config

logger = logging.getLogger(__name__)
cfg = get_config()

bearer_scheme = HTTPBearer(auto_error=False)


class AuthenticatedUser(BaseModel):
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
    is_anonymous: bool = False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a new JWT access token."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=cfg.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    if cfg.JWT_AUDIENCE and "aud" not in to_encode:
        to_encode["aud"] = cfg.JWT_AUDIENCE
    if cfg.JWT_ISSUER and "iss" not in to_encode:
        to_encode["iss"] = cfg.JWT_ISSUER
    return jwt.encode(to_encode, cfg.JWT_SECRET_KEY, algorithm=cfg.JWT_ALGORITHM)


def user_from_claims(payload: Dict[str, Any]) -> Optional[AuthenticatedUser]:
    """Build a user from verified claims; None when no subject is present."""
    uid = payload.get("uid") or payload.get("sub")
    if not uid:
        return None
    provider = (payload.get("firebase") or {}).get("sign_in_provider")
    return AuthenticatedUser(
        uid=str(uid),
        email=payload.get("email"),
        name=payload.get("name"),
        is_anonymous=provider == "anonymous" or bool(payload.get("is_anonymous")),
    )


def verify_token(token: str) -> AuthenticatedUser:
    """Decode and validate ``token``; raises ApiError(403) when invalid."""
    invalid = ApiError(403, "Invalid or expired token", "INVALID_TOKEN")
    options = {"verify_aud": bool(cfg.JWT_AUDIENCE)}
    try:
        payload = jwt.decode(
            token,
            cfg.JWT_SECRET_KEY,
            algorithms=[cfg.JWT_ALGORITHM],
            audience=cfg.JWT_AUDIENCE,
            issuer=cfg.JWT_ISSUER,
            options=options,
        )
    except JWTError as exc:
        logger.warning("Rejected bearer token: %s", exc)
        raise invalid

    user = user_from_claims(payload)
    if user is None:
        logger.warning("Rejected bearer token without subject")
        raise invalid
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthenticatedUser:
    """Dependency to retrieve the current user from the bearer token."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise ApiError(401, "Missing token", "MISSING_TOKEN")
    return verify_token(credentials.credentials)


async def require_non_anonymous(
    user: AuthenticatedUser = Depends(get_current_user),
) -> AuthenticatedUser:
    """Dependency rejecting anonymous sign-ins."""
    if user.is_anonymous:
        raise ApiError(
            403,
            "Anonymous access is not allowed for this route",
            "ANONYMOUS_NOT_ALLOWED",
        )
    return user
