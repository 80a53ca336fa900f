"""JWT validation and user authentication dependencies.

This module provides:
- JWT validation against Supabase JWKS
- User authentication and auto-creation
"""

import logging
import time
import uuid as uuid_pkg
from typing import Annotated, Any

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from jose.backends import ECKey
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.database import get_db
from app.core.exceptions import AuthenticationError
from app.domain.user_operations import user_ops
from app.models.user import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

# Cache for JWKS with TTL to handle key rotation
_jwks_cache: dict[str, Any] = {}
_jwks_cache_timestamp: float = 0.0
_JWKS_CACHE_TTL_SECONDS: float = 3600.0  # 1 hour


async def _fetch_jwks() -> dict[str, Any]:
    """Fetch JWKS from Supabase and update the cache."""
    global _jwks_cache_timestamp
    async with httpx.AsyncClient() as client:
        response = await client.get(settings.supabase_jwks_url)
        response.raise_for_status()
        jwks = response.json()
        _jwks_cache.clear()
        _jwks_cache.update(jwks)
        _jwks_cache_timestamp = time.monotonic()
        return jwks


async def get_jwks(force_refresh: bool = False) -> dict[str, Any]:
    """Fetch and cache JWKS from Supabase with a 1-hour TTL."""
    cache_age = time.monotonic() - _jwks_cache_timestamp
    if _jwks_cache and not force_refresh and cache_age < _JWKS_CACHE_TTL_SECONDS:
        return _jwks_cache

    return await _fetch_jwks()


def get_signing_key(jwks: dict[str, Any], token: str) -> ECKey:
    """Get the signing key from JWKS that matches the token's kid."""
    unverified_header = jwt.get_unverified_header(token)
    kid = unverified_header.get("kid")

    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return ECKey(key, algorithm="ES256")

    raise ValueError("Unable to find matching key in JWKS")


def _decode(token: str, jwks: dict[str, Any]) -> tuple[uuid_pkg.UUID, dict[str, Any]]:
    signing_key = get_signing_key(jwks, token)
    payload = jwt.decode(token, signing_key, algorithms=["ES256"], audience="authenticated")
    user_id_str: str | None = payload.get("sub")
    if user_id_str is None:
        raise AuthenticationError("Invalid authentication token")
    return uuid_pkg.UUID(user_id_str), payload


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Validate Supabase JWT and return current user.

    Creates user record on first API call if not exists.
    """
    if not credentials:
        raise AuthenticationError()

    token = credentials.credentials

    try:
        user_id, payload = _decode(token, await get_jwks())
    except (JWTError, ValueError) as first_error:
        # Key rotation may have occurred: force a JWKS refresh and retry once
        try:
            logger.info("JWT validation failed with cached JWKS, forcing refresh")
            user_id, payload = _decode(token, await get_jwks(force_refresh=True))
        except (JWTError, ValueError, httpx.HTTPError):
            raise AuthenticationError("Could not validate credentials") from first_error
    except httpx.HTTPError:
        raise AuthenticationError("Could not validate credentials") from None

    user = await user_ops.get(db, user_id)
    if not user:
        # Create user on first API call (fallback if the auth trigger didn't run)
        user_metadata = payload.get("user_metadata", {})
        user = User(
            id=user_id,
            email=payload.get("email"),
            display_name=user_metadata.get("full_name") or user_metadata.get("name"),
            avatar_url=user_metadata.get("avatar_url"),
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)

    return user


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
