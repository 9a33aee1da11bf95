from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from evalhub.core.config import settings
from evalhub.security.models import AuthenticatedUser

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# JWKS handling
# ---------------------------------------------------------------------


@lru_cache
def _issuer() -> str:
    return settings.oidc_issuer.rstrip("/")


@lru_cache
def _jwks_url() -> str:
    if settings.oidc_jwks_uri:
        return settings.oidc_jwks_uri
    return f"{_issuer()}/protocol/openid-connect/certs"


async def _get_jwks() -> dict:
    async with httpx.AsyncClient(timeout=5.0) as client:
        resp = await client.get(_jwks_url())
        resp.raise_for_status()
        return resp.json()


def _expected_audiences() -> list[str]:
    auds = []

    if settings.oidc_audience:
        auds.append(settings.oidc_audience)

    if settings.oidc_client_id:
        auds.append(settings.oidc_client_id)

    # Keycloak default
    auds.append("account")

    return list(dict.fromkeys(auds))


# ---------------------------------------------------------------------
# Core JWT validation
# ---------------------------------------------------------------------


async def decode_token(token: str) -> dict[str, Any]:
    try:
        jwks = await _get_jwks()
    except httpx.HTTPError as exc:
        logger.error("Failed to fetch JWKS from %s: %s", _jwks_url(), exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Identity provider unavailable",
        ) from exc

    try:
        claims = jwt.decode(
            token,
            jwks,
            algorithms=["RS256"],
            issuer=_issuer(),
            options={"verify_aud": False},
        )
    except JWTError as exc:
        logger.debug("JWT validation failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc

    token_aud = claims.get("aud")
    if token_aud is None:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token missing audience")

    if isinstance(token_aud, str):
        token_aud = [token_aud]

    expected = _expected_audiences()
    if not any(aud in expected for aud in token_aud):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid audience")

    return claims


def normalize_user(claims: dict[str, Any]) -> AuthenticatedUser:
    aud = claims.get("aud", [])
    if isinstance(aud, str):
        aud = [aud]

    return AuthenticatedUser(
        sub=claims["sub"],
        username=claims.get("preferred_username"),
        email=claims.get("email"),
        issuer=claims.get("iss"),
        audiences=aud,
        claims=claims,
    )


# ---------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(HTTPBearer()),
) -> AuthenticatedUser:
    claims = await decode_token(credentials.credentials)
    return normalize_user(claims)
