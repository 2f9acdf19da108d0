"""Verification of identity-provider bearer tokens.

Tokens are minted by the external identity provider with a shared HS256 secret.
We validate signature, expiry, issuer and audience, and require a subject.
"""

from __future__ import annotations

import time
from typing import Any, Dict

import jwt
from jwt import InvalidTokenError

from circle.settings import settings


def encode_identity(payload: dict[str, object], *, ttl_seconds: int = 3600) -> str:
    """Mint a token the way the identity provider does; used by tests and local tooling."""
    now = int(time.time())
    body: Dict[str, Any] = {
        "iss": settings.auth_jwt_issuer,
        "aud": settings.auth_jwt_audience,
        "iat": now,
        "exp": now + ttl_seconds,
    }
    body.update(payload)
    return jwt.encode(body, settings.auth_jwt_secret, algorithm="HS256")


def decode_identity(token: str) -> dict[str, object]:
    """Decode and validate an identity token.

    Raises jwt.InvalidTokenError subclasses on failure.
    """
    payload = jwt.decode(
        token,
        settings.auth_jwt_secret,
        algorithms=["HS256"],
        audience=settings.auth_jwt_audience,
        issuer=settings.auth_jwt_issuer,
        leeway=5,
        options={"require": ["exp", "iat", "iss", "aud", "sub"]},
    )
    if not str(payload.get("sub") or "").strip():
        raise InvalidTokenError("missing_claim:sub")
    return payload
