"""Authentication helpers for FastAPI endpoints.

- Bearer tokens come from the external identity provider and are verified with PyJWT.
- The token subject is mapped to the internal user id through the identity resolver.
- Development builds also accept an ``X-User-Id`` header carrying the internal id.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from circle.domain.exceptions import NotFoundError
from circle.domain.identity import service as identity_service
from circle.infra import jwt as jwt_helper
from circle.settings import settings


@dataclass(slots=True)
class IdentityClaims:
	subject: str
	claims: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class AuthenticatedUser:
	id: int
	subject: Optional[str] = None
	display_name: Optional[str] = None


_bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized() -> HTTPException:
	return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")


def verify_identity_token(token: str) -> IdentityClaims:
	try:
		payload = jwt_helper.decode_identity(token)
	except Exception:
		# Normalise all decode failures to invalid_token for the API surface
		raise _unauthorized() from None
	return IdentityClaims(subject=str(payload["sub"]).strip(), claims=dict(payload))


async def get_identity_claims(
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> IdentityClaims:
	"""Verified token claims without requiring a registered user (used by registration)."""
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_identity_token(credentials.credentials)
	raise _unauthorized()


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the acting user.

	A bearer token is always preferred. Outside development the header fallback is
	ignored and an unregistered subject is rejected.
	"""
	if credentials and credentials.scheme.lower() == "bearer":
		identity = verify_identity_token(credentials.credentials)
		try:
			user = await identity_service.resolve(identity.subject)
		except NotFoundError:
			raise _unauthorized() from None
		return AuthenticatedUser(id=user.id, subject=identity.subject, display_name=user.display_name)

	if settings.is_dev() and x_user_id:
		try:
			user_id = int(x_user_id)
		except ValueError:
			raise _unauthorized() from None
		if user_id > 0:
			return AuthenticatedUser(id=user_id)

	raise _unauthorized()
