"""Domain errors shared by the circle engine.

Every error carries an HTTP status and a stable ``detail`` reason. Some carry
extra fields (for example the current connection state) that the API layer
renders next to the detail.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import status

if hasattr(status, "HTTP_422_UNPROCESSABLE_CONTENT"):
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_CONTENT
else:  # pragma: no cover - fallback for older Starlette builds
	_HTTP_422 = status.HTTP_422_UNPROCESSABLE_ENTITY


class CircleError(Exception):
	"""Base class for circle domain errors."""

	status_code: int = status.HTTP_400_BAD_REQUEST
	detail: str = "circle_error"

	def __init__(self, detail: str | None = None, **extra: Any) -> None:
		super().__init__(detail or self.detail)
		if detail:
			self.detail = detail
		self.extra: Dict[str, Any] = extra


class NotFoundError(CircleError):
	status_code = status.HTTP_404_NOT_FOUND
	detail = "not_found"


class ForbiddenError(CircleError):
	status_code = status.HTTP_403_FORBIDDEN
	detail = "forbidden"


class InvalidStateError(CircleError):
	"""Transition is not legal from the current state."""

	status_code = status.HTTP_409_CONFLICT
	detail = "invalid_state"


class CircleFullError(CircleError):
	"""Capacity ceiling reached on either side of the pair."""

	status_code = status.HTTP_409_CONFLICT
	detail = "circle_full"


class ConnectionExistsError(CircleError):
	"""A row already exists for the unordered pair; ``extra['state']`` holds its state."""

	status_code = status.HTTP_409_CONFLICT
	detail = "connection_exists"


class InvalidInviteError(CircleError):
	status_code = status.HTTP_400_BAD_REQUEST
	detail = "invalid_invite"


class SelfConnectionError(CircleError):
	status_code = status.HTTP_400_BAD_REQUEST
	detail = "self_connection"


class ValidationError(CircleError):
	"""Malformed input not covered by FastAPI schema validation."""

	status_code = _HTTP_422
	detail = "validation_error"


class RequestRateLimitExceeded(CircleError):
	"""Raised when a user sends connection requests faster than the quota allows."""

	status_code = status.HTTP_429_TOO_MANY_REQUESTS
	detail = "rate_limited"
