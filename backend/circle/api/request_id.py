"""Request id lookup for error responses."""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from circle.obs import logging as obs_logging

REQUEST_ID_ATTR = "request_id"


def get_request_id(request: Optional[Request] = None, default: str = "unknown") -> str:
	"""Return the id bound by the request-id middleware, else the logging context, else ``default``."""
	if request is not None:
		rid = getattr(request.state, REQUEST_ID_ATTR, None)
		if rid:
			return rid
	return obs_logging._REQUEST_ID.get() or default
