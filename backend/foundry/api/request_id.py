"""Request ID helper for endpoints.

The observability middleware stores the id on ``request.state`` and binds it
into the logging context; either source is good enough for error payloads.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request

from foundry.obs import logging as obs_logging


def get_request_id(request: Optional[Request] = None, default: str = "unknown") -> str:
	if request is not None:
		rid = getattr(request.state, "request_id", None) or request.headers.get("X-Request-Id")
		if rid:
			return str(rid)
	return obs_logging.current_request_id() or default
