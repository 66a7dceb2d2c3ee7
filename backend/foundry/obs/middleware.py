"""Request instrumentation: request ids, log context, metrics and access lines."""

from __future__ import annotations

import time
from typing import Optional
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from foundry.obs import logging as obs_logging
from foundry.obs import metrics
from foundry.settings import settings

REQUEST_ID_HEADER = "X-Request-Id"


def _route_template(request: Request) -> str:
	route = request.scope.get("route")
	return getattr(route, "path", None) or request.url.path


def _actor(request: Request) -> Optional[str]:
	"""Best-effort caller label; identity is verified later by the service."""
	participant = request.headers.get("X-Participant-Id")
	if not participant:
		prefix = settings.participant_cookie_prefix
		participant = next((value for name, value in request.cookies.items() if name.startswith(prefix)), None)
	if participant:
		return f"participant:{participant}"
	user = request.headers.get("X-User-Id")
	return f"user:{user}" if user else None


def _outcome(status_code: int) -> str:
	if status_code < 400:
		return "ok"
	if status_code == 429 or status_code >= 500:
		return "try_later"
	if status_code in (401, 403, 409):
		return "not_allowed"
	return "fix_input"


class ObservabilityMiddleware(BaseHTTPMiddleware):
	def __init__(self, app, *, enabled: bool = True) -> None:
		super().__init__(app)
		self._enabled = enabled
		self._logger = obs_logging.get_logger(obs_logging.HTTP_LOGGER_NAME)

	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		if not (self._enabled and settings.obs_enabled):
			return await call_next(request)

		request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
		request.state.request_id = request_id
		token = obs_logging.bind_context(
			request_id=request_id,
			route=request.url.path,
			actor_id=_actor(request),
			client_ip=request.client.host if request.client else None,
		)
		started = time.perf_counter()
		status_code = 500
		try:
			response = await call_next(request)
			status_code = response.status_code
		except Exception:
			self._logger.exception("http_request_error", extra={"method": request.method})
			raise
		finally:
			elapsed = time.perf_counter() - started
			route = _route_template(request)
			metrics.observe_request(route, request.method, status_code, elapsed)
			self._logger.info(
				"http_request",
				extra={
					"method": request.method,
					"route_template": route,
					"status": status_code,
					"outcome": _outcome(status_code),
					"latency_ms": round(elapsed * 1000, 3),
				},
			)
			obs_logging.reset_context(token)

		response.headers.setdefault(REQUEST_ID_HEADER, request_id)
		return response


def install(app, *, enabled: bool = True) -> None:
	app.add_middleware(ObservabilityMiddleware, enabled=enabled)
