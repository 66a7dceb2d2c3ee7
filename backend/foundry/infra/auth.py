"""Identity helpers for FastAPI endpoints.

Facilitators authenticate with a bearer JWT (or `X-User-Id` in development).
Participants are anonymous session members identified by a session-bound
cookie (`sf_pid_<session_id>`) or the `X-Participant-Id` header; the id is
only a claim here and is verified against the store by the workshop service.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError

from foundry.infra import jwt as jwt_helper
from foundry.settings import settings


@dataclass(slots=True)
class AuthenticatedUser:
	"""A facilitator; sessions are owned by ``id``."""

	id: str
	display_name: Optional[str] = None


ParticipantLookup = Callable[[str], Optional[str]]

_bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized() -> HTTPException:
	return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")


def user_from_token(token: str) -> AuthenticatedUser:
	try:
		claims = jwt_helper.read_facilitator_token(token)
	except InvalidTokenError as exc:
		raise _unauthorized() from exc
	name = claims.get("name")
	return AuthenticatedUser(id=str(claims["sub"]).strip(), display_name=str(name) if name else None)


async def get_optional_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[AuthenticatedUser]:
	if credentials and credentials.scheme.lower() == "bearer":
		return user_from_token(credentials.credentials)
	# In dev only, allow X-User-Id fallback for local tools
	if settings.is_dev() and x_user_id:
		return AuthenticatedUser(id=x_user_id)
	return None


async def get_current_user(
	user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> AuthenticatedUser:
	if user is None:
		raise _unauthorized()
	return user


def participant_cookie_name(session_id: str) -> str:
	return f"{settings.participant_cookie_prefix}{session_id}"


async def get_participant_lookup(request: Request) -> ParticipantLookup:
	"""Return a resolver mapping a session id to the caller's claimed participant id."""
	header_value = (request.headers.get("X-Participant-Id") or "").strip()

	def _lookup(session_id: str) -> Optional[str]:
		if header_value:
			return header_value
		value = request.cookies.get(participant_cookie_name(session_id))
		return value.strip() if value and value.strip() else None

	return _lookup
