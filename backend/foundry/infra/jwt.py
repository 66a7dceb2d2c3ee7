"""HS256 bearer tokens identifying facilitators."""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import jwt
from jwt import InvalidTokenError

from foundry.settings import settings

ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ["exp", "iat", "iss", "aud", "sub"]


def issue_facilitator_token(user_id: str, *, name: Optional[str] = None, ttl_seconds: int = 3600) -> str:
	issued_at = int(time.time())
	claims: Dict[str, Any] = {
		"sub": user_id,
		"iss": settings.jwt_issuer,
		"aud": settings.jwt_audience,
		"iat": issued_at,
		"exp": issued_at + ttl_seconds,
	}
	if name:
		claims["name"] = name
	return jwt.encode(claims, settings.secret_key, algorithm=ALGORITHM)


def read_facilitator_token(token: str) -> Dict[str, Any]:
	"""Return verified claims; raises ``InvalidTokenError`` for anything unusable."""
	claims = jwt.decode(
		token,
		settings.secret_key,
		algorithms=[ALGORITHM],
		audience=settings.jwt_audience,
		issuer=settings.jwt_issuer,
		leeway=5,
		options={"require": _REQUIRED_CLAIMS},
	)
	if not str(claims.get("sub") or "").strip():
		raise InvalidTokenError("empty_subject")
	return claims
