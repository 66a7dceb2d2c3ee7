"""Exceptions raised by the workshop domain.

Every error carries a stable ``reason`` code and a ``kind`` telling the
caller whether to fix the input, stop trying, or retry later.
"""

from __future__ import annotations

from typing import Optional

FIX_INPUT = "fix_input"
NOT_ALLOWED = "not_allowed"
TRY_LATER = "try_later"


class WorkshopError(RuntimeError):
	status_code = 400
	kind = FIX_INPUT

	def __init__(self, reason: str, *, status_code: Optional[int] = None, message: Optional[str] = None) -> None:
		super().__init__(message or reason)
		self.reason = reason
		if status_code is not None:
			self.status_code = status_code
		self.detail = message or reason


class ValidationFailed(WorkshopError):
	status_code = 422
	kind = FIX_INPUT


class AccessDenied(WorkshopError):
	"""Caller may not act on the resource; also used when the resource is absent."""

	status_code = 403
	kind = NOT_ALLOWED


class StateConflict(WorkshopError):
	status_code = 409
	kind = NOT_ALLOWED


class QuotaExceeded(StateConflict):
	def __init__(self, reason: str = "quota_exceeded", *, limit: int = 0, count: int = 0) -> None:
		super().__init__(reason)
		self.limit = limit
		self.count = count


class DuplicateVoteBatch(StateConflict):
	def __init__(self, reason: str = "already_voted") -> None:
		super().__init__(reason)


class InvalidTransition(StateConflict):
	def __init__(self, from_status: str, to_status: str) -> None:
		super().__init__("invalid_transition", message=f"invalid_transition:{from_status}->{to_status}")
		self.from_status = from_status
		self.to_status = to_status


class BudgetExceeded(WorkshopError):
	status_code = 422
	kind = FIX_INPUT

	def __init__(self, reason: str = "budget_exceeded", *, budget: int = 0, spent: int = 0) -> None:
		super().__init__(reason)
		self.budget = budget
		self.spent = spent


class RateLimited(WorkshopError):
	status_code = 429
	kind = TRY_LATER

	def __init__(self, operation: str, *, retry_after: int) -> None:
		super().__init__(f"rate_limited:{operation}")
		self.operation = operation
		self.retry_after = max(int(retry_after), 1)


class StoreFailure(WorkshopError):
	status_code = 503
	kind = TRY_LATER

	def __init__(self, reason: str = "store_unavailable") -> None:
		super().__init__(reason)
