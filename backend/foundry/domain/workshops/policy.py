"""Policy and guard helpers for workshop intake."""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Tuple

from foundry.domain.workshops import models, schemas
from foundry.domain.workshops.exceptions import (
	AccessDenied,
	BudgetExceeded,
	RateLimited,
	StateConflict,
	ValidationFailed,
)
from foundry.infra.rate_limit import RateDecision, RateLimiter
from foundry.obs import metrics as obs_metrics
from foundry.settings import settings

MIN_VOTE_VALUE = 1
MAX_VOTE_VALUE = 10
# Largest allocation the votes.value INTEGER column can hold.
MAX_ALLOCATION = 2**31 - 1


async def _enforce(limiter: RateLimiter, operation: str, actor_id: str, *, limit: int, window_seconds: int) -> RateDecision:
	decision = await limiter.hit(operation, actor_id, limit=limit, window_seconds=window_seconds)
	if not decision.allowed:
		obs_metrics.inc_rate_limited(operation)
		raise RateLimited(operation, retry_after=decision.retry_after)
	return decision


async def enforce_submission_limit(limiter: RateLimiter, participant_id: str) -> RateDecision:
	return await _enforce(
		limiter,
		"submit",
		participant_id,
		limit=settings.submission_rate_limit,
		window_seconds=settings.submission_rate_window_seconds,
	)


async def enforce_vote_limit(limiter: RateLimiter, voter_id: str) -> RateDecision:
	return await _enforce(
		limiter,
		"vote",
		voter_id,
		limit=settings.vote_rate_limit,
		window_seconds=settings.vote_rate_window_seconds,
	)


async def enforce_vote_batch_limit(limiter: RateLimiter, voter_id: str) -> RateDecision:
	return await _enforce(
		limiter,
		"vote_batch",
		voter_id,
		limit=settings.vote_batch_rate_limit,
		window_seconds=settings.vote_batch_rate_window_seconds,
	)


async def enforce_results_limit(limiter: RateLimiter, user_id: str, activity_id: str) -> RateDecision:
	return await _enforce(
		limiter,
		"results",
		f"{user_id}:{activity_id}",
		limit=settings.results_rate_limit,
		window_seconds=settings.results_rate_window_seconds,
	)


def ensure_owner(session: Optional[models.WorkshopSession], user_id: str) -> models.WorkshopSession:
	# Missing and foreign sessions look the same to the caller.
	if session is None or not session.is_owned_by(user_id):
		raise AccessDenied("forbidden")
	return session


def ensure_session_active(session: models.WorkshopSession) -> None:
	if session.status != "Active":
		raise StateConflict("session_not_active")


def ensure_activity_status(activity: models.Activity, *statuses: str, reason: str = "activity_not_active") -> None:
	if activity.status not in statuses:
		raise StateConflict(reason)


def ensure_activity_type(activity: models.Activity, *types: str) -> None:
	if activity.type not in types:
		raise StateConflict("unsupported_activity_type")


def normalise_text(text: Optional[str]) -> str:
	value = (text or "").strip()
	if not value:
		raise ValidationFailed("text_required")
	if len(value) > settings.submission_max_chars:
		raise ValidationFailed("text_too_long")
	return value


def ensure_choice(choice: Optional[str]) -> str:
	value = (choice or "").strip().lower()
	if value not in models.STOCKTAKE_CHOICES:
		raise ValidationFailed("invalid_choice")
	return value


def ensure_vote_value(value: object) -> int:
	if isinstance(value, bool) or not isinstance(value, int):
		raise ValidationFailed("invalid_value")
	if value < MIN_VOTE_VALUE or value > MAX_VOTE_VALUE:
		raise ValidationFailed("value_out_of_range")
	return value


def normalise_batch(items: Iterable[schemas.VoteBatchItem]) -> List[Tuple[str, int]]:
	"""Drop items without a submission or a finite value, then validate the rest."""
	rows: List[Tuple[str, int]] = []
	seen: set[str] = set()
	for item in items:
		submission_id = (item.submission_id or "").strip()
		if not submission_id or item.value is None or not math.isfinite(item.value):
			continue
		if item.value < 0 or item.value > MAX_ALLOCATION or not float(item.value).is_integer():
			raise ValidationFailed("invalid_value")
		if submission_id in seen:
			raise ValidationFailed("duplicate_submission")
		seen.add(submission_id)
		rows.append((submission_id, int(item.value)))
	if not rows:
		raise ValidationFailed("no_valid_items")
	return rows


def enforce_budget(activity: models.Activity, rows: Iterable[Tuple[str, int]]) -> int:
	"""Check that no allocation exceeds what is left of the point budget."""
	rows = list(rows)
	spent = 0
	budget = activity.points_budget
	if budget is None:
		return sum(value for _, value in rows)
	for _, value in rows:
		remaining = budget - spent
		if value > remaining:
			raise BudgetExceeded(budget=budget, spent=spent + value)
		spent += value
	return spent
