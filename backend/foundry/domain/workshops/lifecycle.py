"""Activity status machine, timers and prompt distribution."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Iterable, List

from foundry.domain.workshops import models
from foundry.domain.workshops.exceptions import InvalidTransition, StateConflict, ValidationFailed

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
	"Draft": frozenset({"Active"}),
	"Active": frozenset({"Active", "Voting", "Closed"}),
	"Voting": frozenset({"Closed"}),
	"Closed": frozenset(),
}

SKIPPABLE_STATUSES: FrozenSet[str] = frozenset({"Draft", "Active"})

# Config keys written only by lifecycle operations, never by callers.
BOOKKEEPING_KEYS: FrozenSet[str] = frozenset({"assignments", "skipped"})


def allowed_targets(activity: models.Activity) -> FrozenSet[str]:
	targets = ALLOWED_TRANSITIONS.get(activity.status, frozenset())
	if "Voting" in targets and not activity.supports_voting:
		targets = targets - {"Voting"}
	return targets


def ensure_transition(activity: models.Activity, to_status: str) -> None:
	if to_status not in models.ACTIVITY_STATUSES:
		raise ValidationFailed("invalid_status")
	if to_status not in allowed_targets(activity):
		raise InvalidTransition(activity.status, to_status)


def clean_prompts(prompts: object) -> List[str]:
	if not isinstance(prompts, (list, tuple)):
		return []
	return [str(prompt).strip() for prompt in prompts if prompt is not None and str(prompt).strip()]


def distribute_prompts(config: Dict[str, object], group_ids: Iterable[str]) -> Dict[str, str]:
	"""Assign prompts round-robin to groups that do not have one yet.

	``group_ids`` must be in creation order. Existing assignments are kept and
	the prompt cursor only advances for groups that receive a new prompt.
	"""
	prompts = clean_prompts(config.get("prompts"))
	existing = config.get("assignments")
	assignments: Dict[str, str] = dict(existing) if isinstance(existing, dict) else {}
	if not prompts:
		return assignments
	cursor = 0
	for group_id in group_ids:
		if not group_id or assignments.get(group_id):
			continue
		assignments[group_id] = prompts[cursor % len(prompts)]
		cursor += 1
	return assignments


def stamp_timer(activity: models.Activity, now: datetime) -> bool:
	limit = activity.time_limit_sec
	if limit <= 0 or activity.starts_at is not None or activity.ends_at is not None:
		return False
	activity.starts_at = now
	activity.ends_at = now + timedelta(seconds=limit)
	return True


def apply_transition(
	activity: models.Activity,
	to_status: str,
	*,
	now: datetime,
	group_ids: Iterable[str] = (),
) -> models.Activity:
	"""Move ``activity`` to ``to_status`` in place, applying entry side effects."""
	ensure_transition(activity, to_status)
	if to_status == "Active":
		stamp_timer(activity, now)
		if activity.type == "assignment" and clean_prompts(activity.config.get("prompts")):
			config = dict(activity.config)
			config["assignments"] = distribute_prompts(config, group_ids)
			activity.config = config
	activity.status = to_status
	return activity


def skip(activity: models.Activity) -> models.Activity:
	if activity.status not in SKIPPABLE_STATUSES:
		raise InvalidTransition(activity.status, "Closed")
	config = dict(activity.config)
	config["skipped"] = True
	activity.config = config
	activity.status = "Closed"
	return activity


def extend(activity: models.Activity, minutes: int, *, now: datetime, max_minutes: int) -> models.Activity:
	"""Push the deadline out by ``minutes`` counted from the later of the deadline and now."""
	if isinstance(minutes, bool) or not isinstance(minutes, int) or minutes < 1 or minutes > max_minutes:
		raise ValidationFailed("invalid_minutes")
	if activity.status != "Active":
		raise StateConflict("activity_not_active")
	base = max(activity.ends_at or now, now)
	activity.ends_at = base + timedelta(minutes=minutes)
	if activity.starts_at is None:
		activity.starts_at = now
	return activity
