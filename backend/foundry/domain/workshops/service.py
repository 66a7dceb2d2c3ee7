"""Service orchestration for workshop activities."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from pydantic import ValidationError

from foundry.domain.workshops import aggregation, lifecycle, models, policy, schemas
from foundry.domain.workshops.exceptions import (
	AccessDenied,
	StateConflict,
	StoreFailure,
	ValidationFailed,
	WorkshopError,
)
from foundry.domain.workshops.repository import WorkshopRepository
from foundry.infra.auth import AuthenticatedUser, ParticipantLookup
from foundry.infra.rate_limit import RateLimiter, build_rate_limiter
from foundry.obs import metrics as obs_metrics
from foundry.settings import settings

logger = logging.getLogger(__name__)


def _now() -> datetime:
	return datetime.now(timezone.utc)


class WorkshopService:
	"""Facilitator controls, participant intake and live results."""

	def __init__(
		self,
		repository: Optional[WorkshopRepository] = None,
		rate_limiter: Optional[RateLimiter] = None,
		*,
		clock: Callable[[], datetime] = _now,
	) -> None:
		self._repo = repository or WorkshopRepository()
		self._limiter = rate_limiter or build_rate_limiter()
		self._clock = clock

	@property
	def repository(self) -> WorkshopRepository:
		return self._repo

	@contextmanager
	def _guard(self, operation: str) -> Iterator[None]:
		try:
			yield
		except StoreFailure:
			raise
		except WorkshopError as exc:
			obs_metrics.inc_rejection(operation, exc.reason)
			logger.info("workshop_rejected", extra={"operation": operation, "reason": exc.reason})
			raise

	# lookups -----------------------------------------------------------------

	async def _session_or_denied(self, session_id: str) -> models.WorkshopSession:
		session = await self._repo.get_session(session_id)
		if session is None:
			raise AccessDenied("forbidden")
		return session

	async def _activity_or_denied(self, activity_id: str) -> models.Activity:
		activity = await self._repo.get_activity(activity_id)
		if activity is None:
			raise AccessDenied("forbidden")
		return activity

	async def _owned_session(self, user: AuthenticatedUser, session_id: str) -> models.WorkshopSession:
		return policy.ensure_owner(await self._repo.get_session(session_id), user.id)

	async def _owned_activity(
		self, user: AuthenticatedUser, activity_id: str
	) -> Tuple[models.Activity, models.WorkshopSession]:
		activity = await self._activity_or_denied(activity_id)
		session = await self._owned_session(user, activity.session_id)
		return activity, session

	async def _resolve_participant(self, lookup: ParticipantLookup, session_id: str) -> models.Participant:
		participant_id = lookup(session_id)
		if not participant_id:
			raise AccessDenied("not_participant")
		participant = await self._repo.get_participant(participant_id)
		if participant is None or participant.session_id != session_id:
			raise AccessDenied("not_participant")
		return participant

	async def _ensure_viewer(
		self,
		user: Optional[AuthenticatedUser],
		lookup: Optional[ParticipantLookup],
		session_id: str,
	) -> models.WorkshopSession:
		"""Owners and participants of the session may read it; nobody else learns it exists."""
		session = await self._session_or_denied(session_id)
		if user is not None and session.is_owned_by(user.id):
			return session
		if lookup is None:
			raise AccessDenied("forbidden")
		await self._resolve_participant(lookup, session.id)
		return session

	# facilitator operations --------------------------------------------------

	async def create_activity(self, user: AuthenticatedUser, payload: schemas.CreateActivityRequest) -> models.Activity:
		with self._guard("create_activity"):
			session = await self._owned_session(user, payload.session_id)
			config_model = schemas.CONFIG_MODELS[payload.type]
			try:
				config = config_model.model_validate(payload.config).model_dump(exclude_none=True)
			except ValidationError as exc:
				raise ValidationFailed("invalid_config", message=str(exc)) from exc
			for key in lifecycle.BOOKKEEPING_KEYS:
				config.pop(key, None)
			if payload.type == "assignment":
				config["prompts"] = lifecycle.clean_prompts(config.get("prompts"))
			order_index = payload.order_index
			if order_index is None:
				order_index = await self._repo.next_order_index(session.id)
			activity = await self._repo.create_activity(
				session_id=session.id,
				type=payload.type,
				title=payload.title.strip(),
				config=config,
				order_index=order_index,
			)
		logger.info(
			"activity_created",
			extra={"activity_id": activity.id, "session_id": session.id, "activity_type": activity.type},
		)
		return activity

	async def list_activities(
		self,
		user: Optional[AuthenticatedUser],
		lookup: Optional[ParticipantLookup],
		session_id: str,
	) -> List[models.Activity]:
		with self._guard("list_activities"):
			session = await self._ensure_viewer(user, lookup, session_id)
		return await self._repo.list_activities(session.id)

	async def transition_status(self, user: AuthenticatedUser, activity_id: str, status: str) -> models.Activity:
		with self._guard("transition"):
			activity, session = await self._owned_activity(user, activity_id)
			from_status = activity.status
			lifecycle.ensure_transition(activity, status)
			group_ids: List[str] = []
			if status == "Active" and activity.type == "assignment":
				group_ids = [group.id for group in await self._repo.list_groups(session.id)]
			lifecycle.apply_transition(activity, status, now=self._clock(), group_ids=group_ids)
			await self._repo.save_activity(activity)
		obs_metrics.inc_transition(from_status, status)
		logger.info(
			"activity_transition",
			extra={"activity_id": activity.id, "from_status": from_status, "to_status": status},
		)
		return activity

	async def skip_activity(self, user: AuthenticatedUser, activity_id: str) -> models.Activity:
		with self._guard("skip"):
			activity, _ = await self._owned_activity(user, activity_id)
			from_status = activity.status
			lifecycle.skip(activity)
			await self._repo.save_activity(activity)
		obs_metrics.inc_transition(from_status, activity.status)
		logger.info("activity_skipped", extra={"activity_id": activity.id, "from_status": from_status})
		return activity

	async def extend_timer(self, user: AuthenticatedUser, activity_id: str, minutes: int) -> models.Activity:
		with self._guard("extend"):
			activity, _ = await self._owned_activity(user, activity_id)
			lifecycle.extend(activity, minutes, now=self._clock(), max_minutes=settings.max_extend_minutes)
			await self._repo.save_activity(activity)
		logger.info("activity_extended", extra={"activity_id": activity.id, "minutes": minutes})
		return activity

	# participant intake ------------------------------------------------------

	async def submit_text(
		self, lookup: ParticipantLookup, payload: schemas.SubmissionCreateRequest
	) -> models.Submission:
		with self._guard("submit"):
			text = policy.normalise_text(payload.text)
			activity = await self._activity_or_denied(payload.activity_id)
			session = await self._session_or_denied(activity.session_id)
			participant = await self._resolve_participant(lookup, session.id)
			policy.ensure_session_active(session)
			await policy.enforce_submission_limit(self._limiter, participant.id)
			policy.ensure_activity_status(activity, "Active")
			policy.ensure_activity_type(activity, *models.SUBMISSION_TYPES)
			submission = await self._repo.insert_submission_within_quota(
				activity_id=activity.id,
				participant_id=participant.id,
				group_id=participant.group_id,
				text=text,
				limit=activity.max_submissions,
			)
		obs_metrics.inc_submission(activity.type)
		return submission

	async def submit_stocktake(
		self, lookup: ParticipantLookup, payload: schemas.StocktakeResponseRequest
	) -> models.StocktakeResponse:
		with self._guard("stocktake"):
			choice = policy.ensure_choice(payload.choice)
			activity = await self._activity_or_denied(payload.activity_id)
			session = await self._session_or_denied(activity.session_id)
			participant = await self._resolve_participant(lookup, session.id)
			policy.ensure_session_active(session)
			policy.ensure_activity_status(activity, "Active")
			policy.ensure_activity_type(activity, "stocktake")
			initiative = await self._repo.get_initiative(payload.initiative_id)
			if initiative is None or initiative.activity_id != activity.id:
				raise ValidationFailed("initiative_not_in_activity")
			response = await self._repo.upsert_stocktake_response(
				activity_id=activity.id,
				initiative_id=initiative.id,
				participant_id=participant.id,
				choice=choice,
			)
		obs_metrics.inc_stocktake_response(choice)
		return response

	async def list_my_stocktake_responses(
		self, lookup: ParticipantLookup, activity_id: str
	) -> List[models.StocktakeResponse]:
		with self._guard("stocktake_read"):
			activity = await self._activity_or_denied(activity_id)
			participant = await self._resolve_participant(lookup, activity.session_id)
		return await self._repo.list_stocktake_responses(activity.id, participant.id)

	async def list_submissions(
		self,
		user: Optional[AuthenticatedUser],
		lookup: Optional[ParticipantLookup],
		activity_id: str,
	) -> List[models.Submission]:
		"""Submissions a voter can allocate points to, oldest first."""
		with self._guard("submissions_read"):
			activity = await self._activity_or_denied(activity_id)
			await self._ensure_viewer(user, lookup, activity.session_id)
		rows = await self._repo.list_submissions([activity.id])
		return sorted(rows, key=lambda sub: (sub.created_at, sub.id))

	async def list_initiatives(
		self,
		user: Optional[AuthenticatedUser],
		lookup: Optional[ParticipantLookup],
		activity_id: str,
	) -> List[models.StocktakeInitiative]:
		with self._guard("initiatives_read"):
			activity = await self._activity_or_denied(activity_id)
			await self._ensure_viewer(user, lookup, activity.session_id)
		return await self._repo.list_initiatives(activity.id)

	async def cast_vote(self, lookup: ParticipantLookup, payload: schemas.VoteRequest) -> models.Vote:
		with self._guard("vote"):
			value = policy.ensure_vote_value(payload.value)
			activity = await self._activity_or_denied(payload.activity_id)
			participant = await self._resolve_participant(lookup, activity.session_id)
			await policy.enforce_vote_limit(self._limiter, participant.id)
			if activity.config.get("voting_enabled") is not True:
				raise StateConflict("voting_disabled")
			policy.ensure_activity_status(activity, "Voting", reason="activity_not_voting")
			submission = await self._repo.get_submission(payload.submission_id)
			if submission is None or submission.activity_id != activity.id:
				raise ValidationFailed("submission_not_in_activity")
			vote = await self._repo.upsert_vote(
				activity_id=activity.id,
				submission_id=submission.id,
				voter_id=participant.id,
				value=value,
				group_id=participant.group_id,
			)
		obs_metrics.inc_votes("single")
		return vote

	async def cast_vote_batch(self, lookup: ParticipantLookup, payload: schemas.VoteBatchRequest) -> List[models.Vote]:
		with self._guard("vote_batch"):
			allocations = policy.normalise_batch(payload.items)
			activity = await self._activity_or_denied(payload.activity_id)
			session = await self._session_or_denied(activity.session_id)
			participant = await self._resolve_participant(lookup, session.id)
			policy.ensure_session_active(session)
			await policy.enforce_vote_batch_limit(self._limiter, participant.id)
			policy.ensure_activity_type(activity, *models.SUBMISSION_TYPES)
			policy.ensure_activity_status(activity, "Active", "Voting", reason="activity_not_accepting_votes")
			known = {sub.id for sub in await self._repo.list_submissions([activity.id])}
			if any(submission_id not in known for submission_id, _ in allocations):
				raise ValidationFailed("submission_not_in_activity")
			policy.enforce_budget(activity, allocations)
			votes = await self._repo.insert_vote_batch(
				activity_id=activity.id,
				voter_id=participant.id,
				allocations=allocations,
				group_id=participant.group_id,
			)
		obs_metrics.inc_votes("batch", len(votes))
		logger.info(
			"vote_batch_accepted",
			extra={"activity_id": activity.id, "voter_id": participant.id, "items": len(votes)},
		)
		return votes

	# results -----------------------------------------------------------------

	async def activity_results(self, user: AuthenticatedUser, activity_id: str) -> Dict[str, Any]:
		with self._guard("results"):
			activity, session = await self._owned_activity(user, activity_id)
			await policy.enforce_results_limit(self._limiter, user.id, activity.id)
		started = time.perf_counter()
		payload: Dict[str, Any] = {"activity_id": activity.id, "type": activity.type}
		if activity.type == "stocktake":
			initiatives = await self._repo.list_initiatives(activity.id)
			responses = await self._repo.list_stocktake_responses(activity.id)
			payload["stocktake"] = aggregation.stocktake_results(initiatives, responses)
		else:
			submissions = await self._repo.list_submissions([activity.id])
			votes = await self._repo.list_votes([activity.id])
			participants = await self._participant_index(session.id)
			rows = aggregation.submission_results(submissions, votes, participants)
			payload["submissions"] = rows
			payload["ranked"] = aggregation.rank_submissions(rows)
		obs_metrics.observe_aggregation("results", time.perf_counter() - started)
		return payload

	async def _participant_index(self, session_id: str) -> Dict[str, models.Participant]:
		return {participant.id: participant for participant in await self._repo.list_participants(session_id)}

	async def _leaderboard(self, session_id: str, activity_ids: List[str]) -> List[Dict[str, Any]]:
		started = time.perf_counter()
		groups = await self._repo.list_groups(session_id)
		submissions = await self._repo.list_submissions(activity_ids)
		votes = await self._repo.list_votes(activity_ids)
		participants = await self._participant_index(session_id)
		rows = aggregation.group_leaderboard(groups, submissions, votes, participants)
		obs_metrics.observe_aggregation("leaderboard", time.perf_counter() - started)
		return rows

	async def session_leaderboard(
		self,
		user: Optional[AuthenticatedUser],
		lookup: Optional[ParticipantLookup],
		session_id: str,
	) -> List[Dict[str, Any]]:
		with self._guard("leaderboard"):
			session = await self._ensure_viewer(user, lookup, session_id)
		activities = await self._repo.list_activities(session.id)
		activity_ids = [activity.id for activity in activities if activity.type == "open_ended"]
		return await self._leaderboard(session.id, activity_ids)

	async def activity_leaderboard(
		self,
		user: Optional[AuthenticatedUser],
		lookup: Optional[ParticipantLookup],
		activity_id: str,
	) -> List[Dict[str, Any]]:
		with self._guard("leaderboard"):
			activity = await self._activity_or_denied(activity_id)
			session = await self._ensure_viewer(user, lookup, activity.session_id)
		return await self._leaderboard(session.id, [activity.id])

	async def submission_counts(self, user: AuthenticatedUser, session_id: str) -> Dict[str, Dict[str, Any]]:
		with self._guard("submission_counts"):
			session = await self._owned_session(user, session_id)
		activities = await self._repo.list_activities(session.id)
		submissions = await self._repo.list_submissions([activity.id for activity in activities])
		participants = await self._participant_index(session.id)
		return aggregation.submission_counts(activities, submissions, participants)
