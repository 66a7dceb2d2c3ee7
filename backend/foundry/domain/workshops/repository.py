"""Persistence for workshop sessions, activities and participant input.

Two backends share one interface: an asyncpg-backed Postgres store and an
in-process store used by tests and local tools. Check-then-act writes (quota
inserts, vote batches) are atomic on both backends.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, Iterable, List, Optional, Sequence, Tuple

import asyncpg

from foundry.domain.workshops import models
from foundry.domain.workshops.exceptions import DuplicateVoteBatch, QuotaExceeded, StoreFailure
from foundry.infra.postgres import get_pool
from foundry.settings import settings

logger = logging.getLogger(__name__)

_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


def _now() -> datetime:
	return datetime.now(timezone.utc)


def _new_id() -> str:
	return str(uuid.uuid4())


def _quota_key(activity_id: str, participant_id: str, group_id: Optional[str]) -> str:
	if group_id:
		return f"quota:{activity_id}:group:{group_id}"
	return f"quota:{activity_id}:participant:{participant_id}"


class _MemoryStore:
	def __init__(self) -> None:
		self._lock = asyncio.Lock()
		self.sessions: Dict[str, models.WorkshopSession] = {}
		self.groups: Dict[str, models.Group] = {}
		self.participants: Dict[str, models.Participant] = {}
		self.activities: Dict[str, models.Activity] = {}
		self.submissions: Dict[str, models.Submission] = {}
		self.votes: Dict[Tuple[str, str, str], models.Vote] = {}
		self.initiatives: Dict[str, models.StocktakeInitiative] = {}
		self.responses: Dict[Tuple[str, str, str], models.StocktakeResponse] = {}

	async def reset(self) -> None:
		async with self._lock:
			self.sessions.clear()
			self.groups.clear()
			self.participants.clear()
			self.activities.clear()
			self.submissions.clear()
			self.votes.clear()
			self.initiatives.clear()
			self.responses.clear()

	async def put_session(self, session: models.WorkshopSession) -> models.WorkshopSession:
		async with self._lock:
			self.sessions[session.id] = session
			return session

	async def get_session(self, session_id: str) -> Optional[models.WorkshopSession]:
		async with self._lock:
			return self.sessions.get(session_id)

	async def put_group(self, group: models.Group) -> models.Group:
		async with self._lock:
			self.groups[group.id] = group
			return group

	async def list_groups(self, session_id: str) -> List[models.Group]:
		async with self._lock:
			rows = [group for group in self.groups.values() if group.session_id == session_id]
		return sorted(rows, key=lambda group: (group.created_at, group.id))

	async def put_participant(self, participant: models.Participant) -> models.Participant:
		async with self._lock:
			self.participants[participant.id] = participant
			return participant

	async def get_participant(self, participant_id: str) -> Optional[models.Participant]:
		async with self._lock:
			return self.participants.get(participant_id)

	async def list_participants(self, session_id: str) -> List[models.Participant]:
		async with self._lock:
			return [p for p in self.participants.values() if p.session_id == session_id]

	async def put_activity(self, activity: models.Activity) -> models.Activity:
		async with self._lock:
			self.activities[activity.id] = activity
			return activity

	async def get_activity(self, activity_id: str) -> Optional[models.Activity]:
		async with self._lock:
			return self.activities.get(activity_id)

	async def list_activities(self, session_id: str) -> List[models.Activity]:
		async with self._lock:
			rows = [act for act in self.activities.values() if act.session_id == session_id]
		return sorted(rows, key=lambda act: (act.order_index, act.created_at, act.id))

	async def put_initiative(self, initiative: models.StocktakeInitiative) -> models.StocktakeInitiative:
		async with self._lock:
			self.initiatives[initiative.id] = initiative
			return initiative

	async def get_initiative(self, initiative_id: str) -> Optional[models.StocktakeInitiative]:
		async with self._lock:
			return self.initiatives.get(initiative_id)

	async def list_initiatives(self, activity_id: str) -> List[models.StocktakeInitiative]:
		async with self._lock:
			rows = [item for item in self.initiatives.values() if item.activity_id == activity_id]
		return sorted(rows, key=lambda item: (item.title, item.id))

	async def insert_submission_within_quota(self, submission: models.Submission, limit: int) -> models.Submission:
		async with self._lock:
			if limit > 0:
				if submission.group_id:
					count = sum(
						1
						for row in self.submissions.values()
						if row.activity_id == submission.activity_id and row.group_id == submission.group_id
					)
				else:
					count = sum(
						1
						for row in self.submissions.values()
						if row.activity_id == submission.activity_id and row.participant_id == submission.participant_id
					)
				if count >= limit:
					raise QuotaExceeded(limit=limit, count=count)
			self.submissions[submission.id] = submission
			return submission

	async def get_submission(self, submission_id: str) -> Optional[models.Submission]:
		async with self._lock:
			return self.submissions.get(submission_id)

	async def list_submissions(self, activity_ids: Sequence[str]) -> List[models.Submission]:
		wanted = set(activity_ids)
		async with self._lock:
			return [row for row in self.submissions.values() if row.activity_id in wanted]

	def _upsert_vote_locked(self, vote: models.Vote) -> models.Vote:
		key = (vote.activity_id, vote.submission_id, vote.voter_id)
		existing = self.votes.get(key)
		if existing is not None:
			existing.value = vote.value
			existing.group_id = vote.group_id
			return existing
		self.votes[key] = vote
		return vote

	async def upsert_vote(self, vote: models.Vote) -> models.Vote:
		async with self._lock:
			return self._upsert_vote_locked(vote)

	async def insert_vote_batch(self, activity_id: str, voter_id: str, votes: Sequence[models.Vote]) -> List[models.Vote]:
		async with self._lock:
			if any(key[0] == activity_id and key[2] == voter_id for key in self.votes):
				raise DuplicateVoteBatch()
			return [self._upsert_vote_locked(vote) for vote in votes]

	async def list_votes(self, activity_ids: Sequence[str]) -> List[models.Vote]:
		wanted = set(activity_ids)
		async with self._lock:
			return [vote for vote in self.votes.values() if vote.activity_id in wanted]

	async def upsert_stocktake_response(self, response: models.StocktakeResponse) -> models.StocktakeResponse:
		async with self._lock:
			key = (response.activity_id, response.initiative_id, response.participant_id)
			existing = self.responses.get(key)
			if existing is not None:
				existing.choice = response.choice
				existing.created_at = response.created_at
				return existing
			self.responses[key] = response
			return response

	async def list_stocktake_responses(
		self, activity_id: str, participant_id: Optional[str] = None
	) -> List[models.StocktakeResponse]:
		async with self._lock:
			rows = [
				row
				for (act_id, _, pid), row in self.responses.items()
				if act_id == activity_id and (participant_id is None or pid == participant_id)
			]
		return sorted(rows, key=lambda row: (row.created_at, row.id))


_MEMORY = _MemoryStore()


async def reset_memory_state() -> None:
	await _MEMORY.reset()


def _load_json(value) -> Dict[str, object]:
	if value is None:
		return {}
	if isinstance(value, (bytes, bytearray)):
		value = value.decode("utf-8")
	if isinstance(value, str):
		loaded = json.loads(value) if value else {}
		return loaded if isinstance(loaded, dict) else {}
	return dict(value)


def _row_to_session(row: asyncpg.Record) -> models.WorkshopSession:
	return models.WorkshopSession(
		id=row["id"],
		facilitator_id=row["facilitator_id"],
		name=row["name"],
		status=row["status"],
		created_at=row["created_at"],
	)


def _row_to_group(row: asyncpg.Record) -> models.Group:
	return models.Group(id=row["id"], session_id=row["session_id"], name=row["name"], created_at=row["created_at"])


def _row_to_participant(row: asyncpg.Record) -> models.Participant:
	return models.Participant(
		id=row["id"],
		session_id=row["session_id"],
		display_name=row["display_name"],
		group_id=row["group_id"],
		created_at=row["created_at"],
	)


def _row_to_activity(row: asyncpg.Record) -> models.Activity:
	return models.Activity(
		id=row["id"],
		session_id=row["session_id"],
		type=row["type"],
		title=row["title"],
		status=row["status"],
		created_at=row["created_at"],
		config=_load_json(row["config"]),
		order_index=int(row["order_index"] or 0),
		starts_at=row["starts_at"],
		ends_at=row["ends_at"],
	)


def _row_to_submission(row: asyncpg.Record) -> models.Submission:
	return models.Submission(
		id=row["id"],
		activity_id=row["activity_id"],
		participant_id=row["participant_id"],
		group_id=row["group_id"],
		text=row["text"],
		created_at=row["created_at"],
	)


def _row_to_vote(row: asyncpg.Record) -> models.Vote:
	return models.Vote(
		id=row["id"],
		activity_id=row["activity_id"],
		submission_id=row["submission_id"],
		voter_id=row["voter_id"],
		value=int(row["value"]),
		group_id=row["group_id"],
		created_at=row["created_at"],
	)


def _row_to_initiative(row: asyncpg.Record) -> models.StocktakeInitiative:
	return models.StocktakeInitiative(
		id=row["id"],
		activity_id=row["activity_id"],
		title=row["title"],
		created_at=row["created_at"],
	)


def _row_to_response(row: asyncpg.Record) -> models.StocktakeResponse:
	return models.StocktakeResponse(
		id=row["id"],
		activity_id=row["activity_id"],
		initiative_id=row["initiative_id"],
		participant_id=row["participant_id"],
		choice=row["choice"],
		created_at=row["created_at"],
	)


_UPSERT_VOTE_SQL = """
	INSERT INTO votes (id, activity_id, submission_id, voter_id, value, group_id, created_at)
	VALUES ($1,$2,$3,$4,$5,$6,$7)
	ON CONFLICT (activity_id, submission_id, voter_id)
	DO UPDATE SET value=EXCLUDED.value, group_id=EXCLUDED.group_id
	RETURNING *
"""


class WorkshopRepository:
	def __init__(self, backend: Optional[str] = None) -> None:
		self._backend = backend

	def _use_memory(self) -> bool:
		if self._backend:
			return self._backend.lower() == "memory"
		return settings.uses_memory_store()

	@asynccontextmanager
	async def _acquire(self) -> AsyncIterator[asyncpg.Connection]:
		try:
			pool = await get_pool()
			async with pool.acquire() as conn:
				yield conn
		except _STORE_ERRORS as exc:
			logger.exception("workshop_store_failure")
			raise StoreFailure() from exc

	# Sessions, groups and participants are owned by other services; these
	# writers exist for them and for seeding.

	async def create_session(
		self,
		*,
		facilitator_id: str,
		name: str = "",
		status: str = "Active",
		session_id: Optional[str] = None,
	) -> models.WorkshopSession:
		session = models.WorkshopSession(
			id=session_id or _new_id(),
			facilitator_id=facilitator_id,
			name=name,
			status=status,
			created_at=_now(),
		)
		if self._use_memory():
			return await _MEMORY.put_session(session)
		async with self._acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO workshop_sessions (id, facilitator_id, name, status, created_at)
				VALUES ($1,$2,$3,$4,$5)
				""",
				session.id,
				session.facilitator_id,
				session.name,
				session.status,
				session.created_at,
			)
		return session

	async def set_session_status(self, session_id: str, status: str) -> None:
		if self._use_memory():
			session = await _MEMORY.get_session(session_id)
			if session is not None:
				session.status = status
			return
		async with self._acquire() as conn:
			await conn.execute("UPDATE workshop_sessions SET status=$2 WHERE id=$1", session_id, status)

	async def get_session(self, session_id: str) -> Optional[models.WorkshopSession]:
		if self._use_memory():
			return await _MEMORY.get_session(session_id)
		async with self._acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM workshop_sessions WHERE id=$1", session_id)
		return _row_to_session(row) if row else None

	async def create_group(self, session_id: str, name: str) -> models.Group:
		group = models.Group(id=_new_id(), session_id=session_id, name=name, created_at=_now())
		if self._use_memory():
			return await _MEMORY.put_group(group)
		async with self._acquire() as conn:
			await conn.execute(
				"INSERT INTO groups (id, session_id, name, created_at) VALUES ($1,$2,$3,$4)",
				group.id,
				group.session_id,
				group.name,
				group.created_at,
			)
		return group

	async def list_groups(self, session_id: str) -> List[models.Group]:
		if self._use_memory():
			return await _MEMORY.list_groups(session_id)
		async with self._acquire() as conn:
			rows = await conn.fetch(
				"SELECT * FROM groups WHERE session_id=$1 ORDER BY created_at, id",
				session_id,
			)
		return [_row_to_group(row) for row in rows]

	async def create_participant(
		self,
		session_id: str,
		*,
		display_name: Optional[str] = None,
		group_id: Optional[str] = None,
	) -> models.Participant:
		participant = models.Participant(
			id=_new_id(),
			session_id=session_id,
			display_name=display_name,
			group_id=group_id,
			created_at=_now(),
		)
		if self._use_memory():
			return await _MEMORY.put_participant(participant)
		async with self._acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO participants (id, session_id, display_name, group_id, created_at)
				VALUES ($1,$2,$3,$4,$5)
				""",
				participant.id,
				participant.session_id,
				participant.display_name,
				participant.group_id,
				participant.created_at,
			)
		return participant

	async def set_participant_group(self, participant_id: str, group_id: Optional[str]) -> None:
		if self._use_memory():
			participant = await _MEMORY.get_participant(participant_id)
			if participant is not None:
				participant.group_id = group_id
			return
		async with self._acquire() as conn:
			await conn.execute("UPDATE participants SET group_id=$2 WHERE id=$1", participant_id, group_id)

	async def get_participant(self, participant_id: str) -> Optional[models.Participant]:
		if self._use_memory():
			return await _MEMORY.get_participant(participant_id)
		async with self._acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM participants WHERE id=$1", participant_id)
		return _row_to_participant(row) if row else None

	async def list_participants(self, session_id: str) -> List[models.Participant]:
		if self._use_memory():
			return await _MEMORY.list_participants(session_id)
		async with self._acquire() as conn:
			rows = await conn.fetch("SELECT * FROM participants WHERE session_id=$1", session_id)
		return [_row_to_participant(row) for row in rows]

	async def create_activity(
		self,
		*,
		session_id: str,
		type: str,
		title: str,
		config: Dict[str, object],
		order_index: int,
		status: str = "Draft",
	) -> models.Activity:
		activity = models.Activity(
			id=_new_id(),
			session_id=session_id,
			type=type,
			title=title,
			status=status,
			created_at=_now(),
			config=dict(config),
			order_index=order_index,
		)
		if self._use_memory():
			return await _MEMORY.put_activity(activity)
		async with self._acquire() as conn:
			await conn.execute(
				"""
				INSERT INTO activities (id, session_id, type, title, status, config, order_index, created_at)
				VALUES ($1,$2,$3,$4,$5,$6::jsonb,$7,$8)
				""",
				activity.id,
				activity.session_id,
				activity.type,
				activity.title,
				activity.status,
				json.dumps(activity.config),
				activity.order_index,
				activity.created_at,
			)
		return activity

	async def next_order_index(self, session_id: str) -> int:
		if self._use_memory():
			activities = await _MEMORY.list_activities(session_id)
			return max((act.order_index for act in activities), default=-1) + 1
		async with self._acquire() as conn:
			value = await conn.fetchval(
				"SELECT COALESCE(MAX(order_index), -1) + 1 FROM activities WHERE session_id=$1",
				session_id,
			)
		return int(value or 0)

	async def save_activity(self, activity: models.Activity) -> None:
		if self._use_memory():
			await _MEMORY.put_activity(activity)
			return
		async with self._acquire() as conn:
			await conn.execute(
				"""
				UPDATE activities
				SET status=$2, config=$3::jsonb, starts_at=$4, ends_at=$5
				WHERE id=$1
				""",
				activity.id,
				activity.status,
				json.dumps(activity.config),
				activity.starts_at,
				activity.ends_at,
			)

	async def get_activity(self, activity_id: str) -> Optional[models.Activity]:
		if self._use_memory():
			return await _MEMORY.get_activity(activity_id)
		async with self._acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM activities WHERE id=$1", activity_id)
		return _row_to_activity(row) if row else None

	async def list_activities(self, session_id: str) -> List[models.Activity]:
		if self._use_memory():
			return await _MEMORY.list_activities(session_id)
		async with self._acquire() as conn:
			rows = await conn.fetch(
				"SELECT * FROM activities WHERE session_id=$1 ORDER BY order_index, created_at, id",
				session_id,
			)
		return [_row_to_activity(row) for row in rows]

	async def create_initiative(self, activity_id: str, title: str) -> models.StocktakeInitiative:
		initiative = models.StocktakeInitiative(id=_new_id(), activity_id=activity_id, title=title, created_at=_now())
		if self._use_memory():
			return await _MEMORY.put_initiative(initiative)
		async with self._acquire() as conn:
			await conn.execute(
				"INSERT INTO stocktake_initiatives (id, activity_id, title, created_at) VALUES ($1,$2,$3,$4)",
				initiative.id,
				initiative.activity_id,
				initiative.title,
				initiative.created_at,
			)
		return initiative

	async def get_initiative(self, initiative_id: str) -> Optional[models.StocktakeInitiative]:
		if self._use_memory():
			return await _MEMORY.get_initiative(initiative_id)
		async with self._acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM stocktake_initiatives WHERE id=$1", initiative_id)
		return _row_to_initiative(row) if row else None

	async def list_initiatives(self, activity_id: str) -> List[models.StocktakeInitiative]:
		if self._use_memory():
			return await _MEMORY.list_initiatives(activity_id)
		async with self._acquire() as conn:
			rows = await conn.fetch(
				"SELECT * FROM stocktake_initiatives WHERE activity_id=$1 ORDER BY title, id",
				activity_id,
			)
		return [_row_to_initiative(row) for row in rows]

	async def insert_submission_within_quota(
		self,
		*,
		activity_id: str,
		participant_id: str,
		group_id: Optional[str],
		text: str,
		limit: int,
	) -> models.Submission:
		"""Count the quota key and insert in one atomic step; ``limit`` 0 is unlimited."""
		submission = models.Submission(
			id=_new_id(),
			activity_id=activity_id,
			participant_id=participant_id,
			group_id=group_id,
			text=text,
			created_at=_now(),
		)
		if self._use_memory():
			return await _MEMORY.insert_submission_within_quota(submission, limit)
		async with self._acquire() as conn:
			async with conn.transaction():
				if limit > 0:
					await conn.execute(
						"SELECT pg_advisory_xact_lock(hashtext($1))",
						_quota_key(activity_id, participant_id, group_id),
					)
					if group_id:
						count = await conn.fetchval(
							"SELECT COUNT(*) FROM submissions WHERE activity_id=$1 AND group_id=$2",
							activity_id,
							group_id,
						)
					else:
						count = await conn.fetchval(
							"SELECT COUNT(*) FROM submissions WHERE activity_id=$1 AND participant_id=$2",
							activity_id,
							participant_id,
						)
					if int(count or 0) >= limit:
						raise QuotaExceeded(limit=limit, count=int(count or 0))
				await conn.execute(
					"""
					INSERT INTO submissions (id, activity_id, participant_id, group_id, text, created_at)
					VALUES ($1,$2,$3,$4,$5,$6)
					""",
					submission.id,
					submission.activity_id,
					submission.participant_id,
					submission.group_id,
					submission.text,
					submission.created_at,
				)
		return submission

	async def get_submission(self, submission_id: str) -> Optional[models.Submission]:
		if self._use_memory():
			return await _MEMORY.get_submission(submission_id)
		async with self._acquire() as conn:
			row = await conn.fetchrow("SELECT * FROM submissions WHERE id=$1", submission_id)
		return _row_to_submission(row) if row else None

	async def list_submissions(self, activity_ids: Sequence[str]) -> List[models.Submission]:
		activity_ids = list(activity_ids)
		if not activity_ids:
			return []
		if self._use_memory():
			return await _MEMORY.list_submissions(activity_ids)
		async with self._acquire() as conn:
			rows = await conn.fetch(
				"SELECT * FROM submissions WHERE activity_id = ANY($1::text[]) ORDER BY created_at, id",
				activity_ids,
			)
		return [_row_to_submission(row) for row in rows]

	def _build_vote(self, activity_id: str, submission_id: str, voter_id: str, value: int, group_id: Optional[str]) -> models.Vote:
		return models.Vote(
			id=_new_id(),
			activity_id=activity_id,
			submission_id=submission_id,
			voter_id=voter_id,
			value=value,
			group_id=group_id,
			created_at=_now(),
		)

	async def upsert_vote(
		self,
		*,
		activity_id: str,
		submission_id: str,
		voter_id: str,
		value: int,
		group_id: Optional[str] = None,
	) -> models.Vote:
		vote = self._build_vote(activity_id, submission_id, voter_id, value, group_id)
		if self._use_memory():
			return await _MEMORY.upsert_vote(vote)
		async with self._acquire() as conn:
			row = await conn.fetchrow(
				_UPSERT_VOTE_SQL,
				vote.id,
				vote.activity_id,
				vote.submission_id,
				vote.voter_id,
				vote.value,
				vote.group_id,
				vote.created_at,
			)
		return _row_to_vote(row)

	async def insert_vote_batch(
		self,
		*,
		activity_id: str,
		voter_id: str,
		allocations: Iterable[Tuple[str, int]],
		group_id: Optional[str] = None,
	) -> List[models.Vote]:
		"""Write a voter's whole allocation unless they already voted on the activity."""
		votes = [
			self._build_vote(activity_id, submission_id, voter_id, value, group_id)
			for submission_id, value in allocations
		]
		if self._use_memory():
			return await _MEMORY.insert_vote_batch(activity_id, voter_id, votes)
		stored: List[models.Vote] = []
		async with self._acquire() as conn:
			async with conn.transaction():
				await conn.execute(
					"SELECT pg_advisory_xact_lock(hashtext($1))",
					f"votes:{activity_id}:{voter_id}",
				)
				existing = await conn.fetchval(
					"SELECT COUNT(*) FROM votes WHERE activity_id=$1 AND voter_id=$2",
					activity_id,
					voter_id,
				)
				if int(existing or 0) > 0:
					raise DuplicateVoteBatch()
				for vote in votes:
					row = await conn.fetchrow(
						_UPSERT_VOTE_SQL,
						vote.id,
						vote.activity_id,
						vote.submission_id,
						vote.voter_id,
						vote.value,
						vote.group_id,
						vote.created_at,
					)
					stored.append(_row_to_vote(row))
		return stored

	async def list_votes(self, activity_ids: Sequence[str]) -> List[models.Vote]:
		activity_ids = list(activity_ids)
		if not activity_ids:
			return []
		if self._use_memory():
			return await _MEMORY.list_votes(activity_ids)
		async with self._acquire() as conn:
			rows = await conn.fetch(
				"SELECT * FROM votes WHERE activity_id = ANY($1::text[]) ORDER BY created_at, id",
				activity_ids,
			)
		return [_row_to_vote(row) for row in rows]

	async def upsert_stocktake_response(
		self,
		*,
		activity_id: str,
		initiative_id: str,
		participant_id: str,
		choice: str,
	) -> models.StocktakeResponse:
		response = models.StocktakeResponse(
			id=_new_id(),
			activity_id=activity_id,
			initiative_id=initiative_id,
			participant_id=participant_id,
			choice=choice,
			created_at=_now(),
		)
		if self._use_memory():
			return await _MEMORY.upsert_stocktake_response(response)
		async with self._acquire() as conn:
			row = await conn.fetchrow(
				"""
				INSERT INTO stocktake_responses (id, activity_id, initiative_id, participant_id, choice, created_at)
				VALUES ($1,$2,$3,$4,$5,$6)
				ON CONFLICT (activity_id, initiative_id, participant_id)
				DO UPDATE SET choice=EXCLUDED.choice, created_at=EXCLUDED.created_at
				RETURNING *
				""",
				response.id,
				response.activity_id,
				response.initiative_id,
				response.participant_id,
				response.choice,
				response.created_at,
			)
		return _row_to_response(row)

	async def list_stocktake_responses(
		self,
		activity_id: str,
		participant_id: Optional[str] = None,
	) -> List[models.StocktakeResponse]:
		if self._use_memory():
			return await _MEMORY.list_stocktake_responses(activity_id, participant_id)
		async with self._acquire() as conn:
			if participant_id is None:
				rows = await conn.fetch(
					"SELECT * FROM stocktake_responses WHERE activity_id=$1 ORDER BY created_at, id",
					activity_id,
				)
			else:
				rows = await conn.fetch(
					"""
					SELECT * FROM stocktake_responses
					WHERE activity_id=$1 AND participant_id=$2
					ORDER BY created_at, id
					""",
					activity_id,
					participant_id,
				)
		return [_row_to_response(row) for row in rows]
