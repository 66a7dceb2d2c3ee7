"""Domain models for workshop sessions and their activities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


ActivityType = str
ActivityStatus = str
StocktakeChoice = str


ACTIVITY_TYPES: tuple[ActivityType, ...] = (
	"open_ended",
	"assignment",
	"stocktake",
)

# Types that accept free-text submissions and point allocations.
SUBMISSION_TYPES: tuple[ActivityType, ...] = ("open_ended", "assignment")

# Types that may enter the Voting stage.
VOTING_TYPES: tuple[ActivityType, ...] = ("open_ended",)

ACTIVITY_STATUSES: tuple[ActivityStatus, ...] = (
	"Draft",
	"Active",
	"Voting",
	"Closed",
)

SESSION_STATUSES: tuple[str, ...] = ("Inactive", "Active", "Completed")

STOCKTAKE_CHOICES: tuple[StocktakeChoice, ...] = ("stop", "less", "same", "more", "begin")

STOCKTAKE_SCORES: Dict[StocktakeChoice, int] = {
	"stop": -2,
	"less": -1,
	"same": 0,
	"more": 1,
	"begin": 2,
}


@dataclass(slots=True)
class WorkshopSession:
	id: str
	facilitator_id: str
	name: str
	status: str
	created_at: datetime

	def is_owned_by(self, user_id: str) -> bool:
		return self.facilitator_id == user_id


@dataclass(slots=True)
class Group:
	id: str
	session_id: str
	name: str
	created_at: datetime


@dataclass(slots=True)
class Participant:
	id: str
	session_id: str
	display_name: Optional[str]
	group_id: Optional[str]
	created_at: datetime


@dataclass(slots=True)
class Activity:
	"""Core persisted activity record."""

	id: str
	session_id: str
	type: ActivityType
	title: str
	status: ActivityStatus
	created_at: datetime
	config: Dict[str, Any] = field(default_factory=dict)
	order_index: int = 0
	starts_at: Optional[datetime] = None
	ends_at: Optional[datetime] = None

	@property
	def supports_voting(self) -> bool:
		return self.type in VOTING_TYPES

	@property
	def accepts_submissions(self) -> bool:
		return self.type in SUBMISSION_TYPES

	@property
	def max_submissions(self) -> int:
		try:
			return max(int(self.config.get("max_submissions") or 0), 0)
		except (TypeError, ValueError):
			return 0

	@property
	def points_budget(self) -> Optional[int]:
		value = self.config.get("points_budget")
		if value is None:
			return None
		try:
			return int(value)
		except (TypeError, ValueError):
			return None

	@property
	def time_limit_sec(self) -> int:
		try:
			return max(int(self.config.get("time_limit_sec") or 0), 0)
		except (TypeError, ValueError):
			return 0

	def to_payload(self) -> dict[str, Any]:
		return {
			"id": self.id,
			"session_id": self.session_id,
			"type": self.type,
			"title": self.title,
			"status": self.status,
			"config": self.config,
			"order_index": self.order_index,
			"starts_at": self.starts_at,
			"ends_at": self.ends_at,
			"created_at": self.created_at,
		}


@dataclass(slots=True)
class Submission:
	id: str
	activity_id: str
	participant_id: str
	group_id: Optional[str]
	text: str
	created_at: datetime

	def to_payload(self) -> dict[str, Any]:
		return {
			"id": self.id,
			"activity_id": self.activity_id,
			"participant_id": self.participant_id,
			"group_id": self.group_id,
			"text": self.text,
			"created_at": self.created_at,
		}


@dataclass(slots=True)
class Vote:
	id: str
	activity_id: str
	submission_id: str
	voter_id: str
	value: int
	group_id: Optional[str] = None
	created_at: Optional[datetime] = None

	def to_payload(self) -> dict[str, Any]:
		return {
			"id": self.id,
			"activity_id": self.activity_id,
			"submission_id": self.submission_id,
			"voter_id": self.voter_id,
			"value": self.value,
			"group_id": self.group_id,
		}


@dataclass(slots=True)
class StocktakeInitiative:
	id: str
	activity_id: str
	title: str
	created_at: Optional[datetime] = None


@dataclass(slots=True)
class StocktakeResponse:
	id: str
	activity_id: str
	initiative_id: str
	participant_id: str
	choice: StocktakeChoice
	created_at: datetime

	def to_payload(self) -> dict[str, Any]:
		return {
			"id": self.id,
			"activity_id": self.activity_id,
			"initiative_id": self.initiative_id,
			"participant_id": self.participant_id,
			"choice": self.choice,
			"created_at": self.created_at,
		}
