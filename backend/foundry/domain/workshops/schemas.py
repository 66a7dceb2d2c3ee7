"""Pydantic schemas for workshop activities, intake and results."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ActivityType = Literal["open_ended", "assignment", "stocktake"]
ActivityStatus = Literal["Draft", "Active", "Voting", "Closed"]


class _ActivityConfig(BaseModel):
	# Lifecycle bookkeeping (skipped, assignments) rides along in the same blob.
	model_config = ConfigDict(extra="allow")

	time_limit_sec: int = Field(default=300, ge=0, le=86_400)


class OpenEndedConfig(_ActivityConfig):
	voting_enabled: bool = True
	max_submissions: int = Field(default=5, ge=0, le=50)
	points_budget: Optional[int] = Field(default=None, ge=1)


class AssignmentConfig(OpenEndedConfig):
	prompts: List[str] = Field(default_factory=list)


class StocktakeConfig(_ActivityConfig):
	pass


CONFIG_MODELS: Dict[str, type[_ActivityConfig]] = {
	"open_ended": OpenEndedConfig,
	"assignment": AssignmentConfig,
	"stocktake": StocktakeConfig,
}


class CreateActivityRequest(BaseModel):
	session_id: str = Field(..., min_length=1)
	type: ActivityType
	title: str = Field(default="", max_length=200)
	config: Dict[str, Any] = Field(default_factory=dict)
	order_index: Optional[int] = Field(default=None, ge=0)


class StatusChangeRequest(BaseModel):
	status: ActivityStatus


class ExtendTimerRequest(BaseModel):
	minutes: int


class ActivitySummary(BaseModel):
	id: str
	session_id: str
	type: ActivityType
	title: str
	status: ActivityStatus
	config: Dict[str, Any] = Field(default_factory=dict)
	order_index: int = 0
	starts_at: Optional[datetime] = None
	ends_at: Optional[datetime] = None
	created_at: datetime


class SubmissionCreateRequest(BaseModel):
	activity_id: str = Field(..., min_length=1)
	text: str


class SubmissionSummary(BaseModel):
	id: str
	activity_id: str
	participant_id: str
	group_id: Optional[str] = None
	text: str
	created_at: datetime


class VoteRequest(BaseModel):
	activity_id: str = Field(..., min_length=1)
	submission_id: str = Field(..., min_length=1)
	value: int


class VoteBatchItem(BaseModel):
	submission_id: Optional[str] = None
	value: Optional[float] = None


class VoteBatchRequest(BaseModel):
	activity_id: str = Field(..., min_length=1)
	items: List[VoteBatchItem] = Field(default_factory=list)


class VoteSummary(BaseModel):
	id: str
	activity_id: str
	submission_id: str
	voter_id: str
	value: int
	group_id: Optional[str] = None


class StocktakeResponseRequest(BaseModel):
	activity_id: str = Field(..., min_length=1)
	initiative_id: str = Field(..., min_length=1)
	choice: str


class StocktakeResponseSummary(BaseModel):
	id: str
	activity_id: str
	initiative_id: str
	participant_id: str
	choice: str
	created_at: datetime


class VoteDetail(BaseModel):
	voter_id: str
	voter_name: Optional[str] = None
	value: int


class SubmissionStats(BaseModel):
	id: str
	text: str
	participant_id: str
	participant_name: Optional[str] = None
	group_id: Optional[str] = None
	created_at: datetime
	n: int
	avg: Optional[float] = None
	stdev: Optional[float] = None
	consensus: Optional[float] = None
	votes: List[VoteDetail] = Field(default_factory=list)


class InitiativeStats(BaseModel):
	id: str
	title: str
	counts: Dict[str, int]
	n: int
	sum: int
	avg: float
	stdev: float
	stderr: float
	support: Optional[float] = None


class StocktakeOverall(BaseModel):
	n: int
	avg: float


class StocktakeResults(BaseModel):
	initiatives: List[InitiativeStats]
	overall: StocktakeOverall
	order: List[str]
	top: List[InitiativeStats]


class ActivityResults(BaseModel):
	activity_id: str
	type: ActivityType
	submissions: Optional[List[SubmissionStats]] = None
	ranked: Optional[List[SubmissionStats]] = None
	stocktake: Optional[StocktakeResults] = None


class LeaderboardRow(BaseModel):
	group_id: str
	group_name: str
	total: int
	vote_count: int
	submission_count: int


class SubmissionCounts(BaseModel):
	max: int
	by_group: Dict[str, int]
	total: int


class SubmissionListItem(BaseModel):
	id: str
	text: str
	created_at: datetime


class InitiativeSummary(BaseModel):
	id: str
	title: str
