"""FastAPI routes for session-wide leaderboards and counters."""

from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends

from foundry.api.errors import as_http_error
from foundry.domain.workshops import schemas
from foundry.domain.workshops.exceptions import WorkshopError
from foundry.domain.workshops.service import WorkshopService
from foundry.infra.auth import (
	AuthenticatedUser,
	ParticipantLookup,
	get_current_user,
	get_optional_user,
	get_participant_lookup,
)

router = APIRouter(prefix="/sessions", tags=["sessions"])

_service = WorkshopService()


@router.get("/{session_id}/leaderboard", response_model=List[schemas.LeaderboardRow])
async def session_leaderboard_endpoint(
	session_id: str,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
	lookup: ParticipantLookup = Depends(get_participant_lookup),
) -> List[schemas.LeaderboardRow]:
	try:
		rows = await _service.session_leaderboard(auth_user, lookup, session_id)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return [schemas.LeaderboardRow(**row) for row in rows]


@router.get("/{session_id}/submission_counts", response_model=Dict[str, schemas.SubmissionCounts])
async def submission_counts_endpoint(
	session_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> Dict[str, schemas.SubmissionCounts]:
	try:
		counts = await _service.submission_counts(auth_user, session_id)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return {activity_id: schemas.SubmissionCounts(**entry) for activity_id, entry in counts.items()}
