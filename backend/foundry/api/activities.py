"""FastAPI routes for facilitator activity controls and results."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

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

router = APIRouter(prefix="/activities", tags=["activities"])

_service = WorkshopService()


@router.post("", response_model=schemas.ActivitySummary, status_code=status.HTTP_201_CREATED)
async def create_activity_endpoint(
	payload: schemas.CreateActivityRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.ActivitySummary:
	try:
		activity = await _service.create_activity(auth_user, payload)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return schemas.ActivitySummary(**activity.to_payload())


@router.get("", response_model=List[schemas.ActivitySummary])
async def list_activities_endpoint(
	session_id: str = Query(..., min_length=1),
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
	lookup: ParticipantLookup = Depends(get_participant_lookup),
) -> List[schemas.ActivitySummary]:
	try:
		activities = await _service.list_activities(auth_user, lookup, session_id)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return [schemas.ActivitySummary(**activity.to_payload()) for activity in activities]


@router.post("/{activity_id}/status", response_model=schemas.ActivitySummary)
async def change_status_endpoint(
	activity_id: str,
	payload: schemas.StatusChangeRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.ActivitySummary:
	try:
		activity = await _service.transition_status(auth_user, activity_id, payload.status)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return schemas.ActivitySummary(**activity.to_payload())


@router.post("/{activity_id}/skip", response_model=schemas.ActivitySummary)
async def skip_activity_endpoint(
	activity_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.ActivitySummary:
	try:
		activity = await _service.skip_activity(auth_user, activity_id)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return schemas.ActivitySummary(**activity.to_payload())


@router.post("/{activity_id}/extend", response_model=schemas.ActivitySummary)
async def extend_timer_endpoint(
	activity_id: str,
	payload: schemas.ExtendTimerRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.ActivitySummary:
	try:
		activity = await _service.extend_timer(auth_user, activity_id, payload.minutes)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return schemas.ActivitySummary(**activity.to_payload())


@router.get("/{activity_id}/results", response_model=schemas.ActivityResults)
async def activity_results_endpoint(
	activity_id: str,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> schemas.ActivityResults:
	try:
		payload = await _service.activity_results(auth_user, activity_id)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return schemas.ActivityResults(**payload)


@router.get("/{activity_id}/leaderboard", response_model=List[schemas.LeaderboardRow])
async def activity_leaderboard_endpoint(
	activity_id: str,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
	lookup: ParticipantLookup = Depends(get_participant_lookup),
) -> List[schemas.LeaderboardRow]:
	try:
		rows = await _service.activity_leaderboard(auth_user, lookup, activity_id)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return [schemas.LeaderboardRow(**row) for row in rows]
