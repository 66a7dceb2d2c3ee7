"""FastAPI routes for participant text submissions."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from foundry.api.errors import as_http_error
from foundry.domain.workshops import schemas
from foundry.domain.workshops.exceptions import WorkshopError
from foundry.domain.workshops.service import WorkshopService
from foundry.infra.auth import AuthenticatedUser, ParticipantLookup, get_optional_user, get_participant_lookup

router = APIRouter(prefix="/submissions", tags=["submissions"])

_service = WorkshopService()


@router.post("", response_model=schemas.SubmissionSummary, status_code=status.HTTP_201_CREATED)
async def create_submission_endpoint(
	payload: schemas.SubmissionCreateRequest,
	lookup: ParticipantLookup = Depends(get_participant_lookup),
) -> schemas.SubmissionSummary:
	try:
		submission = await _service.submit_text(lookup, payload)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return schemas.SubmissionSummary(**submission.to_payload())


@router.get("", response_model=List[schemas.SubmissionListItem])
async def list_submissions_endpoint(
	activity_id: str = Query(..., min_length=1),
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
	lookup: ParticipantLookup = Depends(get_participant_lookup),
) -> List[schemas.SubmissionListItem]:
	try:
		submissions = await _service.list_submissions(auth_user, lookup, activity_id)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return [schemas.SubmissionListItem(id=sub.id, text=sub.text, created_at=sub.created_at) for sub in submissions]
