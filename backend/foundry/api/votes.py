"""FastAPI routes for single votes and point-allocation batches."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from foundry.api.errors import as_http_error
from foundry.domain.workshops import schemas
from foundry.domain.workshops.exceptions import WorkshopError
from foundry.domain.workshops.service import WorkshopService
from foundry.infra.auth import ParticipantLookup, get_participant_lookup

router = APIRouter(prefix="/votes", tags=["votes"])

_service = WorkshopService()


@router.post("", response_model=schemas.VoteSummary, status_code=status.HTTP_201_CREATED)
async def cast_vote_endpoint(
	payload: schemas.VoteRequest,
	lookup: ParticipantLookup = Depends(get_participant_lookup),
) -> schemas.VoteSummary:
	try:
		vote = await _service.cast_vote(lookup, payload)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return schemas.VoteSummary(**vote.to_payload())


@router.post("/bulk", response_model=List[schemas.VoteSummary])
async def cast_vote_batch_endpoint(
	payload: schemas.VoteBatchRequest,
	lookup: ParticipantLookup = Depends(get_participant_lookup),
) -> List[schemas.VoteSummary]:
	try:
		votes = await _service.cast_vote_batch(lookup, payload)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return [schemas.VoteSummary(**vote.to_payload()) for vote in votes]
