"""FastAPI routes for stocktake responses."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from foundry.api.errors import as_http_error
from foundry.domain.workshops import schemas
from foundry.domain.workshops.exceptions import WorkshopError
from foundry.domain.workshops.service import WorkshopService
from foundry.infra.auth import AuthenticatedUser, ParticipantLookup, get_optional_user, get_participant_lookup

router = APIRouter(prefix="/stocktake", tags=["stocktake"])

_service = WorkshopService()


@router.post("/responses", response_model=schemas.StocktakeResponseSummary, status_code=status.HTTP_201_CREATED)
async def submit_response_endpoint(
	payload: schemas.StocktakeResponseRequest,
	lookup: ParticipantLookup = Depends(get_participant_lookup),
) -> schemas.StocktakeResponseSummary:
	try:
		response = await _service.submit_stocktake(lookup, payload)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return schemas.StocktakeResponseSummary(**response.to_payload())


@router.get("/responses", response_model=List[schemas.StocktakeResponseSummary])
async def my_responses_endpoint(
	activity_id: str = Query(..., min_length=1),
	lookup: ParticipantLookup = Depends(get_participant_lookup),
) -> List[schemas.StocktakeResponseSummary]:
	try:
		responses = await _service.list_my_stocktake_responses(lookup, activity_id)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return [schemas.StocktakeResponseSummary(**response.to_payload()) for response in responses]


@router.get("/initiatives", response_model=List[schemas.InitiativeSummary])
async def list_initiatives_endpoint(
	activity_id: str = Query(..., min_length=1),
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
	lookup: ParticipantLookup = Depends(get_participant_lookup),
) -> List[schemas.InitiativeSummary]:
	try:
		initiatives = await _service.list_initiatives(auth_user, lookup, activity_id)
	except WorkshopError as exc:
		raise as_http_error(exc) from exc
	return [schemas.InitiativeSummary(id=item.id, title=item.title) for item in initiatives]
