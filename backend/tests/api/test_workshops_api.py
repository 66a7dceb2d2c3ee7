import pytest

from foundry.infra.jwt import issue_facilitator_token
from foundry.settings import settings

FACILITATOR = {"X-User-Id": "fac-1"}


def as_participant(participant):
	return {"X-Participant-Id": participant.id}


async def _create_activity(api_client, session_id, type_="open_ended", **config):
	response = await api_client.post(
		"/activities",
		json={"session_id": session_id, "type": type_, "title": "Ideas", "config": config},
		headers=FACILITATOR,
	)
	assert response.status_code == 201, response.text
	return response.json()


async def _set_status(api_client, activity_id, status):
	response = await api_client.post(f"/activities/{activity_id}/status", json={"status": status}, headers=FACILITATOR)
	assert response.status_code == 200, response.text
	return response.json()


@pytest.mark.asyncio
async def test_open_ended_round_end_to_end(api_client, workshop):
	activity = await _create_activity(api_client, workshop.session.id, max_submissions=2, points_budget=10)
	assert activity["status"] == "Draft"
	active = await _set_status(api_client, activity["id"], "Active")
	assert active["ends_at"] is not None

	ids = []
	for participant, text in ((workshop.ana, "Pair more"), (workshop.cy, "Ship smaller")):
		response = await api_client.post(
			"/submissions",
			json={"activity_id": activity["id"], "text": text},
			headers=as_participant(participant),
		)
		assert response.status_code == 201, response.text
		ids.append(response.json()["id"])

	response = await api_client.post(
		"/votes/bulk",
		json={"activity_id": activity["id"], "items": [{"submission_id": ids[0], "value": 3}, {"submission_id": ids[1], "value": 7}]},
		headers=as_participant(workshop.ben),
	)
	assert response.status_code == 200, response.text
	assert len(response.json()) == 2

	await _set_status(api_client, activity["id"], "Voting")
	response = await api_client.post(
		"/votes",
		json={"activity_id": activity["id"], "submission_id": ids[1], "value": 9},
		headers=as_participant(workshop.solo),
	)
	assert response.status_code == 201, response.text

	response = await api_client.get(f"/activities/{activity['id']}/results", headers=FACILITATOR)
	assert response.status_code == 200
	results = response.json()
	assert results["ranked"][0]["id"] == ids[1]
	assert results["ranked"][0]["avg"] == 8
	assert results["stocktake"] is None

	response = await api_client.get(f"/sessions/{workshop.session.id}/leaderboard", headers=as_participant(workshop.ana))
	assert response.status_code == 200
	assert [(row["group_name"], row["total"]) for row in response.json()] == [("Blue", 16), ("Green", 3)]

	response = await api_client.get(f"/sessions/{workshop.session.id}/submission_counts", headers=FACILITATOR)
	assert response.json()[activity["id"]] == {
		"max": 2,
		"by_group": {workshop.green.id: 1, workshop.blue.id: 1},
		"total": 2,
	}


@pytest.mark.asyncio
async def test_participant_cookie_identifies_caller(api_client, workshop):
	activity = await _create_activity(api_client, workshop.session.id)
	await _set_status(api_client, activity["id"], "Active")

	api_client.cookies.set(f"sf_pid_{workshop.session.id}", workshop.ana.id)
	response = await api_client.post("/submissions", json={"activity_id": activity["id"], "text": "From a cookie"})
	assert response.status_code == 201
	assert response.json()["participant_id"] == workshop.ana.id

	response = await api_client.get("/activities", params={"session_id": workshop.session.id})
	assert [row["id"] for row in response.json()] == [activity["id"]]


@pytest.mark.asyncio
async def test_second_vote_batch_is_conflict(api_client, workshop):
	activity = await _create_activity(api_client, workshop.session.id)
	await _set_status(api_client, activity["id"], "Active")
	response = await api_client.post(
		"/submissions",
		json={"activity_id": activity["id"], "text": "Idea"},
		headers=as_participant(workshop.ana),
	)
	body = {"activity_id": activity["id"], "items": [{"submission_id": response.json()["id"], "value": 2}]}

	first = await api_client.post("/votes/bulk", json=body, headers=as_participant(workshop.cy))
	second = await api_client.post("/votes/bulk", json=body, headers=as_participant(workshop.cy))
	assert first.status_code == 200
	assert second.status_code == 409
	assert second.json()["detail"] == {"reason": "already_voted", "kind": "not_allowed"}
	assert "request_id" in second.json()


@pytest.mark.asyncio
async def test_quota_and_rate_limit_responses(api_client, workshop, monkeypatch):
	activity = await _create_activity(api_client, workshop.session.id, max_submissions=1)
	await _set_status(api_client, activity["id"], "Active")
	body = {"activity_id": activity["id"], "text": "Idea"}

	assert (await api_client.post("/submissions", json=body, headers=as_participant(workshop.ana))).status_code == 201
	response = await api_client.post("/submissions", json=body, headers=as_participant(workshop.ben))
	assert response.status_code == 409
	assert response.json()["detail"]["reason"] == "quota_exceeded"

	monkeypatch.setattr(settings, "submission_rate_limit", 1)
	response = await api_client.post("/submissions", json=body, headers=as_participant(workshop.cy))
	assert response.status_code == 201
	response = await api_client.post("/submissions", json=body, headers=as_participant(workshop.cy))
	assert response.status_code == 429
	assert response.json()["detail"] == {"reason": "rate_limited:submit", "kind": "try_later"}
	assert int(response.headers["Retry-After"]) >= 1


@pytest.mark.asyncio
async def test_strangers_are_denied(api_client, workshop):
	activity = await _create_activity(api_client, workshop.session.id)

	response = await api_client.get(f"/activities/{activity['id']}/results", headers={"X-User-Id": "fac-2"})
	assert response.status_code == 403
	assert response.json()["detail"]["reason"] == "forbidden"

	response = await api_client.get("/activities", params={"session_id": workshop.session.id})
	assert response.status_code == 403

	response = await api_client.post(f"/activities/{activity['id']}/status", json={"status": "Active"})
	assert response.status_code == 401

	missing = await api_client.get("/activities/nope/results", headers=FACILITATOR)
	assert missing.status_code == 403


@pytest.mark.asyncio
async def test_lifecycle_errors(api_client, workshop):
	activity = await _create_activity(api_client, workshop.session.id, "stocktake")

	response = await api_client.post(f"/activities/{activity['id']}/status", json={"status": "Voting"}, headers=FACILITATOR)
	assert response.status_code == 409
	assert response.json()["detail"]["reason"] == "invalid_transition"

	response = await api_client.post(f"/activities/{activity['id']}/extend", json={"minutes": 5}, headers=FACILITATOR)
	assert response.status_code == 409

	await _set_status(api_client, activity["id"], "Active")
	response = await api_client.post(f"/activities/{activity['id']}/extend", json={"minutes": 0}, headers=FACILITATOR)
	assert response.status_code == 422
	assert response.json()["detail"]["reason"] == "invalid_minutes"

	response = await api_client.post(f"/activities/{activity['id']}/skip", headers=FACILITATOR)
	assert response.status_code == 200
	assert response.json()["status"] == "Closed"
	assert response.json()["config"]["skipped"] is True


@pytest.mark.asyncio
async def test_stocktake_endpoints(api_client, workshop, repository):
	activity = await _create_activity(api_client, workshop.session.id, "stocktake")
	await _set_status(api_client, activity["id"], "Active")
	initiative = await repository.create_initiative(activity["id"], "Standups")

	body = {"activity_id": activity["id"], "initiative_id": initiative.id, "choice": "more"}
	response = await api_client.post("/stocktake/responses", json=body, headers=as_participant(workshop.ana))
	assert response.status_code == 201

	response = await api_client.get(
		"/stocktake/responses",
		params={"activity_id": activity["id"]},
		headers=as_participant(workshop.ana),
	)
	assert [row["choice"] for row in response.json()] == ["more"]

	response = await api_client.get(f"/activities/{activity['id']}/results", headers=FACILITATOR)
	stocktake = response.json()["stocktake"]
	assert stocktake["overall"] == {"n": 1, "avg": 1.0}
	assert stocktake["order"] == ["stop", "less", "same", "more", "begin"]
	assert stocktake["top"][0]["id"] == initiative.id


@pytest.mark.asyncio
async def test_malformed_body_is_validation_error(api_client, workshop):
	response = await api_client.post(
		"/votes",
		json={"activity_id": "a", "submission_id": "s"},
		headers=as_participant(workshop.ana),
	)
	assert response.status_code == 422
	assert response.json()["detail"] == "validation_error"


@pytest.mark.asyncio
async def test_liveness(api_client):
	response = await api_client.get("/health")
	assert response.status_code == 200
	assert response.json()["status"] == "ok"
	assert response.headers["X-Request-Id"]


@pytest.mark.asyncio
async def test_bearer_token_identifies_facilitator(api_client, workshop):
	token = issue_facilitator_token("fac-1", name="Fran")
	response = await api_client.post(
		"/activities",
		json={"session_id": workshop.session.id, "type": "open_ended"},
		headers={"Authorization": f"Bearer {token}"},
	)
	assert response.status_code == 201

	response = await api_client.get(
		f"/sessions/{workshop.session.id}/submission_counts",
		headers={"Authorization": "Bearer not-a-token"},
	)
	assert response.status_code == 401
	assert response.json()["detail"] == "invalid_token"


@pytest.mark.asyncio
async def test_participants_read_submissions_and_initiatives(api_client, workshop, repository):
	activity = await _create_activity(api_client, workshop.session.id)
	await _set_status(api_client, activity["id"], "Active")
	response = await api_client.post(
		"/submissions",
		json={"activity_id": activity["id"], "text": "Pair more"},
		headers=as_participant(workshop.ana),
	)
	submission = response.json()

	response = await api_client.get(
		"/submissions",
		params={"activity_id": activity["id"]},
		headers=as_participant(workshop.cy),
	)
	assert response.status_code == 200
	assert response.json() == [
		{"id": submission["id"], "text": "Pair more", "created_at": submission["created_at"]},
	]

	stocktake = await _create_activity(api_client, workshop.session.id, "stocktake")
	standups = await repository.create_initiative(stocktake["id"], "Standups")
	retros = await repository.create_initiative(stocktake["id"], "Retros")
	response = await api_client.get(
		"/stocktake/initiatives",
		params={"activity_id": stocktake["id"]},
		headers=as_participant(workshop.solo),
	)
	assert response.status_code == 200
	assert response.json() == [
		{"id": retros.id, "title": "Retros"},
		{"id": standups.id, "title": "Standups"},
	]

	response = await api_client.get("/submissions", params={"activity_id": activity["id"]}, headers={"X-User-Id": "fac-2"})
	assert response.status_code == 403
	response = await api_client.get("/stocktake/initiatives", params={"activity_id": "nope"}, headers=FACILITATOR)
	assert response.status_code == 403
