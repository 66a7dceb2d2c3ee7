import math
from datetime import datetime, timedelta, timezone

import pytest

from foundry.domain.workshops import aggregation, models

T0 = datetime(2025, 3, 4, 9, 0, tzinfo=timezone.utc)


def _participant(pid: str, group_id=None, name=None) -> models.Participant:
	return models.Participant(id=pid, session_id="s", display_name=name, group_id=group_id, created_at=T0)


def _submission(sid: str, participant_id: str, group_id=None, minute: int = 0, activity_id: str = "a1") -> models.Submission:
	return models.Submission(
		id=sid,
		activity_id=activity_id,
		participant_id=participant_id,
		group_id=group_id,
		text=f"idea {sid}",
		created_at=T0 + timedelta(minutes=minute),
	)


def _vote(submission_id: str, voter_id: str, value: int) -> models.Vote:
	return models.Vote(
		id=f"{submission_id}:{voter_id}",
		activity_id="a1",
		submission_id=submission_id,
		voter_id=voter_id,
		value=value,
	)


def _initiative(iid: str, title: str) -> models.StocktakeInitiative:
	return models.StocktakeInitiative(id=iid, activity_id="st", title=title)


def _response(initiative_id: str, participant_id: str, choice: str) -> models.StocktakeResponse:
	return models.StocktakeResponse(
		id=f"{initiative_id}:{participant_id}",
		activity_id="st",
		initiative_id=initiative_id,
		participant_id=participant_id,
		choice=choice,
		created_at=T0,
	)


def test_vote_statistics_empty_and_single():
	assert aggregation.vote_statistics([]) == (0, None, None)
	assert aggregation.vote_statistics([7.0]) == (1, 7.0, 0.0)


def test_vote_statistics_population_stdev():
	n, avg, stdev = aggregation.vote_statistics([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0])
	assert n == 8
	assert avg == pytest.approx(5.0)
	assert stdev == pytest.approx(2.0)


def test_consensus_decreases_with_disagreement():
	assert aggregation.consensus_score(0.0) == 1.0
	assert aggregation.consensus_score(None) == 1.0
	scores = [aggregation.consensus_score(s) for s in (0.5, 1.0, 4.0, 8.0)]
	assert scores == sorted(scores, reverse=True)
	assert len(set(scores)) == len(scores)


def test_equal_averages_rank_by_consensus():
	participants = {"p1": _participant("p1", name="Ana")}
	subs = [_submission("A", "p1", minute=1), _submission("B", "p1", minute=0)]
	votes = [_vote("A", "v1", 10), _vote("B", "v1", 2), _vote("B", "v2", 18)]

	rows = aggregation.submission_results(subs, votes, participants)
	by_id = {row["id"]: row for row in rows}
	assert [row["id"] for row in rows] == ["B", "A"]
	assert by_id["A"]["n"] == 1 and by_id["A"]["stdev"] == 0 and by_id["A"]["consensus"] == 1
	assert by_id["B"]["avg"] == 10 and by_id["B"]["stdev"] == pytest.approx(8.0)
	assert by_id["B"]["consensus"] == pytest.approx(1 / 9)
	assert by_id["A"]["participant_name"] == "Ana"

	ranked = aggregation.rank_submissions(rows)
	assert [row["id"] for row in ranked] == ["A", "B"]


def test_unvoted_submissions_rank_last():
	subs = [_submission("quiet", "p1", minute=0), _submission("loud", "p1", minute=1)]
	rows = aggregation.submission_results(subs, [_vote("loud", "v1", 1)], {})
	assert rows[0]["avg"] is None and rows[0]["stdev"] is None
	assert [row["id"] for row in aggregation.rank_submissions(rows)] == ["loud", "quiet"]


def test_leaderboard_includes_idle_groups_and_uses_snapshot():
	groups = [
		models.Group(id="g1", session_id="s", name="Green", created_at=T0),
		models.Group(id="g2", session_id="s", name="Blue", created_at=T0),
		models.Group(id="g3", session_id="s", name="Amber", created_at=T0),
	]
	participants = {
		# p1 moved to g2 after submitting from g1
		"p1": _participant("p1", group_id="g2"),
		"p2": _participant("p2", group_id="g2"),
	}
	subs = [
		_submission("s1", "p1", group_id="g1"),
		_submission("s2", "p2", group_id=None),
	]
	votes = [_vote("s1", "v1", 4), _vote("s1", "v2", 3), _vote("s2", "v1", 5)]

	rows = aggregation.group_leaderboard(groups, subs, votes, participants)
	assert [row["group_id"] for row in rows] == ["g1", "g2", "g3"]
	assert rows[0] == {"group_id": "g1", "group_name": "Green", "total": 7, "vote_count": 2, "submission_count": 1}
	assert rows[1]["total"] == 5 and rows[1]["submission_count"] == 1
	assert rows[2] == {"group_id": "g3", "group_name": "Amber", "total": 0, "vote_count": 0, "submission_count": 0}


def test_leaderboard_tiebreak_is_deterministic():
	groups = [
		models.Group(id="g-z", session_id="s", name="Zulu", created_at=T0),
		models.Group(id="g-a", session_id="s", name="Alpha", created_at=T0),
		models.Group(id="g-m", session_id="s", name="Mike", created_at=T0),
	]
	subs = [_submission("s1", "p", group_id="g-m")]
	rows = aggregation.group_leaderboard(groups, subs, [], {})
	assert [row["group_name"] for row in rows] == ["Mike", "Alpha", "Zulu"]


def test_submission_counts_bucket_ungrouped():
	activities = [
		models.Activity(id="a1", session_id="s", type="open_ended", title="", status="Active", created_at=T0, config={"max_submissions": 3}),
		models.Activity(id="a2", session_id="s", type="stocktake", title="", status="Draft", created_at=T0),
	]
	participants = {"p1": _participant("p1", group_id="g1"), "p2": _participant("p2")}
	subs = [
		_submission("s1", "p1", group_id="g1"),
		_submission("s2", "p1"),
		_submission("s3", "p2"),
	]
	counts = aggregation.submission_counts(activities, subs, participants)
	assert counts["a1"] == {"max": 3, "by_group": {"g1": 2, "__ungrouped": 1}, "total": 3}
	assert counts["a2"] == {"max": 0, "by_group": {}, "total": 0}


def test_stocktake_support_score_example():
	initiative = _initiative("i1", "Standups")
	stats = aggregation.initiative_statistics(initiative, ["more", "more", "begin"])
	assert stats["n"] == 3
	assert stats["sum"] == 4
	assert stats["avg"] == pytest.approx(1.333, abs=1e-3)
	assert stats["stdev"] == pytest.approx(0.471, abs=1e-3)
	assert stats["support"] == pytest.approx(1.06, abs=1e-2)
	assert stats["counts"] == {"stop": 0, "less": 0, "same": 0, "more": 2, "begin": 1}


def test_stocktake_averages_stay_in_range():
	stats = aggregation.initiative_statistics(_initiative("i", "t"), ["stop", "stop", "begin", "same"])
	assert -2 <= stats["avg"] <= 2
	assert stats["stdev"] >= 0
	assert not math.isnan(stats["stdev"])


def test_stocktake_overall_is_response_weighted():
	initiatives = [_initiative("i1", "Retros"), _initiative("i2", "Demos")]
	responses = [
		_response("i1", "p1", "begin"),
		_response("i2", "p1", "stop"),
		_response("i2", "p2", "stop"),
		_response("i2", "p3", "stop"),
	]
	result = aggregation.stocktake_results(initiatives, responses)
	assert result["overall"]["n"] == 4
	# mean of averages would be 0.0
	assert result["overall"]["avg"] == pytest.approx(-1.0)
	assert result["order"] == ["stop", "less", "same", "more", "begin"]


def test_stocktake_top_orders_by_support_and_puts_empty_last():
	initiatives = [_initiative("solo", "Solo fan"), _initiative("broad", "Broad support"), _initiative("none", "Nobody")]
	responses = [_response("solo", "p1", "begin")]
	responses += [_response("broad", f"p{i}", "more") for i in range(6)]
	responses += [_response("broad", "p9", "begin")]
	result = aggregation.stocktake_results(initiatives, responses)
	top = [item["id"] for item in result["top"]]
	assert top == ["solo", "broad", "none"]
	assert result["top"][1]["support"] == pytest.approx(8 / 7 - math.sqrt(10 / 7 - (8 / 7) ** 2) / math.sqrt(7))
	assert result["top"][-1]["support"] is None
	assert [item["id"] for item in result["initiatives"]] == ["solo", "broad", "none"]


def test_stocktake_support_prefers_agreement_over_higher_noisy_average():
	initiatives = [_initiative("noisy", "Noisy"), _initiative("steady", "Steady")]
	responses = [
		_response("noisy", "p1", "begin"),
		_response("noisy", "p2", "begin"),
		_response("noisy", "p3", "less"),
		_response("steady", "p1", "more"),
		_response("steady", "p2", "more"),
		_response("steady", "p3", "more"),
		_response("steady", "p4", "same"),
	]
	result = aggregation.stocktake_results(initiatives, responses)
	by_id = {item["id"]: item for item in result["initiatives"]}
	assert by_id["noisy"]["avg"] > by_id["steady"]["avg"]
	assert [item["id"] for item in result["top"]] == ["steady", "noisy"]
