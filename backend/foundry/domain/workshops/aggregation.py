"""Pure aggregation over freshly read workshop rows.

Nothing here touches the store: callers fetch rows and pass them in, so every
result reflects the store contents at read time and nothing is cached.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from foundry.domain.workshops import models

# One-sided lower bound of roughly 68% for the stocktake support score.
SUPPORT_Z = 1.0

UNGROUPED_KEY = "__ungrouped"


def vote_statistics(values: Sequence[float]) -> Tuple[int, Optional[float], Optional[float]]:
	"""Return ``(n, mean, population stdev)``; mean and stdev are None without votes."""
	n = len(values)
	if n == 0:
		return 0, None, None
	avg = sum(values) / n
	variance = sum((value - avg) ** 2 for value in values) / n
	return n, avg, math.sqrt(variance)


def consensus_score(stdev: Optional[float]) -> float:
	if stdev is None or stdev <= 0:
		return 1.0
	return 1.0 / (1.0 + stdev)


def resolve_group_id(
	submission: models.Submission,
	participants: Mapping[str, models.Participant],
) -> Optional[str]:
	"""Snapshot group first; fall back to the author's current group."""
	if submission.group_id:
		return submission.group_id
	author = participants.get(submission.participant_id)
	return author.group_id if author else None


def _display_name(participants: Mapping[str, models.Participant], participant_id: str) -> Optional[str]:
	participant = participants.get(participant_id)
	if participant is None:
		return None
	return participant.display_name or None


def submission_results(
	submissions: Iterable[models.Submission],
	votes: Iterable[models.Vote],
	participants: Mapping[str, models.Participant],
) -> List[Dict[str, Any]]:
	ordered = sorted(submissions, key=lambda sub: (sub.created_at, sub.id))
	by_submission: Dict[str, List[models.Vote]] = {sub.id: [] for sub in ordered}
	for vote in votes:
		bucket = by_submission.get(vote.submission_id)
		if bucket is not None:
			bucket.append(vote)

	rows: List[Dict[str, Any]] = []
	for sub in ordered:
		cast = by_submission[sub.id]
		n, avg, stdev = vote_statistics([float(vote.value) for vote in cast])
		rows.append(
			{
				"id": sub.id,
				"text": sub.text,
				"participant_id": sub.participant_id,
				"participant_name": _display_name(participants, sub.participant_id),
				"group_id": resolve_group_id(sub, participants),
				"created_at": sub.created_at,
				"n": n,
				"avg": avg,
				"stdev": stdev,
				"consensus": consensus_score(stdev),
				"votes": [
					{
						"voter_id": vote.voter_id,
						"voter_name": _display_name(participants, vote.voter_id),
						"value": vote.value,
					}
					for vote in cast
				],
			}
		)
	return rows


def rank_submissions(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
	"""Highest average first; agreement, then vote count, then age break ties."""

	def _key(row: Dict[str, Any]):
		avg = row.get("avg")
		return (
			avg is None,
			-(avg or 0.0),
			-float(row.get("consensus") or 0.0),
			-int(row.get("n") or 0),
			row.get("created_at"),
			row.get("id"),
		)

	return sorted(rows, key=_key)


def group_leaderboard(
	groups: Iterable[models.Group],
	submissions: Iterable[models.Submission],
	votes: Iterable[models.Vote],
	participants: Mapping[str, models.Participant],
) -> List[Dict[str, Any]]:
	"""Sum vote values per group; every group appears even without activity."""
	rows: Dict[str, Dict[str, Any]] = {}
	for group in groups:
		rows[group.id] = {
			"group_id": group.id,
			"group_name": group.name or "",
			"total": 0,
			"vote_count": 0,
			"submission_count": 0,
		}

	submission_group: Dict[str, str] = {}
	for sub in submissions:
		group_id = resolve_group_id(sub, participants)
		if group_id is None or group_id not in rows:
			continue
		submission_group[sub.id] = group_id
		rows[group_id]["submission_count"] += 1

	for vote in votes:
		group_id = submission_group.get(vote.submission_id)
		if group_id is None:
			continue
		rows[group_id]["total"] += int(vote.value)
		rows[group_id]["vote_count"] += 1

	return sorted(
		rows.values(),
		key=lambda row: (-row["total"], -row["submission_count"], row["group_name"], row["group_id"]),
	)


def submission_counts(
	activities: Iterable[models.Activity],
	submissions: Iterable[models.Submission],
	participants: Mapping[str, models.Participant],
) -> Dict[str, Dict[str, Any]]:
	counts: Dict[str, Dict[str, Any]] = {
		activity.id: {"max": activity.max_submissions, "by_group": {}, "total": 0}
		for activity in activities
	}
	for sub in submissions:
		entry = counts.get(sub.activity_id)
		if entry is None:
			continue
		key = resolve_group_id(sub, participants) or UNGROUPED_KEY
		entry["by_group"][key] = entry["by_group"].get(key, 0) + 1
		entry["total"] += 1
	return counts


def initiative_statistics(initiative: models.StocktakeInitiative, choices: Iterable[str]) -> Dict[str, Any]:
	counts = {choice: 0 for choice in models.STOCKTAKE_CHOICES}
	for choice in choices:
		if choice in counts:
			counts[choice] += 1
	n = sum(counts.values())
	total = sum(models.STOCKTAKE_SCORES[choice] * count for choice, count in counts.items())
	avg = total / n if n else 0.0
	variance = 0.0
	if n:
		mean_square = sum(models.STOCKTAKE_SCORES[choice] ** 2 * count for choice, count in counts.items()) / n
		variance = max(mean_square - avg * avg, 0.0)
	stdev = math.sqrt(variance)
	stderr = stdev / math.sqrt(n) if n else 0.0
	return {
		"id": initiative.id,
		"title": initiative.title,
		"counts": counts,
		"n": n,
		"sum": total,
		"avg": avg,
		"stdev": stdev,
		"stderr": stderr,
		"support": avg - SUPPORT_Z * stderr if n else None,
	}


def rank_initiatives(items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
	def _key(item: Dict[str, Any]):
		support = item.get("support")
		return (support is None, -(support or 0.0), -int(item.get("n") or 0), item.get("title") or "", item.get("id"))

	return sorted(items, key=_key)


def stocktake_results(
	initiatives: Iterable[models.StocktakeInitiative],
	responses: Iterable[models.StocktakeResponse],
) -> Dict[str, Any]:
	initiative_list = list(initiatives)
	by_initiative: Dict[str, List[str]] = {initiative.id: [] for initiative in initiative_list}
	for response in responses:
		bucket = by_initiative.get(response.initiative_id)
		if bucket is not None:
			bucket.append(response.choice)

	items = [initiative_statistics(initiative, by_initiative[initiative.id]) for initiative in initiative_list]
	overall_n = sum(item["n"] for item in items)
	overall_sum = sum(item["avg"] * item["n"] for item in items)
	return {
		"initiatives": items,
		"overall": {"n": overall_n, "avg": overall_sum / overall_n if overall_n else 0.0},
		"order": list(models.STOCKTAKE_CHOICES),
		"top": rank_initiatives(items),
	}
