"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNTER = Counter(
	"foundry_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"foundry_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SUBMISSIONS_ACCEPTED = Counter(
	"foundry_submissions_accepted_total",
	"Text submissions persisted",
	["activity_type"],
)

VOTES_ACCEPTED = Counter(
	"foundry_votes_accepted_total",
	"Vote rows written",
	["path"],
)

STOCKTAKE_RESPONSES = Counter(
	"foundry_stocktake_responses_total",
	"Stocktake responses written",
	["choice"],
)

GATEWAY_REJECTIONS = Counter(
	"foundry_gateway_rejections_total",
	"Participant writes rejected by a guard",
	["operation", "reason"],
)

RATE_LIMITED = Counter(
	"foundry_rate_limited_total",
	"Calls rejected by the fixed-window rate limiter",
	["operation"],
)

LIFECYCLE_TRANSITIONS = Counter(
	"foundry_activity_transitions_total",
	"Activity status transitions applied",
	["from_status", "to_status"],
)

AGGREGATION_LATENCY = Histogram(
	"foundry_aggregation_duration_seconds",
	"Time spent reading rows and aggregating results",
	["kind"],
	buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_submission(activity_type: str) -> None:
	SUBMISSIONS_ACCEPTED.labels(activity_type=activity_type).inc()


def inc_votes(path: str, count: int = 1) -> None:
	VOTES_ACCEPTED.labels(path=path).inc(count)


def inc_stocktake_response(choice: str) -> None:
	STOCKTAKE_RESPONSES.labels(choice=choice).inc()


def inc_rejection(operation: str, reason: str) -> None:
	GATEWAY_REJECTIONS.labels(operation=operation, reason=reason).inc()


def inc_rate_limited(operation: str) -> None:
	RATE_LIMITED.labels(operation=operation).inc()


def inc_transition(from_status: str, to_status: str) -> None:
	LIFECYCLE_TRANSITIONS.labels(from_status=from_status, to_status=to_status).inc()


def observe_aggregation(kind: str, elapsed_seconds: float) -> None:
	AGGREGATION_LATENCY.labels(kind=kind).observe(elapsed_seconds)
