"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


REQUEST_COUNTER = Counter(
	"newsflash_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"newsflash_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

RELATIONSHIP_TRANSITIONS = Counter(
	"newsflash_relationship_transitions_total",
	"Relationship state transitions applied",
	["action"],
)

FOLLOW_TOGGLES = Counter(
	"newsflash_follow_toggles_total",
	"Follow toggles applied",
	["action"],
)

LIKE_TOGGLES = Counter(
	"newsflash_like_toggles_total",
	"Like toggles applied",
	["action"],
)

COMMENTS = Counter(
	"newsflash_comments_total",
	"Comment lifecycle events",
	["action"],
)

POSTS_CREATED = Counter(
	"newsflash_posts_created_total",
	"Posts created per audience type",
	["audience"],
)

GROUP_EVENTS = Counter(
	"newsflash_group_events_total",
	"Group membership events",
	["event"],
)

NEWSFLASH_GENERATED = Counter(
	"newsflash_generated_total",
	"Newsflash texts generated per method",
	["method"],
)

OUTBOX_PUBLISHED = Counter(
	"newsflash_outbox_published_total",
	"Outbound notification tasks queued",
	["type"],
)

OUTBOX_PUBLISH_FAILURES = Counter(
	"newsflash_outbox_publish_failures_total",
	"Outbound notification tasks that could not be queued",
	["type"],
)

NOTIFICATIONS_PERSISTED = Counter(
	"newsflash_notifications_persisted_total",
	"Notification records stored for recipients",
	["type"],
)

PUSH_DISPATCH = Counter(
	"newsflash_push_dispatch_total",
	"Push dispatch attempts by outcome",
	["result"],
)

PUSH_MESSAGES = Counter(
	"newsflash_push_messages_total",
	"Push messages by delivery outcome",
	["result"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_relationship_transition(action: str) -> None:
	RELATIONSHIP_TRANSITIONS.labels(action=action).inc()


def inc_follow_toggle(action: str) -> None:
	FOLLOW_TOGGLES.labels(action=action).inc()


def inc_like_toggle(action: str) -> None:
	LIKE_TOGGLES.labels(action=action).inc()


def inc_comment(action: str) -> None:
	COMMENTS.labels(action=action).inc()


def inc_post_created(audience: str) -> None:
	POSTS_CREATED.labels(audience=audience).inc()


def inc_group_event(event: str) -> None:
	GROUP_EVENTS.labels(event=event).inc()


def inc_newsflash_generated(method: str) -> None:
	NEWSFLASH_GENERATED.labels(method=method).inc()


def outbox_published(type_name: str) -> None:
	OUTBOX_PUBLISHED.labels(type=type_name).inc()


def outbox_publish_failure(type_name: str) -> None:
	OUTBOX_PUBLISH_FAILURES.labels(type=type_name).inc()


def notification_persisted(type_name: str, count: int = 1) -> None:
	if count > 0:
		NOTIFICATIONS_PERSISTED.labels(type=type_name).inc(count)


def push_dispatch(result: str) -> None:
	PUSH_DISPATCH.labels(result=result).inc()


def push_messages(sent: int, failed: int) -> None:
	if sent:
		PUSH_MESSAGES.labels(result="sent").inc(sent)
	if failed:
		PUSH_MESSAGES.labels(result="failed").inc(failed)
