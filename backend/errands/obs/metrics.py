"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


REQUEST_COUNTER = Counter(
	"errands_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"errands_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"errands_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"errands_socketio_events_total",
	"Socket.IO events emitted per namespace",
	["namespace", "event"],
)

REQUESTS_CREATED = Counter(
	"errands_requests_created_total",
	"Delivery requests created",
	["category"],
)

REQUEST_TRANSITIONS = Counter(
	"errands_request_transitions_total",
	"Request lifecycle transitions attempted",
	["transition", "result"],
)

ACCEPT_CONFLICTS = Counter(
	"errands_accept_conflicts_total",
	"Accept attempts that lost the race for a request",
)

NOTIFICATIONS_CREATED = Counter(
	"errands_notifications_created_total",
	"Notifications persisted",
	["category"],
)

NOTIFICATION_PUSH_FAILURES = Counter(
	"errands_notification_push_failures_total",
	"Realtime notification pushes that failed after commit",
)

POINTS_AWARDED = Counter(
	"errands_points_awarded_total",
	"Incentive points awarded",
	["reason"],
)

RATINGS_SUBMITTED = Counter(
	"errands_ratings_submitted_total",
	"Ratings submitted",
	["transaction_type"],
)

CHAT_SEND = Counter(
	"errands_chat_send_total",
	"Chat messages sent",
	["scope"],
)

RATE_LIMITED_EVENTS = Counter(
	"errands_rate_limited_events_total",
	"Events rejected by rate limits",
	["kind"],
)

PRESENCE_ONLINE = Gauge(
	"errands_presence_online_users",
	"Users with at least one live connection",
)

REDIS_UP = Gauge("errands_redis_up", "Redis availability (1=up,0=down)")
POSTGRES_UP = Gauge("errands_postgres_up", "Postgres availability (1=up,0=down)")


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def inc_request_created(category: str) -> None:
	REQUESTS_CREATED.labels(category=category).inc()


def inc_transition(transition: str, result: str) -> None:
	REQUEST_TRANSITIONS.labels(transition=transition, result=result).inc()


def inc_accept_conflict() -> None:
	ACCEPT_CONFLICTS.inc()


def inc_notification_created(category: str) -> None:
	NOTIFICATIONS_CREATED.labels(category=category).inc()


def inc_notification_push_failure() -> None:
	NOTIFICATION_PUSH_FAILURES.inc()


def inc_points_awarded(reason: str, amount: int) -> None:
	POINTS_AWARDED.labels(reason=reason).inc(amount)


def inc_rating_submitted(transaction_type: str) -> None:
	RATINGS_SUBMITTED.labels(transaction_type=transaction_type).inc()


def inc_chat_send(scope: str) -> None:
	CHAT_SEND.labels(scope=scope).inc()


def inc_rate_limited(kind: str) -> None:
	RATE_LIMITED_EVENTS.labels(kind=kind).inc()


def set_presence_online(count: int) -> None:
	PRESENCE_ONLINE.set(count)


def mark_redis(ok: bool) -> None:
	REDIS_UP.set(1 if ok else 0)


def mark_postgres(ok: bool) -> None:
	POSTGRES_UP.set(1 if ok else 0)
