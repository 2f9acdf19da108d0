"""Central registry for Prometheus metrics used across the circle backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Summary


REQUEST_COUNTER = Counter(
	"circle_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"circle_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

CONNECTION_TRANSITIONS = Counter(
	"circle_connection_transitions_total",
	"Connection lifecycle transitions",
	["event"],
)

CONNECTION_REQUEST_REJECTS = Counter(
	"circle_connection_request_rejects_total",
	"Connection requests rejected before a row was written",
	["reason"],
)

CAPACITY_REJECTS = Counter(
	"circle_capacity_rejects_total",
	"Transitions refused because a participant's circle is full",
	["stage"],
)

INVITES_CREATED = Counter(
	"circle_invites_created_total",
	"Invite tokens issued",
)

INVITES_CONSUMED = Counter(
	"circle_invites_consumed_total",
	"Invite uses spent on successful connection requests",
)

FEED_READS = Counter(
	"circle_feed_reads_total",
	"Feed pages served",
)

FEED_ITEMS = Histogram(
	"circle_feed_page_items",
	"Posts returned per feed page",
	buckets=(0, 1, 5, 10, 20, 30, 50),
)

SEEN_MARKS = Counter(
	"circle_feed_seen_marks_total",
	"Post ids submitted to mark-seen",
)

POSTS_CREATED = Counter(
	"circle_posts_created_total",
	"Posts created",
	["content_type"],
)

COMMENTS_CREATED = Counter(
	"circle_comments_created_total",
	"Comments created",
)

REACTIONS_CREATED = Counter(
	"circle_reactions_created_total",
	"Reactions upserted",
)

USERS_REGISTERED = Counter(
	"circle_users_registered_total",
	"Users created on first login",
)

REDIS_UP = Gauge("circle_redis_up", "Redis availability (1=up,0=down)")
REDIS_LATENCY = Summary("circle_redis_latency_seconds", "Redis ping latency (seconds)")

POSTGRES_UP = Gauge("circle_postgres_up", "Postgres availability (1=up,0=down)")
POSTGRES_LATENCY = Summary("circle_postgres_latency_seconds", "Postgres ping latency (seconds)")

BACKGROUND_RUNS = Counter(
	"circle_jobs_runs_total",
	"Background job executions",
	["name", "result"],
)

BACKGROUND_DURATION = Histogram(
	"circle_jobs_duration_seconds",
	"Background job duration",
	["name"],
	buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 15.0, 30.0, 60.0),
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_connection_transition(event: str) -> None:
	CONNECTION_TRANSITIONS.labels(event=event).inc()


def inc_connection_request_reject(reason: str) -> None:
	CONNECTION_REQUEST_REJECTS.labels(reason=reason).inc()


def inc_capacity_reject(stage: str) -> None:
	CAPACITY_REJECTS.labels(stage=stage).inc()


def inc_invite_created() -> None:
	INVITES_CREATED.inc()


def inc_invite_consumed() -> None:
	INVITES_CONSUMED.inc()


def observe_feed_read(items: int) -> None:
	FEED_READS.inc()
	FEED_ITEMS.observe(items)


def inc_seen_marks(count: int) -> None:
	if count > 0:
		SEEN_MARKS.inc(count)


def inc_post_created(content_type: str) -> None:
	POSTS_CREATED.labels(content_type=content_type).inc()


def inc_comment_created() -> None:
	COMMENTS_CREATED.inc()


def inc_reaction_created() -> None:
	REACTIONS_CREATED.inc()


def inc_user_registered() -> None:
	USERS_REGISTERED.inc()


def mark_redis(ok: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.observe(latency_seconds)


def mark_postgres(ok: bool, *, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		POSTGRES_LATENCY.observe(latency_seconds)


def record_job_run(name: str, *, result: str, duration_seconds: float | None = None) -> None:
	BACKGROUND_RUNS.labels(name=name, result=result).inc()
	if duration_seconds is not None:
		BACKGROUND_DURATION.labels(name=name).observe(duration_seconds)
