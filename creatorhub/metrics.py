"""
Prometheus metrics for the messaging API.

This module provides:
- HTTP request counter (method, path, status)
- Request latency histogram (method, path)
- Message send outcome counter (result)
- Mark-read outcome counter (result)

Metrics are stored in-memory using prometheus-client.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# =============================================================================
# Metric Definitions
# =============================================================================

# HTTP request counter with labels for method, path, and status code
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path", "status"]
)

# Request latency histogram in seconds
request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"]
)

# result: created, validation_error, not_found, storage_error
messages_sent_total = Counter(
    "messages_sent_total",
    "Total message send outcomes",
    labelnames=["result"]
)

# result: marked, already_read, forbidden, not_found, auto_mark_failed
messages_marked_read_total = Counter(
    "messages_marked_read_total",
    "Total mark-read outcomes",
    labelnames=["result"]
)


# =============================================================================
# Helper Functions
# =============================================================================

STATIC_PATHS = {"/health/live", "/health/ready", "/metrics", "/api/me"}

# Fixed segments of the /api/messages routes; anything else there is an id
MESSAGE_ROUTE_SEGMENTS = {"conversation", "conversations", "unread", "count", "read", "polling"}

UNMATCHED_PATH = "unmatched"


def normalize_path(path: str) -> str:
    """
    Collapse id segments so labels stay low-cardinality.

    /api/messages/conversation/u1 -> /api/messages/conversation/{id}
    /api/messages/abc/read        -> /api/messages/{id}/read
    /api/messages/anything        -> /api/messages/{id}
    /some/unknown/path            -> unmatched
    """
    path = path.split("?")[0]
    if path in STATIC_PATHS or path == "/api/messages":
        return path
    if not path.startswith("/api/messages/"):
        return UNMATCHED_PATH

    segments = path[len("/api/messages/"):].split("/")
    collapsed = [s if s in MESSAGE_ROUTE_SEGMENTS else "{id}" for s in segments]
    return "/api/messages/" + "/".join(collapsed)


def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    """
    Record an HTTP request in metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Request path
        status: HTTP status code
        latency_seconds: Request processing time in seconds
    """
    normalized_path = normalize_path(path)

    http_requests_total.labels(
        method=method,
        path=normalized_path,
        status=str(status)
    ).inc()

    request_latency_seconds.labels(
        method=method,
        path=normalized_path
    ).observe(latency_seconds)


def record_send_outcome(result: str) -> None:
    """Record a message send outcome."""
    messages_sent_total.labels(result=result).inc()


def record_mark_read_outcome(result: str) -> None:
    """Record a mark-read outcome, explicit or triggered by viewing a thread."""
    messages_marked_read_total.labels(result=result).inc()


def get_metrics() -> bytes:
    """
    Generate Prometheus exposition format metrics.

    Returns:
        Metrics in Prometheus text format as bytes
    """
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
