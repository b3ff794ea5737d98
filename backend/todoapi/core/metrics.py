"""Prometheus metrics shared across the application"""

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "todoapi_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "todoapi_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
RATE_LIMIT_REJECTIONS = Counter(
    "todoapi_rate_limit_rejections_total",
    "Requests rejected by the rate limiter",
    ["classification"],
)
AUTH_EVENTS = Counter(
    "todoapi_auth_events_total",
    "Authentication lifecycle events",
    ["operation", "outcome"],
)
