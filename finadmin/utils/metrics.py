from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


HTTP_REQUESTS_TOTAL = Counter(
    "finadmin_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "finadmin_http_request_duration_seconds",
    "HTTP request duration (seconds)",
    ["method", "path"],
)


OTP_EVENTS_TOTAL = Counter(
    "finadmin_otp_events_total",
    "Admin OTP challenge events",
    ["event", "result"],
)

BACKUP_EVENTS_TOTAL = Counter(
    "finadmin_backup_events_total",
    "Backup job events",
    ["event", "result"],
)

RECOVERY_EVENTS_TOTAL = Counter(
    "finadmin_recovery_events_total",
    "Recovery/maintenance events",
    ["event", "result"],
)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
