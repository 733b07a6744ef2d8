"""Prometheus instruments for authentication flows."""

from __future__ import annotations

from prometheus_client import Counter

AUTH_EVENTS = Counter(
    "user_service_auth_events_total",
    "Authentication flow results grouped by operation and outcome.",
    ["operation", "outcome"],
)


def record_auth_event(operation: str, outcome: str) -> None:
    AUTH_EVENTS.labels(operation=operation, outcome=outcome).inc()
