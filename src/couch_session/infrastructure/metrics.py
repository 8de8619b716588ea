from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, generate_latest


class SessionMetrics:
    """Counters for the session layer, on a registry owned by one pool."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.auth_requests = Counter(
            "couch_session_auth_requests",
            "Authentication round trips started against /_session",
            registry=self.registry,
        )
        self.auth_failures = Counter(
            "couch_session_auth_failures",
            "Authentication attempts that produced no session",
            registry=self.registry,
        )
        self.invalidations = Counter(
            "couch_session_invalidations",
            "Sessions dropped after a 401 on a data request",
            registry=self.registry,
        )
        self.rotations = Counter(
            "couch_session_rotations",
            "Session cookies picked up from data responses",
            registry=self.registry,
        )

    def value(self, name: str) -> float:
        return self.registry.get_sample_value(f"{name}_total") or 0.0

    def render(self) -> str:
        return generate_latest(self.registry).decode("utf-8")
