"""RoutingConfig — explicit engine configuration threaded into every component."""

from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class RoutingConfig:
    zip_prefix_length: int = 2
    rule_lookup_limit: int = 5
    fallback_scan_limit: int = 100
    auto_candidate_limit: int = 5
    persistence_retry_delay_seconds: float = 0.2
    engine_timeout_seconds: float = 5.0
    broadcast_ttl: timedelta = timedelta(minutes=60)
