"""AssignmentSettings entity — dispatch configuration per (profession, zip prefix)."""

from dataclasses import dataclass
from datetime import datetime

from claim_routing.domain.value_objects.enums import DispatchMode, FallbackBehavior

DEFAULT_BROADCAST_PARTNER_COUNT = 3


@dataclass
class AssignmentSettings:
    id: int | None
    profession: str
    zip_prefix: str | None  # None = global default for the profession
    mode: DispatchMode = DispatchMode.MANUAL
    broadcast_partner_count: int = DEFAULT_BROADCAST_PARTNER_COUNT
    fallback_behavior: FallbackBehavior = FallbackBehavior.INTERNAL_ONLY
    active: bool = True
    updated_at: datetime | None = None

    def is_global(self) -> bool:
        return self.zip_prefix is None
