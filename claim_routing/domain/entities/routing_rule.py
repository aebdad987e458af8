"""RoutingRule entity — operator override pinning an assignee to (zip prefix, profession)."""

from dataclasses import dataclass
from datetime import datetime

from claim_routing.domain.value_objects.assignee import Assignee


@dataclass
class RoutingRule:
    id: int | None
    zip_prefix: str
    profession: str
    priority: int = 1
    active: bool = True
    preferred_assignee: Assignee | None = None
    created_at: datetime | None = None
