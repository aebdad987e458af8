"""BroadcastOffer entity — one candidate's invitation to take a broadcast order."""

from dataclasses import dataclass, field
from datetime import datetime

from claim_routing.domain.value_objects.assignee import Assignee
from claim_routing.domain.value_objects.enums import OfferStatus


@dataclass
class BroadcastOffer:
    id: int | None
    order_id: str
    assignee: Assignee
    token: str
    expires_at: datetime
    status: OfferStatus = OfferStatus.SENT
    created_at: datetime | None = None
    responded_at: datetime | None = None

    def is_open(self) -> bool:
        return self.status == OfferStatus.SENT


@dataclass(frozen=True)
class BroadcastHandle:
    """Opaque handle returned to the caller once an order is out for broadcast."""

    order_id: str
    expires_at: datetime
    offers: tuple[BroadcastOffer, ...] = field(default_factory=tuple)
    # True when the order was already out for broadcast; its offers were announced before.
    resumed: bool = False

    @property
    def size(self) -> int:
        return len(self.offers)
