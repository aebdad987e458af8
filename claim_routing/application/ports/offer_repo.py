"""Port interface for broadcast offer persistence."""

from abc import ABC, abstractmethod
from datetime import datetime

from claim_routing.domain.entities.broadcast_offer import BroadcastOffer
from claim_routing.domain.value_objects.assignee import Assignee
from claim_routing.domain.value_objects.enums import OfferStatus


class OfferRepository(ABC):
    @abstractmethod
    async def create_many(self, offers: list[BroadcastOffer]) -> list[BroadcastOffer]:
        ...

    @abstractmethod
    async def get_by_order(self, order_id: str) -> list[BroadcastOffer]:
        ...

    @abstractmethod
    async def get_for_assignee(
        self, order_id: str, assignee: Assignee
    ) -> BroadcastOffer | None:
        ...

    @abstractmethod
    async def transition(
        self,
        order_id: str,
        assignee: Assignee,
        *,
        from_status: OfferStatus,
        to_status: OfferStatus,
        responded_at: datetime | None = None,
    ) -> int:
        """Conditional status change; returns rows affected."""
        ...

    @abstractmethod
    async def expire_open(self, order_id: str, except_assignee: Assignee | None = None) -> int:
        """Expire every still-sent offer of the order, optionally sparing one."""
        ...
