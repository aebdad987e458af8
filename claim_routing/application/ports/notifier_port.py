"""Port interface for telling candidates about a broadcast offer."""

from abc import ABC, abstractmethod

from claim_routing.domain.entities.broadcast_offer import BroadcastOffer
from claim_routing.domain.entities.order import Order


class OfferNotifier(ABC):
    @abstractmethod
    async def notify(self, order: Order, offer: BroadcastOffer) -> None:
        """Deliver the offer. Implementations must not raise on delivery failure."""
        ...
