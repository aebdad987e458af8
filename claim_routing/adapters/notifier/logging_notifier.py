"""Offer notifier that only records offers in the application log."""

from __future__ import annotations

import logging

from claim_routing.application.ports.notifier_port import OfferNotifier
from claim_routing.domain.entities.broadcast_offer import BroadcastOffer
from claim_routing.domain.entities.order import Order

logger = logging.getLogger(__name__)


class LoggingOfferNotifier(OfferNotifier):
    async def notify(self, order: Order, offer: BroadcastOffer) -> None:
        logger.info(
            "Offer for order %s sent to %s %s (expires %s)",
            order.id, offer.assignee.type.value, offer.assignee.id, offer.expires_at.isoformat(),
        )
