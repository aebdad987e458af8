"""Webhook offer notifier — implements OfferNotifier over HTTP."""

from __future__ import annotations

import logging

import httpx

from claim_routing.application.ports.notifier_port import OfferNotifier
from claim_routing.config import settings
from claim_routing.domain.entities.broadcast_offer import BroadcastOffer
from claim_routing.domain.entities.order import Order

logger = logging.getLogger(__name__)


def offer_payload(order: Order, offer: BroadcastOffer) -> dict:
    return {
        "order_id": order.id,
        "damage_type": order.damage_type,
        "postal_code": order.postal_code,
        "assignee_type": offer.assignee.type.value,
        "assignee_id": offer.assignee.id,
        "token": offer.token,
        "expires_at": offer.expires_at.isoformat(),
    }


class WebhookOfferNotifier(OfferNotifier):
    """POSTs each offer as JSON to a single configured endpoint.

    Delivery is fire-and-forget from the broadcast's point of view: HTTP and
    transport errors are logged, never raised.
    """

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._url = url or settings.offer_webhook_url
        self._timeout = timeout or settings.offer_webhook_timeout_seconds
        self._transport = transport

    async def notify(self, order: Order, offer: BroadcastOffer) -> None:
        payload = offer_payload(order, offer)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(self._url, json=payload)
                resp.raise_for_status()
            logger.debug("Offer webhook delivered for order %s → %s", order.id, offer.assignee.id)
        except httpx.HTTPError as e:
            logger.warning(
                "Offer webhook failed for order %s → %s: %s", order.id, offer.assignee.id, e
            )
