"""BroadcastCoordinator — fan an order out to several candidates, first accept wins."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable, Iterable
from datetime import datetime

from claim_routing.application.ports.notifier_port import OfferNotifier
from claim_routing.application.ports.offer_repo import OfferRepository
from claim_routing.application.ports.order_repo import OrderRepository
from claim_routing.application.routing_config import RoutingConfig
from claim_routing.application.services.assignment_executor import AssignmentExecutor
from claim_routing.application.services.candidate_finder import CandidateFinder
from claim_routing.application.services.settings_resolver import SettingsResolver
from claim_routing.domain.entities.assignment import Assignment
from claim_routing.domain.entities.assignment_settings import AssignmentSettings
from claim_routing.domain.entities.broadcast_offer import BroadcastHandle, BroadcastOffer
from claim_routing.domain.entities.order import Order
from claim_routing.domain.exceptions import (
    OfferNotFound,
    OrderNotFound,
    PersistenceFailure,
    StalePreconditionFailure,
)
from claim_routing.domain.policies.profession_mapping import profession_for
from claim_routing.domain.value_objects.assignee import Assignee
from claim_routing.domain.value_objects.clock import utcnow
from claim_routing.domain.value_objects.enums import (
    AcceptOutcome,
    Actor,
    FallbackBehavior,
    OfferStatus,
    OrderState,
    SkipReason,
)
from claim_routing.domain.value_objects.postal_code import zip_prefix

logger = logging.getLogger(__name__)

_BROADCASTING = frozenset({OrderState.BROADCASTING})
_EXPIRED = frozenset({OrderState.EXPIRED})


class BroadcastCoordinator:
    """Arbitrates broadcast acceptances without a shared lock.

    State machine per order:

        UNASSIGNED → BROADCASTING → ASSIGNED_EXTERNAL / ASSIGNED_INTERNAL (first accept)
                                  → EXPIRED (deadline, then settings' fallback)

    Every transition is a conditional write whose affected-row count tells the
    caller whether it won. Partner-facing endpoints may run in separate
    processes, so nothing here relies on in-memory coordination.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        offer_repo: OfferRepository,
        executor: AssignmentExecutor,
        resolver: SettingsResolver,
        finder: CandidateFinder,
        notifier: OfferNotifier,
        config: RoutingConfig,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._orders = order_repo
        self._offers = offer_repo
        self._executor = executor
        self._resolver = resolver
        self._finder = finder
        self._notifier = notifier
        self._config = config
        self._clock = clock

    async def broadcast(
        self,
        order: Order,
        candidates: list[Assignee],
        settings: AssignmentSettings,
    ) -> BroadcastHandle:
        """Put the order out to the first ``broadcast_partner_count`` candidates.

        Only records the offers. Candidates are told through ``announce`` once
        the caller has committed them, so no token ever points at an offer
        that is not stored yet.

        Raises:
            ValueError: if there is nobody to notify.
            StalePreconditionFailure: if the order is no longer unassigned.
        """
        chosen = candidates[: max(settings.broadcast_partner_count, 1)]
        if not chosen:
            raise ValueError("Cannot broadcast to an empty candidate list")

        expires_at = self._clock() + self._config.broadcast_ttl
        moved = await self._orders.transition_state(
            order.id,
            from_states={OrderState.UNASSIGNED},
            to_state=OrderState.BROADCASTING,
            broadcast_expires_at=expires_at,
        )
        if not moved:
            current = await self._orders.get_by_id(order.id)
            if current is not None and current.state == OrderState.BROADCASTING:
                existing = await self._offers.get_by_order(order.id)
                logger.info("Order %s already broadcasting to %d candidate(s)", order.id, len(existing))
                return BroadcastHandle(
                    order_id=order.id,
                    expires_at=current.broadcast_expires_at or expires_at,
                    offers=tuple(existing),
                    resumed=True,
                )
            raise StalePreconditionFailure(order.id, f"Order {order.id} is no longer unassigned")

        offers = await self._offers.create_many([
            BroadcastOffer(
                id=None,
                order_id=order.id,
                assignee=assignee,
                token=secrets.token_urlsafe(24),
                expires_at=expires_at,
            )
            for assignee in chosen
        ])
        logger.info(
            "Order %s broadcast to %d candidate(s) until %s",
            order.id, len(offers), expires_at.isoformat(),
        )
        return BroadcastHandle(order_id=order.id, expires_at=expires_at, offers=tuple(offers))

    async def announce(self, order: Order, offers: Iterable[BroadcastOffer]) -> int:
        """Deliver committed offers to their candidates."""
        count = 0
        for offer in offers:
            await self._notifier.notify(order, offer)
            count += 1
        logger.info("Order %s: %d offer(s) announced", order.id, count)
        return count

    async def accept(self, order_id: str, assignee: Assignee) -> AcceptOutcome:
        """First durable acceptance wins; everyone else sees ALREADY_RESOLVED.

        Raises:
            OfferNotFound: if the candidate was never offered this order.
            PersistenceFailure: if the assignment write failed after retry.
        """
        offer = await self._offers.get_for_assignee(order_id, assignee)
        if offer is None:
            raise OfferNotFound(f"No offer for {assignee.id} on order {order_id}")

        now = self._clock()
        if offer.is_open() and offer.expires_at <= now:
            logger.info("Order %s: offer for %s has run out", order_id, assignee.id)
            return AcceptOutcome.ALREADY_RESOLVED

        claimed = await self._offers.transition(
            order_id, assignee,
            from_status=OfferStatus.SENT, to_status=OfferStatus.ACCEPTED, responded_at=now,
        )
        if not claimed:
            logger.info("Order %s: offer for %s already handled", order_id, assignee.id)
            return AcceptOutcome.ALREADY_RESOLVED

        result = await self._executor.commit(
            order_id, assignee, actor=Actor.BROADCAST, expected_states=_BROADCASTING
        )
        if result.applied:
            expired = await self._offers.expire_open(order_id, except_assignee=assignee)
            logger.info(
                "Order %s accepted by %s (%s); %d other offer(s) expired",
                order_id, assignee.id, assignee.type.value, expired,
            )
            return AcceptOutcome.ACCEPTED

        if result.reason == SkipReason.PERSISTENCE_ERROR:
            await self._offers.transition(
                order_id, assignee, from_status=OfferStatus.ACCEPTED, to_status=OfferStatus.SENT
            )
            raise PersistenceFailure(f"Could not record acceptance of order {order_id}")

        await self._offers.transition(
            order_id, assignee, from_status=OfferStatus.ACCEPTED, to_status=OfferStatus.EXPIRED
        )
        logger.info("Order %s: %s lost the race", order_id, assignee.id)
        return AcceptOutcome.ALREADY_RESOLVED

    async def decline(self, order_id: str, assignee: Assignee) -> bool:
        """Decline an open offer. Once nobody is left, the broadcast expires early.

        Raises:
            OfferNotFound: if the candidate was never offered this order.
        """
        offer = await self._offers.get_for_assignee(order_id, assignee)
        if offer is None:
            raise OfferNotFound(f"No offer for {assignee.id} on order {order_id}")

        declined = await self._offers.transition(
            order_id, assignee,
            from_status=OfferStatus.SENT, to_status=OfferStatus.DECLINED, responded_at=self._clock(),
        )
        if not declined:
            return False

        logger.info("Order %s declined by %s", order_id, assignee.id)
        remaining = [o for o in await self._offers.get_by_order(order_id) if o.is_open()]
        if not remaining:
            order = await self._orders.get_by_id(order_id)
            if order is not None and order.state == OrderState.BROADCASTING:
                await self._expire(order)
        return True

    async def offers(self, order_id: str) -> list[BroadcastOffer]:
        return await self._offers.get_by_order(order_id)

    async def expire_due(self, now: datetime | None = None, limit: int = 100) -> list[Assignment]:
        """Expire every broadcast whose deadline has passed and apply its fallback."""
        due = await self._orders.get_due_broadcasts(now or self._clock(), limit)
        results = []
        for order in due:
            results.append(await self._expire(order))
        if due:
            logger.info("Expired %d broadcast(s)", len(due))
        return results

    async def _expire(self, order: Order) -> Assignment:
        moved = await self._orders.transition_state(
            order.id, from_states=_BROADCASTING, to_state=OrderState.EXPIRED
        )
        if not moved:
            # An acceptance landed between the sweep query and this write.
            logger.info("Order %s resolved before it could expire", order.id)
            return Assignment.skipped(order.id, SkipReason.ALREADY_ASSIGNED)

        await self._offers.expire_open(order.id)

        profession = profession_for(order.damage_type)
        prefix = zip_prefix(order.postal_code, self._config.zip_prefix_length)
        settings = await self._resolver.resolve(profession, prefix)
        if settings is None:
            logger.info("Order %s expired; no settings left, waiting for an operator", order.id)
            return Assignment.skipped(order.id, SkipReason.NO_SETTINGS)
        if settings.fallback_behavior == FallbackBehavior.MANUAL:
            logger.info("Order %s expired; fallback is manual", order.id)
            return Assignment.skipped(order.id, SkipReason.MODE_NOT_AUTO)

        candidates = await self._finder.find(
            profession, order.postal_code, limit=1, internal_only=True
        )
        if not candidates:
            logger.info("Order %s expired; no internal craftsman for %s", order.id, profession)
            return Assignment.skipped(order.id, SkipReason.NO_CANDIDATES)

        try:
            return await self._executor.commit(
                order.id, candidates[0], actor=Actor.ENGINE, expected_states=_EXPIRED
            )
        except OrderNotFound:
            logger.warning("Order %s vanished during broadcast fallback", order.id)
            return Assignment.skipped(order.id, SkipReason.PERSISTENCE_ERROR)
