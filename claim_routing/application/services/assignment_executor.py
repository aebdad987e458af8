"""AssignmentExecutor — the guarded, idempotent write of an order's assignee."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection

from claim_routing.application.ports.order_repo import OrderRepository
from claim_routing.application.routing_config import RoutingConfig
from claim_routing.domain.entities.assignment import Assignment
from claim_routing.domain.entities.order import Order
from claim_routing.domain.exceptions import OrderNotFound, PersistenceFailure
from claim_routing.domain.value_objects.assignee import Assignee, Internal
from claim_routing.domain.value_objects.enums import Actor, OrderState, SkipReason

logger = logging.getLogger(__name__)

UNASSIGNED_ONLY = frozenset({OrderState.UNASSIGNED})
ANY_STATE = frozenset(OrderState)

# One retry after the first failure.
_WRITE_ATTEMPTS = 2


def state_for(assignee: Assignee | None) -> OrderState:
    if assignee is None:
        return OrderState.UNASSIGNED
    if isinstance(assignee, Internal):
        return OrderState.ASSIGNED_INTERNAL
    return OrderState.ASSIGNED_EXTERNAL


class AssignmentExecutor:
    """Attach an assignee to an order with a compare-and-set update.

    The update is conditioned on the order's state and on its slots still
    holding what the caller saw when it made the decision. Zero affected rows
    means someone else got there first, unless the order already carries the
    very same assignee, in which case the call was a retry and succeeds
    without writing again.
    """

    def __init__(self, order_repo: OrderRepository, config: RoutingConfig):
        self._orders = order_repo
        self._config = config

    async def commit(
        self,
        order_id: str,
        assignee: Assignee | None,
        *,
        actor: Actor = Actor.ENGINE,
        expected_states: Collection[OrderState] = UNASSIGNED_ONLY,
        expected_assignee: Assignee | None = None,
    ) -> Assignment:
        """Write ``assignee`` (None clears the order) and report the outcome.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        try:
            affected = await self._write_with_retry(
                order_id, assignee, actor, expected_states, expected_assignee
            )
        except PersistenceFailure as e:
            logger.error("Order %s: assignment write failed after retry: %s", order_id, e)
            return Assignment.skipped(order_id, SkipReason.PERSISTENCE_ERROR)

        if affected:
            logger.info(
                "Order %s → %s (%s) by %s",
                order_id,
                assignee.id if assignee else "nobody",
                assignee.type.value if assignee else "-",
                actor.value,
            )
            return self._applied(order_id, assignee)

        try:
            current = await self._orders.get_by_id(order_id)
        except PersistenceFailure as e:
            logger.error("Order %s: could not re-read after rejected write: %s", order_id, e)
            return Assignment.skipped(order_id, SkipReason.PERSISTENCE_ERROR)

        if current is None:
            raise OrderNotFound(f"Order {order_id} not found")

        if self._already_holds(current, assignee):
            logger.info("Order %s already holds the requested assignee; nothing to write", order_id)
            return self._applied(order_id, assignee)

        # Expected under races with the admin path or competing acceptances.
        logger.info(
            "Order %s: stale precondition (state=%s, assignee=%s), %s write rejected",
            order_id,
            current.state.value,
            current.assignee.id if current.assignee else None,
            actor.value,
        )
        return Assignment.skipped(order_id, SkipReason.ALREADY_ASSIGNED)

    async def _write_with_retry(
        self,
        order_id: str,
        assignee: Assignee | None,
        actor: Actor,
        expected_states: Collection[OrderState],
        expected_assignee: Assignee | None,
    ) -> int:
        for attempt in range(1, _WRITE_ATTEMPTS + 1):
            try:
                return await self._orders.compare_and_set_assignee(
                    order_id,
                    expected_states=expected_states,
                    expected_assignee=expected_assignee,
                    new_assignee=assignee,
                    new_state=state_for(assignee),
                    actor=actor,
                )
            except PersistenceFailure as e:
                if attempt == _WRITE_ATTEMPTS:
                    raise
                delay = self._config.persistence_retry_delay_seconds * attempt
                logger.warning(
                    "Order %s: assignment write attempt %d failed (%s), retrying in %.2fs",
                    order_id, attempt, e, delay,
                )
                await asyncio.sleep(delay)
        return 0

    @staticmethod
    def _already_holds(order: Order, assignee: Assignee | None) -> bool:
        if order.assignee != assignee:
            return False
        return assignee is not None or order.state == OrderState.UNASSIGNED

    @staticmethod
    def _applied(order_id: str, assignee: Assignee | None) -> Assignment:
        if assignee is None:
            return Assignment(order_id=order_id, applied=True)
        return Assignment.success(order_id, assignee)
