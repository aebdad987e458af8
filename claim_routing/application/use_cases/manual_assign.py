"""ManualAssignUseCase — operator override through the same guarded write."""

from __future__ import annotations

import logging

from claim_routing.application.ports.directory_repo import DirectoryRepository
from claim_routing.application.ports.offer_repo import OfferRepository
from claim_routing.application.services.assignment_executor import ANY_STATE, AssignmentExecutor
from claim_routing.domain.entities.assignment import Assignment
from claim_routing.domain.exceptions import AssigneeNotFound
from claim_routing.domain.value_objects.assignee import Assignee, Internal
from claim_routing.domain.value_objects.enums import Actor

logger = logging.getLogger(__name__)


class ManualAssignUseCase:
    """Assign, reassign or clear an order on behalf of an operator.

    The operator passes the assignee they last saw on the order. If the engine
    or a broadcast acceptance changed it in the meantime, the write is
    rejected instead of silently overwriting it.
    """

    def __init__(
        self,
        executor: AssignmentExecutor,
        offer_repo: OfferRepository,
        directory: DirectoryRepository,
    ):
        self._executor = executor
        self._offers = offer_repo
        self._directory = directory

    async def execute(
        self,
        order_id: str,
        assignee: Assignee | None,
        expected_assignee: Assignee | None,
    ) -> Assignment:
        """Write the operator's choice (None clears the order).

        Raises:
            AssigneeNotFound: if ``assignee`` is not an assignable directory entry.
            OrderNotFound: if the order does not exist.
            PersistenceFailure: if closing the open broadcast failed.
        """
        if assignee is not None:
            await self._require_known(assignee)

        result = await self._executor.commit(
            order_id,
            assignee,
            actor=Actor.ADMIN,
            expected_states=ANY_STATE,
            expected_assignee=expected_assignee,
        )
        if result.applied:
            # A manual decision closes any broadcast still in flight.
            expired = await self._offers.expire_open(order_id)
            if expired:
                logger.info("Order %s: %d open offer(s) expired by manual assignment", order_id, expired)
        return result

    async def _require_known(self, assignee: Assignee) -> None:
        if isinstance(assignee, Internal):
            found = await self._directory.get_craftsmen_by_ids([assignee.id])
        else:
            found = await self._directory.get_partners_by_ids([assignee.id])
        if not found:
            raise AssigneeNotFound(f"No {assignee.type.value} assignee {assignee.id}")
