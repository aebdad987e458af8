"""Port interface for order persistence and guarded assignment writes."""

from abc import ABC, abstractmethod
from collections.abc import Collection
from datetime import datetime

from claim_routing.domain.entities.order import Order
from claim_routing.domain.value_objects.assignee import Assignee
from claim_routing.domain.value_objects.enums import Actor, OrderState


class OrderRepository(ABC):
    @abstractmethod
    async def save(self, order: Order) -> Order:
        ...

    @abstractmethod
    async def get_by_id(self, order_id: str) -> Order | None:
        ...

    @abstractmethod
    async def compare_and_set_assignee(
        self,
        order_id: str,
        *,
        expected_states: Collection[OrderState],
        expected_assignee: Assignee | None,
        new_assignee: Assignee | None,
        new_state: OrderState,
        actor: Actor,
    ) -> int:
        """Write both assignment slots in one conditional update.

        The row is only touched when its state is one of ``expected_states``
        and its slots equal ``expected_assignee`` (None = both empty).
        Returns the number of rows actually affected (0 or 1).
        """
        ...

    @abstractmethod
    async def transition_state(
        self,
        order_id: str,
        *,
        from_states: Collection[OrderState],
        to_state: OrderState,
        broadcast_expires_at: datetime | None = None,
    ) -> int:
        """Conditionally move an unassigned order between states; returns rows affected."""
        ...

    @abstractmethod
    async def get_due_broadcasts(self, now: datetime, limit: int = 100) -> list[Order]:
        """Orders still broadcasting whose deadline is at or before ``now``."""
        ...
