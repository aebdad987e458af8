"""Order entity — a damage claim waiting for (or holding) an assignee."""

from dataclasses import dataclass, field
from datetime import datetime

from claim_routing.domain.value_objects.assignee import Assignee, from_slots, to_slots
from claim_routing.domain.value_objects.enums import Actor, OrderState
from claim_routing.domain.value_objects.postal_code import (
    extract_postal_code,
    normalize_postal_code,
)


@dataclass
class Order:
    id: str
    damage_type: str
    postal_code: str | None = None
    customer_data: dict = field(default_factory=dict)
    state: OrderState = OrderState.UNASSIGNED
    assigned_internal_id: str | None = None
    assigned_partner_id: str | None = None
    assigned_by: Actor | None = None
    broadcast_expires_at: datetime | None = None

    @classmethod
    def from_intake(
        cls,
        order_id: str,
        damage_type: str,
        customer_data: dict | None = None,
        postal_code: str | None = None,
    ) -> "Order":
        """Build an order from the intake snapshot.

        An explicit postal code wins; otherwise it is looked up in the
        customer payload. A missing postal code is valid input.
        """
        data = customer_data or {}
        code = normalize_postal_code(postal_code) or extract_postal_code(data)
        return cls(
            id=order_id,
            damage_type=damage_type.strip().lower(),
            postal_code=code,
            customer_data=data,
        )

    @property
    def assignee(self) -> Assignee | None:
        return from_slots(self.assigned_internal_id, self.assigned_partner_id)

    def is_assigned(self) -> bool:
        return self.assignee is not None

    def set_assignee(self, assignee: Assignee | None) -> None:
        self.assigned_internal_id, self.assigned_partner_id = to_slots(assignee)
