"""Assignment entity — the outcome of one routing decision for an order."""

from __future__ import annotations

from dataclasses import dataclass, field

from claim_routing.domain.entities.broadcast_offer import BroadcastOffer
from claim_routing.domain.value_objects.assignee import Assignee
from claim_routing.domain.value_objects.enums import AssigneeType, SkipReason


@dataclass(frozen=True)
class Assignment:
    order_id: str
    applied: bool
    assignee: Assignee | None = None
    reason: SkipReason | None = None
    offers_sent: int = 0
    # Offers created by this run that nobody has been told about yet; they are
    # announced only once the routing transaction is committed.
    pending_offers: tuple[BroadcastOffer, ...] = field(default=(), repr=False, compare=False)

    @classmethod
    def success(cls, order_id: str, assignee: Assignee) -> "Assignment":
        return cls(order_id=order_id, applied=True, assignee=assignee)

    @classmethod
    def skipped(cls, order_id: str, reason: SkipReason) -> "Assignment":
        return cls(order_id=order_id, applied=False, reason=reason)

    @property
    def assignee_id(self) -> str | None:
        return self.assignee.id if self.assignee else None

    @property
    def assignee_type(self) -> AssigneeType | None:
        return self.assignee.type if self.assignee else None

    def is_discarded(self) -> bool:
        """True when the run was cut short and its partial writes must not be kept."""
        return self.reason in (
            SkipReason.TIMEOUT,
            SkipReason.ENGINE_ERROR,
            SkipReason.PERSISTENCE_ERROR,
        )

    def to_dict(self) -> dict:
        data: dict = {"order_id": self.order_id, "applied": self.applied}
        if self.assignee is not None:
            data["assignee_id"] = self.assignee_id
            data["assignee_type"] = self.assignee_type.value
        if not self.applied:
            data["reason"] = self.reason.value if self.reason else None
        if self.offers_sent:
            data["offers_sent"] = self.offers_sent
        return data
