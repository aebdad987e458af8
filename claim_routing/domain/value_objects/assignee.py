"""Assignee value objects — the tagged union of who can own an order.

An order is handled either by an internal craftsman or by an external partner
company. The two kinds share no table, so the domain keeps them apart as two
frozen types and only flattens them into two nullable columns at the
persistence boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from claim_routing.domain.value_objects.enums import AssigneeType


@dataclass(frozen=True)
class Internal:
    craftsman_id: str

    @property
    def id(self) -> str:
        return self.craftsman_id

    @property
    def type(self) -> AssigneeType:
        return AssigneeType.INTERNAL


@dataclass(frozen=True)
class External:
    partner_id: str

    @property
    def id(self) -> str:
        return self.partner_id

    @property
    def type(self) -> AssigneeType:
        return AssigneeType.EXTERNAL


Assignee = Union[Internal, External]


def make_assignee(assignee_type: AssigneeType | str, assignee_id: str) -> Assignee:
    """Build the right variant from a (type, id) pair as it arrives over the wire."""
    if AssigneeType(assignee_type) == AssigneeType.INTERNAL:
        return Internal(craftsman_id=assignee_id)
    return External(partner_id=assignee_id)


def to_slots(assignee: Assignee | None) -> tuple[str | None, str | None]:
    """Flatten to (assigned_internal_id, assigned_partner_id); never both set."""
    if assignee is None:
        return None, None
    if isinstance(assignee, Internal):
        return assignee.craftsman_id, None
    return None, assignee.partner_id


def from_slots(internal_id: str | None, partner_id: str | None) -> Assignee | None:
    if internal_id and partner_id:
        raise ValueError(
            f"Order carries both internal ({internal_id}) and partner ({partner_id}) assignees"
        )
    if internal_id:
        return Internal(craftsman_id=internal_id)
    if partner_id:
        return External(partner_id=partner_id)
    return None
