"""Request schemas and response serializers shared by the API routers."""

from __future__ import annotations

from pydantic import BaseModel, Field

from claim_routing.domain.entities.assignment_settings import (
    DEFAULT_BROADCAST_PARTNER_COUNT,
    AssignmentSettings,
)
from claim_routing.domain.entities.broadcast_offer import BroadcastOffer
from claim_routing.domain.entities.order import Order
from claim_routing.domain.entities.routing_rule import RoutingRule
from claim_routing.domain.value_objects.assignee import Assignee, make_assignee
from claim_routing.domain.value_objects.enums import AssigneeType, DispatchMode, FallbackBehavior

ZIP_PREFIX_PATTERN = r"^\d{1,5}$"


# ── Requests ────────────────────────────────────────────────────────

class AssigneeRef(BaseModel):
    type: AssigneeType
    id: str = Field(min_length=1)

    def to_domain(self) -> Assignee:
        return make_assignee(self.type, self.id)


def ref_to_domain(ref: AssigneeRef | None) -> Assignee | None:
    return ref.to_domain() if ref else None


class OrderIntake(BaseModel):
    id: str = Field(min_length=1, max_length=36)
    damage_type: str = Field(min_length=1)
    postal_code: str | None = None
    customer_data: dict = Field(default_factory=dict)


class ManualAssignRequest(BaseModel):
    assignee: AssigneeRef | None = None  # None = unassign
    expected_assignee: AssigneeRef | None = None


class RoutingRuleCreate(BaseModel):
    zip_prefix: str = Field(pattern=ZIP_PREFIX_PATTERN)
    profession: str
    priority: int = Field(default=1, ge=1)
    active: bool = True
    preferred_assignee: AssigneeRef | None = None


class RoutingRuleUpdate(BaseModel):
    zip_prefix: str | None = Field(default=None, pattern=ZIP_PREFIX_PATTERN)
    profession: str | None = None
    priority: int | None = Field(default=None, ge=1)
    active: bool | None = None
    preferred_assignee: AssigneeRef | None = None
    clear_preferred_assignee: bool = False


class AssignmentSettingsUpsert(BaseModel):
    profession: str
    zip_prefix: str | None = Field(default=None, pattern=ZIP_PREFIX_PATTERN)
    mode: DispatchMode = DispatchMode.MANUAL
    broadcast_partner_count: int = Field(default=DEFAULT_BROADCAST_PARTNER_COUNT, ge=1, le=50)
    fallback_behavior: FallbackBehavior = FallbackBehavior.INTERNAL_ONLY
    active: bool = True


class AssignmentSettingsUpdate(BaseModel):
    mode: DispatchMode | None = None
    broadcast_partner_count: int | None = Field(default=None, ge=1, le=50)
    fallback_behavior: FallbackBehavior | None = None
    active: bool | None = None


# ── Serializers ─────────────────────────────────────────────────────

def serialize_assignee(assignee: Assignee | None) -> dict | None:
    if assignee is None:
        return None
    return {"type": assignee.type.value, "id": assignee.id}


def serialize_order(o: Order) -> dict:
    return {
        "id": o.id,
        "damage_type": o.damage_type,
        "postal_code": o.postal_code,
        "state": o.state.value,
        "assigned_internal_id": o.assigned_internal_id,
        "assigned_partner_id": o.assigned_partner_id,
        "assigned_by": o.assigned_by.value if o.assigned_by else None,
        "broadcast_expires_at": o.broadcast_expires_at.isoformat() if o.broadcast_expires_at else None,
        "customer_data": o.customer_data,
    }


def serialize_rule(r: RoutingRule) -> dict:
    return {
        "id": r.id,
        "zip_prefix": r.zip_prefix,
        "profession": r.profession,
        "priority": r.priority,
        "active": r.active,
        "preferred_assignee": serialize_assignee(r.preferred_assignee),
        "created_at": r.created_at.isoformat() if r.created_at else None,
    }


def serialize_settings(s: AssignmentSettings) -> dict:
    return {
        "id": s.id,
        "profession": s.profession,
        "zip_prefix": s.zip_prefix,
        "mode": s.mode.value,
        "broadcast_partner_count": s.broadcast_partner_count,
        "fallback_behavior": s.fallback_behavior.value,
        "active": s.active,
    }


def serialize_offer(o: BroadcastOffer) -> dict:
    # The token is delivered to the candidate only, never listed.
    return {
        "id": o.id,
        "assignee": serialize_assignee(o.assignee),
        "status": o.status.value,
        "expires_at": o.expires_at.isoformat(),
        "responded_at": o.responded_at.isoformat() if o.responded_at else None,
    }
