"""Admin endpoints — manual assignment, routing rules and dispatch settings."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from claim_routing.adapters.persistence.database import get_session
from claim_routing.adapters.persistence.repositories import (
    SqlAssignmentSettingsRepository,
    SqlOrderRepository,
    SqlRoutingRuleRepository,
)
from claim_routing.application.use_cases.manual_assign import ManualAssignUseCase
from claim_routing.domain.entities.assignment_settings import AssignmentSettings
from claim_routing.domain.entities.routing_rule import RoutingRule
from claim_routing.domain.exceptions import AssigneeNotFound, OrderNotFound, PersistenceFailure
from claim_routing.domain.policies.profession_mapping import is_known_profession
from claim_routing.domain.value_objects.enums import SkipReason
from claim_routing.infrastructure.api.dependencies import (
    get_manual_assign_uc,
    get_order_repo,
    get_rule_repo,
    get_settings_repo,
)
from claim_routing.infrastructure.api.schemas import (
    AssignmentSettingsUpdate,
    AssignmentSettingsUpsert,
    ManualAssignRequest,
    RoutingRuleCreate,
    RoutingRuleUpdate,
    ref_to_domain,
    serialize_order,
    serialize_rule,
    serialize_settings,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _require_known_profession(profession: str) -> None:
    if not is_known_profession(profession):
        raise HTTPException(status_code=400, detail=f"Unknown profession: {profession}")


# ── Manual assignment ───────────────────────────────────────────────

@router.post("/orders/{order_id}/assign")
async def assign_order(
    order_id: str,
    body: ManualAssignRequest,
    manual_uc: ManualAssignUseCase = Depends(get_manual_assign_uc),
    order_repo: SqlOrderRepository = Depends(get_order_repo),
    session: AsyncSession = Depends(get_session),
):
    """Assign, reassign or clear (``assignee: null``) an order.

    ``expected_assignee`` must match what the operator last saw; otherwise
    the request fails with 409 and the current order is returned.
    """
    try:
        result = await manual_uc.execute(
            order_id, ref_to_domain(body.assignee), ref_to_domain(body.expected_assignee)
        )
    except OrderNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except AssigneeNotFound as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceFailure as e:
        await session.rollback()
        logger.error("Manual assignment of order %s failed: %s", order_id, e)
        raise HTTPException(status_code=503, detail="Assignment could not be stored")

    if result.reason == SkipReason.PERSISTENCE_ERROR:
        await session.rollback()
        raise HTTPException(status_code=503, detail="Assignment could not be stored")

    await session.commit()
    order = await order_repo.get_by_id(order_id)
    if not result.applied:
        raise HTTPException(
            status_code=409,
            detail={
                "message": "Order was changed by someone else",
                "order": serialize_order(order) if order else None,
            },
        )
    logger.info("Order %s manually set to %s", order_id, result.to_dict())
    return serialize_order(order)


# ── Routing rules ───────────────────────────────────────────────────

@router.get("/routing-rules")
async def list_rules(rule_repo: SqlRoutingRuleRepository = Depends(get_rule_repo)):
    rules = await rule_repo.get_all()
    return {"total": len(rules), "rules": [serialize_rule(r) for r in rules]}


@router.post("/routing-rules", status_code=201)
async def create_rule(
    body: RoutingRuleCreate,
    rule_repo: SqlRoutingRuleRepository = Depends(get_rule_repo),
    session: AsyncSession = Depends(get_session),
):
    _require_known_profession(body.profession)
    rule = RoutingRule(
        id=None,
        zip_prefix=body.zip_prefix,
        profession=body.profession,
        priority=body.priority,
        active=body.active,
        preferred_assignee=ref_to_domain(body.preferred_assignee),
    )
    await rule_repo.save(rule)
    await session.commit()
    return serialize_rule(rule)


@router.patch("/routing-rules/{rule_id}")
async def update_rule(
    rule_id: int,
    body: RoutingRuleUpdate,
    rule_repo: SqlRoutingRuleRepository = Depends(get_rule_repo),
    session: AsyncSession = Depends(get_session),
):
    rule = await rule_repo.get_by_id(rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail="Routing rule not found")

    if body.profession is not None:
        _require_known_profession(body.profession)
        rule.profession = body.profession
    if body.zip_prefix is not None:
        rule.zip_prefix = body.zip_prefix
    if body.priority is not None:
        rule.priority = body.priority
    if body.active is not None:
        rule.active = body.active
    if body.clear_preferred_assignee:
        rule.preferred_assignee = None
    elif body.preferred_assignee is not None:
        rule.preferred_assignee = body.preferred_assignee.to_domain()

    await rule_repo.save(rule)
    await session.commit()
    return serialize_rule(rule)


@router.delete("/routing-rules/{rule_id}", status_code=204)
async def delete_rule(
    rule_id: int,
    rule_repo: SqlRoutingRuleRepository = Depends(get_rule_repo),
    session: AsyncSession = Depends(get_session),
):
    if not await rule_repo.delete(rule_id):
        raise HTTPException(status_code=404, detail="Routing rule not found")
    await session.commit()


# ── Assignment settings ─────────────────────────────────────────────

@router.get("/assignment-settings")
async def list_settings(
    settings_repo: SqlAssignmentSettingsRepository = Depends(get_settings_repo),
):
    rows = await settings_repo.get_all()
    return {"total": len(rows), "settings": [serialize_settings(s) for s in rows]}


@router.post("/assignment-settings")
async def upsert_settings(
    body: AssignmentSettingsUpsert,
    settings_repo: SqlAssignmentSettingsRepository = Depends(get_settings_repo),
    session: AsyncSession = Depends(get_session),
):
    """Create or replace the row for (profession, zip_prefix)."""
    row = await _upsert(settings_repo, body)
    await session.commit()
    return serialize_settings(row)


@router.post("/assignment-settings/bulk")
async def bulk_upsert_settings(
    body: list[AssignmentSettingsUpsert],
    settings_repo: SqlAssignmentSettingsRepository = Depends(get_settings_repo),
    session: AsyncSession = Depends(get_session),
):
    """Upsert several rows in one transaction; one invalid row rejects all."""
    for item in body:
        _require_known_profession(item.profession)
    rows = [await _upsert(settings_repo, item) for item in body]
    await session.commit()
    return {"total": len(rows), "settings": [serialize_settings(s) for s in rows]}


@router.patch("/assignment-settings/{settings_id}")
async def update_settings(
    settings_id: int,
    body: AssignmentSettingsUpdate,
    settings_repo: SqlAssignmentSettingsRepository = Depends(get_settings_repo),
    session: AsyncSession = Depends(get_session),
):
    row = await settings_repo.get_by_id(settings_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Assignment settings not found")

    if body.mode is not None:
        row.mode = body.mode
    if body.broadcast_partner_count is not None:
        row.broadcast_partner_count = body.broadcast_partner_count
    if body.fallback_behavior is not None:
        row.fallback_behavior = body.fallback_behavior
    if body.active is not None:
        row.active = body.active

    await settings_repo.save(row)
    await session.commit()
    return serialize_settings(row)


@router.delete("/assignment-settings/{settings_id}", status_code=204)
async def delete_settings(
    settings_id: int,
    settings_repo: SqlAssignmentSettingsRepository = Depends(get_settings_repo),
    session: AsyncSession = Depends(get_session),
):
    if not await settings_repo.delete(settings_id):
        raise HTTPException(status_code=404, detail="Assignment settings not found")
    await session.commit()


async def _upsert(
    settings_repo: SqlAssignmentSettingsRepository, body: AssignmentSettingsUpsert
) -> AssignmentSettings:
    _require_known_profession(body.profession)
    existing = await settings_repo.get_by_key(body.profession, body.zip_prefix)
    row = AssignmentSettings(
        id=existing.id if existing else None,
        profession=body.profession,
        zip_prefix=body.zip_prefix,
        mode=body.mode,
        broadcast_partner_count=body.broadcast_partner_count,
        fallback_behavior=body.fallback_behavior,
        active=body.active,
    )
    return await settings_repo.save(row)
