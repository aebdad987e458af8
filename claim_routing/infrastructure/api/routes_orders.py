"""Order endpoints — intake hook, re-dispatch and detail view."""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from claim_routing.adapters.persistence.database import get_session
from claim_routing.adapters.persistence.repositories import SqlOrderRepository
from claim_routing.application.services.broadcast_coordinator import BroadcastCoordinator
from claim_routing.application.use_cases.assign_order import AssignOrderUseCase
from claim_routing.domain.entities.assignment import Assignment
from claim_routing.domain.entities.order import Order
from claim_routing.domain.exceptions import PersistenceFailure
from claim_routing.domain.value_objects.enums import SkipReason
from claim_routing.infrastructure.api.dependencies import (
    get_assign_order_uc,
    get_coordinator,
    get_order_repo,
)
from claim_routing.infrastructure.api.schemas import OrderIntake, serialize_order

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", status_code=201)
async def create_order(
    body: OrderIntake,
    background_tasks: BackgroundTasks,
    order_repo: SqlOrderRepository = Depends(get_order_repo),
    assign_uc: AssignOrderUseCase = Depends(get_assign_order_uc),
    coordinator: BroadcastCoordinator = Depends(get_coordinator),
    session: AsyncSession = Depends(get_session),
):
    """Store the order snapshot, then run the routing engine once.

    The order is committed before routing starts, so an engine failure never
    loses the order itself.
    """
    if await order_repo.get_by_id(body.id) is not None:
        raise HTTPException(status_code=409, detail=f"Order {body.id} already exists")

    order = Order.from_intake(body.id, body.damage_type, body.customer_data, body.postal_code)
    try:
        await order_repo.save(order)
        await session.commit()
    except (PersistenceFailure, SQLAlchemyError) as e:
        await session.rollback()
        logger.error("Could not store order %s: %s", body.id, e)
        raise HTTPException(status_code=503, detail="Order could not be stored")

    result = await _route_and_commit(order, assign_uc, session)
    _announce_offers(order, result, coordinator, background_tasks)
    stored = await order_repo.get_by_id(order.id)
    return {"order": serialize_order(stored or order), "routing": result.to_dict()}


@router.post("/{order_id}/dispatch")
async def dispatch_order(
    order_id: str,
    background_tasks: BackgroundTasks,
    order_repo: SqlOrderRepository = Depends(get_order_repo),
    assign_uc: AssignOrderUseCase = Depends(get_assign_order_uc),
    coordinator: BroadcastCoordinator = Depends(get_coordinator),
    session: AsyncSession = Depends(get_session),
):
    """Re-run the engine for a stored order (e.g. after settings changed)."""
    order = await order_repo.get_by_id(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")

    result = await _route_and_commit(order, assign_uc, session)
    _announce_offers(order, result, coordinator, background_tasks)
    stored = await order_repo.get_by_id(order_id)
    return {"order": serialize_order(stored or order), "routing": result.to_dict()}


@router.get("/{order_id}")
async def get_order(order_id: str, order_repo: SqlOrderRepository = Depends(get_order_repo)):
    order = await order_repo.get_by_id(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return serialize_order(order)


async def _route_and_commit(
    order: Order, assign_uc: AssignOrderUseCase, session: AsyncSession
) -> Assignment:
    result = await assign_uc.execute(order)
    if result.is_discarded():
        # A cut-short run may have left a half-made broadcast behind.
        try:
            await session.rollback()
        except SQLAlchemyError:
            logger.exception("Could not roll back routing of order %s", order.id)
        logger.warning("Order %s routing discarded: %s", order.id, result.to_dict())
        return result

    try:
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        logger.exception("Could not commit routing result for order %s", order.id)
        return Assignment.skipped(order.id, SkipReason.PERSISTENCE_ERROR)
    logger.info("Order %s routing result: %s", order.id, result.to_dict())
    return result


def _announce_offers(
    order: Order,
    result: Assignment,
    coordinator: BroadcastCoordinator,
    background_tasks: BackgroundTasks,
) -> None:
    """Tell candidates about committed offers once the response is on its way."""
    if result.pending_offers and not result.is_discarded():
        background_tasks.add_task(coordinator.announce, order, result.pending_offers)
