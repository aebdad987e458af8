"""Broadcast endpoints — offer listing, partner responses and the expiry sweep."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from claim_routing.adapters.persistence.database import get_session
from claim_routing.application.services.broadcast_coordinator import BroadcastCoordinator
from claim_routing.domain.exceptions import OfferNotFound, PersistenceFailure
from claim_routing.infrastructure.api.dependencies import get_coordinator
from claim_routing.infrastructure.api.schemas import AssigneeRef, serialize_offer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/broadcasts", tags=["broadcasts"])


@router.get("/{order_id}/offers")
async def list_offers(
    order_id: str, coordinator: BroadcastCoordinator = Depends(get_coordinator)
):
    offers = await coordinator.offers(order_id)
    return {"order_id": order_id, "total": len(offers), "offers": [serialize_offer(o) for o in offers]}


@router.post("/{order_id}/accept")
async def accept_offer(
    order_id: str,
    body: AssigneeRef,
    coordinator: BroadcastCoordinator = Depends(get_coordinator),
    session: AsyncSession = Depends(get_session),
):
    """First durable acceptance wins; later callers get ``already_resolved``."""
    try:
        outcome = await coordinator.accept(order_id, body.to_domain())
    except OfferNotFound:
        raise HTTPException(status_code=404, detail="No offer for this assignee")
    except PersistenceFailure as e:
        await session.rollback()
        logger.error("Accept of order %s by %s failed: %s", order_id, body.id, e)
        raise HTTPException(status_code=503, detail="Acceptance could not be stored")

    await session.commit()
    return {"order_id": order_id, "outcome": outcome.value}


@router.post("/{order_id}/decline")
async def decline_offer(
    order_id: str,
    body: AssigneeRef,
    coordinator: BroadcastCoordinator = Depends(get_coordinator),
    session: AsyncSession = Depends(get_session),
):
    try:
        declined = await coordinator.decline(order_id, body.to_domain())
    except OfferNotFound:
        raise HTTPException(status_code=404, detail="No offer for this assignee")
    except PersistenceFailure as e:
        await session.rollback()
        logger.error("Decline of order %s by %s failed: %s", order_id, body.id, e)
        raise HTTPException(status_code=503, detail="Decline could not be stored")

    await session.commit()
    return {"order_id": order_id, "declined": declined}


@router.post("/expire")
async def expire_broadcasts(
    limit: int = 100,
    coordinator: BroadcastCoordinator = Depends(get_coordinator),
    session: AsyncSession = Depends(get_session),
):
    """Run the expiry sweep once and apply each order's fallback."""
    try:
        results = await coordinator.expire_due(limit=limit)
    except PersistenceFailure as e:
        await session.rollback()
        logger.error("Broadcast expiry sweep failed: %s", e)
        raise HTTPException(status_code=503, detail="Expiry sweep failed")

    await session.commit()
    return {"expired": len(results), "results": [r.to_dict() for r in results]}
