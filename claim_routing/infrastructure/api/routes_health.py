"""Health check endpoint."""

from fastapi import APIRouter, Depends

from claim_routing.adapters.persistence.repositories import SqlOrderRepository
from claim_routing.config import settings
from claim_routing.domain.exceptions import PersistenceFailure
from claim_routing.domain.value_objects.enums import OrderState
from claim_routing.infrastructure.api.dependencies import get_order_repo

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(order_repo: SqlOrderRepository = Depends(get_order_repo)):
    """Database reachability plus the routing backlog an operator cares about."""
    try:
        counts = await order_repo.count_by_state()
    except PersistenceFailure as e:
        return {"status": "degraded", "database": f"error: {e}", "service": "claim-routing"}

    return {
        "status": "ok",
        "database": "connected",
        "service": "claim-routing",
        "offer_delivery": "webhook" if settings.offer_webhook_url else "log",
        "orders": {state.value: counts.get(state.value, 0) for state in OrderState},
    }
