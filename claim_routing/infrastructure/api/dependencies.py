"""FastAPI dependency injection — wires adapters into use cases."""

from __future__ import annotations

import logging

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from claim_routing.adapters.notifier.logging_notifier import LoggingOfferNotifier
from claim_routing.adapters.notifier.webhook_notifier import WebhookOfferNotifier
from claim_routing.adapters.persistence.database import get_session
from claim_routing.adapters.persistence.repositories import (
    SqlAssignmentSettingsRepository,
    SqlDirectoryRepository,
    SqlOfferRepository,
    SqlOrderRepository,
    SqlRoutingRuleRepository,
)
from claim_routing.application.ports.notifier_port import OfferNotifier
from claim_routing.application.services.assignment_executor import AssignmentExecutor
from claim_routing.application.services.broadcast_coordinator import BroadcastCoordinator
from claim_routing.application.services.candidate_finder import CandidateFinder
from claim_routing.application.services.settings_resolver import SettingsResolver
from claim_routing.application.use_cases.assign_order import AssignOrderUseCase
from claim_routing.application.use_cases.manual_assign import ManualAssignUseCase
from claim_routing.config import settings

logger = logging.getLogger(__name__)

_routing_config = settings.routing_config()

_notifier: OfferNotifier
if settings.offer_webhook_url:
    _notifier = WebhookOfferNotifier()
    logger.info("Broadcast offers delivered via webhook")
else:
    _notifier = LoggingOfferNotifier()


def get_order_repo(session: AsyncSession = Depends(get_session)) -> SqlOrderRepository:
    return SqlOrderRepository(session)


def get_rule_repo(session: AsyncSession = Depends(get_session)) -> SqlRoutingRuleRepository:
    return SqlRoutingRuleRepository(session)


def get_settings_repo(
    session: AsyncSession = Depends(get_session),
) -> SqlAssignmentSettingsRepository:
    return SqlAssignmentSettingsRepository(session)


def build_coordinator(session: AsyncSession) -> BroadcastCoordinator:
    """Everything the broadcast flow needs, bound to one session."""
    order_repo = SqlOrderRepository(session)
    return BroadcastCoordinator(
        order_repo=order_repo,
        offer_repo=SqlOfferRepository(session),
        executor=AssignmentExecutor(order_repo, _routing_config),
        resolver=SettingsResolver(SqlAssignmentSettingsRepository(session)),
        finder=CandidateFinder(
            SqlRoutingRuleRepository(session), SqlDirectoryRepository(session), _routing_config
        ),
        notifier=_notifier,
        config=_routing_config,
    )


def get_coordinator(session: AsyncSession = Depends(get_session)) -> BroadcastCoordinator:
    return build_coordinator(session)


def get_assign_order_uc(session: AsyncSession = Depends(get_session)) -> AssignOrderUseCase:
    order_repo = SqlOrderRepository(session)
    return AssignOrderUseCase(
        resolver=SettingsResolver(SqlAssignmentSettingsRepository(session)),
        finder=CandidateFinder(
            SqlRoutingRuleRepository(session), SqlDirectoryRepository(session), _routing_config
        ),
        executor=AssignmentExecutor(order_repo, _routing_config),
        coordinator=build_coordinator(session),
        config=_routing_config,
    )


def get_manual_assign_uc(session: AsyncSession = Depends(get_session)) -> ManualAssignUseCase:
    return ManualAssignUseCase(
        executor=AssignmentExecutor(SqlOrderRepository(session), _routing_config),
        offer_repo=SqlOfferRepository(session),
        directory=SqlDirectoryRepository(session),
    )
