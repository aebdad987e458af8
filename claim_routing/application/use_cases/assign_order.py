"""AssignOrderUseCase — the routing engine pipeline run when an order is created."""

from __future__ import annotations

import asyncio
import logging

from claim_routing.application.routing_config import RoutingConfig
from claim_routing.application.services.assignment_executor import AssignmentExecutor
from claim_routing.application.services.broadcast_coordinator import BroadcastCoordinator
from claim_routing.application.services.candidate_finder import CandidateFinder
from claim_routing.application.services.settings_resolver import SettingsResolver
from claim_routing.domain.entities.assignment import Assignment
from claim_routing.domain.entities.order import Order
from claim_routing.domain.exceptions import (
    ConfigurationAbsent,
    ModeMismatch,
    NoCandidates,
    PersistenceFailure,
    StalePreconditionFailure,
)
from claim_routing.domain.policies.profession_mapping import profession_for
from claim_routing.domain.value_objects.enums import DispatchMode, SkipReason
from claim_routing.domain.value_objects.postal_code import zip_prefix

logger = logging.getLogger(__name__)


class AssignOrderUseCase:
    """Best-effort routing decision; always returns an ``Assignment``.

    Pipeline:
    1. Derive the profession from the damage type
    2. Resolve dispatch settings (zip-specific, else global)
    3. mode=auto      → find candidates, commit the first one
       mode=broadcast → find candidates, hand them to the coordinator; the new
                        offers ride back on the result for the caller to
                        announce after commit
       mode=manual    → leave the order for an operator
    4. Any failure degrades to "leave unassigned"; nothing is raised. A run
       cut short (``Assignment.is_discarded``) may have written part of a
       broadcast, so the caller rolls its transaction back instead of
       committing it
    """

    def __init__(
        self,
        resolver: SettingsResolver,
        finder: CandidateFinder,
        executor: AssignmentExecutor,
        coordinator: BroadcastCoordinator,
        config: RoutingConfig,
    ):
        self._resolver = resolver
        self._finder = finder
        self._executor = executor
        self._coordinator = coordinator
        self._config = config

    async def execute(self, order: Order) -> Assignment:
        try:
            return await asyncio.wait_for(
                self._route(order), timeout=self._config.engine_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Order %s: routing exceeded %.1fs, leaving unassigned",
                order.id, self._config.engine_timeout_seconds,
            )
            return Assignment.skipped(order.id, SkipReason.TIMEOUT)
        except ConfigurationAbsent:
            return Assignment.skipped(order.id, SkipReason.NO_SETTINGS)
        except ModeMismatch:
            return Assignment.skipped(order.id, SkipReason.MODE_NOT_AUTO)
        except NoCandidates:
            return Assignment.skipped(order.id, SkipReason.NO_CANDIDATES)
        except StalePreconditionFailure as e:
            logger.info("Order %s: %s", order.id, e)
            return Assignment.skipped(order.id, SkipReason.ALREADY_ASSIGNED)
        except PersistenceFailure as e:
            logger.error("Order %s: storage failure during routing: %s", order.id, e)
            return Assignment.skipped(order.id, SkipReason.PERSISTENCE_ERROR)
        except Exception:
            logger.exception("Error routing order %s", order.id)
            return Assignment.skipped(order.id, SkipReason.ENGINE_ERROR)

    async def _route(self, order: Order) -> Assignment:
        profession = profession_for(order.damage_type)
        prefix = zip_prefix(order.postal_code, self._config.zip_prefix_length)
        logger.info(
            "Routing order %s: type=%s, profession=%s, zip=%s, prefix=%s",
            order.id, order.damage_type, profession, order.postal_code, prefix,
        )

        settings = await self._resolver.resolve(profession, prefix)
        if settings is None:
            raise ConfigurationAbsent(f"No settings for {profession}/{prefix or 'global'}")

        if settings.mode == DispatchMode.AUTO:
            candidates = await self._finder.find(
                profession, order.postal_code, limit=self._config.auto_candidate_limit
            )
            if not candidates:
                raise NoCandidates(f"No candidates for {profession}/{prefix or '-'}")
            return await self._executor.commit(order.id, candidates[0])

        if settings.mode == DispatchMode.BROADCAST:
            candidates = await self._finder.find(
                profession, order.postal_code, limit=settings.broadcast_partner_count
            )
            if not candidates:
                raise NoCandidates(f"No broadcast candidates for {profession}/{prefix or '-'}")
            handle = await self._coordinator.broadcast(order, candidates, settings)
            return Assignment(
                order_id=order.id,
                applied=False,
                reason=SkipReason.BROADCAST_PENDING,
                offers_sent=handle.size,
                pending_offers=() if handle.resumed else handle.offers,
            )

        raise ModeMismatch(f"Mode {settings.mode.value} does not auto-assign")
