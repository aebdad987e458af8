"""CandidateFinder — ordered list of assignees for a profession and zip code."""

from __future__ import annotations

import logging

from claim_routing.application.ports.directory_repo import DirectoryRepository
from claim_routing.application.ports.routing_rule_repo import RoutingRuleRepository
from claim_routing.application.routing_config import RoutingConfig
from claim_routing.domain.entities.craftsman import Craftsman
from claim_routing.domain.entities.partner import Partner
from claim_routing.domain.exceptions import CandidateQueryUnsupported
from claim_routing.domain.policies.candidate_ranking import rank_pool, select_rule_candidates
from claim_routing.domain.value_objects.assignee import Assignee, External, Internal
from claim_routing.domain.value_objects.postal_code import zip_prefix

logger = logging.getLogger(__name__)


class CandidateFinder:
    """Two tiers: rule-preferred assignees, else the generic directory pool.

    When any routing rule yields a qualified assignee, the pool is never
    consulted, even if it holds higher-rated candidates.
    """

    def __init__(
        self,
        rule_repo: RoutingRuleRepository,
        directory_repo: DirectoryRepository,
        config: RoutingConfig,
    ):
        self._rules = rule_repo
        self._directory = directory_repo
        self._config = config

    async def find(
        self,
        profession: str,
        zip_code: str | None,
        limit: int,
        *,
        internal_only: bool = False,
    ) -> list[Assignee]:
        prefix = zip_prefix(zip_code, self._config.zip_prefix_length)

        if prefix:
            preferred = await self._rule_tier(profession, prefix)
            if internal_only:
                preferred = [a for a in preferred if isinstance(a, Internal)]
            if preferred:
                logger.info(
                    "%d rule-preferred candidate(s) for %s/%s",
                    len(preferred), profession, prefix,
                )
                return preferred[:limit]

        pool = await self._pool_tier(profession, prefix, limit, internal_only)
        logger.info(
            "%d pool candidate(s) for %s/%s%s",
            len(pool), profession, prefix or "-", " (internal only)" if internal_only else "",
        )
        return pool

    async def _rule_tier(self, profession: str, prefix: str) -> list[Assignee]:
        rules = await self._rules.find_active(prefix, profession, self._config.rule_lookup_limit)
        if not rules:
            return []

        craftsman_ids = {
            r.preferred_assignee.craftsman_id
            for r in rules
            if isinstance(r.preferred_assignee, Internal)
        }
        partner_ids = {
            r.preferred_assignee.partner_id
            for r in rules
            if isinstance(r.preferred_assignee, External)
        }
        craftsmen = await self._directory.get_craftsmen_by_ids(craftsman_ids) if craftsman_ids else []
        partners = await self._directory.get_partners_by_ids(partner_ids) if partner_ids else []

        return select_rule_candidates(
            rules,
            {c.id: c for c in craftsmen},
            {p.id: p for p in partners},
            profession,
            prefix,
        )

    async def _pool_tier(
        self, profession: str, prefix: str | None, limit: int, internal_only: bool
    ) -> list[Assignee]:
        craftsmen = await self._craftsmen_with(profession)
        partners = [] if internal_only else await self._partners_with(profession)
        return rank_pool(craftsmen, partners, profession, prefix, limit)

    async def _craftsmen_with(self, profession: str) -> list[Craftsman]:
        scan_limit = self._config.fallback_scan_limit
        try:
            return await self._directory.find_craftsmen_with_profession(profession, scan_limit)
        except CandidateQueryUnsupported as e:
            logger.warning(
                "Craftsman containment query unsupported (%s); degraded path: "
                "filtering up to %d craftsmen client-side",
                e, scan_limit,
            )
            rows = await self._directory.list_craftsmen(scan_limit)
            return [c for c in rows if c.has_profession(profession)]

    async def _partners_with(self, profession: str) -> list[Partner]:
        scan_limit = self._config.fallback_scan_limit
        try:
            return await self._directory.find_partners_with_profession(profession, scan_limit)
        except CandidateQueryUnsupported as e:
            logger.warning(
                "Partner containment query unsupported (%s); degraded path: "
                "filtering up to %d partners client-side",
                e, scan_limit,
            )
            rows = await self._directory.list_partners(scan_limit)
            return [p for p in rows if p.has_profession(profession)]
