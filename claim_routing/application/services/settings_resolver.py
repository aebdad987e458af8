"""SettingsResolver — effective dispatch configuration for (profession, zip prefix)."""

from __future__ import annotations

import logging

from claim_routing.application.ports.settings_repo import AssignmentSettingsRepository
from claim_routing.domain.entities.assignment_settings import AssignmentSettings
from claim_routing.domain.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)


class SettingsResolver:
    """Zip-specific settings always win over the global row.

    Specificity, not recency, is the tie-break: a zip-specific row is returned
    even if the global row was updated later or carries another mode. Rows are
    read fresh on every call so an operator change applies to the next order.
    """

    def __init__(self, settings_repo: AssignmentSettingsRepository):
        self._settings = settings_repo

    async def resolve(
        self, profession: str, zip_prefix: str | None
    ) -> AssignmentSettings | None:
        if zip_prefix:
            specific = await self._lookup(profession, zip_prefix)
            if specific is not None:
                logger.info(
                    "Zip-specific settings for %s/%s: mode=%s",
                    profession, zip_prefix, specific.mode.value,
                )
                return specific

        global_row = await self._lookup(profession, None)
        if global_row is not None:
            logger.info("Global settings for %s: mode=%s", profession, global_row.mode.value)
            return global_row

        logger.info(
            "No assignment settings for profession=%s, zip_prefix=%s",
            profession, zip_prefix or "global",
        )
        return None

    async def _lookup(self, profession: str, zip_prefix: str | None) -> AssignmentSettings | None:
        # Sits on the order-creation path: a failing store reads as "not found".
        try:
            return await self._settings.get_active(profession, zip_prefix)
        except PersistenceFailure as e:
            logger.warning(
                "Settings lookup failed for %s/%s, treating as absent: %s",
                profession, zip_prefix or "global", e,
            )
            return None
