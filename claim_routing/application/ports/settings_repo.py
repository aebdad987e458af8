"""Port interface for assignment settings persistence."""

from abc import ABC, abstractmethod

from claim_routing.domain.entities.assignment_settings import AssignmentSettings


class AssignmentSettingsRepository(ABC):
    @abstractmethod
    async def get_active(
        self, profession: str, zip_prefix: str | None
    ) -> AssignmentSettings | None:
        """Active row keyed exactly by (profession, zip_prefix); None prefix = global row."""
        ...

    @abstractmethod
    async def get_by_key(
        self, profession: str, zip_prefix: str | None
    ) -> AssignmentSettings | None:
        """Row for (profession, zip_prefix) regardless of its active flag."""
        ...

    @abstractmethod
    async def get_by_id(self, settings_id: int) -> AssignmentSettings | None:
        ...

    @abstractmethod
    async def get_all(self) -> list[AssignmentSettings]:
        ...

    @abstractmethod
    async def save(self, settings: AssignmentSettings) -> AssignmentSettings:
        """Insert when ``settings.id`` is None, otherwise update that row."""
        ...

    @abstractmethod
    async def delete(self, settings_id: int) -> bool:
        ...
