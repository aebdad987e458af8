"""Port interface for routing rule persistence."""

from abc import ABC, abstractmethod

from claim_routing.domain.entities.routing_rule import RoutingRule


class RoutingRuleRepository(ABC):
    @abstractmethod
    async def find_active(
        self, zip_prefix: str, profession: str, limit: int
    ) -> list[RoutingRule]:
        """Active rules for (zip_prefix, profession), ascending priority."""
        ...

    @abstractmethod
    async def get_by_id(self, rule_id: int) -> RoutingRule | None:
        ...

    @abstractmethod
    async def get_all(self) -> list[RoutingRule]:
        ...

    @abstractmethod
    async def save(self, rule: RoutingRule) -> RoutingRule:
        """Insert when ``rule.id`` is None, otherwise update that row."""
        ...

    @abstractmethod
    async def delete(self, rule_id: int) -> bool:
        ...
