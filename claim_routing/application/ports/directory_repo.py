"""Port interface for the craftsman/partner directory."""

from abc import ABC, abstractmethod
from collections.abc import Collection

from claim_routing.domain.entities.craftsman import Craftsman
from claim_routing.domain.entities.partner import Partner


class DirectoryRepository(ABC):
    @abstractmethod
    async def get_craftsmen_by_ids(self, ids: Collection[str]) -> list[Craftsman]:
        ...

    @abstractmethod
    async def get_partners_by_ids(self, ids: Collection[str]) -> list[Partner]:
        ...

    @abstractmethod
    async def find_craftsmen_with_profession(self, profession: str, limit: int) -> list[Craftsman]:
        """Storage-side containment query on the declared profession set.

        Raises:
            CandidateQueryUnsupported: if the store cannot evaluate it.
        """
        ...

    @abstractmethod
    async def find_partners_with_profession(self, profession: str, limit: int) -> list[Partner]:
        """Same contract as ``find_craftsmen_with_profession``."""
        ...

    @abstractmethod
    async def list_craftsmen(self, limit: int) -> list[Craftsman]:
        ...

    @abstractmethod
    async def list_partners(self, limit: int) -> list[Partner]:
        ...
