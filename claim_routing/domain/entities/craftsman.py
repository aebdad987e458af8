"""Craftsman entity — a staff member of the operating company."""

from dataclasses import dataclass, field

from claim_routing.domain.value_objects.assignee import Internal
from claim_routing.domain.value_objects.enums import CraftsmanRole


@dataclass
class Craftsman:
    id: str
    name: str
    role: CraftsmanRole
    company_id: str | None = None
    professions: set[str] = field(default_factory=set)
    is_verified: bool = True
    rating: float = 0.0

    def has_profession(self, profession: str) -> bool:
        return profession in self.professions

    def as_assignee(self) -> Internal:
        return Internal(craftsman_id=self.id)
