"""Partner entity — an independent company that receives routed work."""

from dataclasses import dataclass, field

from claim_routing.domain.value_objects.assignee import External


@dataclass
class Partner:
    id: str
    company_name: str
    professions: set[str] = field(default_factory=set)
    zip_codes: list[str] | None = None
    rating: float = 0.0
    is_verified: bool = False
    email: str | None = None

    def has_profession(self, profession: str) -> bool:
        return profession in self.professions

    def declares_coverage(self) -> bool:
        return bool(self.zip_codes)

    def covers(self, prefix: str) -> bool:
        """True if any declared zip entry starts with (or is) the prefix."""
        return any(z.startswith(prefix) or prefix.startswith(z) for z in self.zip_codes or [])

    def as_assignee(self) -> External:
        return External(partner_id=self.id)
