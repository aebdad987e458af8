"""CandidateRankingPolicy — eligibility and ordering of assignees for an order."""

from __future__ import annotations

from collections.abc import Iterable

from claim_routing.domain.entities.craftsman import Craftsman
from claim_routing.domain.entities.partner import Partner
from claim_routing.domain.entities.routing_rule import RoutingRule
from claim_routing.domain.value_objects.assignee import Assignee, Internal


def partner_eligible(partner: Partner, profession: str, prefix: str | None) -> bool:
    """A partner qualifies when it declares the profession and, if it declares
    coverage and we know the zip prefix, the coverage contains that prefix.

    Missing coverage metadata is not the same as non-coverage.
    """
    if not partner.has_profession(profession):
        return False
    if prefix and partner.declares_coverage():
        return partner.covers(prefix)
    return True


def select_rule_candidates(
    rules: Iterable[RoutingRule],
    craftsmen: dict[str, Craftsman],
    partners: dict[str, Partner],
    profession: str,
    prefix: str | None,
) -> list[Assignee]:
    """Keep each rule's preferred assignee that still qualifies, in rule order.

    Rules are expected sorted by ascending priority. Rules go stale when a
    craftsman's declared skills change, so the profession is re-checked
    against the directory instead of trusting the rule.
    """
    selected: list[Assignee] = []
    for rule in rules:
        assignee = rule.preferred_assignee
        if assignee is None or assignee in selected:
            continue
        if isinstance(assignee, Internal):
            craftsman = craftsmen.get(assignee.craftsman_id)
            if craftsman is None or not craftsman.has_profession(profession):
                continue
        else:
            partner = partners.get(assignee.partner_id)
            if partner is None or not partner_eligible(partner, profession, prefix):
                continue
        selected.append(assignee)
    return selected


def rank_pool(
    craftsmen: Iterable[Craftsman],
    partners: Iterable[Partner],
    profession: str,
    prefix: str | None,
    limit: int,
) -> list[Assignee]:
    """Order the generic pool, best first.

    Sort key:
      1. explicit coverage match (a partner whose zip list contains the prefix)
         before everyone else; craftsmen cover the whole company area and
         partners without coverage data are not narrowed down at all;
      2. verified before unverified;
      3. rating descending;
      4. id, for determinism.
    """
    ranked: list[tuple[tuple, Assignee]] = []

    for c in craftsmen:
        if not c.has_profession(profession):
            continue
        ranked.append(((1, not c.is_verified, -c.rating, c.id), c.as_assignee()))

    for p in partners:
        if not partner_eligible(p, profession, prefix):
            continue
        narrow = bool(prefix) and p.declares_coverage()
        ranked.append(((0 if narrow else 1, not p.is_verified, -p.rating, p.id), p.as_assignee()))

    ranked.sort(key=lambda item: item[0])
    return [assignee for _, assignee in ranked[:limit]]
