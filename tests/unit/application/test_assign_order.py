"""Tests for AssignOrderUseCase with in-memory fakes, end to end through the engine."""

from __future__ import annotations

import asyncio

import pytest

from fakes import (
    FakeDirectoryRepo,
    FakeOfferRepo,
    FakeOrderRepo,
    FakeRuleRepo,
    FakeSettingsRepo,
    RecordingNotifier,
)

from claim_routing.application.routing_config import RoutingConfig
from claim_routing.application.services.assignment_executor import AssignmentExecutor
from claim_routing.application.services.broadcast_coordinator import BroadcastCoordinator
from claim_routing.application.services.candidate_finder import CandidateFinder
from claim_routing.application.services.settings_resolver import SettingsResolver
from claim_routing.application.use_cases.assign_order import AssignOrderUseCase
from claim_routing.domain.entities.assignment_settings import AssignmentSettings
from claim_routing.domain.entities.craftsman import Craftsman
from claim_routing.domain.entities.order import Order
from claim_routing.domain.entities.partner import Partner
from claim_routing.domain.entities.routing_rule import RoutingRule
from claim_routing.domain.value_objects.assignee import External, Internal
from claim_routing.domain.value_objects.enums import (
    AcceptOutcome,
    AssigneeType,
    CraftsmanRole,
    DispatchMode,
    OrderState,
    SkipReason,
)


def _craftsman(cid, professions=("trocknung",), rating=0.0):
    return Craftsman(
        id=cid, name=cid, role=CraftsmanRole.OWNER, professions=set(professions), rating=rating
    )


def _partner(pid, rating=0.0):
    return Partner(
        id=pid, company_name=pid, professions={"trocknung"}, zip_codes=["41"],
        rating=rating, is_verified=True,
    )


def _settings(mode=DispatchMode.AUTO, zip_prefix="41", count=3):
    return AssignmentSettings(
        id=None, profession="trocknung", zip_prefix=zip_prefix, mode=mode,
        broadcast_partner_count=count,
    )


class Engine:
    """Wires the use case the way the API dependencies do, on fakes."""

    def __init__(self, settings=(), rules=(), craftsmen=(), partners=(), order=None, **config):
        self.order = order or Order.from_intake("O1", "wasser", {"zip": "41061"})
        self.orders = FakeOrderRepo([self.order])
        self.offers = FakeOfferRepo()
        self.notifier = RecordingNotifier()
        self.settings_repo = FakeSettingsRepo(list(settings))
        config.setdefault("persistence_retry_delay_seconds", 0)
        cfg = RoutingConfig(**config)
        resolver = SettingsResolver(self.settings_repo)
        self.finder = CandidateFinder(
            FakeRuleRepo(list(rules)), FakeDirectoryRepo(list(craftsmen), list(partners)), cfg
        )
        executor = AssignmentExecutor(self.orders, cfg)
        self.coordinator = BroadcastCoordinator(
            self.orders, self.offers, executor, resolver, self.finder, self.notifier, cfg
        )
        self.use_case = AssignOrderUseCase(resolver, self.finder, executor, self.coordinator, cfg)

    async def run(self):
        return await self.use_case.execute(self.order)

    @property
    def stored(self) -> Order:
        return self.orders.orders[self.order.id]


@pytest.mark.asyncio
async def test_rule_preferred_craftsman_is_assigned():
    engine = Engine(
        settings=[_settings()],
        rules=[RoutingRule(id=1, zip_prefix="41", profession="trocknung",
                           priority=1, preferred_assignee=Internal("C1"))],
        craftsmen=[_craftsman("C1"), _craftsman("C2", rating=5.0)],
    )
    result = await engine.run()
    assert result.to_dict() == {
        "order_id": "O1", "applied": True, "assignee_id": "C1", "assignee_type": "internal",
    }
    assert engine.stored.assigned_internal_id == "C1"


@pytest.mark.asyncio
async def test_pool_craftsman_is_assigned_without_rules():
    engine = Engine(settings=[_settings()], craftsmen=[_craftsman("C2")])
    result = await engine.run()
    assert result.applied
    assert result.assignee_id == "C2"
    assert result.assignee_type == AssigneeType.INTERNAL


@pytest.mark.asyncio
async def test_no_settings_leaves_order_unassigned():
    engine = Engine(craftsmen=[_craftsman("C2")])
    result = await engine.run()
    assert result.to_dict() == {"order_id": "O1", "applied": False, "reason": "no_settings"}
    assert engine.stored.state == OrderState.UNASSIGNED
    assert not engine.stored.is_assigned()


@pytest.mark.asyncio
async def test_broadcast_then_simultaneous_accepts():
    engine = Engine(
        settings=[_settings(mode=DispatchMode.BROADCAST, count=3)],
        partners=[_partner("P1", 5.0), _partner("P2", 4.0), _partner("P3", 3.0)],
    )
    result = await engine.run()
    assert not result.applied
    assert result.reason == SkipReason.BROADCAST_PENDING
    assert result.offers_sent == 3
    assert [o.assignee for o in result.pending_offers] == [External("P1"), External("P2"), External("P3")]
    assert engine.notifier.sent == []

    outcomes = await asyncio.gather(
        engine.coordinator.accept("O1", External("P2")),
        engine.coordinator.accept("O1", External("P3")),
    )
    assert sorted(outcomes) == sorted([AcceptOutcome.ACCEPTED, AcceptOutcome.ALREADY_RESOLVED])
    assert engine.stored.assigned_partner_id in {"P2", "P3"}
    assert engine.stored.assigned_internal_id is None


@pytest.mark.asyncio
async def test_missing_postal_code_uses_only_global_row():
    order = Order.from_intake("O1", "wasser", {"name": "no address"})
    engine = Engine(settings=[_settings(zip_prefix="41")], craftsmen=[_craftsman("C2")], order=order)
    result = await engine.run()
    assert result.reason == SkipReason.NO_SETTINGS
    assert engine.settings_repo.lookups == [("trocknung", None)]


@pytest.mark.asyncio
async def test_missing_postal_code_with_global_row_assigns():
    order = Order.from_intake("O1", "wasser", {})
    engine = Engine(settings=[_settings(zip_prefix=None)], craftsmen=[_craftsman("C2")], order=order)
    result = await engine.run()
    assert result.applied
    assert result.assignee_id == "C2"


@pytest.mark.asyncio
async def test_manual_mode_is_skipped():
    engine = Engine(settings=[_settings(mode=DispatchMode.MANUAL)], craftsmen=[_craftsman("C2")])
    result = await engine.run()
    assert result.reason == SkipReason.MODE_NOT_AUTO
    assert engine.stored.state == OrderState.UNASSIGNED


@pytest.mark.asyncio
async def test_auto_without_candidates():
    engine = Engine(settings=[_settings()], craftsmen=[_craftsman("C2", professions=("maler",))])
    result = await engine.run()
    assert result.reason == SkipReason.NO_CANDIDATES


@pytest.mark.asyncio
async def test_broadcast_without_candidates():
    engine = Engine(settings=[_settings(mode=DispatchMode.BROADCAST)])
    result = await engine.run()
    assert result.reason == SkipReason.NO_CANDIDATES
    assert engine.stored.state == OrderState.UNASSIGNED


@pytest.mark.asyncio
async def test_already_assigned_order_is_not_overwritten():
    engine = Engine(settings=[_settings()], craftsmen=[_craftsman("C2")])
    engine.stored.set_assignee(External("P9"))
    engine.stored.state = OrderState.ASSIGNED_EXTERNAL
    result = await engine.run()
    assert result.reason == SkipReason.ALREADY_ASSIGNED
    assert engine.stored.assigned_partner_id == "P9"


@pytest.mark.asyncio
async def test_persistence_error_is_reported():
    engine = Engine(settings=[_settings()], craftsmen=[_craftsman("C2")])
    engine.orders.cas_failures = 2
    result = await engine.run()
    assert result.reason == SkipReason.PERSISTENCE_ERROR


@pytest.mark.asyncio
async def test_unknown_damage_type_finds_nobody():
    order = Order.from_intake("O1", "Sturm", {"zip": "41061"})
    engine = Engine(settings=[_settings()], craftsmen=[_craftsman("C2")], order=order)
    result = await engine.run()
    assert result.reason == SkipReason.NO_SETTINGS


@pytest.mark.asyncio
async def test_slow_routing_times_out(monkeypatch):
    engine = Engine(settings=[_settings()], craftsmen=[_craftsman("C2")], engine_timeout_seconds=0.01)

    async def slow_find(*args, **kwargs):
        await asyncio.sleep(1)
        return []

    monkeypatch.setattr(engine.finder, "find", slow_find)
    result = await engine.run()
    assert result.reason == SkipReason.TIMEOUT
    assert result.is_discarded()
    assert engine.stored.state == OrderState.UNASSIGNED


@pytest.mark.asyncio
async def test_unexpected_error_becomes_engine_error(monkeypatch):
    engine = Engine(settings=[_settings()], craftsmen=[_craftsman("C2")])

    async def broken_find(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(engine.finder, "find", broken_find)
    result = await engine.run()
    assert result.reason == SkipReason.ENGINE_ERROR


@pytest.mark.asyncio
async def test_redispatch_of_broadcasting_order_announces_nothing_new():
    engine = Engine(
        settings=[_settings(mode=DispatchMode.BROADCAST, count=2)],
        partners=[_partner("P1", 5.0), _partner("P2", 4.0)],
    )
    first = await engine.run()
    again = await engine.run()
    assert len(first.pending_offers) == 2
    assert again.reason == SkipReason.BROADCAST_PENDING
    assert again.offers_sent == 2
    assert again.pending_offers == ()
    assert len(engine.offers.offers) == 2
