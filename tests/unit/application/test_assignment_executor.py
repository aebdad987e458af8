"""Tests for AssignmentExecutor — the guarded write."""

import asyncio
from dataclasses import replace

import pytest

from fakes import FakeOrderRepo

from claim_routing.application.routing_config import RoutingConfig
from claim_routing.application.services.assignment_executor import (
    ANY_STATE,
    AssignmentExecutor,
)
from claim_routing.domain.entities.order import Order
from claim_routing.domain.exceptions import OrderNotFound
from claim_routing.domain.value_objects.assignee import External, Internal
from claim_routing.domain.value_objects.enums import Actor, OrderState, SkipReason

CONFIG = RoutingConfig(persistence_retry_delay_seconds=0)


def _setup(*orders):
    repo = FakeOrderRepo(list(orders) or [Order(id="O1", damage_type="wasser", postal_code="41061")])
    return repo, AssignmentExecutor(repo, CONFIG)


@pytest.mark.asyncio
async def test_commit_assigns_internal():
    repo, executor = _setup()
    result = await executor.commit("O1", Internal("C1"))
    assert result.applied
    assert result.assignee_id == "C1"
    order = repo.orders["O1"]
    assert order.assigned_internal_id == "C1"
    assert order.assigned_partner_id is None
    assert order.state == OrderState.ASSIGNED_INTERNAL
    assert order.assigned_by == Actor.ENGINE


@pytest.mark.asyncio
async def test_commit_assigns_external():
    repo, executor = _setup()
    result = await executor.commit("O1", External("P1"))
    assert result.applied
    assert repo.orders["O1"].assigned_partner_id == "P1"
    assert repo.orders["O1"].state == OrderState.ASSIGNED_EXTERNAL


@pytest.mark.asyncio
async def test_commit_is_idempotent():
    repo, executor = _setup()
    first = await executor.commit("O1", Internal("C1"))
    snapshot = replace(repo.orders["O1"])
    second = await executor.commit("O1", Internal("C1"))
    assert first == second
    assert repo.orders["O1"] == snapshot


@pytest.mark.asyncio
async def test_commit_rejects_when_someone_else_holds_the_order():
    repo, executor = _setup()
    await executor.commit("O1", Internal("C1"))
    result = await executor.commit("O1", External("P1"))
    assert not result.applied
    assert result.reason == SkipReason.ALREADY_ASSIGNED
    assert repo.orders["O1"].assigned_internal_id == "C1"
    assert repo.orders["O1"].assigned_partner_id is None


@pytest.mark.asyncio
async def test_commit_retries_once_then_succeeds():
    repo, executor = _setup()
    repo.cas_failures = 1
    result = await executor.commit("O1", Internal("C1"))
    assert result.applied
    assert repo.cas_calls == 2


@pytest.mark.asyncio
async def test_commit_reports_persistence_error_after_retry():
    repo, executor = _setup()
    repo.cas_failures = 2
    result = await executor.commit("O1", Internal("C1"))
    assert not result.applied
    assert result.reason == SkipReason.PERSISTENCE_ERROR
    assert repo.orders["O1"].state == OrderState.UNASSIGNED


@pytest.mark.asyncio
async def test_commit_unknown_order_raises():
    _, executor = _setup()
    with pytest.raises(OrderNotFound):
        await executor.commit("nope", Internal("C1"))


@pytest.mark.asyncio
async def test_reassign_with_matching_expectation():
    repo, executor = _setup()
    await executor.commit("O1", Internal("C1"))
    result = await executor.commit(
        "O1", External("P1"), actor=Actor.ADMIN,
        expected_states=ANY_STATE, expected_assignee=Internal("C1"),
    )
    assert result.applied
    order = repo.orders["O1"]
    assert (order.assigned_internal_id, order.assigned_partner_id) == (None, "P1")
    assert order.assigned_by == Actor.ADMIN


@pytest.mark.asyncio
async def test_unassign_clears_both_slots():
    repo, executor = _setup()
    await executor.commit("O1", External("P1"))
    result = await executor.commit(
        "O1", None, actor=Actor.ADMIN,
        expected_states=ANY_STATE, expected_assignee=External("P1"),
    )
    assert result.applied
    assert result.assignee is None
    assert repo.orders["O1"].state == OrderState.UNASSIGNED
    assert not repo.orders["O1"].is_assigned()


@pytest.mark.asyncio
async def test_concurrent_commits_produce_single_assignee():
    repo, executor = _setup()
    results = await asyncio.gather(
        executor.commit("O1", Internal("C1")),
        executor.commit("O1", External("P1")),
        executor.commit("O1", External("P2")),
    )
    assert sum(r.applied for r in results) == 1
    order = repo.orders["O1"]
    assert not (order.assigned_internal_id and order.assigned_partner_id)
