"""Tests for SettingsResolver."""

import pytest

from fakes import FakeSettingsRepo

from claim_routing.application.services.settings_resolver import SettingsResolver
from claim_routing.domain.entities.assignment_settings import AssignmentSettings
from claim_routing.domain.value_objects.enums import DispatchMode


def _row(sid, zip_prefix, mode=DispatchMode.AUTO, active=True):
    return AssignmentSettings(
        id=sid, profession="trocknung", zip_prefix=zip_prefix, mode=mode, active=active
    )


@pytest.mark.asyncio
async def test_zip_specific_row_wins_over_global():
    repo = FakeSettingsRepo([_row(1, None, DispatchMode.BROADCAST), _row(2, "41", DispatchMode.MANUAL)])
    result = await SettingsResolver(repo).resolve("trocknung", "41")
    assert result.id == 2
    assert result.mode == DispatchMode.MANUAL


@pytest.mark.asyncio
async def test_zip_specific_wins_regardless_of_order_or_recency():
    """Row order in storage (a proxy for recency) does not matter."""
    repo = FakeSettingsRepo([_row(2, "41", DispatchMode.AUTO), _row(1, None, DispatchMode.MANUAL)])
    result = await SettingsResolver(repo).resolve("trocknung", "41")
    assert result.zip_prefix == "41"


@pytest.mark.asyncio
async def test_falls_back_to_global_row():
    repo = FakeSettingsRepo([_row(1, None)])
    result = await SettingsResolver(repo).resolve("trocknung", "50")
    assert result.id == 1
    assert result.is_global()


@pytest.mark.asyncio
async def test_inactive_specific_row_is_skipped():
    repo = FakeSettingsRepo([_row(1, None), _row(2, "41", active=False)])
    result = await SettingsResolver(repo).resolve("trocknung", "41")
    assert result.id == 1


@pytest.mark.asyncio
async def test_no_prefix_consults_only_global_row():
    repo = FakeSettingsRepo([_row(2, "41")])
    result = await SettingsResolver(repo).resolve("trocknung", None)
    assert result is None
    assert repo.lookups == [("trocknung", None)]


@pytest.mark.asyncio
async def test_other_profession_does_not_match():
    repo = FakeSettingsRepo([_row(1, None)])
    assert await SettingsResolver(repo).resolve("maler", "41") is None


@pytest.mark.asyncio
async def test_storage_failure_reads_as_absent():
    repo = FakeSettingsRepo([_row(1, None)], fail=True)
    assert await SettingsResolver(repo).resolve("trocknung", "41") is None
