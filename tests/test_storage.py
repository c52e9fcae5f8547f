import pytest
import asyncio
import json

from pydantic import ValidationError

from arbscanner.core.exceptions import OpportunityNotFound
from arbscanner.models.opportunity import OpportunityDraft
from arbscanner.models.quote import Venue
from arbscanner.models.settings import ExecutionSpeed
from arbscanner.services.activity_log import ActivityLog
from arbscanner.services.asset_database import AssetDatabase
from arbscanner.services.execution import ExecutionOutcome, ExecutionService
from arbscanner.services.opportunity_store import OpportunityStore
from arbscanner.services.settings_manager import SettingsManager

from conftest import SOL, USDC

pytestmark = pytest.mark.asyncio

def make_draft(asset_id: int = 1, quote_asset_id: int = 2, spread: float = 0.5) -> OpportunityDraft:
    return OpportunityDraft(
        asset_id=asset_id,
        quote_asset_id=quote_asset_id,
        buy_dex=Venue.JUPITER,
        sell_dex=Venue.RAYDIUM,
        buy_price=0.998,
        sell_price=1.007,
        spread_percentage=spread,
        estimated_profit=spread
    )

async def test_settings_defaults_and_partial_update():
    manager = SettingsManager()

    settings = await manager.get_arbitrage_settings()
    assert settings.min_spread_percentage == 1.5
    assert settings.execution_speed == ExecutionSpeed.BALANCED
    assert settings.slippage_bps == 50

    updated = await manager.update_arbitrage_settings({
        "execution_speed": "fastest",
        "venues": ["Orca"]
    })

    assert updated.execution_speed == ExecutionSpeed.FASTEST
    assert updated.slippage_bps == 100
    assert updated.venues == [Venue.ORCA]
    assert updated.min_liquidity == 5000.0

async def test_settings_reject_invalid_values():
    manager = SettingsManager()

    for bad in ({"min_spread_percentage": -1}, {"venues": []}, {"venues": ["Serum"]}):
        with pytest.raises(ValidationError):
            await manager.update_arbitrage_settings(bad)

    assert (await manager.get_arbitrage_settings()).min_spread_percentage == 1.5

async def test_settings_persist_and_notify(tmp_path):
    path = tmp_path / "settings.json"
    manager = SettingsManager(str(path))
    seen = []

    async def on_update(settings):
        seen.append(settings.min_liquidity)

    manager.register_callback(on_update)
    await manager.update_arbitrage_settings({"min_liquidity": 250})

    assert seen == [250.0]
    assert json.loads(path.read_text())["min_liquidity"] == 250.0
    reloaded = await SettingsManager(str(path)).get_arbitrage_settings()
    assert reloaded.min_liquidity == 250.0

async def test_asset_database_lookup_and_registration(tmp_path):
    path = tmp_path / "assets.json"
    db = AssetDatabase(str(path))

    sol = await db.get_or_create(SOL, "SOL", "Solana", 9)
    again = await db.get_or_create(SOL, "SOL", "Solana", 9)
    usdc = await db.get_or_create(USDC, "USDC", "USD Coin", 6)

    assert again.id == sol.id
    assert usdc.id == sol.id + 1
    assert await db.get_by_symbol("sol") == sol
    assert await db.get_by_address(USDC) == usdc
    assert await db.get_by_id(99) is None

    reloaded = AssetDatabase(str(path))
    assert [a.symbol for a in await reloaded.list_all()] == ["SOL", "USDC"]

async def test_upsert_keeps_identity_and_executed_flag():
    store = OpportunityStore()

    first, created = await store.upsert_for_pair(make_draft(spread=0.5))
    assert created
    await store.update(first.id, True)

    second, created = await store.upsert_for_pair(make_draft(spread=0.8))

    assert not created
    assert second.id == first.id
    assert second.spread_percentage == 0.8
    assert second.executed is True
    assert second.timestamp >= first.timestamp
    assert len(await store.list()) == 1

async def test_concurrent_upserts_create_one_record():
    store = OpportunityStore()

    results = await asyncio.gather(*(store.upsert_for_pair(make_draft()) for _ in range(5)))

    assert [created for _, created in results].count(True) == 1
    assert len({o.id for o, _ in results}) == 1

async def test_list_is_most_recent_first():
    store = OpportunityStore()
    older = await store.create(make_draft(1, 2))
    newer = await store.create(make_draft(3, 2))

    assert [o.id for o in await store.list()] == [newer.id, older.id]
    assert [o.id for o in await store.list(limit=1)] == [newer.id]
    assert await store.update(999, True) is None

async def test_find_most_recent_orders_and_limits():
    store = OpportunityStore()
    created = [await store.create(make_draft(i, 100)) for i in range(1, 5)]

    # A refresh moves the pair to the front
    await store.upsert_for_pair(make_draft(1, 100, spread=0.9))

    recent = await store.find_most_recent(2)

    assert [o.id for o in recent] == [created[0].id, created[3].id]
    assert recent[0].spread_percentage == 0.9
    assert len(await store.find_most_recent(10)) == 4

async def test_store_reloads_from_file(tmp_path):
    path = tmp_path / "opportunities.json"
    store = OpportunityStore(str(path))
    created = await store.create(make_draft())

    reloaded = OpportunityStore(str(path))
    loaded = await reloaded.get(created.id)
    assert loaded.buy_dex == Venue.JUPITER

    another = await reloaded.create(make_draft(5, 6))
    assert another.id == created.id + 1

async def test_activity_log_bounded_and_recent_first():
    log = ActivityLog(max_entries=3)
    for i in range(5):
        await log.add(f"event {i}")
    await log.add("broken", "error")

    entries = await log.list()

    assert [e.message for e in entries] == ["broken", "event 4", "event 3"]
    assert entries[0].to_dict()["type"] == "error"
    assert len(await log.list(limit=1)) == 1

async def test_execute_marks_opportunity_and_logs():
    store = OpportunityStore()
    log = ActivityLog()
    opportunity = await store.create(make_draft())
    service = ExecutionService(store, log)

    executed = await service.execute(opportunity.id)

    assert executed.executed is True
    assert (await store.get(opportunity.id)).executed is True
    [entry] = await log.list()
    assert entry.type == "success"
    assert entry.message.startswith(f"Executed arbitrage #{opportunity.id}")

async def test_execute_unknown_id_raises():
    service = ExecutionService(OpportunityStore(), ActivityLog())

    with pytest.raises(OpportunityNotFound):
        await service.execute(42)

async def test_failed_execution_leaves_flag_unset():
    class Rejecting:
        async def execute(self, opportunity):
            return ExecutionOutcome(success=False, detail="route expired")

    store = OpportunityStore()
    log = ActivityLog()
    opportunity = await store.create(make_draft())

    result = await ExecutionService(store, log, collaborator=Rejecting()).execute(opportunity.id)

    assert result.executed is False
    [entry] = await log.list()
    assert entry.type == "error"
    assert "route expired" in entry.message
