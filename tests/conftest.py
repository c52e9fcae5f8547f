import pytest
import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from arbscanner.config.settings import (
    AssetUniverseConfig,
    ScanConfig,
    VenueConfig
)
from arbscanner.config.venues import KNOWN_ASSETS
from arbscanner.core.arbitrage_engine import ScanSessionManager
from arbscanner.core.exceptions import NoLiquidity
from arbscanner.core.path_tester import ArbitragePathTester
from arbscanner.core.quote_cache import QuoteCache
from arbscanner.core.rate_limiter import RateLimiter, RetryPolicy
from arbscanner.models.quote import Quote, RouteLeg, Venue
from arbscanner.protocols.base import QuoteProvider
from arbscanner.services.activity_log import ActivityLog
from arbscanner.services.asset_database import AssetDatabase
from arbscanner.services.opportunity_store import OpportunityStore
from arbscanner.services.settings_manager import SettingsManager

# Test assets (mainnet addresses)
SOL = KNOWN_ASSETS["SOL"].address
USDC = KNOWN_ASSETS["USDC"].address
USDT = KNOWN_ASSETS["USDT"].address

PROBE_AMOUNT = 1_000_000_000

QuoteEntry = Union[int, Callable[[int], int], Exception]

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds

class FakeSleep:
    """Records requested delays and advances the clock instead of waiting."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.delays: List[float] = []

    async def __call__(self, seconds: float):
        self.delays.append(seconds)
        self.clock.advance(seconds)
        await asyncio.sleep(0)

def make_quote(
    venue: Venue,
    input_asset: str,
    output_asset: str,
    amount_in: int,
    amount_out: int,
    liquidity_usd: Optional[float] = None
) -> Quote:
    leg = RouteLeg(
        label=venue.value,
        amm_key=f"{venue.value}-pool",
        input_asset=input_asset,
        output_asset=output_asset,
        in_amount=amount_in,
        out_amount=amount_out,
        fee_amount=amount_in * 30 // 10_000,
        fee_asset=input_asset
    )
    return Quote(
        venue=venue,
        input_asset=input_asset,
        output_asset=output_asset,
        in_amount=amount_in,
        out_amount=amount_out,
        out_amount_with_slippage=amount_out * 9950 // 10_000,
        route=(leg,),
        liquidity_usd=liquidity_usd
    )

class FakeProvider(QuoteProvider):
    """Quote provider answering from a fixed (input, output) table."""

    def __init__(
        self,
        venue: Venue,
        quotes: Optional[Dict[Tuple[str, str], QuoteEntry]] = None,
        error: Optional[Exception] = None,
        liquidity_usd: Optional[float] = None
    ):
        super().__init__(VenueConfig(base_url="http://fake.invalid", fee_bps=30))
        self.venue = venue
        self.quotes = quotes or {}
        self.error = error
        self.liquidity_usd = liquidity_usd
        self.calls: List[Tuple[str, str, int]] = []
        self.healthy = True

    async def quote(self, input_asset, output_asset, amount_in, slippage_bps=50):
        self.calls.append((input_asset, output_asset, amount_in))
        if self.error is not None:
            raise self.error

        entry = self.quotes.get((input_asset, output_asset))
        if entry is None:
            raise NoLiquidity("No pool found", venue=self.venue.value)
        if isinstance(entry, Exception):
            raise entry
        amount_out = entry(amount_in) if callable(entry) else entry
        return make_quote(
            self.venue,
            input_asset,
            output_asset,
            amount_in,
            amount_out,
            self.liquidity_usd
        )

    async def check_status(self) -> Dict:
        return {"name": self.venue.value, "ok": self.healthy}

class RecordingChannel:
    """Push channel keeping every event it receives."""

    def __init__(self):
        self.events: List[Tuple[str, Any]] = []

    async def send(self, event_type: str, data: Any) -> None:
        self.events.append((event_type, data))

    def types(self) -> List[str]:
        return [event_type for event_type, _ in self.events]

    def of_type(self, event_type: str) -> List[Any]:
        return [data for t, data in self.events if t == event_type]

def make_limiters(venues, clock: Optional[FakeClock] = None) -> Dict[Venue, RateLimiter]:
    """Limiters without spacing, sleeping on a fake clock."""
    clock = clock or FakeClock()
    sleep = FakeSleep(clock)
    return {
        venue: RateLimiter(venue.value, min_time=0, clock=clock, sleep=sleep)
        for venue in venues
    }

def make_tester(
    providers: Dict[Venue, QuoteProvider],
    cache: Optional[QuoteCache] = None,
    **kwargs
) -> ArbitragePathTester:
    return ArbitragePathTester(
        providers,
        make_limiters(providers),
        cache if cache is not None else QuoteCache(),
        retry_policy=kwargs.pop("retry_policy", RetryPolicy(max_retries=1)),
        **kwargs
    )

@pytest.fixture
def clock():
    """Fake monotonic clock."""
    return FakeClock()

@pytest.fixture
def channel():
    """Recording push channel."""
    return RecordingChannel()

@pytest.fixture
def round_trip_providers():
    """Jupiter sells SOL for USDC; Raydium buys SOL back at a 0.5% gain."""
    return {
        Venue.JUPITER: FakeProvider(Venue.JUPITER, {(SOL, USDC): 998_000_000}),
        Venue.RAYDIUM: FakeProvider(Venue.RAYDIUM, {(USDC, SOL): 1_005_000_000})
    }

@pytest.fixture
def stores():
    """In-memory stores without file persistence."""
    return {
        "settings_manager": SettingsManager(),
        "asset_db": AssetDatabase(),
        "store": OpportunityStore(),
        "activity_log": ActivityLog()
    }

@pytest.fixture
def scan_config():
    """Scan configuration with a recurring interval long enough not to fire."""
    return ScanConfig(interval=3600, batch_size=5, initial_pairs=10)

@pytest.fixture
def universe():
    """SOL and USDC only, giving two ordered pairs."""
    return AssetUniverseConfig(base_symbols=["SOL", "USDC"], popular_symbols=[])

@pytest.fixture
def manager(round_trip_providers, stores, scan_config, universe):
    """Session manager over fake venues."""
    return ScanSessionManager(
        make_tester(round_trip_providers),
        stores["settings_manager"],
        stores["asset_db"],
        stores["store"],
        stores["activity_log"],
        scan_config=scan_config,
        universe=universe
    )
