from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Set
from enum import Enum
import asyncio
import logging
import time

from ..config.settings import AssetUniverseConfig, ScanConfig
from ..models.asset import UNKNOWN_ASSET
from ..models.opportunity import (
    ArbitrageResult,
    EnrichedOpportunity,
    OpportunityDraft
)
from ..models.settings import ArbitrageSettings
from .exceptions import SessionConfigError
from .pairs import AssetPair, build_pair_universe, resolve_assets
from .path_tester import ArbitragePathTester

class PushChannel(Protocol):
    """One-way delivery of events to the client that owns a session."""

    async def send(self, event_type: str, data: Any) -> None:
        ...

class SessionState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"

class ScanSession:
    """Recurring arbitrage scan owned by one client."""

    def __init__(self, client_id: str, channel: PushChannel, manager: "ScanSessionManager"):
        self.client_id = client_id
        self.channel = channel
        self.manager = manager
        self.logger = logging.getLogger(__name__)

        self.state = SessionState.IDLE
        self.settings: Optional[ArbitrageSettings] = None
        self.pairs: List[AssetPair] = []
        self.cycles_completed = 0
        self.first_cycle_done = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self.state in (SessionState.STARTING, SessionState.RUNNING)

    @property
    def has_timer(self) -> bool:
        return self._task is not None and not self._task.done()

    async def push(self, event_type: str, data: Any):
        """Deliver an event to the client; delivery failures are logged only."""
        try:
            await self.channel.send(event_type, data)
        except Exception as e:
            self.logger.error(f"Error pushing {event_type} to client {self.client_id}: {str(e)}")

    async def start(self) -> bool:
        """Load settings, build pairs and install the recurring scan."""
        self.state = SessionState.STARTING
        try:
            try:
                settings = await self.manager.settings_manager.get_arbitrage_settings()
            except Exception as e:
                raise SessionConfigError(f"Unable to load arbitrage settings: {str(e)}")
            pairs = await self.manager.build_pairs()
        except SessionConfigError as e:
            self.logger.error(f"Scan session for {self.client_id} failed to start: {e.message}")
            self.state = SessionState.IDLE
            await self.push("error", {"message": e.message})
            await self.manager.activity_log.add(f"Arbitrage scanner failed to start: {e.message}", "error")
            if self.manager.notifications:
                await self.manager.notifications.notify_error(e.message)
            return False

        if self.state != SessionState.STARTING:
            return False

        self.settings = settings
        self.pairs = pairs
        await self.push("arbitrageScannerStarted", {"settings": settings.model_dump(mode="json")})

        # Superseded or stopped while the start event was delivered
        if self.state != SessionState.STARTING:
            return False

        self.state = SessionState.RUNNING
        self._task = asyncio.create_task(self._run())
        self.logger.info(
            f"Scan session for {self.client_id} started with {len(pairs)} pairs"
        )
        return True

    def stop(self):
        """Cancel the recurring scan. Synchronous so no cycle can start afterwards."""
        if self.state == SessionState.IDLE:
            return
        self.state = SessionState.STOPPING
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.state = SessionState.IDLE
        self.logger.info(f"Scan session for {self.client_id} stopped")

    async def _run(self):
        scan = self.manager.scan_config
        try:
            await self._guarded_cycle(self.pairs[:scan.initial_pairs])
            self.first_cycle_done.set()
            while self.active:
                await self.manager.sleep(scan.interval)
                await self._guarded_cycle(self.pairs)
        except asyncio.CancelledError:
            self.logger.debug(f"Scan timer for {self.client_id} cancelled")
            raise

    async def _guarded_cycle(self, pairs: List[AssetPair]):
        # The cycle keeps running if the timer is cancelled mid-way; it stops
        # launching batches and discards its results once the session is inactive.
        cycle = asyncio.ensure_future(self.run_cycle(pairs))
        self.manager.track(cycle)
        await asyncio.shield(cycle)

    def _passes_filters(self, result: ArbitrageResult) -> bool:
        settings = self.settings
        min_spread = settings.min_spread_percentage
        threshold = self.manager.scan_config.min_spread_floor if min_spread > 0 else min_spread
        if result.profit_percentage < threshold:
            return False

        liquidity = result.liquidity_usd
        if liquidity is not None and liquidity < settings.min_liquidity:
            return False
        return True

    def _draft(self, pair: AssetPair, result: ArbitrageResult) -> OpportunityDraft:
        notional = self.manager.scan_config.estimated_profit_notional
        return OpportunityDraft(
            asset_id=pair.input_asset.id,
            quote_asset_id=pair.output_asset.id,
            buy_dex=result.buy_venue,
            sell_dex=result.sell_venue,
            buy_price=result.forward_price,
            sell_price=result.backward_price,
            spread_percentage=result.profit_percentage,
            estimated_profit=result.profit_percentage / 100 * notional,
            volume_24h=result.volume_24h_usd,
            liquidity=result.liquidity_usd
        )

    async def _scan_pair(self, pair: AssetPair) -> Optional[ArbitrageResult]:
        return await self.manager.tester.test_path(
            pair.input_asset.address,
            pair.output_asset.address,
            self.manager.scan_config.probe_amount,
            venues=self.settings.venues,
            slippage_bps=self.settings.slippage_bps
        )

    async def _record(self, pair: AssetPair, result: ArbitrageResult):
        manager = self.manager
        opportunity, created = await manager.store.upsert_for_pair(self._draft(pair, result))
        if manager.metrics:
            manager.metrics.record_opportunity_found(created)
        if not created:
            return

        enriched = EnrichedOpportunity(**opportunity.model_dump(), asset=pair.input_asset)
        await self.push("newArbitrageOpportunity", enriched.to_message())
        if manager.notifications:
            try:
                await manager.notifications.notify_opportunity(opportunity, pair.input_asset.symbol)
            except Exception as e:
                self.logger.error(f"Error notifying opportunity #{opportunity.id}: {str(e)}")

    async def run_cycle(self, pairs: List[AssetPair]) -> int:
        """Scan ``pairs`` batch by batch and push the opportunity list.

        Returns the number of accepted paths recorded.
        """
        scan = self.manager.scan_config
        started = time.monotonic()
        recorded = 0

        for i in range(0, len(pairs), scan.batch_size):
            if not self.active:
                return recorded
            batch = pairs[i:i + scan.batch_size]
            self.logger.debug(
                f"Batch {i // scan.batch_size + 1} of {len(batch)} pairs for {self.client_id}"
            )

            results = await asyncio.gather(
                *(self._scan_pair(pair) for pair in batch),
                return_exceptions=True
            )

            for pair, result in zip(batch, results):
                if isinstance(result, BaseException):
                    self.logger.error(
                        f"Error scanning {pair.input_asset.symbol}/{pair.output_asset.symbol}: {str(result)}"
                    )
                    continue
                if result is None or not self._passes_filters(result):
                    continue
                if not self.active:
                    return recorded

                try:
                    await self._record(pair, result)
                    recorded += 1
                except Exception as e:
                    self.logger.error(
                        f"Error recording opportunity {pair.input_asset.symbol}/{pair.output_asset.symbol}: {str(e)}"
                    )

        if not self.active:
            return recorded

        await self.push_opportunities()
        self.cycles_completed += 1
        if self.manager.metrics:
            self.manager.metrics.record_cycle(time.monotonic() - started)
        self.logger.info(
            f"Scan cycle for {self.client_id} done: {recorded} opportunities from {len(pairs)} pairs"
        )
        return recorded

    async def push_opportunities(self):
        """Push the enriched opportunity list, empty if it cannot be read."""
        try:
            opportunities = await self.manager.enriched_opportunities(
                self.manager.scan_config.opportunity_list_limit
            )
            data = [o.to_message() for o in opportunities]
        except Exception as e:
            self.logger.error(f"Error fetching opportunities: {str(e)}")
            data = []
        await self.push("arbitrageOpportunities", data)

class ScanSessionManager:
    """Per-client scan sessions; at most one running timer per client."""

    def __init__(
        self,
        tester: ArbitragePathTester,
        settings_manager,
        asset_db,
        store,
        activity_log,
        scan_config: Optional[ScanConfig] = None,
        universe: Optional[AssetUniverseConfig] = None,
        notifications=None,
        metrics=None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.tester = tester
        self.settings_manager = settings_manager
        self.asset_db = asset_db
        self.store = store
        self.activity_log = activity_log
        self.scan_config = scan_config or ScanConfig()
        self.universe = universe or AssetUniverseConfig()
        self.notifications = notifications
        self.metrics = metrics
        self.sleep = sleep
        self.logger = logging.getLogger(__name__)

        self.sessions: Dict[str, ScanSession] = {}
        self._lock = asyncio.Lock()
        self._draining: Set[asyncio.Future] = set()

    def track(self, future: asyncio.Future):
        """Hold a reference to a cycle until it finishes."""
        self._draining.add(future)
        future.add_done_callback(self._draining.discard)

    def _update_gauge(self):
        if self.metrics:
            self.metrics.update_active_sessions(
                sum(1 for s in self.sessions.values() if s.active)
            )

    async def build_pairs(self) -> List[AssetPair]:
        try:
            base = await resolve_assets(self.asset_db, self.universe.base_symbols)
            popular = await resolve_assets(self.asset_db, self.universe.popular_symbols)
        except Exception as e:
            raise SessionConfigError(f"Unable to load assets: {str(e)}")

        pairs = build_pair_universe(base, popular)
        if not pairs:
            raise SessionConfigError("No candidate asset pairs available")
        return pairs

    async def start_session(self, client_id: str, channel: PushChannel) -> ScanSession:
        """Start scanning for a client, replacing any session it already has."""
        async with self._lock:
            previous = self.sessions.pop(client_id, None)
            if previous is not None:
                self.logger.info(f"Replacing existing scan session for {client_id}")
                previous.stop()
            session = ScanSession(client_id, channel, self)
            self.sessions[client_id] = session

        if await session.start():
            await self.activity_log.add("Arbitrage scanner started")
        else:
            async with self._lock:
                if self.sessions.get(client_id) is session:
                    del self.sessions[client_id]
        self._update_gauge()
        return session

    async def stop_session(
        self,
        client_id: str,
        channel: Optional[PushChannel] = None,
        notify: bool = True
    ) -> bool:
        """Stop a client's session; returns whether one was running."""
        async with self._lock:
            session = self.sessions.pop(client_id, None)
            if session is not None:
                session.stop()
        self._update_gauge()

        if session is not None:
            await self.activity_log.add("Arbitrage scanner stopped")
        if notify:
            target = channel or (session.channel if session else None)
            if target is not None:
                try:
                    await target.send("arbitrageScannerStopped", {})
                except Exception as e:
                    self.logger.error(f"Error pushing arbitrageScannerStopped to {client_id}: {str(e)}")
        return session is not None

    async def stop_all(self):
        async with self._lock:
            sessions = list(self.sessions.values())
            self.sessions.clear()
        for session in sessions:
            session.stop()
        self._update_gauge()

    async def enriched_opportunities(self, limit: Optional[int] = None) -> List[EnrichedOpportunity]:
        """Opportunities joined with their asset, UNKNOWN when the join fails."""
        enriched = []
        for opportunity in await self.store.list(limit):
            try:
                asset = await self.asset_db.get_by_id(opportunity.asset_id)
            except Exception as e:
                self.logger.error(f"Error fetching asset {opportunity.asset_id}: {str(e)}")
                asset = None
            enriched.append(EnrichedOpportunity(
                **opportunity.model_dump(),
                asset=asset or UNKNOWN_ASSET
            ))
        return enriched

    def get_status(self) -> Dict:
        return {
            client_id: {
                "state": session.state.value,
                "pairs": len(session.pairs),
                "cycles_completed": session.cycles_completed
            }
            for client_id, session in self.sessions.items()
        }
