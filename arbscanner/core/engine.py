from typing import Dict, Optional
import asyncio
import logging

from ..config.settings import ScannerConfig
from ..models.quote import Venue
from ..protocols.base import QuoteProvider
from ..protocols.factory import build_providers
from ..services.activity_log import ActivityLog
from ..services.asset_database import AssetDatabase
from ..services.execution import ExecutionService
from ..services.metrics import MetricsService
from ..services.notifications import NotificationService
from ..services.opportunity_store import OpportunityStore
from ..services.settings_manager import SettingsManager
from .arbitrage_engine import ScanSessionManager
from .path_tester import ArbitragePathTester
from .quote_cache import QuoteCache
from .rate_limiter import RateLimiter, RetryPolicy

class ArbitrageScanner:
    """Process-wide components shared by every client session.

    One rate limiter per venue and one quote cache are created here and
    handed to the path tester; the stores and the session manager sit on top.
    """

    def __init__(
        self,
        config: ScannerConfig,
        providers: Optional[Dict[Venue, QuoteProvider]] = None,
        metrics: Optional[MetricsService] = None,
        execution_collaborator=None
    ):
        self.config = config
        self.logger = logging.getLogger(__name__)

        self.providers = providers if providers is not None else build_providers(config)
        self.limiters: Dict[Venue, RateLimiter] = {}
        for venue in self.providers:
            limit = config.venues[venue].rate_limit
            self.limiters[venue] = RateLimiter(
                venue.value,
                max_concurrent=limit.max_concurrent,
                min_time=limit.min_time,
                reservoir=limit.reservoir,
                refresh_interval=limit.refresh_interval
            )

        self.cache = QuoteCache(ttl=config.cache.ttl)
        self.metrics = metrics
        if self.metrics is None and config.monitoring.metrics_enabled:
            self.metrics = MetricsService(port=config.monitoring.metrics_port)

        self.tester = ArbitragePathTester(
            self.providers,
            self.limiters,
            self.cache,
            retry_policy=RetryPolicy(
                base_delay=config.retry.base_delay,
                max_delay=config.retry.max_delay,
                max_retries=config.retry.max_retries
            ),
            acceptance_floor_bps=config.scan.acceptance_floor_bps,
            rotation_rounds=config.scan.rotation_rounds,
            metrics=self.metrics
        )

        storage = config.storage
        self.settings_manager = SettingsManager(storage.settings_file)
        self.asset_db = AssetDatabase(storage.assets_file)
        self.store = OpportunityStore(storage.opportunities_file)
        self.activity_log = ActivityLog(storage.activity_log_size)
        self.notifications = NotificationService(config.notifications)

        self.sessions = ScanSessionManager(
            self.tester,
            self.settings_manager,
            self.asset_db,
            self.store,
            self.activity_log,
            scan_config=config.scan,
            universe=config.assets,
            notifications=self.notifications,
            metrics=self.metrics
        )
        self.execution = ExecutionService(
            self.store,
            self.activity_log,
            collaborator=execution_collaborator,
            notifications=self.notifications,
            metrics=self.metrics
        )

    async def check_status(self) -> Dict:
        """Venue health, limiter budgets, cache and session state."""
        checks = await asyncio.gather(
            *(provider.check_status() for provider in self.providers.values())
        )
        return {
            "venues": {
                venue.value: {
                    **check,
                    "rate_limiter": self.limiters[venue].get_stats()
                }
                for venue, check in zip(self.providers, checks)
            },
            "cache": {
                "entries": len(self.cache),
                "hits": self.cache.hits,
                "misses": self.cache.misses
            },
            "sessions": self.sessions.get_status()
        }

    async def close(self):
        """Stop every session and close venue HTTP sessions."""
        await self.sessions.stop_all()
        for provider in self.providers.values():
            await provider.close()
