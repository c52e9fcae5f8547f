from typing import Dict, List, Optional, Sequence
import logging

from ..models.opportunity import ArbitrageResult
from ..models.quote import Venue
from ..protocols.base import QuoteProvider
from .exceptions import QuoteError
from .quote_cache import CachedQuote, QuoteCache
from .rate_limiter import RateLimiter, RetryPolicy

BPS = 10_000

class ArbitragePathTester:
    """Round-trip profitability test for one asset pair.

    Quotes go through the shared cache first, then through a round-robin
    rotation across the allowed venues, each call scheduled on that venue's
    rate limiter with backoff on throttling.
    """

    def __init__(
        self,
        providers: Dict[Venue, QuoteProvider],
        limiters: Dict[Venue, RateLimiter],
        cache: QuoteCache,
        retry_policy: RetryPolicy = RetryPolicy(),
        acceptance_floor_bps: int = 9900,
        rotation_rounds: int = 2,
        metrics=None
    ):
        self.providers = providers
        self.limiters = limiters
        self.cache = cache
        self.retry_policy = retry_policy
        self.acceptance_floor_bps = acceptance_floor_bps
        self.rotation_rounds = rotation_rounds
        self.metrics = metrics
        self.logger = logging.getLogger(__name__)

        # Rotation position of the venue that last answered
        self._cursor = 0

    def _usable_venues(self, venues: Optional[Sequence[Venue]]) -> List[Venue]:
        allowed = venues if venues is not None else list(self.providers)
        return [v for v in allowed if v in self.providers and v in self.limiters]

    async def get_quote(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        venues: Optional[Sequence[Venue]] = None,
        slippage_bps: int = 50
    ) -> Optional[CachedQuote]:
        """Get a quote from the cache or the first venue that can serve it."""
        cached = self.cache.get(input_asset, output_asset, amount)
        if self.metrics:
            self.metrics.record_cache_lookup(cached is not None)
        if cached is not None:
            return cached

        rotation = self._usable_venues(venues)
        if not rotation:
            self.logger.warning("No quote venue available")
            return None

        # Each call walks the rotation from its own start so concurrent
        # failures elsewhere cannot make it skip a venue
        start = self._cursor
        max_attempts = self.rotation_rounds * len(rotation)
        for attempt in range(max_attempts):
            position = (start + attempt) % len(rotation)
            venue = rotation[position]
            provider = self.providers[venue]
            if self.metrics:
                self.metrics.record_quote_request(venue)

            try:
                quote = await self.limiters[venue].schedule_with_retry(
                    provider.quote,
                    input_asset,
                    output_asset,
                    amount,
                    slippage_bps,
                    policy=self.retry_policy
                )
            except QuoteError as e:
                self.logger.info(
                    f"Quote {input_asset}/{output_asset} failed on {venue.value} "
                    f"(attempt {attempt + 1}/{max_attempts}): {str(e)}"
                )
                if self.metrics:
                    self.metrics.record_quote_failure(venue, e.reason)
                continue

            self._cursor = position
            return self.cache.put(input_asset, output_asset, amount, quote, venue)

        self.logger.info(
            f"All venues exhausted for {input_asset}/{output_asset} after {max_attempts} attempts"
        )
        return None

    def evaluate(
        self,
        start_asset: str,
        end_asset: str,
        probe_amount: int,
        forward: CachedQuote,
        backward: CachedQuote
    ) -> Optional[ArbitrageResult]:
        """Compute profitability of a quoted round trip."""
        final_amount = backward.quote.out_amount

        if final_amount * BPS < probe_amount * self.acceptance_floor_bps:
            return None

        profit_ratio = (final_amount - probe_amount) / probe_amount
        profit_percentage = profit_ratio * 100 if final_amount >= probe_amount else 0.0

        return ArbitrageResult(
            input_asset=start_asset,
            output_asset=end_asset,
            initial_amount=probe_amount,
            final_amount=final_amount,
            forward=forward.quote,
            backward=backward.quote,
            profit_ratio=profit_ratio,
            profit_percentage=profit_percentage
        )

    async def test_path(
        self,
        start_asset: str,
        end_asset: str,
        probe_amount: int,
        venues: Optional[Sequence[Venue]] = None,
        slippage_bps: int = 50
    ) -> Optional[ArbitrageResult]:
        """Quote start -> end -> start and return the result if within tolerance."""
        forward = await self.get_quote(
            start_asset, end_asset, probe_amount, venues, slippage_bps
        )
        if forward is None:
            return None

        backward = await self.get_quote(
            end_asset, start_asset, forward.quote.out_amount, venues, slippage_bps
        )
        if backward is None:
            return None

        result = self.evaluate(start_asset, end_asset, probe_amount, forward, backward)
        if result:
            self.logger.info(
                f"Path {start_asset}/{end_asset}: {probe_amount} -> "
                f"{forward.quote.out_amount} ({forward.venue.value}) -> "
                f"{backward.quote.out_amount} ({backward.venue.value}), "
                f"profit {result.profit_percentage:.4f}%"
            )
        return result
