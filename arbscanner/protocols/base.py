from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
import asyncio
import logging
import time
import aiohttp

from ..config.settings import VenueConfig
from ..core.exceptions import (
    QuoteError,
    NoLiquidity,
    InvalidQuoteData,
    ProviderUnavailable,
    Throttled
)
from ..models.quote import Quote, RouteLeg, Venue

BPS = 10_000

def constant_product_out(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    fee_bps: int
) -> int:
    """x*y=k output for ``amount_in`` after the pool fee, floored.

    Computes ``amount_in_with_fee * reserve_out / (reserve_in + amount_in_with_fee)``
    with ``amount_in_with_fee = amount_in * (1 - fee)`` exactly in integers.
    """
    if amount_in <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return 0
    amount_in_with_fee = amount_in * (BPS - fee_bps)
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * BPS + amount_in_with_fee
    return numerator // denominator

def apply_slippage(amount: int, slippage_bps: int) -> int:
    """Minimum amount received at the given slippage tolerance."""
    return amount * (BPS - slippage_bps) // BPS

def parse_amount(value: Any, decimals: Optional[int] = None) -> int:
    """Parse a provider amount into integer base units.

    Raises InvalidQuoteData for anything that is not a finite, non-negative
    number.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidQuoteData(f"Invalid amount: {value!r}")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidQuoteData(f"Invalid amount: {value!r}")
    if not amount.is_finite() or amount < 0:
        raise InvalidQuoteData(f"Invalid amount: {value!r}")
    if decimals:
        amount = amount.scaleb(decimals)
    return int(amount)

def optional_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None

@dataclass(frozen=True)
class Pool:
    pool_id: str
    base_asset: str
    quote_asset: str
    base_reserve: int
    quote_reserve: int
    liquidity_usd: Optional[float] = None
    volume_24h_usd: Optional[float] = None

class PoolRegistry:
    """TTL snapshot of a venue's pools, served stale when a refresh fails."""

    def __init__(
        self,
        venue: Venue,
        fetch: Callable[[], Awaitable[List[Pool]]],
        ttl: float = 300.0,
        retry_after: float = 30.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.venue = venue
        self.ttl = ttl
        self.retry_after = retry_after
        self.logger = logging.getLogger(__name__)
        self._fetch = fetch
        self._clock = clock
        self._lock = asyncio.Lock()
        self._index: Optional[Dict[Tuple[str, str], Pool]] = None
        self._fetched_at = 0.0
        self._retry_at = 0.0

    @property
    def size(self) -> int:
        return len(self._index) if self._index is not None else 0

    async def _snapshot(self) -> Dict[Tuple[str, str], Pool]:
        async with self._lock:
            now = self._clock()
            if self._index is not None and (
                now - self._fetched_at < self.ttl or now < self._retry_at
            ):
                return self._index

            try:
                pools = await self._fetch()
            except QuoteError as e:
                if self._index is not None:
                    # Hold off further refreshes while the upstream is failing
                    self._retry_at = self._clock() + self.retry_after
                    self.logger.warning(
                        f"{self.venue.value} pool refresh failed, serving stale snapshot: {str(e)}"
                    )
                    return self._index
                raise

            index: Dict[Tuple[str, str], Pool] = {}
            for pool in pools:
                # First pool listed for a pair wins
                index.setdefault((pool.base_asset, pool.quote_asset), pool)
            self._index = index
            self._fetched_at = self._clock()
            self.logger.info(f"{len(index)} {self.venue.value} pools loaded")
            return index

    async def find(
        self,
        input_asset: str,
        output_asset: str
    ) -> Optional[Tuple[Pool, int, int]]:
        """Find a pool for the pair as (pool, reserve_in, reserve_out).

        A direct pool is preferred; an inverse pool is used with its reserve
        roles swapped.
        """
        index = await self._snapshot()

        pool = index.get((input_asset, output_asset))
        if pool:
            return pool, pool.base_reserve, pool.quote_reserve

        pool = index.get((output_asset, input_asset))
        if pool:
            return pool, pool.quote_reserve, pool.base_reserve

        return None

class QuoteProvider(ABC):
    """Quote capability implemented once per venue."""
    venue: Venue

    def __init__(
        self,
        config: VenueConfig,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self._session = session
        self._owns_session = session is None

    @property
    def fee_bps(self) -> int:
        return self.config.fee_bps

    @abstractmethod
    async def quote(
        self,
        input_asset: str,
        output_asset: str,
        amount_in: int,
        slippage_bps: int = 50
    ) -> Quote:
        """Quote ``amount_in`` of ``input_asset`` into ``output_asset``."""

    async def check_status(self) -> Dict:
        """Check venue API availability."""
        try:
            await self._request_json(self.status_path)
            return {"name": self.venue.value, "ok": True}
        except QuoteError as e:
            return {"name": self.venue.value, "ok": False, "error": str(e)}

    @property
    def status_path(self) -> str:
        return "/"

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.request_timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self):
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()

    def _http_error(self, status: int, body: str) -> QuoteError:
        """Map a non-200 response to the error taxonomy."""
        return ProviderUnavailable(
            f"API error: {status} {body[:200]}",
            venue=self.venue.value
        )

    async def _request_json(self, path: str, params: Optional[Dict] = None) -> Any:
        url = f"{self.config.base_url}{path}"
        query = {k: str(v).lower() if isinstance(v, bool) else str(v) for k, v in (params or {}).items()}
        session = await self._get_session()
        try:
            async with session.get(url, params=query) as response:
                if response.status == 429:
                    raise Throttled("429 Too Many Requests", venue=self.venue.value)
                if response.status != 200:
                    raise self._http_error(response.status, await response.text())
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderUnavailable(
                f"Request to {url} failed: {str(e) or type(e).__name__}",
                venue=self.venue.value
            ) from e
        except ValueError as e:
            raise ProviderUnavailable(
                f"Malformed response from {url}: {str(e)}",
                venue=self.venue.value
            ) from e

class PoolQuoteProvider(QuoteProvider):
    """Venue priced from its own pool reserves with the constant-product formula."""

    def __init__(
        self,
        config: VenueConfig,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        super().__init__(config, session)
        self.registry = PoolRegistry(
            self.venue,
            self.fetch_pools,
            ttl=config.pool_ttl,
            clock=clock
        )

    @abstractmethod
    async def fetch_pools(self) -> List[Pool]:
        """Download the venue's current pool list."""

    async def quote(
        self,
        input_asset: str,
        output_asset: str,
        amount_in: int,
        slippage_bps: int = 50
    ) -> Quote:
        if amount_in <= 0:
            raise InvalidQuoteData(f"Invalid input amount: {amount_in}", venue=self.venue.value)

        match = await self.registry.find(input_asset, output_asset)
        if match is None:
            raise NoLiquidity(
                f"No pool found for {input_asset}/{output_asset}",
                venue=self.venue.value
            )
        pool, reserve_in, reserve_out = match

        out_amount = constant_product_out(amount_in, reserve_in, reserve_out, self.fee_bps)
        if out_amount <= 0:
            raise NoLiquidity(
                f"Not enough liquidity for {input_asset}/{output_asset}",
                venue=self.venue.value
            )

        fee_amount = amount_in * self.fee_bps // BPS
        spot_out = (amount_in - fee_amount) * reserve_out / reserve_in
        price_impact = max(0.0, 1 - out_amount / spot_out) if spot_out else 0.0

        leg = RouteLeg(
            label=self.venue.value,
            amm_key=pool.pool_id,
            input_asset=input_asset,
            output_asset=output_asset,
            in_amount=amount_in,
            out_amount=out_amount,
            fee_amount=fee_amount,
            fee_asset=input_asset
        )

        return Quote(
            venue=self.venue,
            input_asset=input_asset,
            output_asset=output_asset,
            in_amount=amount_in,
            out_amount=out_amount,
            out_amount_with_slippage=apply_slippage(out_amount, slippage_bps),
            route=(leg,),
            price_impact=price_impact,
            liquidity_usd=pool.liquidity_usd,
            volume_24h_usd=pool.volume_24h_usd
        )
