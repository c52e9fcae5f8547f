from typing import Dict, List, Optional
import aiohttp

from ..config.settings import VenueConfig
from ..config.venues import ORCA
from ..core.exceptions import InvalidQuoteData
from ..models.quote import Venue
from .base import Pool, PoolQuoteProvider, optional_float, parse_amount

class OrcaProvider(PoolQuoteProvider):
    """Orca pools; tokenA/tokenB records priced with the constant-product formula."""
    venue = Venue.ORCA

    def __init__(
        self,
        config: Optional[VenueConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        **kwargs
    ):
        super().__init__(
            config or VenueConfig(base_url=ORCA.base_url, fee_bps=ORCA.fee_bps),
            session,
            **kwargs
        )

    @property
    def status_path(self) -> str:
        return ORCA.status_path

    async def fetch_pools(self) -> List[Pool]:
        data = await self._request_json(ORCA.pools_path)
        if not isinstance(data, dict) or not isinstance(data.get("pools"), list):
            raise InvalidQuoteData("Unexpected pools payload", venue=self.venue.value)
        return self.parse_pools(data["pools"])

    def parse_pools(self, records: List[Dict]) -> List[Pool]:
        pools = []
        for record in records:
            try:
                token_a = record["tokenA"]
                token_b = record["tokenB"]
                pool = Pool(
                    pool_id=str(record.get("address", "")),
                    base_asset=token_a["mint"],
                    quote_asset=token_b["mint"],
                    base_reserve=parse_amount(token_a.get("reserve"), token_a.get("decimals")),
                    quote_reserve=parse_amount(token_b.get("reserve"), token_b.get("decimals")),
                    liquidity_usd=optional_float(record.get("tvl")),
                    volume_24h_usd=optional_float(record.get("volume24h"))
                )
            except (KeyError, TypeError, InvalidQuoteData) as e:
                self.logger.debug(f"Skipping Orca pool {record!r:.80}: {str(e)}")
                continue
            if pool.base_reserve > 0 and pool.quote_reserve > 0:
                pools.append(pool)
        return pools
