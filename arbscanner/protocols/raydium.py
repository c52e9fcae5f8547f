from typing import Dict, List, Optional
import aiohttp

from ..config.settings import VenueConfig
from ..config.venues import RAYDIUM
from ..core.exceptions import InvalidQuoteData
from ..models.quote import Venue
from .base import Pool, PoolQuoteProvider, parse_amount, optional_float

class RaydiumProvider(PoolQuoteProvider):
    """Raydium AMM pools from the public pairs listing."""
    venue = Venue.RAYDIUM

    def __init__(
        self,
        config: Optional[VenueConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        **kwargs
    ):
        super().__init__(
            config or VenueConfig(base_url=RAYDIUM.base_url, fee_bps=RAYDIUM.fee_bps),
            session,
            **kwargs
        )

    @property
    def status_path(self) -> str:
        return RAYDIUM.status_path

    async def fetch_pools(self) -> List[Pool]:
        data = await self._request_json(RAYDIUM.pools_path)
        if not isinstance(data, list):
            raise InvalidQuoteData("Unexpected pairs payload", venue=self.venue.value)
        return self.parse_pools(data)

    def parse_pools(self, data: List[Dict]) -> List[Pool]:
        """Convert pair records, skipping ones without usable reserves."""
        pools = []
        for record in data:
            if not isinstance(record, dict):
                continue
            base_mint = record.get("baseMint")
            quote_mint = record.get("quoteMint")
            if not base_mint or not quote_mint:
                continue

            try:
                base_reserve = parse_amount(record.get("baseReserve"), record.get("baseDecimals"))
                quote_reserve = parse_amount(record.get("quoteReserve"), record.get("quoteDecimals"))
            except InvalidQuoteData as e:
                self.logger.debug(
                    f"Skipping Raydium pool {record.get('ammId')} for {base_mint}/{quote_mint}: {str(e)}"
                )
                continue
            if base_reserve <= 0 or quote_reserve <= 0:
                continue

            pools.append(Pool(
                pool_id=str(record.get("ammId") or f"{base_mint}-{quote_mint}"),
                base_asset=base_mint,
                quote_asset=quote_mint,
                base_reserve=base_reserve,
                quote_reserve=quote_reserve,
                liquidity_usd=optional_float(record.get("liquidity")),
                volume_24h_usd=optional_float(record.get("volume24h"))
            ))
        return pools
