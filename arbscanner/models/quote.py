from typing import List, Optional, Tuple
from pydantic import BaseModel, ConfigDict
from enum import Enum

class Venue(str, Enum):
    JUPITER = "Jupiter"
    RAYDIUM = "Raydium"
    ORCA = "Orca"

class RouteLeg(BaseModel):
    """One hop of a quoted route, with the fee charged on that hop."""
    model_config = ConfigDict(frozen=True)

    label: str
    amm_key: str
    input_asset: str
    output_asset: str
    in_amount: int
    out_amount: int
    fee_amount: int
    fee_asset: str
    percent: int = 100

class Quote(BaseModel):
    """Normalized quote returned by every venue adapter."""
    model_config = ConfigDict(frozen=True)

    venue: Venue
    input_asset: str
    output_asset: str
    in_amount: int
    out_amount: int
    out_amount_with_slippage: int
    route: Tuple[RouteLeg, ...] = ()
    price_impact: float = 0.0
    liquidity_usd: Optional[float] = None
    volume_24h_usd: Optional[float] = None

    @property
    def rate(self) -> float:
        """Output units received per input unit."""
        if self.in_amount == 0:
            return 0.0
        return self.out_amount / self.in_amount

    def total_fees(self) -> List[Tuple[str, int]]:
        """Fee amounts per leg as (fee asset, amount)."""
        return [(leg.fee_asset, leg.fee_amount) for leg in self.route]
