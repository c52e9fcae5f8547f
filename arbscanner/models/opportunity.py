from typing import Dict, Optional
from pydantic import BaseModel, Field
from dataclasses import dataclass
from datetime import datetime

from .asset import Asset
from .quote import Quote, Venue

@dataclass(frozen=True)
class ArbitrageResult:
    input_asset: str
    output_asset: str
    initial_amount: int
    final_amount: int
    forward: Quote
    backward: Quote
    profit_ratio: float        # raw, may be negative
    profit_percentage: float   # reported, floored at 0

    @property
    def buy_venue(self) -> Venue:
        return self.forward.venue

    @property
    def sell_venue(self) -> Venue:
        return self.backward.venue

    @property
    def forward_price(self) -> float:
        return self.forward.out_amount / self.initial_amount

    @property
    def backward_price(self) -> float:
        if self.forward.out_amount == 0:
            return 0.0
        return self.final_amount / self.forward.out_amount

    @property
    def liquidity_usd(self) -> Optional[float]:
        """Smallest pool liquidity known across both legs."""
        known = [
            q.liquidity_usd for q in (self.forward, self.backward)
            if q.liquidity_usd is not None
        ]
        return min(known) if known else None

    @property
    def volume_24h_usd(self) -> Optional[float]:
        known = [
            q.volume_24h_usd for q in (self.forward, self.backward)
            if q.volume_24h_usd is not None
        ]
        return min(known) if known else None

class ArbitrageOpportunity(BaseModel):
    id: int
    asset_id: int
    quote_asset_id: int
    buy_dex: Venue
    sell_dex: Venue
    buy_price: float
    sell_price: float
    spread_percentage: float
    estimated_profit: float
    volume_24h: Optional[float] = None
    liquidity: Optional[float] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    executed: bool = False

class OpportunityDraft(BaseModel):
    """Fields of an opportunity before the store assigns identity."""
    asset_id: int
    quote_asset_id: int
    buy_dex: Venue
    sell_dex: Venue
    buy_price: float
    sell_price: float
    spread_percentage: float
    estimated_profit: float
    volume_24h: Optional[float] = None
    liquidity: Optional[float] = None

class EnrichedOpportunity(ArbitrageOpportunity):
    asset: Asset

    def to_message(self) -> Dict:
        return self.model_dump(mode="json")
