from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum

from .quote import Venue

class ExecutionSpeed(str, Enum):
    FASTEST = "fastest"
    BALANCED = "balanced"
    ECONOMIC = "economic"

# Slippage tolerance passed to venue quotes for each speed preference
SLIPPAGE_BPS_BY_SPEED = {
    ExecutionSpeed.FASTEST: 100,
    ExecutionSpeed.BALANCED: 50,
    ExecutionSpeed.ECONOMIC: 30,
}

class ArbitrageSettings(BaseModel):
    model_config = ConfigDict(use_enum_values=False)

    min_spread_percentage: float = Field(1.5, ge=0, le=100)
    execution_speed: ExecutionSpeed = ExecutionSpeed.BALANCED
    min_liquidity: float = Field(5000.0, ge=0)
    venues: List[Venue] = Field(
        default_factory=lambda: [Venue.JUPITER, Venue.RAYDIUM, Venue.ORCA],
        min_length=1
    )
    auto_execution: bool = False

    @property
    def slippage_bps(self) -> int:
        return SLIPPAGE_BPS_BY_SPEED[self.execution_speed]

class ArbitrageSettingsUpdate(BaseModel):
    """Partial update accepted by the settings store."""
    min_spread_percentage: Optional[float] = Field(None, ge=0, le=100)
    execution_speed: Optional[ExecutionSpeed] = None
    min_liquidity: Optional[float] = Field(None, ge=0)
    venues: Optional[List[Venue]] = Field(None, min_length=1)
    auto_execution: Optional[bool] = None

# Default settings
DEFAULT_ARBITRAGE_SETTINGS = ArbitrageSettings()
