from typing import Dict, List, Optional
from pydantic import BaseModel, Field

from ..models.quote import Venue

class VenueDefaults(BaseModel):
    name: str
    base_url: str
    fee_bps: int = Field(..., ge=0, lt=10000)
    pools_path: Optional[str] = None
    status_path: str

class KnownAsset(BaseModel):
    symbol: str
    name: str
    address: str
    decimals: int = 9

# Venue Configurations
JUPITER = VenueDefaults(
    name="Jupiter",
    base_url="https://quote-api.jup.ag/v6",
    fee_bps=0,  # fees come from the aggregator's route plan
    status_path="/health"
)

RAYDIUM = VenueDefaults(
    name="Raydium",
    base_url="https://api.raydium.io/v2",
    fee_bps=30,  # 0.3%
    pools_path="/main/pairs",
    status_path="/main/version"
)

ORCA = VenueDefaults(
    name="Orca",
    base_url="https://api.orca.so",
    fee_bps=30,  # 0.3%
    pools_path="/pools",
    status_path="/pools"
)

SUPPORTED_VENUES: Dict[Venue, VenueDefaults] = {
    Venue.JUPITER: JUPITER,
    Venue.RAYDIUM: RAYDIUM,
    Venue.ORCA: ORCA
}

# Assets the pair universe falls back to when the asset store lacks them
KNOWN_ASSETS: Dict[str, KnownAsset] = {
    "SOL": KnownAsset(
        symbol="SOL",
        name="Solana",
        address="So11111111111111111111111111111111111111112",
        decimals=9
    ),
    "USDC": KnownAsset(
        symbol="USDC",
        name="USD Coin",
        address="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
        decimals=6
    ),
    "USDT": KnownAsset(
        symbol="USDT",
        name="Tether",
        address="Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",
        decimals=6
    ),
    "BONK": KnownAsset(
        symbol="BONK",
        name="Bonk",
        address="DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263",
        decimals=5
    ),
    "JUP": KnownAsset(
        symbol="JUP",
        name="Jupiter",
        address="JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN",
        decimals=6
    ),
    "RAY": KnownAsset(
        symbol="RAY",
        name="Raydium",
        address="4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R",
        decimals=6
    ),
    "ORCA": KnownAsset(
        symbol="ORCA",
        name="Orca",
        address="orcaEKTdK7LKz57vaAYr9QeNsVEPfiu6QeMU1kektZE",
        decimals=6
    ),
    "PYTH": KnownAsset(
        symbol="PYTH",
        name="Pyth Network",
        address="HZ1JovNiVvGrGNiiYvEozEVgZ58xaU3RKwX8eACQBCt3",
        decimals=6
    )
}

BASE_ASSET_SYMBOLS: List[str] = ["SOL", "USDC", "USDT"]
POPULAR_ASSET_SYMBOLS: List[str] = ["BONK", "JUP", "RAY", "ORCA", "PYTH"]

def get_venue_defaults(venue: Venue) -> VenueDefaults:
    """Get static defaults for a venue."""
    return SUPPORTED_VENUES[venue]

def is_venue_supported(name: str) -> bool:
    """Check if a venue name is supported."""
    return any(v.value == name for v in SUPPORTED_VENUES)
