from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime

class Asset(BaseModel):
    """A registered on-chain asset. Never mutated after registration."""
    model_config = ConfigDict(frozen=True)

    id: int
    address: str
    symbol: str
    name: str
    decimals: Optional[int] = None
    logo_url: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

# Returned by opportunity enrichment when the asset join fails
UNKNOWN_ASSET = Asset(
    id=0,
    address="",
    symbol="UNKNOWN",
    name="Unknown Token",
    decimals=9,
    logo_url=""
)
