from typing import Dict, Optional, Type
import aiohttp

from ..config.settings import ScannerConfig
from ..models.quote import Venue
from .base import QuoteProvider
from .jupiter import JupiterProvider
from .orca import OrcaProvider
from .raydium import RaydiumProvider

PROVIDER_CLASSES: Dict[Venue, Type[QuoteProvider]] = {
    Venue.JUPITER: JupiterProvider,
    Venue.RAYDIUM: RaydiumProvider,
    Venue.ORCA: OrcaProvider
}

def build_providers(
    config: ScannerConfig,
    session: Optional[aiohttp.ClientSession] = None
) -> Dict[Venue, QuoteProvider]:
    """Create one adapter per enabled venue."""
    return {
        venue: PROVIDER_CLASSES[venue](config.venues[venue], session=session)
        for venue in config.enabled_venues()
    }
