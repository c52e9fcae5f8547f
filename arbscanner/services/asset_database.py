from typing import Dict, List, Optional
import asyncio
import json
import logging
from pathlib import Path

from ..models.asset import Asset

class AssetDatabase:
    """Registered assets, looked up by id, address or symbol."""

    def __init__(self, assets_file: Optional[str] = None):
        self.assets_file = assets_file
        self.logger = logging.getLogger(__name__)
        self.assets: Dict[int, Asset] = {}
        self._by_address: Dict[str, Asset] = {}
        self.update_lock = asyncio.Lock()
        self._next_id = 1
        self._load_assets()

    def _index(self, asset: Asset):
        self.assets[asset.id] = asset
        self._by_address[asset.address] = asset
        self._next_id = max(self._next_id, asset.id + 1)

    def _load_assets(self):
        """Load assets from persistent storage."""
        if not self.assets_file:
            return
        try:
            with open(self.assets_file, 'r') as f:
                for asset_data in json.load(f):
                    self._index(Asset.model_validate(asset_data))
            self.logger.info(f"Loaded {len(self.assets)} assets")
        except FileNotFoundError:
            self.logger.info("No existing asset database found. Starting fresh.")
        except (OSError, ValueError) as e:
            self.logger.error(f"Error loading assets: {str(e)}")

    def _save_assets(self):
        """Save assets to persistent storage."""
        if not self.assets_file:
            return
        try:
            path = Path(self.assets_file)
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w') as f:
                json.dump(
                    [asset.model_dump(mode="json") for asset in self.assets.values()],
                    f,
                    indent=2
                )
        except OSError as e:
            self.logger.error(f"Error saving assets: {str(e)}")

    async def get_by_id(self, asset_id: int) -> Optional[Asset]:
        return self.assets.get(asset_id)

    async def get_by_address(self, address: str) -> Optional[Asset]:
        return self._by_address.get(address)

    async def get_by_symbol(self, symbol: str) -> Optional[Asset]:
        """First asset registered with the symbol (case-insensitive)."""
        symbol = symbol.upper()
        for asset in self.assets.values():
            if asset.symbol.upper() == symbol:
                return asset
        return None

    async def list_all(self) -> List[Asset]:
        """Get all assets in registration order."""
        return sorted(self.assets.values(), key=lambda a: a.id)

    async def get_or_create(
        self,
        address: str,
        symbol: str,
        name: str,
        decimals: Optional[int] = None,
        logo_url: Optional[str] = None
    ) -> Asset:
        """Return the asset at ``address``, registering it on first reference."""
        async with self.update_lock:
            existing = self._by_address.get(address)
            if existing:
                return existing

            asset = Asset(
                id=self._next_id,
                address=address,
                symbol=symbol,
                name=name,
                decimals=decimals,
                logo_url=logo_url
            )
            self._index(asset)
            self._save_assets()
            self.logger.info(f"Registered asset {symbol} ({address})")
            return asset
