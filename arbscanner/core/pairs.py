from typing import List, NamedTuple, Sequence
import logging

from ..config.venues import KNOWN_ASSETS
from ..models.asset import Asset

logger = logging.getLogger(__name__)

class AssetPair(NamedTuple):
    input_asset: Asset
    output_asset: Asset

    @property
    def key(self) -> str:
        return f"{self.input_asset.address}-{self.output_asset.address}"

def build_pair_universe(
    base_assets: Sequence[Asset],
    popular_assets: Sequence[Asset]
) -> List[AssetPair]:
    """Ordered candidate pairs, deduplicated by (input, output) address.

    Covers base<->base, base<->popular in both directions and
    popular<->popular in both directions.
    """
    candidates: List[AssetPair] = []

    for base in base_assets:
        for other in base_assets:
            if base.address != other.address:
                candidates.append(AssetPair(base, other))

        for popular in popular_assets:
            candidates.append(AssetPair(base, popular))
            candidates.append(AssetPair(popular, base))

    for i, first in enumerate(popular_assets):
        for second in popular_assets[i + 1:]:
            candidates.append(AssetPair(first, second))
            candidates.append(AssetPair(second, first))

    seen = set()
    pairs = []
    for pair in candidates:
        if pair.input_asset.address == pair.output_asset.address or pair.key in seen:
            continue
        seen.add(pair.key)
        pairs.append(pair)

    logger.info(f"Built {len(pairs)} candidate pairs")
    return pairs

async def resolve_assets(asset_db, symbols: Sequence[str]) -> List[Asset]:
    """Look assets up by symbol, registering known ones the store lacks."""
    assets = []
    for symbol in symbols:
        asset = await asset_db.get_by_symbol(symbol)
        if asset is None:
            known = KNOWN_ASSETS.get(symbol)
            if known is None:
                logger.warning(f"Unknown asset symbol {symbol}, skipping")
                continue
            asset = await asset_db.get_or_create(
                address=known.address,
                symbol=known.symbol,
                name=known.name,
                decimals=known.decimals
            )
        assets.append(asset)
    return assets
