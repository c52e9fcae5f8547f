from typing import Callable, Dict, NamedTuple, Optional, Tuple
import logging
import time

from ..models.quote import Quote, Venue

CacheKey = Tuple[str, str, int]

class CachedQuote(NamedTuple):
    quote: Quote
    venue: Venue
    inserted_at: float

class QuoteCache:
    """Process-wide time-bounded memo of venue quotes.

    Keyed by (input asset, output asset, amount). Entries expire ``ttl``
    seconds after insertion and are never served past that point. Eviction is
    time-based only.
    """

    def __init__(
        self,
        ttl: float = 30.0,
        clock: Callable[[], float] = time.monotonic
    ):
        self.ttl = ttl
        self.logger = logging.getLogger(__name__)
        self._clock = clock
        self._entries: Dict[CacheKey, CachedQuote] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def key(input_asset: str, output_asset: str, amount: int) -> CacheKey:
        return (input_asset, output_asset, int(amount))

    def get(
        self,
        input_asset: str,
        output_asset: str,
        amount: int
    ) -> Optional[CachedQuote]:
        """Return a fresh cached quote or None."""
        key = self.key(input_asset, output_asset, amount)
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        if self._clock() - entry.inserted_at >= self.ttl:
            del self._entries[key]
            self.misses += 1
            return None

        self.hits += 1
        self.logger.debug(
            f"Cache hit for {input_asset}/{output_asset} ({entry.venue.value})"
        )
        return entry

    def put(
        self,
        input_asset: str,
        output_asset: str,
        amount: int,
        quote: Quote,
        venue: Venue
    ) -> CachedQuote:
        entry = CachedQuote(quote, venue, self._clock())
        self._entries[self.key(input_asset, output_asset, amount)] = entry
        return entry

    def purge_expired(self) -> int:
        """Drop every expired entry, returning how many were removed."""
        now = self._clock()
        expired = [
            key for key, entry in self._entries.items()
            if now - entry.inserted_at >= self.ttl
        ]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
