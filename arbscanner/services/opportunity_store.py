from typing import Dict, List, Optional, Tuple
import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path

from ..models.opportunity import ArbitrageOpportunity, OpportunityDraft

class OpportunityStore:
    """Sole writer of opportunity identity.

    Records are keyed by id; ``upsert_for_pair`` finds the record for an
    (asset, quote asset) pair and refreshes it in place, so a pair keeps the
    same id across scan cycles.
    """

    def __init__(self, opportunities_file: Optional[str] = None):
        self.opportunities_file = opportunities_file
        self.logger = logging.getLogger(__name__)
        self.opportunities: Dict[int, ArbitrageOpportunity] = {}
        self.update_lock = asyncio.Lock()
        self._next_id = 1
        self._load()

    def _load(self):
        if not self.opportunities_file:
            return
        try:
            with open(self.opportunities_file, 'r') as f:
                for data in json.load(f):
                    opportunity = ArbitrageOpportunity.model_validate(data)
                    self.opportunities[opportunity.id] = opportunity
                    self._next_id = max(self._next_id, opportunity.id + 1)
            self.logger.info(f"Loaded {len(self.opportunities)} opportunities")
        except FileNotFoundError:
            self.logger.info("No existing opportunity file found. Starting fresh.")
        except (OSError, ValueError) as e:
            self.logger.error(f"Error loading opportunities: {str(e)}")

    def _save(self):
        if not self.opportunities_file:
            return
        path = Path(self.opportunities_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(
                [o.model_dump(mode="json") for o in self.opportunities.values()],
                f,
                indent=2
            )

    def _insert(self, draft: OpportunityDraft) -> ArbitrageOpportunity:
        opportunity = ArbitrageOpportunity(id=self._next_id, **draft.model_dump())
        self._next_id += 1
        self.opportunities[opportunity.id] = opportunity
        return opportunity

    def _sorted(self) -> List[ArbitrageOpportunity]:
        return sorted(
            self.opportunities.values(),
            key=lambda o: (o.timestamp, o.id),
            reverse=True
        )

    async def create(self, draft: OpportunityDraft) -> ArbitrageOpportunity:
        async with self.update_lock:
            opportunity = self._insert(draft)
            self._save()
        return opportunity

    async def update(self, opportunity_id: int, executed: bool) -> Optional[ArbitrageOpportunity]:
        """Set the executed flag; None when the id is unknown."""
        async with self.update_lock:
            opportunity = self.opportunities.get(opportunity_id)
            if opportunity is None:
                return None
            updated = opportunity.model_copy(update={"executed": executed})
            self.opportunities[opportunity_id] = updated
            self._save()
        return updated

    async def get(self, opportunity_id: int) -> Optional[ArbitrageOpportunity]:
        return self.opportunities.get(opportunity_id)

    async def list(self, limit: Optional[int] = None) -> List[ArbitrageOpportunity]:
        """Opportunities, most recent first."""
        opportunities = self._sorted()
        return opportunities[:limit] if limit else opportunities

    async def find_most_recent(self, limit: int) -> List[ArbitrageOpportunity]:
        return self._sorted()[:limit]

    async def upsert_for_pair(
        self,
        draft: OpportunityDraft
    ) -> Tuple[ArbitrageOpportunity, bool]:
        """Refresh the pair's record or create it, atomically.

        Returns (opportunity, created). The existing ``executed`` flag is kept.
        """
        async with self.update_lock:
            existing = next(
                (
                    o for o in self._sorted()
                    if o.asset_id == draft.asset_id
                    and o.quote_asset_id == draft.quote_asset_id
                ),
                None
            )

            if existing is None:
                opportunity = self._insert(draft)
                created = True
            else:
                opportunity = existing.model_copy(update={
                    **draft.model_dump(),
                    "timestamp": datetime.utcnow()
                })
                self.opportunities[existing.id] = opportunity
                created = False

            self._save()
        return opportunity, created
