from typing import Optional, Protocol
from dataclasses import dataclass
import logging

from ..core.exceptions import OpportunityNotFound
from ..models.opportunity import ArbitrageOpportunity
from .activity_log import ActivityLog
from .opportunity_store import OpportunityStore

@dataclass
class ExecutionOutcome:
    success: bool
    detail: str = ""

class ExecutionCollaborator(Protocol):
    async def execute(self, opportunity: ArbitrageOpportunity) -> ExecutionOutcome:
        ...

class ManualExecution:
    """Records an operator-confirmed execution; nothing is signed or submitted."""

    async def execute(self, opportunity: ArbitrageOpportunity) -> ExecutionOutcome:
        return ExecutionOutcome(
            success=True,
            detail=(
                f"Marked executed: buy on {opportunity.buy_dex.value}, "
                f"sell on {opportunity.sell_dex.value}"
            )
        )

class ExecutionService:
    """Hands an opportunity to the execution collaborator and records the outcome."""

    def __init__(
        self,
        store: OpportunityStore,
        activity_log: ActivityLog,
        collaborator: Optional[ExecutionCollaborator] = None,
        notifications=None,
        metrics=None
    ):
        self.store = store
        self.activity_log = activity_log
        self.collaborator = collaborator or ManualExecution()
        self.notifications = notifications
        self.metrics = metrics
        self.logger = logging.getLogger(__name__)

    async def execute(self, opportunity_id: int) -> ArbitrageOpportunity:
        opportunity = await self.store.get(opportunity_id)
        if opportunity is None:
            raise OpportunityNotFound(f"Opportunity {opportunity_id} not found")

        outcome = await self.collaborator.execute(opportunity)

        if outcome.success:
            opportunity = await self.store.update(opportunity_id, True) or opportunity
            await self.activity_log.add(
                f"Executed arbitrage #{opportunity_id}: {opportunity.buy_dex.value} -> "
                f"{opportunity.sell_dex.value} ({opportunity.spread_percentage:.2f}%)",
                "success"
            )
            if self.metrics:
                self.metrics.record_opportunity_executed()
        else:
            self.logger.warning(f"Execution of opportunity {opportunity_id} failed: {outcome.detail}")
            await self.activity_log.add(
                f"Execution of arbitrage #{opportunity_id} failed: {outcome.detail}",
                "error"
            )

        if self.notifications:
            await self.notifications.notify_execution(opportunity, outcome.success, outcome.detail)
        return opportunity
