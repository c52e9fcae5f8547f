from typing import List, Optional
import asyncio
import aiohttp
import logging
from datetime import datetime

from ..config.settings import NotificationConfig
from ..models.opportunity import ArbitrageOpportunity

TELEGRAM_API_URL = "https://api.telegram.org"

class NotificationService:
    """Telegram alerts for new opportunities, executions and session errors."""

    def __init__(
        self,
        config: NotificationConfig,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self._session = session

    @property
    def enabled(self) -> bool:
        return bool(
            self.config.enabled
            and self.config.telegram_bot_token
            and self.config.telegram_chat_ids
        )

    async def notify_opportunity(
        self,
        opportunity: ArbitrageOpportunity,
        symbol: str = ""
    ):
        """Notify about a new arbitrage opportunity above the profit threshold."""
        if not self.enabled or not self.config.notify_on_arbitrage:
            return
        if opportunity.spread_percentage < self.config.min_profit_threshold:
            return
        await self._send_telegram(self._format_opportunity_message(opportunity, symbol))

    async def notify_execution(
        self,
        opportunity: ArbitrageOpportunity,
        success: bool,
        detail: Optional[str] = None
    ):
        """Notify about an execution outcome."""
        if not self.enabled:
            return
        status = "✅ Success" if success else "❌ Failed"
        message = [
            f"<b>Arbitrage Execution {status}</b>",
            "",
            f"Opportunity #{opportunity.id}: {opportunity.buy_dex.value} -> {opportunity.sell_dex.value}",
            f"Spread: {opportunity.spread_percentage:.2f}%"
        ]
        if detail:
            message.extend(["", detail])
        await self._send_telegram("\n".join(message))

    async def notify_error(self, error: str, severity: str = "medium"):
        """Notify about system errors."""
        if not self.enabled or not self.config.notify_on_error:
            return
        await self._send_telegram(self._format_error_message(error, severity))

    def _format_opportunity_message(
        self,
        opportunity: ArbitrageOpportunity,
        symbol: str = ""
    ) -> str:
        """Format opportunity notification message."""
        message = [
            "🚨 <b>Arbitrage Opportunity Detected</b> 🚨",
            ""
        ]
        if symbol:
            message.append(f"Token: {symbol}")
        message.extend([
            f"Buy on: {opportunity.buy_dex.value} at {opportunity.buy_price:.6f}",
            f"Sell on: {opportunity.sell_dex.value} at {opportunity.sell_price:.6f}",
            f"Spread: {opportunity.spread_percentage:.2f}%",
            f"Estimated profit: ${opportunity.estimated_profit:.2f}"
        ])
        return "\n".join(message)

    def _format_error_message(self, error: str, severity: str) -> str:
        """Format error notification message."""
        severity_emoji = {
            "low": "ℹ️",
            "medium": "⚠️",
            "high": "🚨"
        }

        return (
            f"{severity_emoji.get(severity, '⚠️')} System Error - "
            f"{severity.upper()}\n\n"
            f"Error: {error}\n"
            f"Time: {datetime.utcnow().isoformat()}"
        )

    async def _post(self, session: aiohttp.ClientSession, chat_id: str, message: str):
        url = f"{TELEGRAM_API_URL}/bot{self.config.telegram_bot_token}/sendMessage"
        async with session.post(url, json={
            "chat_id": chat_id,
            "text": message,
            "parse_mode": "HTML"
        }) as response:
            if response.status != 200:
                self.logger.error(
                    f"Telegram API error: {await response.text()}"
                )

    async def _send_telegram(self, message: str) -> List:
        """Send a message to every configured chat; delivery failures are logged."""
        try:
            if self._session is not None:
                return await self._send_all(self._session, message)
            async with aiohttp.ClientSession() as session:
                return await self._send_all(session, message)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Error sending Telegram message: {str(e)}")
            return []

    async def _send_all(self, session: aiohttp.ClientSession, message: str) -> List:
        results = await asyncio.gather(
            *(self._post(session, chat_id, message) for chat_id in self.config.telegram_chat_ids),
            return_exceptions=True
        )
        for result in results:
            if isinstance(result, Exception):
                self.logger.error(f"Error sending Telegram message: {str(result)}")
        return results
