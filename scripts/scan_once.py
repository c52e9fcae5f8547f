import asyncio
import click
import logging
import sys
from typing import Any, List

from arbscanner.config.settings import ConfigManager
from arbscanner.core.engine import ArbitrageScanner

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

class ConsoleChannel:
    """Prints pushed events instead of sending them to a client."""

    def __init__(self):
        self.events: List[Any] = []

    async def send(self, event_type: str, data: Any) -> None:
        self.events.append((event_type, data))
        if event_type == "arbitrageOpportunities":
            click.echo(f"{len(data)} opportunities")
            for opp in data:
                click.echo(
                    f"  #{opp['id']} {opp['asset']['symbol']}: buy {opp['buy_dex']} "
                    f"sell {opp['sell_dex']} spread {opp['spread_percentage']:.4f}% "
                    f"est. profit ${opp['estimated_profit']:.2f}"
                )
        elif event_type == "error":
            click.echo(f"Error: {data['message']}", err=True)

async def scan_once(config_path: str, pairs: int) -> int:
    config = ConfigManager(config_path).config
    if pairs:
        config.scan.initial_pairs = pairs

    scanner = ArbitrageScanner(config)
    channel = ConsoleChannel()
    try:
        session = await scanner.sessions.start_session("scan-once", channel)
        if not session.active:
            return 1
        await session.first_cycle_done.wait()
        return 0
    finally:
        await scanner.close()

@click.command()
@click.option(
    "--config",
    default=None,
    help="Path to configuration file"
)
@click.option("--pairs", default=0, type=int, help="Number of candidate pairs to scan")
def main(config: str, pairs: int):
    """Run a single arbitrage scan and print the results."""
    try:
        sys.exit(asyncio.run(scan_once(config, pairs)))
    except KeyboardInterrupt:
        logger.info("Shutting down...")

if __name__ == "__main__":
    main()
