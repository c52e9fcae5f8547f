import logging
import sys
import click
import uvicorn

from .api.main import create_app
from .config.settings import ConfigManager

logger = logging.getLogger(__name__)

def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

@click.command()
@click.option(
    "--config",
    default=None,
    help="Path to configuration file"
)
@click.option("--host", default=None, help="Bind address")
@click.option("--port", default=None, type=int, help="Bind port")
def main(config: str, host: str, port: int):
    """Run the arbitrage scanner server."""
    try:
        config_manager = ConfigManager(config)
    except ValueError as e:
        click.echo(f"Configuration error: {str(e)}", err=True)
        sys.exit(1)

    scanner_config = config_manager.config
    configure_logging(scanner_config.monitoring.log_level)

    app = create_app(scanner_config)
    logger.info(
        f"Starting arbitrage scanner with venues: "
        f"{', '.join(v.value for v in scanner_config.enabled_venues())}"
    )

    try:
        uvicorn.run(
            app,
            host=host or scanner_config.server.host,
            port=port or scanner_config.server.port,
            log_level=scanner_config.monitoring.log_level.lower()
        )
    except KeyboardInterrupt:
        logger.info("Shutting down...")

if __name__ == "__main__":
    main()
