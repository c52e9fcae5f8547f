from typing import Dict, List, Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv
import logging
import yaml
import os
from pathlib import Path

from ..models.quote import Venue
from .venues import (
    SUPPORTED_VENUES,
    BASE_ASSET_SYMBOLS,
    POPULAR_ASSET_SYMBOLS
)

class RateLimitConfig(BaseModel):
    """Per-venue outbound call budget."""
    max_concurrent: int = Field(1, ge=1, description="Concurrent in-flight calls")
    min_time: float = Field(1.0, ge=0, description="Minimum seconds between call starts")
    reservoir: int = Field(60, ge=1, description="Calls available per refresh interval")
    refresh_interval: float = Field(60.0, gt=0, description="Reservoir refill interval in seconds")

class VenueConfig(BaseModel):
    """Venue adapter configuration."""
    enabled: bool = Field(True, description="Enable venue")
    base_url: str = Field(..., description="REST API base URL")
    fee_bps: int = Field(..., ge=0, lt=10000, description="Pool fee in basis points")
    pool_ttl: float = Field(300.0, gt=0, description="Pool registry refresh interval in seconds")
    request_timeout: float = Field(10.0, gt=0, description="HTTP timeout in seconds")
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)

class RetryConfig(BaseModel):
    """Backoff applied to throttled venue calls."""
    base_delay: float = Field(1.0, ge=0, description="First retry delay in seconds")
    max_delay: float = Field(10.0, ge=0, description="Retry delay cap in seconds")
    max_retries: int = Field(3, ge=0, description="Retries before giving up on a venue")

class CacheConfig(BaseModel):
    """Quote cache configuration."""
    ttl: float = Field(30.0, gt=0, description="Quote lifetime in seconds")

class ScanConfig(BaseModel):
    """Scan session configuration."""
    interval: float = Field(60.0, gt=0, description="Seconds between recurring scans")
    batch_size: int = Field(5, ge=1, description="Pairs scanned per batch")
    initial_pairs: int = Field(10, ge=0, description="Pairs scanned immediately on start")
    probe_amount: int = Field(1_000_000_000, gt=0, description="Round-trip probe amount in base units")
    acceptance_floor_bps: int = Field(
        9900,
        ge=0,
        le=10000,
        description="Minimum final/initial ratio in bps for a path to be reported"
    )
    min_spread_floor: float = Field(0.01, ge=0, description="Spread filter used when the configured minimum is positive")
    estimated_profit_notional: float = Field(100.0, ge=0, description="Notional used for estimated profit")
    rotation_rounds: int = Field(2, ge=1, description="Venue rotation passes per quote")
    opportunity_list_limit: Optional[int] = Field(None, ge=1, description="Opportunities pushed per cycle")

class AssetUniverseConfig(BaseModel):
    """Assets the candidate pair universe is built from."""
    base_symbols: List[str] = Field(default_factory=lambda: list(BASE_ASSET_SYMBOLS))
    popular_symbols: List[str] = Field(default_factory=lambda: list(POPULAR_ASSET_SYMBOLS))

class NotificationConfig(BaseModel):
    """Chat notification configuration."""
    enabled: bool = Field(False, description="Enable notifications")
    telegram_bot_token: Optional[str] = Field(None, description="Telegram bot token")
    telegram_chat_ids: List[str] = Field(default_factory=list, description="Telegram chat IDs")
    notify_on_arbitrage: bool = Field(True, description="Notify on new opportunities")
    notify_on_error: bool = Field(True, description="Notify on session errors")
    min_profit_threshold: float = Field(1.0, ge=0, description="Minimum profit percentage to notify")

class MonitoringConfig(BaseModel):
    """Monitoring configuration."""
    log_level: str = Field("INFO", description="Logging level")
    metrics_enabled: bool = Field(True, description="Enable metrics collection")
    metrics_port: Optional[int] = Field(None, description="Prometheus exporter port")

class StorageConfig(BaseModel):
    """File persistence for the in-process stores."""
    settings_file: Optional[str] = Field(None, description="Arbitrage settings JSON file")
    opportunities_file: Optional[str] = Field(None, description="Opportunities JSON file")
    assets_file: Optional[str] = Field(None, description="Assets JSON file")
    activity_log_size: int = Field(100, ge=1, description="Activity entries kept")

class ServerConfig(BaseModel):
    host: str = Field("0.0.0.0", description="Bind address")
    port: int = Field(5000, description="Bind port")

def _default_venues() -> Dict[Venue, VenueConfig]:
    return {
        venue: VenueConfig(base_url=defaults.base_url, fee_bps=defaults.fee_bps)
        for venue, defaults in SUPPORTED_VENUES.items()
    }

class ScannerConfig(BaseModel):
    """Main configuration."""
    venues: Dict[Venue, VenueConfig] = Field(default_factory=_default_venues)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    assets: AssetUniverseConfig = Field(default_factory=AssetUniverseConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    def enabled_venues(self) -> List[Venue]:
        return [venue for venue, cfg in self.venues.items() if cfg.enabled]

class ConfigManager:
    """Configuration manager."""
    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or os.getenv(
            "SCANNER_CONFIG_PATH",
            "config/scanner.yaml"
        )
        self.logger = logging.getLogger(__name__)
        self.config: Optional[ScannerConfig] = None
        self.load_config()

    def load_config(self):
        """Load configuration from file and environment."""
        load_dotenv()

        config_data: Dict = {}
        path = Path(self.config_path)
        if path.exists():
            try:
                with open(path, "r") as f:
                    config_data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ValueError(f"Error loading config: {str(e)}")
        else:
            self.logger.info(f"No config file at {path}, using defaults")

        # Venue entries in the file only override what they name
        venues = _default_venues()
        for name, overrides in (config_data.pop("venues", None) or {}).items():
            venue = Venue(name)
            merged = venues[venue].model_dump()
            for key, value in (overrides or {}).items():
                if isinstance(value, dict) and isinstance(merged.get(key), dict):
                    merged[key] = {**merged[key], **value}
                else:
                    merged[key] = value
            venues[venue] = VenueConfig(**merged)
        config_data["venues"] = {v.value: cfg.model_dump() for v, cfg in venues.items()}

        self._load_env_vars(config_data)

        try:
            self.config = ScannerConfig(**config_data)
        except ValueError as e:
            raise ValueError(f"Invalid config: {str(e)}")

    def _load_env_vars(self, config: Dict):
        """Load environment variables into config."""
        env_vars = {
            "SCANNER_LOG_LEVEL": ("monitoring", "log_level"),
            "SCANNER_METRICS_PORT": ("monitoring", "metrics_port"),
            "TELEGRAM_BOT_TOKEN": ("notifications", "telegram_bot_token"),
            "JUPITER_API_URL": ("venues", Venue.JUPITER.value, "base_url"),
            "RAYDIUM_API_URL": ("venues", Venue.RAYDIUM.value, "base_url"),
            "ORCA_API_URL": ("venues", Venue.ORCA.value, "base_url"),
            "SETTINGS_FILE": ("storage", "settings_file"),
            "OPPORTUNITIES_FILE": ("storage", "opportunities_file"),
            "ASSETS_FILE": ("storage", "assets_file"),
            "SCANNER_PORT": ("server", "port"),
        }

        for env_var, config_path in env_vars.items():
            value = os.getenv(env_var)
            if value:
                current = config
                for key in config_path[:-1]:
                    current = current.setdefault(key, {})
                current[config_path[-1]] = value

        chat_id = os.getenv("TELEGRAM_CHAT_ID")
        if chat_id:
            notifications = config.setdefault("notifications", {})
            notifications["telegram_chat_ids"] = [c.strip() for c in chat_id.split(",") if c.strip()]
            notifications.setdefault("enabled", True)

    def save_config(self):
        """Save configuration to file."""
        try:
            with open(self.config_path, "w") as f:
                yaml.safe_dump(self.config.model_dump(mode="json"), f, default_flow_style=False)
        except OSError as e:
            raise ValueError(f"Error saving config: {str(e)}")

# Default configuration
DEFAULT_CONFIG = ScannerConfig()
