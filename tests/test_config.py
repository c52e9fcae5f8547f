import pytest
import yaml

from arbscanner.config.settings import ConfigManager, ScannerConfig
from arbscanner.config.venues import SUPPORTED_VENUES
from arbscanner.models.quote import Venue

@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate from the developer's environment and any .env file."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "SCANNER_CONFIG_PATH",
        "SCANNER_LOG_LEVEL",
        "SCANNER_METRICS_PORT",
        "TELEGRAM_BOT_TOKEN",
        "TELEGRAM_CHAT_ID",
        "JUPITER_API_URL",
        "RAYDIUM_API_URL",
        "ORCA_API_URL",
        "SETTINGS_FILE",
        "OPPORTUNITIES_FILE",
        "ASSETS_FILE",
        "SCANNER_PORT",
    ):
        monkeypatch.delenv(name, raising=False)

def write_config(tmp_path, data) -> str:
    path = tmp_path / "scanner.yaml"
    path.write_text(yaml.safe_dump(data))
    return str(path)

def test_missing_file_uses_defaults(tmp_path):
    config = ConfigManager(str(tmp_path / "absent.yaml")).config

    assert config.scan.interval == 60.0
    assert config.scan.batch_size == 5
    assert config.cache.ttl == 30.0
    assert config.enabled_venues() == [Venue.JUPITER, Venue.RAYDIUM, Venue.ORCA]
    assert config.venues[Venue.JUPITER].base_url == SUPPORTED_VENUES[Venue.JUPITER].base_url

def test_venue_overrides_merge_with_defaults(tmp_path):
    path = write_config(tmp_path, {
        "venues": {
            "Orca": {"enabled": False},
            "Raydium": {"rate_limit": {"min_time": 0.5}}
        },
        "scan": {"interval": 30, "probe_amount": 5_000_000}
    })

    config = ConfigManager(path).config

    assert config.enabled_venues() == [Venue.JUPITER, Venue.RAYDIUM]
    raydium = config.venues[Venue.RAYDIUM]
    assert raydium.rate_limit.min_time == 0.5
    assert raydium.rate_limit.reservoir == 60
    assert raydium.fee_bps == SUPPORTED_VENUES[Venue.RAYDIUM].fee_bps
    assert config.scan.interval == 30
    assert config.scan.probe_amount == 5_000_000
    assert config.scan.batch_size == 5

def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("JUPITER_API_URL", "http://localhost:8080")
    monkeypatch.setenv("SCANNER_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("SCANNER_PORT", "8000")
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "token")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "111, 222")

    config = ConfigManager(str(tmp_path / "absent.yaml")).config

    assert config.venues[Venue.JUPITER].base_url == "http://localhost:8080"
    assert config.monitoring.log_level == "DEBUG"
    assert config.server.port == 8000
    assert config.notifications.telegram_chat_ids == ["111", "222"]
    assert config.notifications.enabled is True

def test_invalid_values_rejected(tmp_path):
    path = write_config(tmp_path, {"scan": {"batch_size": 0}})

    with pytest.raises(ValueError):
        ConfigManager(path)

def test_save_round_trips(tmp_path):
    manager = ConfigManager(str(tmp_path / "scanner.yaml"))
    manager.config.scan.interval = 15
    manager.save_config()

    reloaded = ConfigManager(str(tmp_path / "scanner.yaml")).config
    assert reloaded.scan.interval == 15
    assert isinstance(reloaded, ScannerConfig)
