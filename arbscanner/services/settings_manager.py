import json
import logging
from typing import Callable, Dict, List, Optional, Union
from pathlib import Path
import asyncio
from datetime import datetime

from ..models.settings import (
    ArbitrageSettings,
    ArbitrageSettingsUpdate,
    DEFAULT_ARBITRAGE_SETTINGS
)

class SettingsManager:
    """User-mutable arbitrage settings, optionally persisted to a JSON file."""

    def __init__(self, settings_file: Optional[str] = None):
        self.settings_file = settings_file
        self.logger = logging.getLogger(__name__)
        self.settings: ArbitrageSettings = DEFAULT_ARBITRAGE_SETTINGS
        self.settings_lock = asyncio.Lock()
        self._load_settings()

        # Keep track of settings changes
        self.last_updated = datetime.utcnow()
        self.update_callbacks: List[Callable] = []

    def _load_settings(self):
        """Load settings from file."""
        if not self.settings_file:
            return
        try:
            path = Path(self.settings_file)
            if path.exists():
                with open(path, 'r') as f:
                    self.settings = ArbitrageSettings.model_validate(json.load(f))
                    self.logger.info("Settings loaded successfully")
            else:
                self._save_settings()
                self.logger.info("Default settings created")
        except (OSError, ValueError) as e:
            self.logger.error(f"Error loading settings: {str(e)}")
            self.settings = DEFAULT_ARBITRAGE_SETTINGS

    def _save_settings(self):
        """Save settings to file."""
        if not self.settings_file:
            return
        path = Path(self.settings_file)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            json.dump(self.settings.model_dump(mode="json"), f, indent=2)
        self.last_updated = datetime.utcnow()
        self.logger.info("Settings saved successfully")

    async def get_arbitrage_settings(self) -> ArbitrageSettings:
        """Current settings snapshot."""
        async with self.settings_lock:
            return self.settings

    async def update_arbitrage_settings(
        self,
        update: Union[ArbitrageSettingsUpdate, Dict]
    ) -> ArbitrageSettings:
        """Apply a partial update; invalid values raise ValueError."""
        if isinstance(update, dict):
            update = ArbitrageSettingsUpdate.model_validate(update)

        async with self.settings_lock:
            updated_settings = ArbitrageSettings.model_validate({
                **self.settings.model_dump(),
                **update.model_dump(exclude_none=True)
            })
            self.settings = updated_settings
            try:
                self._save_settings()
            except OSError as e:
                self.logger.error(f"Error saving settings: {str(e)}")

        await self._notify_updates()
        return updated_settings

    def register_callback(self, callback):
        """Register a callback for settings updates."""
        if callback not in self.update_callbacks:
            self.update_callbacks.append(callback)

    async def _notify_updates(self):
        """Notify all registered callbacks of settings updates."""
        for callback in self.update_callbacks:
            try:
                await callback(self.settings)
            except Exception as e:
                self.logger.error(f"Error in settings callback: {str(e)}")
