import os
import yaml
from loguru import logger

from settings_schema import EngineSettings, validate_settings

APP_VERSION = "1.0.0"


class YamlConfig:
    """Load and save engine settings to a YAML file."""

    def __init__(self, path: str = "settings.yaml") -> None:
        self.path = path

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping")
        return data

    def settings(self) -> EngineSettings:
        """Return validated settings, falling back to defaults."""
        data = self.load()
        if not data:
            logger.debug(f"No settings found at {self.path}, using defaults")
        return validate_settings(data)

    def save(self, data: dict | EngineSettings) -> None:
        if isinstance(data, EngineSettings):
            out = data.model_dump()
        else:
            out = validate_settings(dict(data)).model_dump(exclude_unset=True)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f)
