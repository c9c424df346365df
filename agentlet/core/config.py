from typing import Any, Optional
import json
import os
from pydantic import BaseModel, Field, ValidationError
from loguru import logger
from .events import Signal


# --- Settings Models ---
class GeneralSettings(BaseModel):
    debug_mode: bool = False
    log_dir: str = "logs"
    log_to_file: bool = False


class RegistrySettings(BaseModel):
    registry_url: Optional[str] = None
    # Discard election results superseded by a newer navigation.
    guard_generations: bool = False
    skip_registry_module_registration: bool = False


class LoaderSettings(BaseModel):
    fetch_timeout: float = Field(default=10.0, gt=0)
    cache_sources: bool = True


class AgentletConfig(BaseModel):
    general: GeneralSettings = Field(default_factory=GeneralSettings)
    registry: RegistrySettings = Field(default_factory=RegistrySettings)
    loader: LoaderSettings = Field(default_factory=LoaderSettings)


# --- Manager ---
class ConfigManager:
    """
    Runtime configuration with optional persistence and change notification.

    Without a filepath the manager keeps defaults in memory only.
    """
    def __init__(self, filepath: Optional[str] = None, data: Optional[AgentletConfig] = None):
        self.filepath = filepath
        self._data = data or AgentletConfig()
        self.on_changed = Signal("ConfigChanged")
        if filepath and data is None:
            self._load()

    @property
    def data(self) -> AgentletConfig:
        return self._data

    def update(self, section: str, key: str, value: Any):
        """Update a setting, validate via Pydantic, autosave, and emit change event."""
        if not hasattr(self._data, section):
            raise ValueError(f"Invalid section: {section}")

        section_obj = getattr(self._data, section)
        if key not in type(section_obj).model_fields:
            raise ValueError(f"Invalid key: {key} in section {section}")

        updated = type(section_obj).model_validate({**section_obj.model_dump(), key: value})
        setattr(self._data, section, updated)
        self._save()
        self.on_changed.emit(section, key, getattr(updated, key))

    def get(self, section: str, key: str) -> Any:
        section_obj = getattr(self._data, section)
        return getattr(section_obj, key)

    def _load(self):
        """Load settings from JSON or TOML file if present; otherwise keep defaults."""
        if not os.path.isfile(self.filepath):
            return
        try:
            if self.filepath.endswith(".toml"):
                import tomllib
                with open(self.filepath, "rb") as f:
                    raw = tomllib.load(f)
            else:
                with open(self.filepath, "r", encoding="utf-8") as f:
                    raw = json.load(f)
            self._data = AgentletConfig.model_validate(raw)
        except (OSError, ValueError, ValidationError) as e:
            logger.error(f"Failed to load config from {self.filepath}: {e}")

    def _save(self):
        """Persist current config as JSON when a non-TOML path is configured."""
        if not self.filepath or self.filepath.endswith(".toml"):
            return
        try:
            dirname = os.path.dirname(self.filepath)
            if dirname:
                os.makedirs(dirname, exist_ok=True)
            with open(self.filepath, "w", encoding="utf-8") as f:
                json.dump(self._data.model_dump(), f, indent=4)
        except OSError as e:
            logger.error(f"Failed to save config to {self.filepath}: {e}")
