"""
Module configuration schema.
"""
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from agentlet.core.errors import ConfigValidationError
from .matcher import MatchMode


class ModuleConfig(BaseModel):
    """
    Declarative module configuration, validated once at construction.

    ``url_pattern`` is accepted as a single-pattern fallback and a bare
    string in ``patterns`` is promoted to a one-element list.
    """
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    name: str
    version: str = "1.0.0"
    description: str = ""
    patterns: List[str] = Field(default_factory=list)
    match_mode: MatchMode = MatchMode.INCLUDES
    custom_matcher: Optional[Callable[[str, List[str]], bool]] = None
    capabilities: List[str] = Field(default_factory=list)
    permissions: List[str] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=dict)
    template: Optional[str] = None
    parent_module: Optional[str] = None
    requires_storage_notification: bool = False
    max_history_size: int = Field(default=50, ge=1)

    @model_validator(mode="before")
    @classmethod
    def _normalize_patterns(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        url_pattern = data.pop("url_pattern", None)
        patterns = data.get("patterns")
        if patterns is None and url_pattern:
            data["patterns"] = [url_pattern]
        elif isinstance(patterns, str):
            data["patterns"] = [patterns]
        return data

    @field_validator("name")
    @classmethod
    def _name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name cannot be empty")
        return v

    @model_validator(mode="after")
    def _patterns_required(self) -> "ModuleConfig":
        if not self.patterns and self.match_mode is not MatchMode.CUSTOM:
            raise ValueError("patterns are required unless match_mode is 'custom'")
        return self


def validate_module_config(raw: Any) -> ModuleConfig:
    """
    Validate raw config, wrapping pydantic errors.

    Raises:
        ConfigValidationError: If the config does not satisfy the schema
    """
    if isinstance(raw, ModuleConfig):
        return raw
    if not isinstance(raw, dict):
        raise ConfigValidationError([f"config must be a mapping, got {type(raw).__name__}"])
    try:
        return ModuleConfig.model_validate(raw)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigValidationError(errors, module_name=raw.get("name")) from e
