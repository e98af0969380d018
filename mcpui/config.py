"""YAML-backed configuration for hosts and embedded clients."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Set

import yaml

logger = logging.getLogger(__name__)

DEFAULT_HOME = Path.home() / ".mcpui"


@dataclass
class LoggingConfig:
    log_level: str = "INFO"
    log_file: Path = field(default_factory=lambda: DEFAULT_HOME / "mcpui.log")


@dataclass
class DeveloperConfig:
    debug_mode: bool = False


@dataclass
class AuthConfig:
    issuer: str = "mcpui-host"
    jwks_url: str = "http://localhost/.well-known/jwks.json"
    key_id: str = ""
    token_expiration: int = 3600
    signing_algorithm: str = "RS256"
    jwks_fetch_timeout_seconds: float = 5.0


@dataclass
class EmbedConfig:
    frame_width: str = "100%"
    frame_height: str = "auto"
    auto_resize: bool = True


_SECTIONS = {
    "logging": LoggingConfig,
    "developer": DeveloperConfig,
    "auth": AuthConfig,
    "embed": EmbedConfig,
}


def _coerce(current: Any, raw: Any) -> Any:
    if isinstance(current, bool):
        if isinstance(raw, str):
            return raw.strip().lower() in {"1", "true", "yes", "on"}
        return bool(raw)
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    if isinstance(current, Path):
        return Path(str(raw)).expanduser()
    return "" if raw is None else str(raw)


class Config:
    """Configuration loaded from flat YAML keys and grouped into sections."""

    DEFAULT_CONFIG_PATH = DEFAULT_HOME / "config.yaml"

    def __init__(self, config_path: Optional[Path] = None) -> None:
        self.config_path = Path(config_path or self.DEFAULT_CONFIG_PATH).expanduser()
        self.logging = LoggingConfig()
        self.developer = DeveloperConfig()
        self.auth = AuthConfig()
        self.embed = EmbedConfig()
        self._explicit: Set[str] = set()
        self._load()

    def _read(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            return {}
        try:
            payload = yaml.safe_load(self.config_path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Failed to read config %s, using defaults: %s", self.config_path, exc)
            return {}
        if not isinstance(payload, dict):
            logger.warning("Config %s is not a mapping, using defaults", self.config_path)
            return {}
        return payload

    def _load(self) -> None:
        owners = {
            item.name: section_name
            for section_name, section_cls in _SECTIONS.items()
            for item in fields(section_cls)
        }
        for key, raw in self._read().items():
            section_name = owners.get(str(key))
            if section_name is None:
                logger.debug("Ignoring unknown config key: %s", key)
                continue
            section = getattr(self, section_name)
            try:
                value = _coerce(getattr(section, key), raw)
            except (TypeError, ValueError):
                logger.warning("Invalid value for config key %s: %r", key, raw)
                continue
            setattr(section, key, value)
            self._explicit.add(key)

    def is_setting_explicit(self, key: str) -> bool:
        """True when ``key`` was set by the config file rather than defaulted."""
        return key in self._explicit
