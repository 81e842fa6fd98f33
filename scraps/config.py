"""Configuration and credential loading.

Sources, later ones win:

1. ``<home>/config.json``: non-secret settings, grouped by section::

       {"notion": {"database_id": "...", "sync_enabled": true},
        "ai": {"provider": "anthropic", "enabled": true},
        "sync": {"interval_seconds": 60, "auto_sync": false},
        "log_level": "INFO"}

2. ``<home>/credentials.json``: ``notion_api_key`` and ``ai_api_key``.
3. ``SCRAPS_*`` environment variables.

Nothing here is global: ``load_config()`` returns a fresh value that the
caller passes to whatever needs it.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from scraps.models.auto import ModelProvider, default_model
from scraps.storage.notion import NOTION_API_BASE, NOTION_VERSION
from scraps.utils import get_scraps_home

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.json"
CREDENTIALS_FILE = "credentials.json"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class NotionConfig:
    api_key: str = ""
    database_id: str = ""
    sync_enabled: bool = False
    title_property: str = "Name"
    last_modified_property: Optional[str] = "Last Modified"
    api_base: str = NOTION_API_BASE
    notion_version: str = NOTION_VERSION
    timeout: float = 30.0


@dataclass
class AIConfig:
    provider: str = ModelProvider.OPENAI.value
    api_key: str = ""
    model: str = ""  # Empty means the provider's default
    enabled: bool = False
    base_url: str = ""
    temperature: float = 0.2
    max_tokens: int = 2048

    @property
    def resolved_model(self) -> str:
        return self.model or default_model(self.provider)


@dataclass
class SyncConfig:
    interval_seconds: float = 60.0
    auto_sync: bool = False


@dataclass
class ScrapsConfig:
    notion: NotionConfig = field(default_factory=NotionConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    log_level: str = "WARNING"

    def to_dict(self, *, redact: bool = True) -> Dict[str, Any]:
        data = asdict(self)
        if redact:
            for section in ("notion", "ai"):
                if data[section]["api_key"]:
                    data[section]["api_key"] = "***"
        return data


@dataclass
class ConfigValidation:
    valid: bool
    message: Optional[str] = None


# === Loading ===


def _read_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Ignoring unreadable {path.name}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def _parse_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    return default


def _apply(target: Any, values: Dict[str, Any]) -> None:
    """Copy known keys onto a config dataclass, coercing to the field's type."""
    for key, value in values.items():
        if not hasattr(target, key) or value is None:
            continue
        current = getattr(target, key)
        try:
            if isinstance(current, bool):
                value = _parse_bool(value, current)
            elif isinstance(current, float):
                value = float(value)
            elif isinstance(current, int):
                value = int(value)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid value for '{key}' in {CONFIG_FILE}: {value!r}")
            continue
        setattr(target, key, value)


def load_config(home: Optional[Path] = None) -> ScrapsConfig:
    """Build the effective configuration from files and environment."""
    home = home or get_scraps_home()
    config = ScrapsConfig()

    data = _read_json(home / CONFIG_FILE)
    _apply(config.notion, data.get("notion") or {})
    _apply(config.ai, data.get("ai") or {})
    _apply(config.sync, data.get("sync") or {})
    if data.get("log_level"):
        config.log_level = str(data["log_level"])

    creds = _read_json(home / CREDENTIALS_FILE)
    config.notion.api_key = creds.get("notion_api_key") or config.notion.api_key
    config.ai.api_key = creds.get("ai_api_key") or config.ai.api_key

    env = os.environ
    config.notion.api_key = env.get("SCRAPS_NOTION_API_KEY") or config.notion.api_key
    config.notion.database_id = env.get("SCRAPS_NOTION_DATABASE_ID") or config.notion.database_id
    if env.get("SCRAPS_SYNC_ENABLED"):
        config.notion.sync_enabled = _parse_bool(env["SCRAPS_SYNC_ENABLED"])
    if env.get("SCRAPS_AI_PROVIDER"):
        # Naming a provider in the environment turns the transform on
        config.ai.provider = env["SCRAPS_AI_PROVIDER"].strip().lower()
        config.ai.enabled = True
    config.ai.api_key = env.get("SCRAPS_AI_API_KEY") or config.ai.api_key
    config.ai.model = env.get("SCRAPS_AI_MODEL") or config.ai.model
    config.ai.base_url = env.get("SCRAPS_AI_BASE_URL") or config.ai.base_url
    if env.get("SCRAPS_SYNC_INTERVAL"):
        try:
            config.sync.interval_seconds = float(env["SCRAPS_SYNC_INTERVAL"])
        except ValueError:
            logger.warning("Ignoring non-numeric SCRAPS_SYNC_INTERVAL")
    config.log_level = env.get("SCRAPS_LOG_LEVEL") or config.log_level

    return config


def save_config(config: ScrapsConfig, home: Optional[Path] = None) -> None:
    """Write settings to config.json and secrets to credentials.json (0600)."""
    home = home or get_scraps_home()
    home.mkdir(parents=True, exist_ok=True)

    data = config.to_dict(redact=False)
    data["notion"].pop("api_key")
    data["ai"].pop("api_key")
    with open(home / CONFIG_FILE, "w") as f:
        json.dump(data, f, indent=2)

    creds_path = home / CREDENTIALS_FILE
    with open(creds_path, "w") as f:
        json.dump(
            {"notion_api_key": config.notion.api_key, "ai_api_key": config.ai.api_key},
            f,
            indent=2,
        )
    # Owner read/write only
    creds_path.chmod(0o600)


# === Validation ===


def validate_base_url(url: str) -> Optional[str]:
    """Return ``url`` if it is safe to send credentials to, else None.

    https anywhere; plain http only for localhost / 127.0.0.1.
    """
    if not url:
        return None
    parsed = urlparse(url)
    if parsed.scheme not in {"https", "http"} or not parsed.netloc:
        return None
    if parsed.scheme == "http" and (parsed.hostname or "") not in {"localhost", "127.0.0.1"}:
        return None
    return url


def validate_config(config: ScrapsConfig) -> ConfigValidation:
    if config.notion.sync_enabled:
        if not config.notion.api_key:
            return ConfigValidation(False, "Notion API key is required when sync is enabled")
        if not config.notion.database_id:
            return ConfigValidation(False, "Notion database ID is required when sync is enabled")

    if config.ai.enabled:
        try:
            ModelProvider.parse(config.ai.provider)
        except ValueError as e:
            return ConfigValidation(False, str(e))
        if not config.ai.api_key:
            return ConfigValidation(False, "AI API key is required when AI features are enabled")
        if config.ai.base_url and validate_base_url(config.ai.base_url) is None:
            return ConfigValidation(
                False, "AI base URL must use https (http is allowed only for localhost)"
            )

    if config.sync.interval_seconds <= 0:
        return ConfigValidation(False, "Sync interval must be positive")

    return ConfigValidation(True)
