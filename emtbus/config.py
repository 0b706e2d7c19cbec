"""Configuration.

Secrets (bot token, EMT credentials) come from the environment, usually a
.env file.  Everything else lives in an optional config.json; missing, null or
malformed keys and an unreadable file fall back to the defaults below.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from emtbus.directory import RetryPolicy
from emtbus.emt_client import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)

TELEGRAM_MAX_RESULTS = 50              # hard cap on inline answers

DEFAULT_RESULT_THUMB = "http://i.imgur.com/IG5PB4z.png"


@dataclass(frozen=True)
class Settings:
    token: str = ""
    emt_app_id: str = ""
    emt_passkey: str = ""

    max_results: int = 6
    max_column_width: int = 14
    search_radius: int = 200               # metres
    catalog_batch_size: int = 100
    catalog_stagger_seconds: float = 2.0
    max_stop_id: int = 6000
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    http_timeout: float = 10
    emt_base_url: str = DEFAULT_BASE_URL
    lines_xml: Path = Path("data/Lines.xml")
    nodes_xml: Path = Path("data/NodesLines.xml")
    result_thumb: str = DEFAULT_RESULT_THUMB


def _value(cfg: dict[str, Any], key: str, default: Any, cast=None) -> Any:
    """cfg[key] converted with `cast`; null or unconvertible values give the default."""
    raw = cfg.get(key)
    if raw is None:
        return default
    if cast is None:
        return raw
    try:
        return cast(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring config value %s=%r", key, raw)
        return default


def _retry_policy(raw: Any) -> RetryPolicy:
    if not isinstance(raw, dict):
        return RetryPolicy()
    default = RetryPolicy()
    # An explicit null (or 0) for max_attempts means retry forever.
    attempts = _value(raw, "max_attempts", 0, int) if "max_attempts" in raw else default.max_attempts
    return RetryPolicy(
        initial_delay=_value(raw, "initial_delay", default.initial_delay, float),
        factor=_value(raw, "factor", default.factor, float),
        max_delay=_value(raw, "max_delay", default.max_delay, float),
        max_attempts=attempts or None,
    )


def load_global_config(path: Path, base_dir: Path | None = None) -> Settings:
    """Read config.json (if any) and the environment into Settings.

    Relative XML paths are resolved against `base_dir` (default: the
    directory holding config.json).
    """
    base_dir = base_dir or path.parent
    cfg: dict[str, Any] = {}
    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                cfg = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring %s: %s", path, e)
            cfg = {}
        if not isinstance(cfg, dict):
            cfg = {}

    d = Settings()

    def _path(key: str, fallback: Path) -> Path:
        p = Path(_value(cfg, key, fallback, str))
        return p if p.is_absolute() else base_dir / p

    max_results = _value(cfg, "max_results", d.max_results, int)
    return Settings(
        token=os.environ.get("TELEGRAM_BOT_TOKEN", ""),
        emt_app_id=os.environ.get("EMT_APP_ID", ""),
        emt_passkey=os.environ.get("EMT_PASSKEY", ""),
        max_results=max(1, min(max_results, TELEGRAM_MAX_RESULTS)),
        max_column_width=max(1, _value(cfg, "max_column_width", d.max_column_width, int)),
        search_radius=_value(cfg, "search_radius", d.search_radius, int),
        catalog_batch_size=max(1, _value(cfg, "catalog_batch_size", d.catalog_batch_size, int)),
        catalog_stagger_seconds=_value(cfg, "catalog_stagger_seconds", d.catalog_stagger_seconds, float),
        max_stop_id=_value(cfg, "max_stop_id", d.max_stop_id, int),
        retry=_retry_policy(cfg.get("retry")),
        http_timeout=_value(cfg, "http_timeout", d.http_timeout, float),
        emt_base_url=_value(cfg, "emt_base_url", d.emt_base_url, str),
        lines_xml=_path("lines_xml", d.lines_xml),
        nodes_xml=_path("nodes_xml", d.nodes_xml),
        result_thumb=_value(cfg, "result_thumb", d.result_thumb, str),
    )
