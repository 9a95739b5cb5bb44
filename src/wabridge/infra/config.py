"""
配置管理

YAML 配置文件加载 / 保存，以及合并 CLI 参数后的校验。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging
import os

import yaml

from ..backends.models import DEFAULT_MODEL, resolve_model_shorthand
from ..core.errors import ConfigValidationError
from ..core.models import PermissionMode

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.wabridge/config.yaml"


def _resolve_path(config_path: Optional[str]) -> Path:
    return Path(config_path or DEFAULT_CONFIG_PATH).expanduser()


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    加载配置文件

    Args:
        config_path: 配置文件路径，如果为 None 则使用默认路径

    Returns:
        配置字典
    """
    path = _resolve_path(config_path)

    if not path.exists():
        logger.warning(f"配置文件不存在: {path}，使用默认配置")
        return get_default_config()

    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
        logger.info(f"配置已加载: {path}")
        return config
    except Exception as e:
        logger.error(f"加载配置失败: {e}")
        return get_default_config()


def get_default_config() -> Dict[str, Any]:
    """
    获取默认配置

    Returns:
        默认配置字典
    """
    return {
        "wabridge": {
            "mode": PermissionMode.NORMAL.value,
            "whitelist": [],
            "model": DEFAULT_MODEL,
            "process_missed": True,
            "missed_threshold_mins": 60,
            "history_limit": 50,
            "gateway": {"base_url": "http://127.0.0.1:3000"},
            "backend": {"api_base": "https://api.anthropic.com"},
            "web": {"host": "127.0.0.1", "port": 8765},
        },
        "logging": {
            "level": "INFO",
        },
    }


def save_config(config: Dict[str, Any], config_path: Optional[str] = None):
    """
    保存配置文件

    Args:
        config: 配置字典
        config_path: 配置文件路径，如果为 None 则使用默认路径
    """
    path = _resolve_path(config_path)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(config, f, default_flow_style=False, allow_unicode=True)
        logger.info(f"配置已保存: {path}")
    except Exception as e:
        logger.error(f"保存配置失败: {e}")
        raise


# ---------------------------------------------------------------------------
# Module-level cached config
# ---------------------------------------------------------------------------

_cached_config: Optional[Dict[str, Any]] = None
_cached_config_path: Optional[str] = None


def get_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Return a cached config dict, loading from disk on first call."""
    global _cached_config, _cached_config_path
    if _cached_config is None or config_path != _cached_config_path:
        _cached_config = load_config(config_path)
        _cached_config_path = config_path
    return _cached_config


def reload_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Force-reload config from disk and update the cache."""
    global _cached_config, _cached_config_path
    _cached_config = load_config(config_path)
    _cached_config_path = config_path
    return _cached_config


def reset_config_cache() -> None:
    """Clear the cached config (mainly for tests)."""
    global _cached_config, _cached_config_path
    _cached_config = None
    _cached_config_path = None


# ---------------------------------------------------------------------------
# Effective bridge configuration
# ---------------------------------------------------------------------------

@dataclass
class BridgeConfig:
    """Validated settings for one bridge process."""

    whitelist: List[str]
    directory: str = field(default_factory=os.getcwd)
    mode: PermissionMode = PermissionMode.NORMAL
    model: str = DEFAULT_MODEL
    process_missed: bool = True
    missed_threshold_mins: int = 60
    verbose: bool = False
    agent_name: Optional[str] = None
    join_group: Optional[str] = None
    allow_all_group_participants: bool = False
    system_prompt: Optional[str] = None
    system_prompt_append: Optional[str] = None
    history_limit: int = 50
    gateway: Dict[str, Any] = field(default_factory=dict)
    backend: Dict[str, Any] = field(default_factory=dict)
    web: Dict[str, Any] = field(default_factory=dict)


def _split_csv(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item).strip() for item in value if str(item).strip()]


def _as_int(name: str, value: Any, issues: List[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        issues.append(f"{name}: expected an integer, got {value!r}")
        return None


def parse_config(
    cli_options: Optional[Dict[str, Any]] = None,
    file_config: Optional[Dict[str, Any]] = None,
) -> BridgeConfig:
    """Merge CLI options over the ``wabridge`` section of the config file.

    Raises:
        ConfigValidationError: listing every invalid field.
    """
    cli = {k: v for k, v in (cli_options or {}).items() if v is not None}
    section = dict((file_config or {}).get("wabridge") or {})
    merged = {**section, **cli}
    issues: List[str] = []

    whitelist = _split_csv(merged.get("whitelist")) or []
    if not whitelist:
        issues.append("whitelist: At least one whitelisted number required")

    mode = PermissionMode.NORMAL
    raw_mode = merged.get("mode")
    if raw_mode is not None:
        if raw_mode == "readonly":
            raw_mode = PermissionMode.PLAN.value
        try:
            mode = PermissionMode(raw_mode)
        except ValueError:
            valid = ", ".join(m.value for m in PermissionMode)
            issues.append(f"mode: invalid value {raw_mode!r} (expected one of: {valid})")

    model = DEFAULT_MODEL
    raw_model = merged.get("model")
    if raw_model:
        resolved = resolve_model_shorthand(str(raw_model))
        if resolved is None:
            issues.append(
                f"model: unrecognized model {raw_model!r} "
                "(valid shorthands: opus, sonnet, haiku, opus-4.5, sonnet-4, ...)"
            )
        else:
            model = resolved

    threshold = _as_int("missed_threshold_mins", merged.get("missed_threshold_mins", 60), issues)
    history_limit = _as_int("history_limit", merged.get("history_limit", 50), issues)
    if history_limit is not None and history_limit < 1:
        issues.append("history_limit: must be at least 1")

    if issues:
        raise ConfigValidationError(issues)

    directory = str(Path(merged.get("directory") or os.getcwd()).expanduser().resolve())
    return BridgeConfig(
        whitelist=whitelist,
        directory=directory,
        mode=mode,
        model=model,
        process_missed=bool(merged.get("process_missed", True)),
        missed_threshold_mins=threshold if threshold is not None else 60,
        verbose=bool(merged.get("verbose", False)),
        agent_name=merged.get("agent_name"),
        join_group=merged.get("join_group"),
        allow_all_group_participants=bool(merged.get("allow_all_group_participants", False)),
        system_prompt=merged.get("system_prompt"),
        system_prompt_append=merged.get("system_prompt_append"),
        history_limit=history_limit or 50,
        gateway=dict(merged.get("gateway") or {}),
        backend=dict(merged.get("backend") or {}),
        web=dict(merged.get("web") or {}),
    )
