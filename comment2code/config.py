"""Configuration loading for comment2code (.comment2code.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import yaml

from .llm.runner import OpencodeRunner
from .parsing.constants import DEFAULT_TRIGGER
from .policies import AUTO_NONLINEAR, MANUAL, normalise_mode
from .prompting.constants import CONTEXT_LINES_AFTER, CONTEXT_LINES_BEFORE

CONFIG_FILENAME = ".comment2code.yml"

ENV_OVERRIDES: Dict[str, str] = {
    "COMMENT2CODE_MODEL": "model",
    "COMMENT2CODE_EXECUTABLE": "executable",
    "COMMENT2CODE_MODE": "mode",
}


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class KeymapConfig:
    """Key bindings an editor integration should register."""

    manual_trigger: Optional[str] = "<leader>ai"
    process_all: Optional[str] = "<leader>aA"


@dataclass
class Comment2CodeConfig:
    """Represents the settings defined in .comment2code.yml."""

    root: Optional[Path] = None
    enabled: bool = True
    executable: str = OpencodeRunner.DEFAULT_EXECUTABLE
    model: Optional[str] = OpencodeRunner.DEFAULT_MODEL
    trigger: str = DEFAULT_TRIGGER
    mode: str = AUTO_NONLINEAR
    debounce_ms: int = 500
    notify: bool = True
    context_before: int = CONTEXT_LINES_BEFORE
    context_after: int = CONTEXT_LINES_AFTER
    fallback_paths: List[str] = field(
        default_factory=lambda: list(OpencodeRunner.FALLBACK_PATHS)
    )
    templates_dir: Optional[Path] = None
    keymaps: KeymapConfig = field(default_factory=KeymapConfig)


def load_config(config_path: Path, *, env: Mapping[str, str] | None = None) -> Comment2CodeConfig:
    """Load configuration from disk, then apply environment overrides."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if config_file.exists():
        data = _read_config(config_file)
        config = config_from_mapping(data, root=root)
    else:
        config = Comment2CodeConfig(root=root)

    return apply_env_overrides(config, os.environ if env is None else env)


def config_from_mapping(data: Mapping[str, Any], *, root: Path | None = None) -> Comment2CodeConfig:
    """Build a config from an already-parsed mapping (YAML file or API payload)."""
    if not isinstance(data, Mapping):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    config = Comment2CodeConfig(root=root)

    enabled = _as_bool(data.get("enabled"))
    if enabled is not None:
        config.enabled = enabled

    executable = _as_str(data.get("executable")) or _as_str(data.get("opencode_path"))
    if executable:
        config.executable = executable

    if "model" in data:
        config.model = _as_str(data.get("model")) or None

    trigger = _as_str(data.get("trigger")) or _as_str(data.get("trigger_pattern"))
    if trigger is not None:
        if not trigger.strip():
            raise ConfigError("trigger must not be empty")
        config.trigger = trigger

    mode = _as_str(data.get("mode"))
    if mode is None:
        # Older configs only had an on/off switch for automatic triggering.
        auto_trigger = _as_bool(data.get("auto_trigger"))
        if auto_trigger is not None:
            mode = AUTO_NONLINEAR if auto_trigger else MANUAL
    if mode is not None:
        config.mode = _validate_mode(mode)

    debounce = _as_int(data.get("debounce_ms"))
    if debounce is not None:
        if debounce < 0:
            raise ConfigError("debounce_ms must be zero or positive")
        config.debounce_ms = debounce

    notify = _as_bool(data.get("notify"))
    if notify is not None:
        config.notify = notify

    context_data = _as_dict(data.get("context"))
    before = _as_int(context_data.get("before", data.get("context_before")))
    after = _as_int(context_data.get("after", data.get("context_after")))
    if before is not None:
        config.context_before = max(0, before)
    if after is not None:
        config.context_after = max(0, after)

    if "fallback_paths" in data:
        config.fallback_paths = _as_str_list(data.get("fallback_paths"))

    templates_dir = _as_str(data.get("templates_dir"))
    if templates_dir:
        base = root or Path.cwd()
        config.templates_dir = (base / templates_dir).resolve()

    keymap_data = _as_dict(data.get("keymaps"))
    if keymap_data:
        keymaps = KeymapConfig()
        if "manual_trigger" in keymap_data:
            keymaps.manual_trigger = _as_str(keymap_data.get("manual_trigger"))
        if "process_all" in keymap_data:
            keymaps.process_all = _as_str(keymap_data.get("process_all"))
        config.keymaps = keymaps

    return config


def apply_env_overrides(config: Comment2CodeConfig, env: Mapping[str, str]) -> Comment2CodeConfig:
    for env_key, attribute in ENV_OVERRIDES.items():
        value = env.get(env_key)
        if not value:
            continue
        if attribute == "mode":
            value = _validate_mode(value)
        setattr(config, attribute, value)
    return config


def _validate_mode(mode: str) -> str:
    try:
        return normalise_mode(mode)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.suffix not in {".yml", ".yaml"}:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1", "on"}:
            return True
        if lowered in {"false", "no", "0", "off"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "Comment2CodeConfig",
    "ConfigError",
    "KeymapConfig",
    "apply_env_overrides",
    "config_from_mapping",
    "load_config",
]
