from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import tomllib

DEFAULT_CONFIG_NAME = "retryweave.toml"
# A bare name yields to a module that imports it from elsewhere (`from tenacity import retry`).
DEFAULT_DECORATORS = ("retry", "retryweave.retry")
DEFAULT_BACKOFF = "_retryweave_runtime.ExponentialBuilder"
DEFAULT_RUNTIME_MODULE = "retryweave.runtime"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except Exception:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def retry_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("retry", {})
    return section if isinstance(section, dict) else {}


def _normalize_name_list(value: TomlValue) -> list[str]:
    items: list[str] = []
    if value is None:
        return items
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        for item in value:
            if isinstance(item, str):
                items.extend([part.strip() for part in item.split(",") if part.strip()])
    return [item for item in items if item]


def _as_bool(value: TomlValue) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return False


def _as_str(value: TomlValue, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


@dataclass(frozen=True)
class EngineSettings:
    decorators: tuple[str, ...] = DEFAULT_DECORATORS
    default_backoff: str = DEFAULT_BACKOFF
    runtime_module: str = DEFAULT_RUNTIME_MODULE
    # Variant names (see ExecutorVariant) that must be given an explicit sleep.
    require_sleep: frozenset[str] = field(default_factory=frozenset)


def require_sleep_variants(value: TomlValue) -> frozenset[str]:
    from retryweave.synthesis.model import ExecutorVariant

    if isinstance(value, bool) or isinstance(value, int):
        if _as_bool(value):
            return frozenset(variant.value for variant in ExecutorVariant)
        return frozenset()
    known = {variant.value.lower(): variant.value for variant in ExecutorVariant}
    selected: set[str] = set()
    for name in _normalize_name_list(value):
        variant = known.get(name.lower())
        if variant is not None:
            selected.add(variant)
    return frozenset(selected)


def engine_settings(section: TomlTable | None) -> EngineSettings:
    if not isinstance(section, dict):
        return EngineSettings()
    decorators = tuple(_normalize_name_list(section.get("decorators")))
    return EngineSettings(
        decorators=decorators or DEFAULT_DECORATORS,
        default_backoff=_as_str(section.get("default_backoff"), DEFAULT_BACKOFF),
        runtime_module=_as_str(section.get("runtime_module"), DEFAULT_RUNTIME_MODULE),
        require_sleep=require_sleep_variants(section.get("require_sleep")),
    )


def load_settings(
    root: Path | None = None, config_path: Path | None = None
) -> EngineSettings:
    return engine_settings(retry_defaults(root=root, config_path=config_path))
