from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path

import yaml


@dataclass(frozen=True)
class TreeConfig:
    # Gates only the downward pass. Ancestors are re-derived either way, unlike
    # cascadeCheck=false in gijgo trees, which also froze the parents.
    cascade: bool
    checked_field: str
    id_field: str
    children_field: str
    checkboxes: bool
    errors_log_path: str

    def with_overrides(self, **overrides) -> "TreeConfig":
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


DEFAULT_CHECKED_FIELD = "checked"

# camelCase spellings accepted in config.yaml.
_LEGACY_KEYS = {
    "cascadeCheck": "cascade",
    "checkedField": "checked_field",
}


def _as_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def default_config() -> TreeConfig:
    return TreeConfig(
        cascade=True,
        checked_field=DEFAULT_CHECKED_FIELD,
        id_field="id",
        children_field="children",
        checkboxes=True,
        errors_log_path="",
    )


def load_config(path: Path) -> TreeConfig:
    if not path.exists():
        return default_config()

    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config must be a mapping: {path}")
    for legacy, key in _LEGACY_KEYS.items():
        if legacy in data and key not in data:
            data[key] = data[legacy]

    defaults = default_config()
    return TreeConfig(
        cascade=_as_bool(data.get("cascade"), defaults.cascade),
        checked_field=str(data.get("checked_field") or defaults.checked_field),
        id_field=str(data.get("id_field") or defaults.id_field),
        children_field=str(data.get("children_field") or defaults.children_field),
        checkboxes=_as_bool(data.get("checkboxes"), defaults.checkboxes),
        errors_log_path=str(data.get("errors_log_path", "") or ""),
    )
