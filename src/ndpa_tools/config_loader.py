# ndpa_tools/config_loader.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Tuple

import yaml
from pydantic import ValidationError

from .parameter_models import NdpaConfig


def _merged(base: Mapping[str, Any], top: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of `base` with `top` layered over it, mapping by mapping."""
    out = dict(base)
    for key, value in top.items():
        below = out.get(key)
        if isinstance(value, Mapping) and isinstance(below, Mapping):
            out[key] = _merged(below, value)
        else:
            out[key] = value
    return out


def _read_section(path: Path | str, root_key: str | None) -> Dict[str, Any]:
    """The mapping stored under `root_key` in a YAML file (whole file if None)."""
    data = yaml.safe_load(Path(path).read_text()) or {}
    section = data if root_key is None else data.get(root_key)
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        raise ValueError(f"{path}: '{root_key}' is not a mapping")
    return dict(section)


def _nest(overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """{"geometry.min_area": 50} -> {"geometry": {"min_area": 50}}"""
    nested: Dict[str, Any] = {}
    for key, value in overrides.items():
        for part in reversed(key.split(".")):
            value = {part: value}
        nested = _merged(nested, value)
    return nested


def _validate(data: Mapping[str, Any], context: str) -> NdpaConfig:
    try:
        return NdpaConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid NDPA configuration {context}:\n{e}") from e


def parse_assignment(text: str) -> Tuple[str, Any]:
    """
    Split a command-line 'dotted.key=value' pair. The value is read as YAML,
    so '100' is an int, 'true' a bool and '#00ff00' a string.
    """
    key, sep, raw = text.partition("=")
    key = key.strip()
    if not sep or not key:
        raise ValueError(f"expected KEY=VALUE, got {text!r}")
    value = yaml.safe_load(raw) if raw.strip() else ""
    # YAML reads a bare '#rrggbb' as a comment
    if value is None and raw.strip().startswith("#"):
        value = raw.strip()
    return key, value


def load_config_with_presets(
    default_path: Path | str,
    presets: Iterable[Path | str] | None = None,
    *,
    root_key: str | None = "ndpa",
    overrides: Mapping[str, Any] | None = None,
) -> NdpaConfig:
    """
    Build the conversion config from a base YAML, presets applied in order
    (later wins), then `overrides` given as dotted or nested keys.
    """
    data = _read_section(default_path, root_key)
    for preset in presets or ():
        data = _merged(data, _read_section(preset, root_key))
    if overrides:
        data = _merged(data, _nest(overrides))
    return _validate(data, "after merge/override")


def apply_overrides(cfg: NdpaConfig,
                    overrides: Mapping[str, Any]) -> NdpaConfig:
    """New validated config with `overrides` applied; `cfg` is unchanged."""
    return _validate(_merged(cfg.model_dump(), _nest(overrides)),
                     "override")
