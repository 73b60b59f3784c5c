# src/ndpa_tools/parameter_models.py
from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain import normalize_color

# -------------------------------------
# Atomic blocks
# -------------------------------------


class GeometryParams(BaseModel):
    """
    Outline clean-up applied before export.
    """
    model_config = ConfigDict(extra="forbid")
    simplify_tolerance: float = Field(default=5.0, gt=0)
    min_area: float = Field(default=200.0, ge=0)
    min_hole_area: float = Field(default=200.0, ge=0)


class FormatParams(BaseModel):
    """
    File naming and the constant fields NDP.view expects in every record.
    """
    model_config = ConfigDict(extra="forbid")
    slide_extension: str = ".ndpi"
    annotation_suffix: str = ".ndpa"
    backup_suffix: str = ".bak"
    coord_format: str = "nanometers"
    lens: float = 0.445623
    display_name: str = "AnnotateFreehand"
    clear_label: str = "clear"
    clear_color: str = "#000000"
    default_color: str = "#ff0000"

    @field_validator("clear_color", "default_color")
    @classmethod
    def _check_color(cls, v: str) -> str:
        c = normalize_color(v)
        if c is None:
            raise ValueError(f"not a 6-hex RGB colour: {v!r}")
        return c

    @field_validator("slide_extension", "annotation_suffix", "backup_suffix")
    @classmethod
    def _check_suffix(cls, v: str) -> str:
        if not v.startswith("."):
            raise ValueError(f"suffix must start with '.': {v!r}")
        return v


class OffsetParams(BaseModel):
    model_config = ConfigDict(extra="forbid")
    x_key: str = "hamamatsu.XOffsetFromSlideCentre"
    y_key: str = "hamamatsu.YOffsetFromSlideCentre"
    rotated: bool = False  # mirror freehand y against the image height on import


# -------------------------------------
# Aggregate
# -------------------------------------


class NdpaConfig(BaseModel):
    """
    Mirrors the YAML under the `ndpa:` key.

    ndpa:
      geometry: {...}
      format: {...}
      offset: {...}
    """
    model_config = ConfigDict(extra="forbid")

    geometry: GeometryParams = GeometryParams()
    format: FormatParams = FormatParams()
    offset: OffsetParams = OffsetParams()

    @classmethod
    def from_yaml(cls, path: Path | str, root_key: str | None = "ndpa") -> "NdpaConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        if root_key:
            data = data.get(root_key, {}) or {}
        return cls.model_validate(data)

    def to_yaml(self, path: Path | str, root_key: str | None = "ndpa") -> None:
        data = self.model_dump()
        if root_key:
            data = {root_key: data}
        Path(path).write_text(yaml.safe_dump(data, sort_keys=False))
