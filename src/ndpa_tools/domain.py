from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from shapely.geometry.base import BaseGeometry

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{6})$")


def normalize_color(value: Optional[str]) -> Optional[str]:
    """
    Return `value` as lower-case '#rrggbb', or None if it is not a 6-hex colour.
    An 8-hex ARGB value (as some viewers write it) keeps its RGB part.
    """
    if value is None:
        return None
    s = str(value).strip()
    if len(s.lstrip("#")) == 8:
        s = s.lstrip("#")[2:]
    m = _HEX_COLOR.match(s)
    if m is None:
        return None
    return "#" + m.group(1).lower()


class ShapeKind(str, Enum):
    CIRCLE = "circle"
    LINE = "line"
    POINT = "point"
    POLYGON = "polygon"
    POLYLINE = "polyline"
    RECTANGLE = "rectangle"

    @classmethod
    def coerce(cls, value: Optional[str]) -> "ShapeKind":
        """
        Convert a string (possibly None/invalid) to a ShapeKind.
        Defaults to POLYGON if the value is not recognized.
        """
        try:
            return cls((value or "polygon").strip().lower())
        except ValueError:
            return cls.POLYGON

    @property
    def is_areal(self) -> bool:
        return self in (ShapeKind.CIRCLE, ShapeKind.POLYGON,
                        ShapeKind.RECTANGLE)


@dataclass
class AnnotationShape:
    """
    One region annotation. `geometry` is a shapely geometry in image-pixel
    space; it is never holding nanometre coordinates.
    """
    kind: ShapeKind
    geometry: BaseGeometry
    name: str = ""
    description: str = ""
    color: Optional[str] = None
    locked: bool = False
    classification: Optional[str] = None
    classification_color: Optional[str] = None

    def __post_init__(self) -> None:
        self.kind = ShapeKind.coerce(self.kind)
        self.color = normalize_color(self.color)
        self.classification_color = normalize_color(self.classification_color)

    @property
    def bounds(self):
        return self.geometry.bounds


@dataclass(frozen=True)
class SlideCalibration:
    """
    Read-only slide metadata. Pixel sizes are in micrometres as reported by
    the slide reader; None means "not calibrated" (distinct from 0).
    """
    width: int
    height: int
    pixel_width_um: Optional[float] = None
    pixel_height_um: Optional[float] = None

    @property
    def has_pixel_size(self) -> bool:
        return all(v is not None and v > 0
                   for v in (self.pixel_width_um, self.pixel_height_um))

    @property
    def pixel_width_nm(self) -> float:
        return float(self.pixel_width_um) * 1000.0

    @property
    def pixel_height_nm(self) -> float:
        return float(self.pixel_height_um) * 1000.0

    @property
    def center(self) -> tuple[float, float]:
        return self.width / 2.0, self.height / 2.0


@dataclass(frozen=True)
class CenterOffset:
    """Pixel-space position of the physical coordinate origin."""
    x: float
    y: float


@dataclass(frozen=True)
class RingRecord:
    """One exterior or interior ring, ready to become an <ndpviewstate>."""
    id: int
    ring_index: int
    title: str
    details: str
    color: str
    points: tuple[tuple[float, float], ...]

    @property
    def is_clear(self) -> bool:
        return self.ring_index > 0


class IssueSeverity(str, Enum):
    WARNING = "warning"
    ERROR = "error"

    @classmethod
    def coerce(cls, value: Optional[str]) -> "IssueSeverity":
        try:
            return cls((value or "warning").strip().lower())
        except ValueError:
            return cls.WARNING


@dataclass(frozen=True)
class ConversionIssue:
    severity: IssueSeverity
    message: str
    stage: str = ""
    record_index: Optional[int] = None

    def __str__(self) -> str:
        where = f" (record {self.record_index})" if self.record_index is not None else ""
        stage = f"[{self.stage}] " if self.stage else ""
        return f"{self.severity.value}: {stage}{self.message}{where}"


@dataclass
class ConversionResult:
    success: bool = False
    path: Optional[Path] = None
    backup_path: Optional[Path] = None
    shapes_added: int = 0
    records_written: int = 0
    skipped: int = 0
    failed: int = 0
    issues: List[ConversionIssue] = field(default_factory=list)

    def warn(self, message: str, *, stage: str = "",
             record_index: Optional[int] = None) -> None:
        self.issues.append(
            ConversionIssue(IssueSeverity.WARNING, message, stage,
                            record_index))

    def error(self, message: str, *, stage: str = "",
              record_index: Optional[int] = None) -> None:
        self.issues.append(
            ConversionIssue(IssueSeverity.ERROR, message, stage,
                            record_index))

    @property
    def errors(self) -> List[ConversionIssue]:
        return [i for i in self.issues if i.severity is IssueSeverity.ERROR]

    @property
    def warnings(self) -> List[ConversionIssue]:
        return [i for i in self.issues if i.severity is IssueSeverity.WARNING]

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        for k in ("path", "backup_path"):
            if d[k] is not None:
                d[k] = str(d[k])
        d["issues"] = [{
            "severity": i.severity.value,
            "message": i.message,
            "stage": i.stage,
            "record_index": i.record_index,
        } for i in self.issues]
        return d

    def summary(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "shapes_added": self.shapes_added,
            "records_written": self.records_written,
            "skipped": self.skipped,
            "failed": self.failed,
            "warnings": len(self.warnings),
            "errors": len(self.errors),
        }
