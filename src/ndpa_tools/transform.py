# ndpa_tools/transform.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Tuple

from .domain import CenterOffset, SlideCalibration
from .exceptions import PreconditionError


def to_pixel(physical: float, pixel_size_nm: float, offset: float) -> float:
    """Nanometres (relative to the slide origin) -> image pixels."""
    return physical / pixel_size_nm + offset


def to_physical(pixel: float, pixel_size_nm: float, offset: float) -> int:
    """Image pixels -> nanometres, truncated toward zero like the viewer does."""
    return int((pixel - offset) * pixel_size_nm)


@dataclass(frozen=True)
class CoordinateTransform:
    """
    Two independent linear mappings, one per axis. No rotation is applied.
    """
    pixel_width_nm: float
    pixel_height_nm: float
    offset: CenterOffset

    @classmethod
    def from_calibration(cls, calibration: SlideCalibration,
                         offset: CenterOffset) -> "CoordinateTransform":
        if not calibration.has_pixel_size:
            raise PreconditionError("No pixel size information for this image.")
        return cls(
            pixel_width_nm=calibration.pixel_width_nm,
            pixel_height_nm=calibration.pixel_height_nm,
            offset=offset,
        )

    def x_to_pixel(self, x: float) -> float:
        return to_pixel(x, self.pixel_width_nm, self.offset.x)

    def y_to_pixel(self, y: float) -> float:
        return to_pixel(y, self.pixel_height_nm, self.offset.y)

    def x_to_physical(self, x: float) -> int:
        return to_physical(x, self.pixel_width_nm, self.offset.x)

    def y_to_physical(self, y: float) -> int:
        return to_physical(y, self.pixel_height_nm, self.offset.y)

    def point_to_pixel(self, x: float, y: float) -> Tuple[float, float]:
        return self.x_to_pixel(x), self.y_to_pixel(y)

    def point_to_physical(self, x: float, y: float) -> Tuple[int, int]:
        return self.x_to_physical(x), self.y_to_physical(y)

    def points_to_physical(
        self, points: Iterable[Tuple[float, float]]
    ) -> List[Tuple[int, int]]:
        return [self.point_to_physical(x, y) for x, y in points]

    def radius_to_pixel(self, radius: float) -> Tuple[float, float]:
        """A physical length scaled independently per axis."""
        return radius / self.pixel_width_nm, radius / self.pixel_height_nm
