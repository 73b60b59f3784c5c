# ndpa_tools/slide.py
from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional, Protocol, Tuple

import openslide

from .domain import CenterOffset, SlideCalibration
from .exceptions import MetadataUnavailableError, PreconditionError
from .parameter_models import OffsetParams
from .utils.logger import get_logger

logger = get_logger(__name__)


class SlideSource(Protocol):
    """What the converter needs to know about the slide being annotated."""

    path: Path

    def calibration(self) -> SlideCalibration:
        ...

    def properties(self) -> Mapping[str, str]:
        """Vendor metadata; raises MetadataUnavailableError if unreadable."""
        ...


def _parse_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        out = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    return out if math.isfinite(out) else None


class OpenSlideSource:
    """
    Slide source backed by openslide. The slide is opened on every call and
    closed before returning; nothing is cached between conversions.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _open(self) -> openslide.OpenSlide:
        try:
            return openslide.OpenSlide(str(self.path))
        except (openslide.OpenSlideError, OSError) as e:
            raise MetadataUnavailableError(
                f"Could not open slide with OpenSlide: {self.path}: {e}") from e

    def calibration(self) -> SlideCalibration:
        try:
            slide = self._open()
        except MetadataUnavailableError as e:
            raise PreconditionError(str(e)) from e
        with slide:
            w, h = slide.level_dimensions[0]
            props = slide.properties
            return SlideCalibration(
                width=int(w),
                height=int(h),
                pixel_width_um=_parse_float(
                    props.get(openslide.PROPERTY_NAME_MPP_X)),
                pixel_height_um=_parse_float(
                    props.get(openslide.PROPERTY_NAME_MPP_Y)),
            )

    def properties(self) -> Mapping[str, str]:
        slide = self._open()
        with slide:
            return dict(slide.properties)


@dataclass
class StaticSlideSource:
    """
    In-memory slide description, for callers that already hold the metadata.
    `props=None` means the vendor metadata is unavailable.
    """
    path: Path
    slide_calibration: SlideCalibration
    props: Optional[Mapping[str, str]] = None

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    def calibration(self) -> SlideCalibration:
        return self.slide_calibration

    def properties(self) -> Mapping[str, str]:
        if self.props is None:
            raise MetadataUnavailableError(
                f"No metadata available for {self.path}")
        return dict(self.props)


def check_preconditions(path: Path, calibration: SlideCalibration,
                        slide_extension: str = ".ndpi") -> None:
    """Raise PreconditionError unless this slide can carry NDPA annotations."""
    if not str(path).lower().endswith(slide_extension.lower()):
        raise PreconditionError(
            f"File is not {slide_extension.lstrip('.').upper()}: {path}")
    if not calibration.has_pixel_size:
        raise PreconditionError(
            f"No pixel size information for this image: {path}")


def resolve_center_offset(
    calibration: SlideCalibration,
    properties: Optional[Mapping[str, str]],
    params: OffsetParams | None = None,
) -> Tuple[CenterOffset, List[str]]:
    """
    Pixel position of the NDPA coordinate origin.

    Starts at the image centre and subtracts the vendor offset from the
    slide centre (nanometres) on each axis that has a parsable value.
    Returns the offset and a list of warnings; nothing here is fatal.
    """
    params = params or OffsetParams()
    cx, cy = calibration.center
    warnings: List[str] = []

    if properties is None:
        warnings.append(
            "slide metadata unavailable; using image centre as offset")
        return CenterOffset(cx, cy), warnings

    axes = (
        ("X", params.x_key, calibration.pixel_width_nm),
        ("Y", params.y_key, calibration.pixel_height_nm),
    )
    corrected = []
    for axis, key, size_nm in axes:
        raw = properties.get(key)
        value = _parse_float(raw)
        if value is None:
            if raw is None:
                warnings.append(f"{axis} offset '{key}' missing from metadata")
            else:
                warnings.append(
                    f"{axis} offset '{key}' is not a number: {raw!r}")
            corrected.append(0.0)
        else:
            corrected.append(value / size_nm)

    return CenterOffset(cx - corrected[0], cy - corrected[1]), warnings


def resolve_offset_for_source(
    source: SlideSource,
    calibration: SlideCalibration,
    params: OffsetParams | None = None,
) -> Tuple[CenterOffset, List[str]]:
    """Read the source metadata and resolve the offset, degrading to the image centre."""
    try:
        props: Optional[Mapping[str, str]] = source.properties()
    except MetadataUnavailableError as e:
        logger.warning("%s", e)
        props = None
    offset, warnings = resolve_center_offset(calibration, props, params)
    for w in warnings:
        logger.warning("%s: %s", source.path.name, w)
    logger.info("offset: %s %s", offset.x, offset.y)
    return offset, warnings
