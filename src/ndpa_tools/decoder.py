# ndpa_tools/decoder.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Callable, Dict, List, Optional, Tuple, Union
from xml.dom import Node, minidom
from xml.dom.minidom import Element
from xml.parsers.expat import ExpatError

from shapely.errors import ShapelyError
from shapely.geometry.base import BaseGeometry

from . import geometry as geo
from .domain import AnnotationShape, ShapeKind
from .exceptions import NdpaError, PerRecordParseError
from .transform import CoordinateTransform
from .utils.logger import get_logger

logger = get_logger(__name__)

Source = Union[str, Path, IO[bytes]]


@dataclass
class DecodeResult:
    shapes: List[AnnotationShape] = field(default_factory=list)
    skipped: int = 0
    failures: List[PerRecordParseError] = field(default_factory=list)

    @property
    def n_records(self) -> int:
        return len(self.shapes) + self.skipped + len(self.failures)


@dataclass(frozen=True)
class _Context:
    transform: CoordinateTransform
    rotated: bool
    image_height: float


def _text(parent: Element, tag: str) -> str:
    """Trimmed text of the first descendant <tag>, or '' if absent."""
    nodes = parent.getElementsByTagName(tag)
    if not nodes:
        return ""
    return "".join(
        n.data for n in nodes[0].childNodes
        if n.nodeType in (Node.TEXT_NODE, Node.CDATA_SECTION_NODE)).strip()


def _number(parent: Element, tag: str) -> float:
    raw = _text(parent, tag)
    try:
        value = float(raw)
    except ValueError:
        raise PerRecordParseError(
            f"<{tag}> is missing or not numeric: {raw!r}") from None
    if not math.isfinite(value):
        raise PerRecordParseError(f"<{tag}> is not finite: {raw!r}")
    return value


# -------------------------
# Per-type builders
# -------------------------


def _circle(ann: Element, ctx: _Context) -> Tuple[ShapeKind, BaseGeometry]:
    x = _number(ann, "x")
    y = _number(ann, "y")
    radius = _number(ann, "radius")
    rx, ry = ctx.transform.radius_to_pixel(radius)
    cx, cy = ctx.transform.point_to_pixel(x, y)
    return ShapeKind.CIRCLE, geo.ellipse(cx, cy, rx, ry)


def _linear_measure(ann: Element,
                    ctx: _Context) -> Tuple[ShapeKind, BaseGeometry]:
    x1, y1 = ctx.transform.point_to_pixel(_number(ann, "x1"),
                                          _number(ann, "y1"))
    x2, y2 = ctx.transform.point_to_pixel(_number(ann, "x2"),
                                          _number(ann, "y2"))
    return ShapeKind.LINE, geo.line(x1, y1, x2, y2)


def _pin(ann: Element, ctx: _Context) -> Tuple[ShapeKind, BaseGeometry]:
    x, y = ctx.transform.point_to_pixel(_number(ann, "x"), _number(ann, "y"))
    return ShapeKind.POINT, geo.point(x, y)


def _freehand(ann: Element, ctx: _Context) -> Tuple[ShapeKind, BaseGeometry]:
    pointlists = ann.getElementsByTagName("pointlist")
    if not pointlists:
        raise PerRecordParseError("freehand annotation without <pointlist>")

    points: List[Tuple[float, float]] = []
    for p in pointlists[0].getElementsByTagName("point"):
        x = _number(p, "x")
        y = _number(p, "y")
        if ctx.rotated:
            y = ctx.image_height - y
        points.append(ctx.transform.point_to_pixel(x, y))

    if (ann.getAttribute("specialtype") or "").lower() == "rectangle":
        if len(points) < 3:
            raise PerRecordParseError(
                f"rectangle needs at least 3 points, got {len(points)}")
        (x1, y1), (x3, y3) = points[0], points[2]
        return ShapeKind.RECTANGLE, geo.rectangle(x1, y1, x3, y3)

    # NDPA freehand shapes are always read as closed outlines
    if len(points) < 3:
        raise PerRecordParseError(
            f"polygon needs at least 3 points, got {len(points)}")
    return ShapeKind.POLYGON, geo.polygon(points)


_BUILDERS: Dict[str, Callable[[Element, _Context], Tuple[ShapeKind,
                                                          BaseGeometry]]] = {
    "CIRCLE": _circle,
    "LINEARMEASURE": _linear_measure,
    "PIN": _pin,
    "FREEHAND": _freehand,
}


def _decode_state(state: Element, ctx: _Context,
                  classification: Optional[str]) -> Optional[AnnotationShape]:
    annotations = state.getElementsByTagName("annotation")
    if len(annotations) != 1:
        raise PerRecordParseError(
            f"expected exactly one <annotation>, found {len(annotations)}")
    ann = annotations[0]

    ann_type = (ann.getAttribute("type") or "").strip().upper()
    builder = _BUILDERS.get(ann_type)
    if builder is None:
        logger.debug("skipping unsupported annotation type %r", ann_type)
        return None

    title = _text(state, "title")
    details = _text(state, "details")
    color = ann.getAttribute("color")
    logger.debug("elem: %s %s %s", ann_type, title, color)

    try:
        kind, geometry = builder(ann, ctx)
    except (ShapelyError, ValueError, IndexError) as e:
        # shapely rejects degenerate coordinate sequences
        raise PerRecordParseError(f"invalid {ann_type.lower()} geometry: {e}") from e

    return AnnotationShape(
        kind=kind,
        geometry=geometry,
        name=title,
        description=details,
        color=color,
        locked=True,
        classification=classification,
    )


def decode_ndpa(
    source: Source,
    transform: CoordinateTransform,
    *,
    classification: Optional[str] = None,
    rotated: bool = False,
    image_height: float = 0.0,
) -> DecodeResult:
    """
    Parse an NDPA document into pixel-space annotation shapes.

    A malformed <ndpviewstate> is recorded in `failures` and decoding goes on
    with the next one; unsupported annotation types are counted in `skipped`.

    Raises:
        NdpaError: the document itself is not well-formed XML.
    """
    try:
        doc = minidom.parse(str(source) if isinstance(source, Path) else source)
    except ExpatError as e:
        raise NdpaError(f"Malformed NDPA document: {e}") from e

    try:
        doc.documentElement.normalize()
        ctx = _Context(transform=transform,
                       rotated=rotated,
                       image_height=float(image_height))
        result = DecodeResult()
        index = 0
        for node in doc.documentElement.childNodes:
            if node.nodeType != Node.ELEMENT_NODE:
                continue
            try:
                shape = _decode_state(node, ctx, classification)
            except PerRecordParseError as e:
                e.record_index = index
                state_id = node.getAttribute("id") or "?"
                logger.warning("record %d (id=%s): %s", index, state_id, e)
                result.failures.append(e)
            else:
                if shape is None:
                    result.skipped += 1
                else:
                    result.shapes.append(shape)
            index += 1
    finally:
        doc.unlink()

    logger.info("decoded %d shapes (%d skipped, %d failed)",
                len(result.shapes), result.skipped, len(result.failures))
    return result
