# ndpa_tools/encoder.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Tuple
from xml.dom import minidom
from xml.dom.minidom import Document, Element

from shapely.errors import GEOSException

from .domain import AnnotationShape, RingRecord, SlideCalibration
from .exceptions import SerializationError
from .geometry import prepare_rings
from .parameter_models import FormatParams, GeometryParams
from .transform import CoordinateTransform
from .utils.logger import get_logger

logger = get_logger(__name__)

# characters outside the XML 1.0 Char production
_XML_ILLEGAL = re.compile(
    "[^\u0009\u000a\u000d\u0020-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


@dataclass(frozen=True)
class ViewStateRecord:
    """
    One <ndpviewstate> in file units. `points` are integer nanometres; `x`
    and `y` are the view position written as the integer image centre.
    """
    id: int
    title: str
    details: str
    color: str
    points: Tuple[Tuple[int, int], ...]
    coord_format: str
    lens: float
    x: int
    y: int
    display_name: str
    z: int = 0
    show_title: int = 0
    show_histogram: int = 0
    show_line_profile: int = 0
    annotation_type: str = "freehand"
    measure_type: int = 0
    closed: int = 1


@dataclass
class RingPlan:
    records: List[RingRecord]
    skipped: List[str]


def build_ring_records(
    shapes: Iterable[AnnotationShape],
    geometry_params: GeometryParams | None = None,
    format_params: FormatParams | None = None,
) -> RingPlan:
    """
    Decompose annotations into a flat list of pixel-space rings.

    The first ring of each simple polygon carries the annotation's name,
    classification and colour; every further ring (a hole) is a "clear"
    record. Ids run from 1 across the whole collection.
    """
    geometry_params = geometry_params or GeometryParams()
    fmt = format_params or FormatParams()

    records: List[RingRecord] = []
    skipped: List[str] = []
    next_id = 1
    for i, shape in enumerate(shapes):
        label = shape.name or f"#{i}"
        if not shape.kind.is_areal:
            skipped.append(
                f"annotation {label!r} is a {shape.kind.value}; only areas are exported")
            continue

        polygons = prepare_rings(shape.geometry, geometry_params)
        if not polygons:
            skipped.append(
                f"annotation {label!r} has no area left after simplification")
            continue

        for rings in polygons:
            for ring_index, points in enumerate(rings):
                if ring_index == 0:
                    title = shape.name or ""
                    details = shape.classification or ""
                    color = (shape.color or shape.classification_color
                             or fmt.default_color)
                else:
                    title = fmt.clear_label
                    details = fmt.clear_label
                    color = fmt.clear_color
                records.append(
                    RingRecord(
                        id=next_id,
                        ring_index=ring_index,
                        title=title,
                        details=details,
                        color=color,
                        points=tuple(points),
                    ))
                next_id += 1
    return RingPlan(records=records, skipped=skipped)


def to_view_state(
    ring: RingRecord,
    transform: CoordinateTransform,
    calibration: SlideCalibration,
    fmt: FormatParams,
) -> ViewStateRecord:
    cx, cy = calibration.center
    return ViewStateRecord(
        id=ring.id,
        title=ring.title,
        details=ring.details,
        color=ring.color,
        points=tuple(transform.points_to_physical(ring.points)),
        coord_format=fmt.coord_format,
        lens=fmt.lens,
        x=int(cx),
        y=int(cy),
        display_name=fmt.display_name,
    )


# -------------------------
# XML rendering
# -------------------------


def _child(doc: Document, parent: Element, tag: str, text=None) -> Element:
    el = doc.createElement(tag)
    if text is not None:
        text = str(text)
        bad = _XML_ILLEGAL.search(text)
        if bad is not None:
            raise SerializationError(
                f"<{tag}> contains a character not allowed in XML: "
                f"{bad.group()!r} in {text!r}")
        el.appendChild(doc.createTextNode(text))
    parent.appendChild(el)
    return el


def _render_state(doc: Document, rec: ViewStateRecord) -> Element:
    state = doc.createElement("ndpviewstate")
    state.setAttribute("id", str(rec.id))
    _child(doc, state, "title", rec.title)
    _child(doc, state, "details", rec.details)
    _child(doc, state, "coordformat", rec.coord_format)
    _child(doc, state, "lens", rec.lens)
    _child(doc, state, "x", rec.x)
    _child(doc, state, "y", rec.y)
    _child(doc, state, "z", rec.z)
    _child(doc, state, "showtitle", rec.show_title)
    _child(doc, state, "showhistogram", rec.show_histogram)
    _child(doc, state, "showlineprofile", rec.show_line_profile)

    ann = _child(doc, state, "annotation")
    ann.setAttribute("type", rec.annotation_type)
    ann.setAttribute("displayname", rec.display_name)
    ann.setAttribute("color", rec.color)
    _child(doc, ann, "measuretype", rec.measure_type)
    _child(doc, ann, "closed", rec.closed)
    pointlist = _child(doc, ann, "pointlist")
    for x, y in rec.points:
        p = _child(doc, pointlist, "point")
        _child(doc, p, "x", x)
        _child(doc, p, "y", y)
    return state


def render_ndpa(records: Iterable[ViewStateRecord]) -> bytes:
    """Serialize view-state records to a UTF-8 NDPA document."""
    doc = minidom.Document()
    try:
        root = doc.createElement("annotations")
        doc.appendChild(root)
        for rec in records:
            root.appendChild(_render_state(doc, rec))
        return doc.toprettyxml(indent="  ", encoding="utf-8", standalone=True)
    finally:
        doc.unlink()


def encode_ndpa(
    shapes: Iterable[AnnotationShape],
    transform: CoordinateTransform,
    calibration: SlideCalibration,
    *,
    geometry_params: GeometryParams | None = None,
    format_params: FormatParams | None = None,
) -> Tuple[bytes, RingPlan]:
    """
    Full write path: rings, physical coordinates and XML.

    Raises:
        SerializationError: geometry processing or XML building failed.
    """
    fmt = format_params or FormatParams()
    try:
        plan = build_ring_records(shapes, geometry_params, fmt)
        states = [
            to_view_state(r, transform, calibration, fmt)
            for r in plan.records
        ]
        xml = render_ndpa(states)
    except (GEOSException, ValueError, TypeError) as e:
        raise SerializationError(f"Could not build NDPA document: {e}") from e
    logger.info("encoded %d ring records", len(plan.records))
    return xml, plan
