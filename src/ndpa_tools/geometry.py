# ndpa_tools/geometry.py
from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np
from shapely.geometry import (GeometryCollection, LinearRing, LineString,
                              MultiPolygon, Point, Polygon, box)
from shapely.geometry.base import BaseGeometry
from shapely.validation import make_valid

from .parameter_models import GeometryParams

Ring = List[Tuple[float, float]]


# -------------------------
# Construction (decoder side)
# -------------------------


def ellipse(cx: float, cy: float, rx: float, ry: float,
            n_vertices: int = 64) -> Polygon:
    """Axis-aligned ellipse; vertices at 0/90/180/270 degrees land on the bounding box."""
    t = np.linspace(0.0, 2.0 * np.pi, n_vertices, endpoint=False)
    xs = cx + rx * np.cos(t)
    ys = cy + ry * np.sin(t)
    return Polygon(np.column_stack([xs, ys]))


def rectangle(x1: float, y1: float, x2: float, y2: float) -> Polygon:
    """Axis-aligned rectangle from two diagonal corners, in any order."""
    return box(min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))


def line(x1: float, y1: float, x2: float, y2: float) -> LineString:
    return LineString([(x1, y1), (x2, y2)])


def point(x: float, y: float) -> Point:
    return Point(x, y)


def polygon(points: Sequence[Tuple[float, float]]) -> Polygon:
    return Polygon(points)


def polyline(points: Sequence[Tuple[float, float]]) -> LineString:
    return LineString(points)


# -------------------------
# Clean-up (encoder side)
# -------------------------


def simplify(geom: BaseGeometry, tolerance: float) -> BaseGeometry:
    """Douglas-Peucker that keeps rings valid and holes inside their shells."""
    return geom.simplify(tolerance, preserve_topology=True)


def _refine_polygon(poly: Polygon, min_area: float,
                    min_hole_area: float) -> Polygon | None:
    if poly.is_empty or poly.area < min_area:
        return None
    holes = [
        ring for ring in poly.interiors
        if Polygon(ring).area >= min_hole_area
    ]
    return Polygon(poly.exterior, holes)


def refine_areas(geom: BaseGeometry, min_area: float,
                 min_hole_area: float) -> BaseGeometry:
    """
    Drop polygon fragments smaller than `min_area` and holes smaller than
    `min_hole_area`. Invalid input is repaired first.
    """
    if min_area <= 0 and min_hole_area <= 0:
        return geom
    if not geom.is_valid:
        geom = make_valid(geom)

    kept = []
    for poly in extract_polygons(geom):
        refined = _refine_polygon(poly, min_area, min_hole_area)
        if refined is not None:
            kept.append(refined)

    if not kept:
        return Polygon()
    if len(kept) == 1:
        return kept[0]
    return MultiPolygon(kept)


def extract_polygons(geom: BaseGeometry) -> List[Polygon]:
    """Every Polygon component of `geom`; lines and points are dropped."""
    if geom is None or geom.is_empty:
        return []
    if isinstance(geom, Polygon):
        return [geom]
    if isinstance(geom, (MultiPolygon, GeometryCollection)):
        out: List[Polygon] = []
        for part in geom.geoms:
            out.extend(extract_polygons(part))
        return out
    return []


def ring_points(ring: LinearRing) -> Ring:
    """Ring coordinates without the repeated closing point."""
    coords = [(float(x), float(y)) for x, y, *_ in ring.coords]
    if len(coords) > 1 and coords[0] == coords[-1]:
        coords = coords[:-1]
    return coords


def polygon_rings(poly: Polygon) -> List[Ring]:
    """Exterior ring first, then each hole as an independent ring."""
    return [ring_points(poly.exterior)
            ] + [ring_points(r) for r in poly.interiors]


def prepare_rings(geom: BaseGeometry,
                  params: GeometryParams | None = None) -> List[List[Ring]]:
    """
    Simplify, refine and split a region into per-polygon ring lists.

    Returns:
        One entry per simple polygon; each entry is [exterior, *holes].
    """
    params = params or GeometryParams()
    geom = simplify(geom, params.simplify_tolerance)
    geom = refine_areas(geom, params.min_area, params.min_hole_area)
    return [polygon_rings(p) for p in extract_polygons(geom)]
