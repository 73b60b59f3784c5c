"""
QuPath-style GeoJSON interchange, so annotations can enter and leave the
converter without a viewer in the loop.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from shapely.errors import ShapelyError
from shapely.geometry import mapping, shape

from .domain import AnnotationShape, ShapeKind, normalize_color


class GeoJsonError(ValueError):
    pass


def hex_to_rgb(color: str) -> List[int]:
    c = normalize_color(color)
    if c is None:
        raise GeoJsonError(f"not a 6-hex RGB colour: {color!r}")
    return [int(c[i:i + 2], 16) for i in (1, 3, 5)]


def rgb_to_hex(rgb: Sequence[int]) -> str:
    if len(rgb) < 3:
        raise GeoJsonError(f"expected [r, g, b], got {rgb!r}")
    r, g, b = (max(0, min(255, int(v))) for v in rgb[:3])
    return f"#{r:02x}{g:02x}{b:02x}"


def _kind_for(geom_type: str, n_coords: int) -> ShapeKind:
    if geom_type in ("Polygon", "MultiPolygon"):
        return ShapeKind.POLYGON
    if geom_type in ("Point", "MultiPoint"):
        return ShapeKind.POINT
    if geom_type == "LineString" and n_coords == 2:
        return ShapeKind.LINE
    return ShapeKind.POLYLINE


def feature_from_shape(s: AnnotationShape) -> Dict[str, Any]:
    props: Dict[str, Any] = {
        "objectType": "annotation",
        "name": s.name,
        "isLocked": s.locked,
        "shapeKind": s.kind.value,
    }
    if s.description:
        props["description"] = s.description
    if s.color:
        props["color"] = hex_to_rgb(s.color)
    if s.classification:
        props["classification"] = {"name": s.classification}
        if s.classification_color:
            props["classification"]["color"] = hex_to_rgb(
                s.classification_color)
    return {
        "type": "Feature",
        "geometry": mapping(s.geometry),
        "properties": props,
    }


def shape_from_feature(feature: Dict[str, Any]) -> AnnotationShape:
    geometry = feature.get("geometry")
    if not geometry:
        raise GeoJsonError("feature without geometry")
    try:
        geom = shape(geometry)
    except (ShapelyError, ValueError, TypeError, AttributeError) as e:
        raise GeoJsonError(f"invalid geometry: {e}") from e

    props = feature.get("properties") or {}
    classification = props.get("classification") or {}
    class_name: Optional[str] = classification.get("name")

    color = None
    if props.get("color") is not None:
        color = rgb_to_hex(props["color"])
    class_color = None
    if classification.get("color") is not None:
        class_color = rgb_to_hex(classification["color"])

    n_coords = len(geom.coords) if geom.geom_type == "LineString" else 0
    kind = (ShapeKind.coerce(props["shapeKind"]) if props.get("shapeKind")
            else _kind_for(geom.geom_type, n_coords))

    return AnnotationShape(
        kind=kind,
        geometry=geom,
        name=props.get("name") or "",
        description=props.get("description") or "",
        color=color,
        locked=bool(props.get("isLocked", False)),
        classification=class_name,
        classification_color=class_color,
    )


def shapes_to_feature_collection(
        shapes: Iterable[AnnotationShape]) -> Dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [feature_from_shape(s) for s in shapes],
    }


def shapes_from_feature_collection(
        data: Dict[str, Any]) -> List[AnnotationShape]:
    if data.get("type") == "Feature":
        return [shape_from_feature(data)]
    if data.get("type") != "FeatureCollection":
        raise GeoJsonError("Expected a FeatureCollection")
    return [shape_from_feature(f) for f in data.get("features", [])]


def load_geojson(path: Path | str) -> List[AnnotationShape]:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise GeoJsonError(f"{path} is not valid JSON: {e}") from e
    if isinstance(data, list):
        # QuPath "export as array"
        return [shape_from_feature(f) for f in data]
    return shapes_from_feature_collection(data)


def save_geojson(path: Path | str, shapes: Iterable[AnnotationShape]) -> Path:
    path = Path(path)
    path.write_text(json.dumps(shapes_to_feature_collection(shapes), indent=2),
                    encoding="utf-8")
    return path
