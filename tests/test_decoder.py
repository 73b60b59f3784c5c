"""
Tests for NDPA parsing into pixel-space shapes.
"""

import io

import pytest

from conftest import (circle, freehand, linear, ndpa_document, pin,
                      view_state)
from ndpa_tools.decoder import decode_ndpa
from ndpa_tools.domain import CenterOffset, ShapeKind
from ndpa_tools.exceptions import NdpaError
from ndpa_tools.transform import CoordinateTransform

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def identity():
    """1 nm per pixel, origin at the top-left corner."""
    return CoordinateTransform(1.0, 1.0, CenterOffset(0.0, 0.0))


@pytest.fixture
def scaled():
    return CoordinateTransform(250.0, 500.0, CenterOffset(3000.0, 5000.0))


def decode(doc: str, transform, **kwargs):
    return decode_ndpa(io.BytesIO(doc.encode("utf-8")), transform, **kwargs)


# =============================================================================
# Per-type decoding
# =============================================================================


class TestShapeTypes:
    """One record of each supported annotation type."""

    @pytest.mark.parametrize("radius", [1, 25, 1000])
    def test_circle_bounding_box(self, identity, radius):
        result = decode(ndpa_document(view_state(1, circle(0, 0, radius))),
                        identity)

        shape = result.shapes[0]
        minx, miny, maxx, maxy = shape.bounds
        assert shape.kind is ShapeKind.CIRCLE
        assert maxx - minx == pytest.approx(2 * radius)
        assert maxy - miny == pytest.approx(2 * radius)
        assert shape.geometry.centroid.x == pytest.approx(0.0, abs=1e-9)

    def test_circle_radius_scaled_per_axis(self, scaled):
        result = decode(ndpa_document(view_state(1, circle(0, 0, 5000))),
                        scaled)

        minx, miny, maxx, maxy = result.shapes[0].bounds
        assert maxx - minx == pytest.approx(40.0)  # 2 * 5000 / 250
        assert maxy - miny == pytest.approx(20.0)  # 2 * 5000 / 500
        assert (minx + maxx) / 2 == pytest.approx(3000.0)
        assert (miny + maxy) / 2 == pytest.approx(5000.0)

    def test_linear_measure(self, scaled):
        result = decode(
            ndpa_document(view_state(1, linear(0, 0, 2500, -5000))), scaled)

        shape = result.shapes[0]
        assert shape.kind is ShapeKind.LINE
        assert list(shape.geometry.coords) == [(3000.0, 5000.0),
                                               (3010.0, 4990.0)]

    def test_pin(self, scaled):
        result = decode(ndpa_document(view_state(1, pin(250, 500))), scaled)

        shape = result.shapes[0]
        assert shape.kind is ShapeKind.POINT
        assert (shape.geometry.x, shape.geometry.y) == (3001.0, 5001.0)

    def test_freehand_is_closed_polygon(self, identity):
        pts = [(0, 0), (100, 0), (100, 50), (20, 80)]
        result = decode(ndpa_document(view_state(1, freehand(pts))), identity)

        shape = result.shapes[0]
        assert shape.kind is ShapeKind.POLYGON
        assert list(shape.geometry.exterior.coords)[:-1] == [
            (float(x), float(y)) for x, y in pts
        ]

    def test_rectangle_from_diagonal_corners(self, identity):
        pts = [(100, 100), (300, 100), (300, 200), (100, 200)]
        result = decode(
            ndpa_document(
                view_state(1, freehand(pts, specialtype="rectangle"))),
            identity)

        shape = result.shapes[0]
        assert shape.kind is ShapeKind.RECTANGLE
        assert shape.bounds == (100.0, 100.0, 300.0, 200.0)

    def test_rectangle_attribute_case_insensitive(self, identity):
        pts = [(0, 0), (10, 0), (10, 10), (0, 10)]
        result = decode(
            ndpa_document(
                view_state(1, freehand(pts, specialtype="Rectangle"))),
            identity)

        assert result.shapes[0].kind is ShapeKind.RECTANGLE

    def test_type_match_is_case_insensitive(self, identity):
        ann = circle(0, 0, 10).replace('type="circle"', 'type="CIRCLE"')
        result = decode(ndpa_document(view_state(1, ann)), identity)

        assert len(result.shapes) == 1


# =============================================================================
# Metadata
# =============================================================================


class TestShapeMetadata:
    """Name, description, colour, lock and classification."""

    def test_fields(self, identity):
        doc = ndpa_document(
            view_state(1, pin(0, 0, color="#FFAA00"), "Tumour", "grade 2"))
        shape = decode(doc, identity, classification="Tumor").shapes[0]

        assert shape.name == "Tumour"
        assert shape.description == "grade 2"
        assert shape.color == "#ffaa00"
        assert shape.locked is True
        assert shape.classification == "Tumor"

    def test_no_classification_by_default(self, identity):
        shape = decode(ndpa_document(view_state(1, pin(0, 0))),
                       identity).shapes[0]

        assert shape.classification is None
        assert shape.description == ""


# =============================================================================
# Partial failures
# =============================================================================


class TestPartialFailure:
    """Malformed records are skipped without aborting the file."""

    def test_malformed_circle_among_valid(self, identity):
        doc = ndpa_document(
            view_state(1, circle(0, 0, 10)),
            view_state(2, circle(0, 0, "abc")),
            view_state(3, pin(5, 5)),
        )
        result = decode(doc, identity)

        assert len(result.shapes) == 2
        assert len(result.failures) == 1
        assert result.failures[0].record_index == 1
        assert "radius" in str(result.failures[0])

    def test_missing_field(self, identity):
        ann = "<annotation type=\"pin\" color=\"#000000\"><x>1</x></annotation>"
        result = decode(ndpa_document(view_state(1, ann)), identity)

        assert result.shapes == []
        assert len(result.failures) == 1

    def test_missing_annotation_element(self, identity):
        doc = ndpa_document('<ndpviewstate id="1"><title>x</title></ndpviewstate>')
        result = decode(doc, identity)

        assert len(result.failures) == 1

    def test_degenerate_freehand(self, identity):
        result = decode(
            ndpa_document(view_state(1, freehand([(0, 0), (1, 1)]))), identity)

        assert result.shapes == []
        assert len(result.failures) == 1

    @pytest.mark.parametrize("bad", [
        freehand([(0, 0), ("NaN", 10), (10, 10)]),
        freehand([(0, 0), (10, 0), (10, "inf")]),
        circle(0, 0, "inf"),
        circle("nan", 0, 10),
    ])
    def test_non_finite_coordinate_among_valid(self, identity, bad):
        """NaN/inf values fail only their own record."""
        doc = ndpa_document(
            view_state(1, pin(0, 0)),
            view_state(2, bad),
            view_state(3, pin(5, 5)),
        )
        result = decode(doc, identity)

        assert len(result.shapes) == 2
        assert len(result.failures) == 1
        assert result.failures[0].record_index == 1
        assert "not finite" in str(result.failures[0])

    def test_unknown_type_silently_skipped(self, identity):
        ann = '<annotation type="arrow" color="#000000"><x1>0</x1></annotation>'
        result = decode(
            ndpa_document(view_state(1, ann), view_state(2, pin(0, 0))),
            identity)

        assert len(result.shapes) == 1
        assert result.skipped == 1
        assert result.failures == []
        assert result.n_records == 2

    def test_malformed_document_raises(self, identity):
        with pytest.raises(NdpaError):
            decode("<annotations><ndpviewstate>", identity)


class TestRotated:
    """The rotation switch mirrors freehand y against the image height."""

    def test_rotated_freehand(self, identity):
        pts = [(0, 0), (10, 0), (10, 10)]
        result = decode(ndpa_document(view_state(1, freehand(pts))),
                        identity,
                        rotated=True,
                        image_height=100)

        ys = [y for _, y in list(result.shapes[0].geometry.exterior.coords)]
        assert ys[:3] == [100.0, 100.0, 90.0]
