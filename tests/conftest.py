"""
Shared fixtures: an in-memory NDPI slide and a tiny NDPA document builder.
"""

from pathlib import Path
from textwrap import dedent
from typing import Iterable, Optional

import pytest

from ndpa_tools.domain import SlideCalibration
from ndpa_tools.slide import StaticSlideSource

# 0.25 um/px -> 250 nm/px; image centre (5000, 4000)
PIXEL_UM = 0.25
PIXEL_NM = 250.0
WIDTH = 10000
HEIGHT = 8000
X_OFFSET_NM = 500000   # 2000 px
Y_OFFSET_NM = -250000  # -1000 px
OFFSET_X = WIDTH / 2 - X_OFFSET_NM / PIXEL_NM  # 3000
OFFSET_Y = HEIGHT / 2 - Y_OFFSET_NM / PIXEL_NM  # 5000


@pytest.fixture
def calibration():
    return SlideCalibration(width=WIDTH,
                            height=HEIGHT,
                            pixel_width_um=PIXEL_UM,
                            pixel_height_um=PIXEL_UM)


@pytest.fixture
def hamamatsu_props():
    return {
        "openslide.vendor": "hamamatsu",
        "hamamatsu.XOffsetFromSlideCentre": str(X_OFFSET_NM),
        "hamamatsu.YOffsetFromSlideCentre": str(Y_OFFSET_NM),
    }


@pytest.fixture
def slide_path(tmp_path):
    p = tmp_path / "case_01.ndpi"
    p.write_bytes(b"")
    return p


@pytest.fixture
def source(slide_path, calibration, hamamatsu_props):
    return StaticSlideSource(slide_path, calibration, hamamatsu_props)


# =============================================================================
# NDPA document builder
# =============================================================================


def view_state(state_id: int,
               annotation: str,
               title: str = "",
               details: str = "") -> str:
    return dedent(f"""\
      <ndpviewstate id="{state_id}">
        <title>{title}</title>
        <details>{details}</details>
        <coordformat>nanometers</coordformat>
        <lens>0.445623</lens>
        <x>0</x>
        <y>0</y>
        <z>0</z>
        <showtitle>0</showtitle>
        <showhistogram>0</showhistogram>
        <showlineprofile>0</showlineprofile>
        {annotation}
      </ndpviewstate>
    """)


def circle(x, y, radius, color="#00ff00") -> str:
    return (f'<annotation type="circle" displayname="AnnotateCircle" color="{color}">'
            f"<x>{x}</x><y>{y}</y><radius>{radius}</radius>"
            "<measuretype>3</measuretype></annotation>")


def linear(x1, y1, x2, y2, color="#0000ff") -> str:
    return (f'<annotation type="linearmeasure" displayname="AnnotateRuler" color="{color}">'
            f"<x1>{x1}</x1><y1>{y1}</y1><x2>{x2}</x2><y2>{y2}</y2></annotation>")


def pin(x, y, color="#ffff00") -> str:
    return (f'<annotation type="pin" displayname="AnnotatePin" color="{color}">'
            f"<x>{x}</x><y>{y}</y><icon>pinred</icon></annotation>")


def freehand(points: Iterable, color="#ff0000",
             specialtype: Optional[str] = None) -> str:
    special = f' specialtype="{specialtype}"' if specialtype else ""
    pts = "".join(f"<point><x>{x}</x><y>{y}</y></point>" for x, y in points)
    return (f'<annotation type="freehand" displayname="AnnotateFreehand" color="{color}"{special}>'
            f"<measuretype>0</measuretype><closed>1</closed>"
            f"<pointlist>{pts}</pointlist></annotation>")


def ndpa_document(*states: str) -> str:
    body = "".join(states)
    return ('<?xml version="1.0" encoding="utf-8" standalone="yes"?>\n'
            f"<annotations>\n{body}</annotations>\n")


def write_ndpa(slide_path: Path, *states: str) -> Path:
    path = slide_path.with_name(slide_path.name + ".ndpa")
    path.write_text(ndpa_document(*states), encoding="utf-8")
    return path
