"""
NDPA Tools - Hamamatsu NDPA annotations for whole slide images

This package converts between NDP.view annotation files (.ndpa, nanometre
coordinates relative to the slide centre) and pixel-space region
annotations, for use from scripts, pipelines or a viewer plugin.
"""

__version__ = "0.1.0"

from .domain import (AnnotationShape, CenterOffset, ConversionIssue,
                     ConversionResult, IssueSeverity, ShapeKind,
                     SlideCalibration)
from .parameter_models import NdpaConfig
from .session import NdpaSession
from .slide import OpenSlideSource, StaticSlideSource

__all__ = [
    # Data model
    "AnnotationShape",
    "CenterOffset",
    "ConversionIssue",
    "ConversionResult",
    "IssueSeverity",
    "ShapeKind",
    "SlideCalibration",
    # Configuration
    "NdpaConfig",
    # Entry points
    "NdpaSession",
    "OpenSlideSource",
    "StaticSlideSource",
]
