# ndpa_tools/session.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .decoder import decode_ndpa
from .domain import (AnnotationShape, CenterOffset, ConversionResult,
                     SlideCalibration)
from .encoder import encode_ndpa
from .exceptions import (BackupWriteError, NdpaError, PreconditionError,
                         SerializationError)
from .files import annotation_path_for, backup_existing, write_atomic
from .parameter_models import NdpaConfig
from .slide import SlideSource, check_preconditions, resolve_offset_for_source
from .transform import CoordinateTransform
from .utils.logger import get_logger

logger = get_logger(__name__)


def _stage_for(exc: Exception, default: str) -> str:
    if isinstance(exc, PreconditionError):
        return "precondition"
    if isinstance(exc, BackupWriteError):
        return "backup"
    if isinstance(exc, SerializationError):
        return "serialize"
    return default


class NdpaSession:
    """
    Import/export NDPA annotations for one slide.

    The session owns nothing global: `annotations` is the caller's collection
    (appended to on import, read on export), and calibration and offset are
    recomputed on every call.
    """

    def __init__(
        self,
        source: SlideSource,
        annotations: Optional[List[AnnotationShape]] = None,
        config: Optional[NdpaConfig] = None,
    ):
        self.source = source
        self.annotations: List[AnnotationShape] = (annotations if annotations
                                                   is not None else [])
        self.config = config or NdpaConfig()

    @property
    def annotation_path(self) -> Path:
        return annotation_path_for(self.source.path,
                                   self.config.format.annotation_suffix)

    def _prepare(
        self, result: ConversionResult
    ) -> Tuple[SlideCalibration, CenterOffset, CoordinateTransform]:
        calibration = self.source.calibration()
        check_preconditions(self.source.path, calibration,
                            self.config.format.slide_extension)
        offset, warnings = resolve_offset_for_source(self.source, calibration,
                                                     self.config.offset)
        for w in warnings:
            result.warn(w, stage="offset")
        return calibration, offset, CoordinateTransform.from_calibration(
            calibration, offset)

    # -------------------------
    # Read path
    # -------------------------

    def import_ndpa(self,
                    classification: Optional[str] = None) -> ConversionResult:
        """
        Add the shapes of '<slide><suffix>' to `annotations`, locked and
        carrying `classification`. Malformed records are skipped and
        reported; the call still succeeds.
        """
        path = self.annotation_path
        result = ConversionResult(path=path)
        try:
            calibration, _, transform = self._prepare(result)
            if not path.exists():
                logger.error("No NDPA file for this image: %s", path)
                result.error(f"No NDPA file for this image: {path}",
                             stage="io")
                return result
            with path.open("rb") as f:
                decoded = decode_ndpa(
                    f,
                    transform,
                    classification=classification,
                    rotated=self.config.offset.rotated,
                    image_height=calibration.height,
                )
        except (NdpaError, OSError) as e:
            logger.error("NDPA import failed: %s", e)
            result.error(str(e), stage=_stage_for(e, "decode"))
            return result

        for failure in decoded.failures:
            result.warn(str(failure),
                        stage="decode",
                        record_index=failure.record_index)
        self.annotations.extend(decoded.shapes)

        result.shapes_added = len(decoded.shapes)
        result.skipped = decoded.skipped
        result.failed = len(decoded.failures)
        result.success = True
        logger.info("imported %d annotations from %s", result.shapes_added,
                    path.name)
        return result

    # -------------------------
    # Write path
    # -------------------------

    def export_ndpa(self) -> ConversionResult:
        """
        Write `annotations` to '<slide><suffix>', backing up any existing
        file first. The target is only replaced once the new document has
        been built and the backup exists.
        """
        path = self.annotation_path
        result = ConversionResult(path=path)
        try:
            calibration, _, transform = self._prepare(result)
            xml, plan = encode_ndpa(
                self.annotations,
                transform,
                calibration,
                geometry_params=self.config.geometry,
                format_params=self.config.format,
            )
            for msg in plan.skipped:
                logger.warning("%s", msg)
                result.warn(msg, stage="encode")
            result.backup_path = backup_existing(
                path, self.config.format.backup_suffix)
            write_atomic(path, xml)
        except (NdpaError, OSError) as e:
            logger.error("NDPA export failed: %s", e)
            result.error(str(e), stage=_stage_for(e, "encode"))
            return result

        result.records_written = len(plan.records)
        result.skipped = len(plan.skipped)
        result.success = True
        logger.info("wrote %d records to %s", result.records_written,
                    path.name)
        return result

    def info(self) -> Dict[str, Any]:
        """Calibration, resolved offset and companion paths for display."""
        result = ConversionResult()
        calibration, offset, _ = self._prepare(result)
        return {
            "slide": str(self.source.path),
            "width": calibration.width,
            "height": calibration.height,
            "pixel_width_nm": calibration.pixel_width_nm,
            "pixel_height_nm": calibration.pixel_height_nm,
            "offset_x": offset.x,
            "offset_y": offset.y,
            "annotation_path": str(self.annotation_path),
            "annotation_exists": self.annotation_path.exists(),
            "warnings": [i.message for i in result.issues],
        }
