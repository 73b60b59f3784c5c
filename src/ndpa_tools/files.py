# ndpa_tools/files.py
from __future__ import annotations

import shutil
from pathlib import Path

from .exceptions import BackupWriteError, SerializationError
from .utils.logger import get_logger

logger = get_logger(__name__)


def annotation_path_for(slide_path: Path | str, suffix: str = ".ndpa") -> Path:
    """'slide.ndpi' -> 'slide.ndpi.ndpa' (suffix appended, not substituted)."""
    slide_path = Path(slide_path)
    return slide_path.with_name(slide_path.name + suffix)


def backup_path_for(annotation_path: Path | str, suffix: str = ".bak") -> Path:
    """
    First free name among 'x.ndpa.bak', 'x.ndpa.bak.1', 'x.ndpa.bak.2', ...
    """
    annotation_path = Path(annotation_path)
    candidate = annotation_path.with_name(annotation_path.name + suffix)
    counter = 1
    while candidate.exists():
        candidate = annotation_path.with_name(
            f"{annotation_path.name}{suffix}.{counter}")
        counter += 1
    return candidate


def backup_existing(annotation_path: Path | str,
                    suffix: str = ".bak") -> Path | None:
    """
    Copy an existing annotation file to a fresh backup name.

    Returns:
        The backup path, or None if there was nothing to back up.

    Raises:
        BackupWriteError: the copy failed; the original is left untouched.
    """
    annotation_path = Path(annotation_path)
    if not annotation_path.exists():
        return None
    backup = backup_path_for(annotation_path, suffix)
    logger.info("Creating backup: %s", backup)
    try:
        shutil.copy2(annotation_path, backup)
    except OSError as e:
        raise BackupWriteError(
            f"Failed to back up {annotation_path} to {backup}: {e}") from e
    return backup


def write_atomic(target: Path | str, data: bytes) -> Path:
    """
    Write to '<target>.part' and move it over `target`, so a failed write
    never leaves a truncated annotation file behind.
    """
    target = Path(target)
    tmp = target.with_name(target.name + ".part")
    try:
        tmp.write_bytes(data)
        tmp.replace(target)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise SerializationError(f"Failed to write {target}: {e}") from e
    return target
