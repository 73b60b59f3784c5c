# ndpa_tools/exceptions.py
from __future__ import annotations


class NdpaError(Exception):
    """Base class for NDPA conversion failures."""


class PreconditionError(NdpaError):
    """Wrong slide type or missing pixel calibration."""


class MetadataUnavailableError(NdpaError):
    """Vendor metadata could not be read from the slide."""


class PerRecordParseError(NdpaError):
    """A single <ndpviewstate> record is malformed."""

    def __init__(self, message: str, record_index: int | None = None):
        super().__init__(message)
        self.record_index = record_index


class BackupWriteError(NdpaError):
    """Copying the existing annotation file to a backup failed."""


class SerializationError(NdpaError):
    """Building or writing the output XML failed."""
