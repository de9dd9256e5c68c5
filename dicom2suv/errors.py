# dicom2suv/errors.py
"""Conversion errors.

Every condition that is fatal for a series derives from ``ConversionError`` so
the driver can stop that series (or the run) with one ``except`` clause.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydicom.tag import BaseTag

from dicom2suv.tags import format_tag


class ConversionError(RuntimeError):
    """Base class for series-fatal conditions."""


class TagNotFound(ConversionError):
    def __init__(self, tag: BaseTag, where: str = "") -> None:
        self.tag = tag
        msg = f"DICOM tag not found: {format_tag(tag)}"
        if where:
            msg = f"{msg} in {where}"
        super().__init__(msg)


class MalformedPharmaInfo(ConversionError):
    """Radiopharmaceutical Information Sequence does not hold exactly one item."""

    def __init__(self, n_items: int) -> None:
        self.n_items = n_items
        if n_items == 0:
            msg = "Pharma info (0054,0016) not found."
        else:
            msg = f"Invalid number of items in pharma info: {n_items} (expected 1)"
        super().__init__(msg)


class InvalidNumericField(ConversionError):
    def __init__(self, field: str, text: str, reason: str = "") -> None:
        self.field = field
        self.text = text
        msg = f"Invalid value for {field}: {text!r}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class UnsupportedDimension(ConversionError):
    def __init__(self, dimension: int) -> None:
        self.dimension = dimension
        super().__init__(f"Invalid image dimension: {dimension}")


class UnsupportedComponentType(ConversionError):
    def __init__(self, component_type: str, channel_count: int) -> None:
        self.component_type = component_type
        self.channel_count = channel_count
        super().__init__(
            f"Unsupported component type: {component_type} (components={channel_count})"
        )


class NoAvailableName(ConversionError):
    def __init__(self, directory: Path, stem: str, ext: str, limit: int) -> None:
        self.directory = directory
        super().__init__(
            f"Could not find available filename for {stem}{ext} in {directory} "
            f"after {limit} attempts"
        )


class ReconstructionFailed(ConversionError):
    def __init__(self, output_path: Path, cause: Optional[BaseException] = None) -> None:
        self.output_path = output_path
        msg = f"Failed to read series for {output_path}"
        if cause is not None:
            msg = f"{msg}: {cause}"
        super().__init__(msg)


class WriteFailed(ConversionError):
    def __init__(self, output_path: Path, cause: Optional[BaseException] = None) -> None:
        self.output_path = output_path
        msg = f"Failed to write {output_path}"
        if cause is not None:
            msg = f"{msg}: {cause}"
        super().__init__(msg)
