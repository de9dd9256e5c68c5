# dicom2suv/reencode.py
"""Rewrite Rescale Slope (0028,1053) as ``slope * factor``.

Rescale Slope is a Decimal String: at most 16 bytes of ASCII. The scaled
value is rendered in scientific notation, starting at 10 digits after the
decimal point and dropping one digit at a time until it fits. If nothing
fits, the plain fixed-point rendering is used even though it may be longer
than 16 bytes; that case is logged as a warning.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import pydicom
from pydicom import config as dicom_config
from pydicom.dataelem import DataElement
from pydicom.dataset import Dataset

from dicom2suv import tags
from dicom2suv.errors import WriteFailed
from dicom2suv.metadata import read_rescale

logger = logging.getLogger(__name__)

DS_MAX_BYTES = 16
MAX_PRECISION = 10


@dataclass(frozen=True)
class EncodedDecimal:
    text: str
    precision: int  # digits after the decimal point; 0 for the fallback
    fallback: bool = False


def encode_decimal_string(
    value: float,
    max_bytes: int = DS_MAX_BYTES,
    max_precision: int = MAX_PRECISION,
) -> EncodedDecimal:
    for precision in range(max_precision, 0, -1):
        text = f"{value:.{precision}e}"
        if len(text.encode("ascii")) <= max_bytes:
            return EncodedDecimal(text=text, precision=precision)

    text = f"{value:f}"
    logger.warning(
        f"No scientific rendering of {value!r} fits in {max_bytes} bytes; "
        f"writing {text!r} ({len(text)} bytes)"
    )
    return EncodedDecimal(text=text, precision=0, fallback=True)


def rescale_slope(dataset: Dataset, factor: float) -> EncodedDecimal:
    """Multiply the dataset's Rescale Slope by ``factor`` in place.

    The intercept is parsed as a sanity check and left as is. The slope
    element is replaced as a whole, so the dataset either keeps the old value
    or holds the new one.
    """
    coeffs = read_rescale(dataset)
    scaled_slope = factor * coeffs.slope
    encoded = encode_decimal_string(scaled_slope)

    # an oversized fallback must still be storable
    mode = dicom_config.WARN if encoded.fallback else None
    dataset[tags.RESCALE_SLOPE] = DataElement(tags.RESCALE_SLOPE, "DS", encoded.text, validation_mode=mode)
    logger.debug(f"RescaleSlope {coeffs.slope!r} -> {encoded.text} (factor={factor!r})")
    return encoded


def rescale_file(path: Path, factor: float) -> EncodedDecimal:
    """Rescale one DICOM file on disk and write it back to the same path."""
    ds = pydicom.dcmread(str(path), force=True)
    encoded = rescale_slope(ds, factor)
    try:
        ds.save_as(str(path))
    except OSError as e:
        raise WriteFailed(path, e) from e
    return encoded
