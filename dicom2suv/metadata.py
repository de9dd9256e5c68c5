# dicom2suv/metadata.py
"""Typed reads of the PET / rescale fields from a pydicom dataset.

All reads go through ``get_string``: the element must exist and hold a
non-empty value, otherwise ``TagNotFound``. Parsing of the textual DICOM
value (DS, IS, DA, TM) happens here too, so callers only see typed values or
a ``ConversionError``.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, time
from pathlib import Path
from typing import Optional

import pydicom
from pydicom.dataset import Dataset
from pydicom.multival import MultiValue
from pydicom.tag import BaseTag

from dicom2suv import tags
from dicom2suv.errors import InvalidNumericField, MalformedPharmaInfo, TagNotFound

_INT_PATTERN = re.compile(r"^[+-]?\d+$")


@dataclass(frozen=True)
class RadiopharmaceuticalDose:
    dose_becquerels: float
    half_life_seconds: float
    injection_time: time


@dataclass(frozen=True)
class AcquisitionContext:
    series_date: date
    series_time: time
    patient_weight_kg: float


@dataclass(frozen=True)
class RescaleCoefficients:
    intercept: float
    slope: float


# ----------------------------
# Raw element access
# ----------------------------

def get_string(dataset: Dataset, tag: BaseTag, where: str = "") -> str:
    """Return the textual value of ``tag``.

    Raises ``TagNotFound`` when the element is absent or its value is empty.
    """
    elem = dataset.get(tag)
    if elem is None or elem.is_empty:
        raise TagNotFound(tag, where)

    value = elem.value
    if isinstance(value, bytes):
        text = value.decode("ascii", errors="replace")
    elif isinstance(value, (list, tuple, MultiValue)):
        text = "\\".join(str(v) for v in value)
    else:
        text = str(value)

    text = text.rstrip(" \x00").strip()
    if not text:
        raise TagNotFound(tag, where)
    return text


def get_optional_string(dataset: Dataset, tag: BaseTag) -> Optional[str]:
    try:
        return get_string(dataset, tag)
    except TagNotFound:
        return None


def get_pharma_item(dataset: Dataset) -> Dataset:
    """The single Radiopharmaceutical Information Sequence item."""
    elem = dataset.get(tags.PHARMA_INFO)
    items = elem.value if elem is not None and elem.value is not None else []
    if len(items) != 1:
        raise MalformedPharmaInfo(len(items))
    return items[0]


# ----------------------------
# Text -> typed value
# ----------------------------

def parse_float(text: str, field: str) -> float:
    try:
        return float(text)
    except (TypeError, ValueError) as e:
        raise InvalidNumericField(field, text) from e


def parse_int(text: str, field: str) -> int:
    if not _INT_PATTERN.match(text.strip()):
        raise InvalidNumericField(field, text, "integer expected")
    return int(text)


def parse_da(text: str, field: str = "date") -> date:
    """DICOM DA (``YYYYMMDD``; the ACR-NEMA ``YYYY.MM.DD`` form is accepted)."""
    s = text.strip().replace(".", "")
    if len(s) != 8 or not s.isdigit():
        raise InvalidNumericField(field, text, "expected YYYYMMDD")
    try:
        return date(int(s[0:4]), int(s[4:6]), int(s[6:8]))
    except ValueError as e:
        raise InvalidNumericField(field, text, str(e)) from e


def parse_tm(text: str, field: str = "time") -> time:
    """DICOM TM. Missing minutes/seconds read as zero; fractions are dropped."""
    s = text.strip()
    if "." in s:
        s = s.split(".", 1)[0]
    s = s.replace(":", "")
    if len(s) not in (2, 4, 6) or not s.isdigit():
        raise InvalidNumericField(field, text, "expected HHMMSS")
    s = s.ljust(6, "0")
    try:
        return time(int(s[0:2]), int(s[2:4]), int(s[4:6]))
    except ValueError as e:
        raise InvalidNumericField(field, text, str(e)) from e


# ----------------------------
# Field groups
# ----------------------------

def read_modality(dataset: Dataset) -> str:
    return get_string(dataset, tags.MODALITY).upper()


def read_dose_info(dataset: Dataset) -> RadiopharmaceuticalDose:
    item = get_pharma_item(dataset)
    where = "pharma info"
    dose = parse_float(get_string(item, tags.RADIONUCLIDE_TOTAL_DOSE, where), "RadionuclideTotalDose")
    half_life = parse_float(get_string(item, tags.RADIONUCLIDE_HALF_LIFE, where), "RadionuclideHalfLife")
    start = parse_tm(get_string(item, tags.PHARMA_START_TIME, where), "RadiopharmaceuticalStartTime")
    return RadiopharmaceuticalDose(
        dose_becquerels=dose,
        half_life_seconds=half_life,
        injection_time=start,
    )


def read_acquisition(dataset: Dataset, strict_weight: bool = False) -> AcquisitionContext:
    series_date = parse_da(get_string(dataset, tags.SERIES_DATE), "SeriesDate")
    series_time = parse_tm(get_string(dataset, tags.SERIES_TIME), "SeriesTime")
    weight_text = get_string(dataset, tags.PATIENT_WEIGHT)
    if strict_weight:
        weight = float(parse_int(weight_text, "PatientWeight"))
    else:
        weight = parse_float(weight_text, "PatientWeight")
    return AcquisitionContext(
        series_date=series_date,
        series_time=series_time,
        patient_weight_kg=weight,
    )


def read_rescale(dataset: Dataset) -> RescaleCoefficients:
    intercept = parse_float(get_string(dataset, tags.RESCALE_INTERCEPT), "RescaleIntercept")
    slope = parse_float(get_string(dataset, tags.RESCALE_SLOPE), "RescaleSlope")
    return RescaleCoefficients(intercept=intercept, slope=slope)


def read_header(path: Path) -> Dataset:
    """Header-only read, used for series naming and modality checks."""
    return pydicom.dcmread(str(path), stop_before_pixels=True, force=True)
