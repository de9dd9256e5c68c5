# dicom2suv/tags.py
"""DICOM tags read or rewritten by the converter.

``TAGS`` maps a semantic field name to its tag. It is built once at import
and is read-only.
"""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from pydicom.tag import BaseTag, Tag

MODALITY: BaseTag = Tag(0x0008, 0x0060)
SERIES_DATE: BaseTag = Tag(0x0008, 0x0021)
SERIES_TIME: BaseTag = Tag(0x0008, 0x0031)
SERIES_DESCRIPTION: BaseTag = Tag(0x0008, 0x103E)
SERIES_NUMBER: BaseTag = Tag(0x0020, 0x0011)
SERIES_INSTANCE_UID: BaseTag = Tag(0x0020, 0x000E)
PATIENT_WEIGHT: BaseTag = Tag(0x0010, 0x1030)

# Radiopharmaceutical Information Sequence and its item fields
PHARMA_INFO: BaseTag = Tag(0x0054, 0x0016)
PHARMA_START_TIME: BaseTag = Tag(0x0018, 0x1072)
RADIONUCLIDE_TOTAL_DOSE: BaseTag = Tag(0x0018, 0x1074)
RADIONUCLIDE_HALF_LIFE: BaseTag = Tag(0x0018, 0x1075)

RESCALE_INTERCEPT: BaseTag = Tag(0x0028, 0x1052)
RESCALE_SLOPE: BaseTag = Tag(0x0028, 0x1053)

TAGS: Mapping[str, BaseTag] = MappingProxyType({
    "modality": MODALITY,
    "series_date": SERIES_DATE,
    "series_time": SERIES_TIME,
    "series_description": SERIES_DESCRIPTION,
    "series_number": SERIES_NUMBER,
    "series_instance_uid": SERIES_INSTANCE_UID,
    "weight": PATIENT_WEIGHT,
    "pharma": PHARMA_INFO,
    "pharma_starttime": PHARMA_START_TIME,
    "dose": RADIONUCLIDE_TOTAL_DOSE,
    "halflife": RADIONUCLIDE_HALF_LIFE,
    "rescale_intercept": RESCALE_INTERCEPT,
    "rescale_slope": RESCALE_SLOPE,
})

# Modality code of PET series
PET_MODALITY = "PT"


def format_tag(tag: BaseTag) -> str:
    """``(0028,1053)`` style label used in error messages."""
    return f"({tag.group:04X},{tag.element:04X})"
