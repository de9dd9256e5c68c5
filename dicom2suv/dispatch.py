# dicom2suv/dispatch.py
"""Pick the reconstruction pixel type for a series.

Scalar promotion table (channel_count == 1):

    UINT8   -> UINT8
    INT16   -> INT16
    INT32   -> INT16   (narrowing)
    FLOAT32 -> FLOAT32 (always uncompressed)
    FLOAT64 -> FLOAT32 (narrowing, always uncompressed)

RGB / RGBA (3 / 4 channels) are only read as UINT8 vectors. Any other
channel count is logged and handled with the scalar table.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple, Union

import SimpleITK as sitk

from dicom2suv.errors import ConversionError, UnsupportedComponentType, UnsupportedDimension

logger = logging.getLogger(__name__)

SUPPORTED_DIMENSIONS: Tuple[int, ...] = (2, 3)
SUPPORTED_CHANNELS: Tuple[int, ...] = (1, 3, 4)


class ComponentType(str, Enum):
    UINT8 = "uint8"
    INT8 = "int8"
    UINT16 = "uint16"
    INT16 = "int16"
    UINT32 = "uint32"
    INT32 = "int32"
    UINT64 = "uint64"
    INT64 = "int64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    UNKNOWN = "unknown"


class RejectReason(str, Enum):
    UNSUPPORTED_DIMENSION = "unsupported_dimension"
    UNSUPPORTED_COMPONENT_TYPE = "unsupported_component_type"


@dataclass(frozen=True)
class ReconstructionPlan:
    pixel_id: int  # SimpleITK output pixel type
    dimension: int
    channel_count: int
    compress: bool

    @property
    def pixel_type_name(self) -> str:
        return sitk.GetPixelIDValueAsString(self.pixel_id)


@dataclass(frozen=True)
class Rejected:
    reason: RejectReason
    component_type: ComponentType
    dimension: int
    channel_count: int

    def to_error(self) -> ConversionError:
        if self.reason is RejectReason.UNSUPPORTED_DIMENSION:
            return UnsupportedDimension(self.dimension)
        return UnsupportedComponentType(self.component_type.value, self.channel_count)


DispatchResult = Union[ReconstructionPlan, Rejected]

# (output pixel id, force uncompressed)
_SCALAR_TABLE: Dict[ComponentType, Tuple[int, bool]] = {
    ComponentType.UINT8: (sitk.sitkUInt8, False),
    ComponentType.INT16: (sitk.sitkInt16, False),
    ComponentType.INT32: (sitk.sitkInt16, False),
    ComponentType.FLOAT32: (sitk.sitkFloat32, True),
    ComponentType.FLOAT64: (sitk.sitkFloat32, True),
}

# pixel ids a SimpleITK build lacks are -1 and are skipped
_PIXEL_ID_COMPONENTS: Dict[int, ComponentType] = {
    pixel_id: component
    for pixel_id, component in [
        (sitk.sitkUInt8, ComponentType.UINT8),
        (sitk.sitkInt8, ComponentType.INT8),
        (sitk.sitkUInt16, ComponentType.UINT16),
        (sitk.sitkInt16, ComponentType.INT16),
        (sitk.sitkUInt32, ComponentType.UINT32),
        (sitk.sitkInt32, ComponentType.INT32),
        (sitk.sitkUInt64, ComponentType.UINT64),
        (sitk.sitkInt64, ComponentType.INT64),
        (sitk.sitkFloat32, ComponentType.FLOAT32),
        (sitk.sitkFloat64, ComponentType.FLOAT64),
        (sitk.sitkVectorUInt8, ComponentType.UINT8),
        (sitk.sitkVectorInt8, ComponentType.INT8),
        (sitk.sitkVectorUInt16, ComponentType.UINT16),
        (sitk.sitkVectorInt16, ComponentType.INT16),
        (sitk.sitkVectorUInt32, ComponentType.UINT32),
        (sitk.sitkVectorInt32, ComponentType.INT32),
        (sitk.sitkVectorUInt64, ComponentType.UINT64),
        (sitk.sitkVectorInt64, ComponentType.INT64),
        (sitk.sitkVectorFloat32, ComponentType.FLOAT32),
        (sitk.sitkVectorFloat64, ComponentType.FLOAT64),
    ]
    if pixel_id >= 0
}


def component_type_from_pixel_id(pixel_id: int) -> ComponentType:
    return _PIXEL_ID_COMPONENTS.get(pixel_id, ComponentType.UNKNOWN)


def select(
    component_type: ComponentType,
    dimension: int,
    channel_count: int,
    compress: bool = False,
) -> DispatchResult:
    """Map a discovered pixel layout to a plan, or to the reason it is rejected."""
    if dimension not in SUPPORTED_DIMENSIONS:
        return Rejected(RejectReason.UNSUPPORTED_DIMENSION, component_type, dimension, channel_count)

    if channel_count in (3, 4):
        if component_type is not ComponentType.UINT8:
            return Rejected(RejectReason.UNSUPPORTED_COMPONENT_TYPE, component_type, dimension, channel_count)
        return ReconstructionPlan(sitk.sitkVectorUInt8, dimension, channel_count, compress)

    if channel_count not in SUPPORTED_CHANNELS:
        logger.warning(f"Invalid num of components: {channel_count}")

    entry = _SCALAR_TABLE.get(component_type)
    if entry is None:
        return Rejected(RejectReason.UNSUPPORTED_COMPONENT_TYPE, component_type, dimension, channel_count)
    pixel_id, force_uncompressed = entry
    return ReconstructionPlan(
        pixel_id=pixel_id,
        dimension=dimension,
        channel_count=channel_count,
        compress=False if force_uncompressed else compress,
    )
