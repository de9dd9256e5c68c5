# dicom2suv/__init__.py
"""DICOM series -> volumetric image converter with PET SUVbw rescaling.

The driver lives in ``dicom2suv.convert``; call ``dicom2suv.convert.convert``.
"""
from dicom2suv.config import ConverterConfig
from dicom2suv.convert import ConversionSummary
from dicom2suv.errors import ConversionError

__version__ = "0.3.0"

__all__ = [
    "ConverterConfig",
    "ConversionSummary",
    "ConversionError",
    "__version__",
]
