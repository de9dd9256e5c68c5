"""Synthetic DICOM series for the converter tests."""
from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional, Sequence as SequenceT

import numpy as np
import pytest
from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.sequence import Sequence
from pydicom.uid import ExplicitVRLittleEndian, generate_uid

CT_IMAGE_STORAGE = "1.2.840.10008.5.1.4.1.1.2"
PET_IMAGE_STORAGE = "1.2.840.10008.5.1.4.1.1.128"

# F-18, 1 GBq injected one hour before the series starts
PET_DOSE = "1000000000"
PET_HALF_LIFE = "6588"
PET_WEIGHT = "70"
PET_SERIES_DATE = "20240115"
PET_SERIES_TIME = "100000"
PET_START_TIME = "090000"


def _pharma_item(
    dose: Optional[str] = PET_DOSE,
    half_life: Optional[str] = PET_HALF_LIFE,
    start_time: Optional[str] = PET_START_TIME,
) -> Dataset:
    item = Dataset()
    if dose is not None:
        item.RadionuclideTotalDose = dose
    if half_life is not None:
        item.RadionuclideHalfLife = half_life
    if start_time is not None:
        item.RadiopharmaceuticalStartTime = start_time
    return item


def make_pet_header(n_items: int = 1, **overrides) -> Dataset:
    """In-memory PET header with everything the SUV path reads."""
    ds = Dataset()
    ds.Modality = "PT"
    ds.SeriesDate = PET_SERIES_DATE
    ds.SeriesTime = PET_SERIES_TIME
    ds.PatientWeight = PET_WEIGHT
    ds.RescaleIntercept = "0"
    ds.RescaleSlope = "1"
    ds.Units = "BQML"
    ds.RadiopharmaceuticalInformationSequence = Sequence([_pharma_item() for _ in range(n_items)])
    for key, value in overrides.items():
        setattr(ds, key, value)
    return ds


def write_slice(
    path: Path,
    *,
    modality: str,
    series_uid: str,
    study_uid: str,
    instance: int,
    pixel_value: int = 100,
    rows: int = 4,
    columns: int = 4,
    series_description: Optional[str] = None,
    series_number: Optional[int] = None,
    series_date: str = PET_SERIES_DATE,
    slice_step: SequenceT[float] = (0.0, 0.0, 2.0),
    orientation: SequenceT[float] = (1.0, 0.0, 0.0, 0.0, 1.0, 0.0),
    pet: bool = False,
) -> Path:
    sop_class = PET_IMAGE_STORAGE if pet else CT_IMAGE_STORAGE

    meta = FileMetaDataset()
    meta.MediaStorageSOPClassUID = sop_class
    meta.MediaStorageSOPInstanceUID = generate_uid()
    meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = make_pet_header() if pet else Dataset()
    ds.file_meta = meta
    ds.SOPClassUID = sop_class
    ds.SOPInstanceUID = meta.MediaStorageSOPInstanceUID
    ds.StudyInstanceUID = study_uid
    ds.SeriesInstanceUID = series_uid
    ds.Modality = modality
    ds.SeriesDate = series_date
    if not pet:
        ds.SeriesTime = PET_SERIES_TIME
        ds.RescaleIntercept = "0"
        ds.RescaleSlope = "1"
    if series_description is not None:
        ds.SeriesDescription = series_description
    if series_number is not None:
        ds.SeriesNumber = series_number
    ds.InstanceNumber = instance
    ds.PatientName = "Test^Patient"
    ds.PatientID = "TEST001"
    ds.FrameOfReferenceUID = study_uid + ".1"
    ds.ImagePositionPatient = [float(instance) * s for s in slice_step]
    ds.ImageOrientationPatient = list(orientation)
    ds.PixelSpacing = [1.0, 1.0]
    ds.SliceThickness = 2.0
    ds.Rows = rows
    ds.Columns = columns
    ds.SamplesPerPixel = 1
    ds.PhotometricInterpretation = "MONOCHROME2"
    ds.BitsAllocated = 16
    ds.BitsStored = 16
    ds.HighBit = 15
    ds.PixelRepresentation = 1
    ds.PixelData = np.full((rows, columns), pixel_value, dtype="<i2").tobytes()

    path.parent.mkdir(parents=True, exist_ok=True)
    ds.save_as(str(path), enforce_file_format=True)
    return path


@pytest.fixture
def pet_header() -> Callable[..., Dataset]:
    return make_pet_header


@pytest.fixture
def write_series() -> Callable[..., List[Path]]:
    """Write ``n`` slices of one series into ``directory``; returns their paths.

    Slice ``i`` gets instance number ``first_instance + i`` and is stored as
    ``slice<instance>.dcm``.
    """

    def _write(
        directory: Path,
        n: int = 3,
        modality: str = "CT",
        series_uid: Optional[str] = None,
        study_uid: str = "1.2.826.0.1.3680043.8.498.1",
        first_instance: int = 1,
        **kwargs,
    ) -> List[Path]:
        uid = series_uid or generate_uid()
        return [
            write_slice(
                directory / f"slice{first_instance + i:03d}.dcm",
                modality=modality,
                series_uid=uid,
                study_uid=study_uid,
                instance=first_instance + i,
                pet=modality == "PT",
                **kwargs,
            )
            for i in range(n)
        ]

    return _write
