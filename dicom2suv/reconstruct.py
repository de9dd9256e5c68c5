# dicom2suv/reconstruct.py
"""Read a DICOM series with SimpleITK and write it as one image file.

The image is written next to its final path as ``<name>.tmp<suffixes>`` and
moved into place with ``os.replace``, so a failed write never leaves a
partial output file behind.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import SimpleITK as sitk

from dicom2suv.dispatch import ReconstructionPlan
from dicom2suv.errors import ConversionError, ReconstructionFailed, WriteFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WriteResult:
    output_path: Path
    error: Optional[ConversionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _tmp_with_same_suffixes(out_path: Path) -> Path:
    suffixes = "".join(out_path.suffixes)
    base = out_path.name[:-len(suffixes)] if suffixes else out_path.name
    return out_path.with_name(f"{base}.tmp{suffixes}")


def _match_dimension(img: sitk.Image, dimension: int) -> sitk.Image:
    if img.GetDimension() == dimension:
        return img
    if dimension == 2 and img.GetDimension() == 3 and img.GetSize()[2] == 1:
        return img[:, :, 0]
    raise RuntimeError(f"Cannot read a {img.GetDimension()}-D series as a {dimension}-D image")


def read_series(file_paths: Sequence[Path], plan: ReconstructionPlan) -> sitk.Image:
    reader = sitk.ImageSeriesReader()
    reader.SetFileNames([str(p) for p in file_paths])
    reader.SetOutputPixelType(plan.pixel_id)
    # slice direction follows the slice positions (gantry tilt)
    reader.ForceOrthogonalDirectionOff()
    img = reader.Execute()
    return _match_dimension(img, plan.dimension)


def write_image(img: sitk.Image, out_path: Path, compress: bool) -> None:
    tmp = _tmp_with_same_suffixes(out_path)
    try:
        sitk.WriteImage(img, str(tmp), useCompression=compress)
        os.replace(str(tmp), str(out_path))
    except BaseException:
        if tmp.exists():
            tmp.unlink()
        raise


def reconstruct_and_write(
    file_paths: Sequence[Path],
    output_path: Path,
    plan: ReconstructionPlan,
) -> WriteResult:
    """Failures are returned in ``WriteResult.error``, not raised."""
    output_path = Path(output_path)
    try:
        img = read_series(file_paths, plan)
    except RuntimeError as e:
        logger.debug(f"Series read failed: {e}")
        return WriteResult(output_path, ReconstructionFailed(output_path, e))

    logger.info(f"Writing: {output_path}")
    try:
        write_image(img, output_path, plan.compress)
    except (RuntimeError, OSError) as e:
        return WriteResult(output_path, WriteFailed(output_path, e))
    return WriteResult(output_path)
