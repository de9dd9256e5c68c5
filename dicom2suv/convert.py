# dicom2suv/convert.py
"""Convert every DICOM series under a directory (or in a zip) to an image file.

Per series, in order:
1) Resolve the output path.
2) PET only: rewrite Rescale Slope of every file with its SUVbw factor
   (all files first, so reconstruction never sees a half-rescaled series).
3) Choose the output pixel type from the first file's pixel layout.
4) Read the series and write the image.

A failure stops the series. By default it also stops the run; with
``keep_going`` the remaining series are still converted.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from tqdm import tqdm

from dicom2suv.archive import extracted_archive
from dicom2suv.config import ConverterConfig
from dicom2suv.dispatch import Rejected, select
from dicom2suv.errors import ConversionError
from dicom2suv.metadata import read_header, read_rescale
from dicom2suv.reconstruct import reconstruct_and_write
from dicom2suv.reencode import rescale_file
from dicom2suv.series import OutputNamer, SeriesDescriptor, discover_series, refresh_pixel_info
from dicom2suv.suv import calculate_bw_factor

logger = logging.getLogger(__name__)


@dataclass
class SeriesOutcome:
    series_uid: str
    output_path: Optional[Path] = None
    status: str = "pending"  # written | failed
    rescaled_files: int = 0
    error: Optional[str] = None


@dataclass
class ConversionSummary:
    outcomes: List[SeriesOutcome] = field(default_factory=list)

    @property
    def failures(self) -> List[SeriesOutcome]:
        return [o for o in self.outcomes if o.status == "failed"]

    @property
    def ok(self) -> bool:
        return not self.failures


def rescale_series(series: SeriesDescriptor, config: ConverterConfig) -> int:
    """Rescale pass: multiply each file's slope by its own SUVbw factor.

    Factors are computed for the whole series before the first file is
    rewritten, so a metadata error leaves every file untouched.
    """
    factors: List[float] = []
    for path in series.file_paths:
        hdr = read_header(path)
        factors.append(calculate_bw_factor(
            hdr,
            verbose=config.verbose,
            time_policy=config.time_policy,
            strict_weight=config.strict_weight,
        ))
        read_rescale(hdr)

    for path, factor in zip(series.file_paths, factors):
        rescale_file(path, factor)
    logger.info(f"Rescaled {len(series.file_paths)} PET files of {series.series_uid} to SUVbw")
    return len(series.file_paths)


def convert_series(
    series: SeriesDescriptor,
    output_path: Path,
    config: ConverterConfig,
) -> SeriesOutcome:
    outcome = SeriesOutcome(series_uid=series.series_uid, output_path=output_path)

    if series.is_pet:
        outcome.rescaled_files = rescale_series(series, config)
        series = refresh_pixel_info(series)

    plan = select(series.component_type, series.dimension, series.channel_count, config.compress)
    if isinstance(plan, Rejected):
        raise plan.to_error()
    logger.debug(f"{series.series_uid}: {series.component_type.value} -> {plan.pixel_type_name}, compress={plan.compress}")

    result = reconstruct_and_write(series.file_paths, outcome.output_path, plan)
    if not result.ok:
        raise result.error

    outcome.status = "written"
    return outcome


def convert_directory(directory: Path, config: ConverterConfig) -> ConversionSummary:
    summary = ConversionSummary()
    series_list = discover_series(directory)
    if not series_list:
        logger.info(f"No DICOMs in: {directory}")
        return summary

    logger.info(f"The directory {directory} contains the following DICOM series:")
    for s in series_list:
        logger.info(f"  {s.series_uid} ({s.modality or '?'}, {len(s.file_paths)} files)")

    namer = OutputNamer(config.output_dir, config.ext, config.output)
    for index, series in enumerate(tqdm(series_list, desc="Convert"), start=1):
        logger.info(f"Reading: {series.series_uid}")
        output_path: Optional[Path] = None
        try:
            output_path = namer.name_for(series, index)
            outcome = convert_series(series, output_path, config)
        except ConversionError as e:
            logger.error(f"[{series.series_uid}] {e}")
            summary.outcomes.append(SeriesOutcome(
                series_uid=series.series_uid, output_path=output_path, status="failed", error=str(e),
            ))
            if not config.keep_going:
                break
            continue
        summary.outcomes.append(outcome)
    return summary


def convert(config: ConverterConfig) -> ConversionSummary:
    if config.is_zip:
        with extracted_archive(config.input, config.tmpdir) as extracted:
            return convert_directory(extracted, config)
    return convert_directory(config.input, config)
