# dicom2suv/suv.py
"""SUVbw scale factor from the radiopharmaceutical metadata of a PET slice.

    decay_seconds = series_datetime - injection_datetime
    decayed_dose  = dose * 2 ** (-decay_seconds / half_life)
    SUVbw factor  = weight_kg * 1000 / decayed_dose

The injection time carries no date of its own; it is combined with the
series date. Two conversions of those civil timestamps are available:

- ``"local"``: platform local time via ``time.mktime`` (DST handled by the
  platform, so an interval spanning a DST switch is skewed by an hour).
- ``"naive"``: plain calendar arithmetic, no timezone.

Usage:
    python -m dicom2suv.suv path/to/slice.dcm --verbose
"""
from __future__ import annotations

import argparse
import logging
import sys
import time as _time
from datetime import date, datetime, time
from pathlib import Path
from typing import List, Optional

import pydicom
from pydicom.dataset import Dataset

from dicom2suv.config import TIME_POLICIES
from dicom2suv.errors import ConversionError, InvalidNumericField
from dicom2suv.metadata import (
    AcquisitionContext,
    RadiopharmaceuticalDose,
    read_acquisition,
    read_dose_info,
)

logger = logging.getLogger(__name__)


def _to_epoch_seconds(d: date, t: time, time_policy: str) -> int:
    if time_policy == "local":
        # tm_isdst=-1 lets the platform decide, like C mktime
        return int(_time.mktime((d.year, d.month, d.day, t.hour, t.minute, t.second, 0, 0, -1)))
    if time_policy == "naive":
        return int((datetime.combine(d, t) - datetime(1970, 1, 1)).total_seconds())
    raise ValueError(f"Unknown time policy: {time_policy!r}")


def decay_seconds(
    dose_info: RadiopharmaceuticalDose,
    acquisition: AcquisitionContext,
    time_policy: str = "local",
) -> int:
    """Signed seconds between injection and series start."""
    series_ts = _to_epoch_seconds(acquisition.series_date, acquisition.series_time, time_policy)
    injection_ts = _to_epoch_seconds(acquisition.series_date, dose_info.injection_time, time_policy)
    return series_ts - injection_ts


def decayed_dose(dose_becquerels: float, half_life_seconds: float, elapsed_seconds: float) -> float:
    return dose_becquerels * 2.0 ** (-elapsed_seconds / half_life_seconds)


def compute_scale_factor(
    dose_info: RadiopharmaceuticalDose,
    acquisition: AcquisitionContext,
    time_policy: str = "local",
) -> float:
    if dose_info.half_life_seconds <= 0:
        raise InvalidNumericField("RadionuclideHalfLife", str(dose_info.half_life_seconds), "must be positive")
    if dose_info.dose_becquerels <= 0:
        raise InvalidNumericField("RadionuclideTotalDose", str(dose_info.dose_becquerels), "must be positive")

    elapsed = decay_seconds(dose_info, acquisition, time_policy)
    if elapsed < 0:
        logger.warning(
            f"Injection time {dose_info.injection_time} is after series time "
            f"{acquisition.series_time} (decay={elapsed}s); check scanner clocks"
        )

    dose = decayed_dose(dose_info.dose_becquerels, dose_info.half_life_seconds, elapsed)
    if dose <= 0:
        raise InvalidNumericField("RadionuclideTotalDose", str(dose_info.dose_becquerels), "decayed dose underflows to 0")
    return acquisition.patient_weight_kg * 1000.0 / dose


def calculate_bw_factor(
    dataset: Dataset,
    verbose: bool = False,
    time_policy: str = "local",
    strict_weight: bool = False,
) -> float:
    """Read the PET fields of ``dataset`` and return its SUVbw scale factor."""
    dose_info = read_dose_info(dataset)
    acquisition = read_acquisition(dataset, strict_weight=strict_weight)
    factor = compute_scale_factor(dose_info, acquisition, time_policy)

    if verbose:
        elapsed = decay_seconds(dose_info, acquisition, time_policy)
        logger.info(f"weight, {acquisition.patient_weight_kg}")
        logger.info(f"dose, {dose_info.dose_becquerels}")
        logger.info(f"halflife, {dose_info.half_life_seconds}")
        logger.info(f"pharma_starttime, {dose_info.injection_time}")
        logger.info(f"seriesdate, {acquisition.series_date}")
        logger.info(f"seriestime, {acquisition.series_time}")
        logger.info(f"decay time, {elapsed}")
        logger.info(
            f"decayed dose, {decayed_dose(dose_info.dose_becquerels, dose_info.half_life_seconds, elapsed)}"
        )
        logger.info(f"SUVbwScaleFactor, {factor}")
    return factor


# ----------------------------
# CLI: print the factor of one file
# ----------------------------

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Calculate the SUVbw scale factor of a PET DICOM file")
    parser.add_argument("input", type=Path, help="PET DICOM file")
    parser.add_argument("--time-policy", choices=TIME_POLICIES, default="local")
    parser.add_argument("--strict-weight", action="store_true", help="Require an integer PatientWeight.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every intermediate value.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%H:%M:%S",
    )

    if not args.input.is_file():
        logger.error(f"Fatal error: Could not find input({args.input}).")
        return 1

    try:
        ds = pydicom.dcmread(str(args.input), stop_before_pixels=True, force=True)
        factor = calculate_bw_factor(
            ds,
            verbose=args.verbose,
            time_policy=args.time_policy,
            strict_weight=args.strict_weight,
        )
    except ConversionError as e:
        logger.error(str(e))
        return 1

    print(f"{factor!r}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
