# dicom2suv/cli.py
"""Command line entry point.

Usage:
    python -m dicom2suv INPUT [OUTPUT] [--outdir DIR] [--tmpdir DIR] [--ext .nii.gz]
    python -m dicom2suv study.zip --outdir nifti/ --keep-going -v
"""
from __future__ import annotations

import argparse
import logging
import sys
import zipfile
from pathlib import Path
from typing import List, Optional

import SimpleITK as sitk

from dicom2suv import __version__
from dicom2suv.config import TIME_POLICIES, ConverterConfig
from dicom2suv.convert import convert
from dicom2suv.errors import ConversionError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    defaults = ConverterConfig(input=Path("."))
    parser = argparse.ArgumentParser(
        prog="dicom2suv",
        description="Simple DICOM to ITK image converter (PET series are rescaled to SUVbw)",
    )
    parser.add_argument("input", type=Path, help="Input directory or zip file containing dicom files")
    parser.add_argument(
        "output",
        type=Path,
        nargs="?",
        default=None,
        help="(optional) Output filename. Series name (series number if series name is missing) is used by default.",
    )
    parser.add_argument("--outdir", type=Path, default=None, help="(optional) Output directory. default: input's parent directory.")
    parser.add_argument("--tmpdir", type=Path, default=defaults.tmpdir, help="(optional) Temporary directory for zip input.")
    parser.add_argument("-e", "--ext", default=defaults.ext, help=f"File extension. default: ({defaults.ext})")
    parser.add_argument(
        "--compress",
        action=argparse.BooleanOptionalAction,
        default=defaults.compress,
        help="Compress integer outputs (float outputs are always written uncompressed).",
    )
    parser.add_argument("--keep-going", action="store_true", help="Continue with the next series after a failure.")
    parser.add_argument(
        "--time-policy",
        choices=TIME_POLICIES,
        default=defaults.time_policy,
        help="How injection/series times are turned into timestamps for decay correction.",
    )
    parser.add_argument("--strict-weight", action="store_true", help="Require an integer PatientWeight.")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def config_from_args(args: argparse.Namespace) -> ConverterConfig:
    outdir = args.outdir
    if args.output is not None and outdir is not None:
        logger.warning(f"Warning: <outdir>=<{outdir}> is ignored.")
        outdir = None
    return ConverterConfig(
        input=args.input,
        output=args.output,
        outdir=outdir,
        tmpdir=args.tmpdir,
        ext=args.ext,
        compress=args.compress,
        time_policy=args.time_policy,
        strict_weight=args.strict_weight,
        keep_going=args.keep_going,
        verbose=args.verbose,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%H:%M:%S",
    )

    # GDCM warns about every non-image file it scans
    sitk.ProcessObject.SetGlobalWarningDisplay(args.verbose)

    config = config_from_args(args)

    if not config.input.exists():
        logger.error(f"Fatal error: Could not find input({config.input}).")
        return 1
    outdir = config.output_dir
    if str(outdir) and not outdir.is_dir():
        logger.error(f"Fatal error: Could not find outdir({outdir}).")
        return 1

    try:
        summary = convert(config)
    except (ConversionError, OSError, zipfile.BadZipFile) as e:
        logger.error(f"Fatal error: {e}")
        return 1

    for failed in summary.failures:
        logger.error(f"Failed: {failed.series_uid}: {failed.error}")
    return 0 if summary.ok else 1


if __name__ == "__main__":
    sys.exit(main())
