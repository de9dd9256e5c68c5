# dicom2suv/series.py
"""Series discovery and output naming.

Series IDs are collected per directory with GDCM series details (UID plus
series number, slice thickness, rows and columns), then each ID is listed
once over the whole tree with a recursive GDCM lookup. GDCM orders those
files spatially, even when slices of one series sit in different
sub-directories. IMPORTANT: do not sort file names afterwards.

Files of one series ID are additionally split by Series Date (0008,0021):
two acquisitions that reuse a UID on different days stay separate series.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import AbstractSet, Dict, List, Optional, Set, Tuple

import SimpleITK as sitk

from dicom2suv import tags
from dicom2suv.dispatch import ComponentType, component_type_from_pixel_id
from dicom2suv.errors import NoAvailableName
from dicom2suv.metadata import get_optional_string, read_header

logger = logging.getLogger(__name__)

MAX_NAME_ATTEMPTS = 10000
COMPOUND_EXTENSIONS: Tuple[str, ...] = (".nii.gz",)
_INVALID_FILENAME_CHARS = '/:*"?<>|'
_FILENAME_TRANSLATION = str.maketrans({c: " " for c in _INVALID_FILENAME_CHARS})


@dataclass(frozen=True)
class SeriesDescriptor:
    series_uid: str
    series_date: str
    file_paths: Tuple[Path, ...]
    modality: str
    description: str
    number: str
    component_type: ComponentType
    dimension: int
    channel_count: int
    series_id: str = ""  # GDCM series ID (UID + details); series_uid is the bare UID

    @property
    def first_file(self) -> Path:
        return self.file_paths[0]

    @property
    def is_pet(self) -> bool:
        return self.modality == tags.PET_MODALITY


# ----------------------------
# Discovery
# ----------------------------

def _find_dicom_dirs(root: Path) -> List[Path]:
    dirs: List[Path] = []
    for current, subdirs, files in os.walk(root):
        subdirs.sort()
        if files:
            dirs.append(Path(current))
    return dirs


def _series_date(path: Path) -> str:
    try:
        hdr = read_header(path)
    except Exception as e:
        logger.debug(f"Header read failed for {path}: {e}")
        return ""
    return get_optional_string(hdr, tags.SERIES_DATE) or ""


def _series_ids(root: Path) -> List[str]:
    """GDCM series IDs under ``root``, in directory walk order, without duplicates."""
    seen: Dict[str, None] = {}
    for d in _find_dicom_dirs(root):
        try:
            sids = sitk.ImageSeriesReader.GetGDCMSeriesIDs(str(d), useSeriesDetails=True) or []
        except RuntimeError as e:
            logger.debug(f"GDCM could not scan {d}: {e}")
            continue
        for sid in sids:
            seen.setdefault(sid, None)
    return list(seen)


def collect_series(root: Path) -> Dict[Tuple[str, str], List[Path]]:
    """(series ID, series date) -> spatially ordered file list over the whole tree."""
    series_map: Dict[Tuple[str, str], List[Path]] = {}
    for sid in _series_ids(root):
        fns = sitk.ImageSeriesReader.GetGDCMSeriesFileNames(
            str(root), sid, useSeriesDetails=True, recursive=True
        ) or []
        for fn in fns:
            p = Path(fn)
            series_map.setdefault((sid, _series_date(p)), []).append(p)
    return series_map


def read_pixel_info(path: Path) -> Tuple[ComponentType, int, int]:
    """(component type, dimension, channel count) of one image file, header only."""
    reader = sitk.ImageFileReader()
    reader.SetFileName(str(path))
    reader.ReadImageInformation()
    return (
        component_type_from_pixel_id(reader.GetPixelID()),
        int(reader.GetDimension()),
        int(reader.GetNumberOfComponents()),
    )


def refresh_pixel_info(series: SeriesDescriptor) -> SeriesDescriptor:
    """Re-read pixel layout from the first file, e.g. after its rescale slope changed."""
    component_type, dimension, channel_count = read_pixel_info(series.first_file)
    return replace(
        series,
        component_type=component_type,
        dimension=dimension,
        channel_count=channel_count,
    )


def _describe(series_id: str, series_date: str, files: List[Path]) -> Optional[SeriesDescriptor]:
    first = files[0]
    try:
        hdr = read_header(first)
    except Exception as e:
        logger.warning(f"Skipping series {series_id}: cannot read {first}: {e}")
        return None

    try:
        component_type, dimension, channel_count = read_pixel_info(first)
    except RuntimeError as e:
        logger.warning(f"Skipping series {series_id}: no image information in {first}: {e}")
        return None

    return SeriesDescriptor(
        series_uid=get_optional_string(hdr, tags.SERIES_INSTANCE_UID) or series_id,
        series_id=series_id,
        series_date=series_date,
        file_paths=tuple(files),
        modality=(get_optional_string(hdr, tags.MODALITY) or "").upper(),
        description=get_optional_string(hdr, tags.SERIES_DESCRIPTION) or "",
        number=get_optional_string(hdr, tags.SERIES_NUMBER) or "",
        component_type=component_type,
        dimension=dimension,
        channel_count=channel_count,
    )


def discover_series(root: Path) -> List[SeriesDescriptor]:
    """All series under ``root``, in discovery order."""
    descriptors: List[SeriesDescriptor] = []
    for (sid, series_date), files in collect_series(Path(root)).items():
        if not files:
            continue
        desc = _describe(sid, series_date, files)
        if desc is not None:
            descriptors.append(desc)
    return descriptors


# ----------------------------
# Output names
# ----------------------------

def to_valid_filename(name: str) -> str:
    """Replace characters that are invalid in file names by spaces, then rstrip."""
    return name.translate(_FILENAME_TRANSLATION).rstrip()


def split_extension(filename: str) -> Tuple[str, str]:
    """``("scan", ".nii.gz")`` for ``scan.nii.gz``; other names split at the last dot."""
    for compound in COMPOUND_EXTENSIONS:
        if filename.endswith(compound) and len(filename) > len(compound):
            return filename[: -len(compound)], compound
    p = Path(filename)
    return p.stem, p.suffix


def get_available_name(
    directory: Path,
    stem: str,
    ext: str,
    limit: int = MAX_NAME_ATTEMPTS,
    taken: AbstractSet[Path] = frozenset(),
) -> Path:
    """First ``stem_(i)ext`` in ``directory`` that does not exist yet."""
    for i in range(limit):
        candidate = directory / f"{stem}_({i}){ext}"
        if candidate not in taken and not candidate.exists():
            return candidate
    raise NoAvailableName(directory, stem, ext, limit)


class OutputNamer:
    """Hands out one output path per series of a run.

    Names are checked against the file system at the time they are asked for
    and against the names already handed out in this run. Nothing is locked.
    """

    def __init__(self, outdir: Path, ext: str, output: Optional[Path] = None) -> None:
        self.outdir = Path(outdir)
        self.ext = ext
        self.output = Path(output) if output is not None else None
        self.claimed: Set[Path] = set()

    def _stem_for(self, series: SeriesDescriptor) -> str:
        if series.description:
            stem = series.description
        elif series.number:
            stem = series.number
        else:
            stem = series.series_uid
        stem = to_valid_filename(stem)
        return stem or to_valid_filename(series.series_uid)

    def name_for(self, series: SeriesDescriptor, index: int) -> Path:
        """Output path for the ``index``-th series of the run (1-based)."""
        if self.output is not None:
            if index == 1:
                path = self.output
            else:
                stem, ext = split_extension(self.output.name)
                path = self.output.parent / f"{stem}_({index}){ext}"
        else:
            stem = self._stem_for(series)
            path = self.outdir / f"{stem}{self.ext}"
            if path in self.claimed or path.exists():
                path = get_available_name(self.outdir, stem, self.ext, taken=self.claimed)

        self.claimed.add(path)
        return path
