# dicom2suv/archive.py
from __future__ import annotations

import logging
import shutil
import tempfile
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from dicom2suv.series import get_available_name

logger = logging.getLogger(__name__)


@contextmanager
def temp_dir(base: Optional[Path] = None, stem: str = "tmpzip") -> Iterator[Path]:
    """Create ``<base>/tmpzip_(i)`` and remove it on exit, whatever happens."""
    base = Path(base) if base is not None else Path(tempfile.gettempdir())
    path = get_available_name(base, stem, "")
    path.mkdir(parents=True)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        logger.debug(f"Removed temporary directory {path}")


@contextmanager
def extracted_archive(zip_path: Path, tmpdir: Optional[Path] = None) -> Iterator[Path]:
    """Extract ``zip_path`` into a scoped temporary directory and yield it."""
    with zipfile.ZipFile(zip_path) as zf, temp_dir(tmpdir) as out:
        logger.info(f"Extracting {zip_path} -> {out}")
        zf.extractall(out)
        yield out
