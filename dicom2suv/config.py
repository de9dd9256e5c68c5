# dicom2suv/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional

TimePolicy = Literal["local", "naive"]

TIME_POLICIES: tuple[str, ...] = ("local", "naive")
DEFAULT_EXT = ".nii.gz"


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, default).strip() or default


def _env_path(name: str) -> Optional[Path]:
    value = os.environ.get(name, "").strip()
    return Path(value).expanduser() if value else None


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name, "").strip().lower()
    if not value:
        return default
    return value in ("1", "true", "yes", "on")


def _default_time_policy() -> str:
    policy = _env_str("DICOM2SUV_TIME_POLICY", "local").lower()
    if policy not in TIME_POLICIES:
        raise ValueError(
            f"DICOM2SUV_TIME_POLICY must be one of {TIME_POLICIES}, got {policy!r}"
        )
    return policy


@dataclass(frozen=True)
class ConverterConfig:
    """Settings for one conversion run.

    ``output`` is an explicit output file for the first series; later series
    derive their names from it. Without it names come from the series
    description / number / UID and land in ``outdir``.
    """

    input: Path
    output: Optional[Path] = None
    outdir: Optional[Path] = None
    tmpdir: Optional[Path] = field(default_factory=lambda: _env_path("DICOM2SUV_TMPDIR"))
    ext: str = field(default_factory=lambda: _env_str("DICOM2SUV_EXT", DEFAULT_EXT))
    compress: bool = field(default_factory=lambda: _env_flag("DICOM2SUV_COMPRESS", False))
    time_policy: TimePolicy = field(default_factory=_default_time_policy)
    strict_weight: bool = False
    keep_going: bool = False
    verbose: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "input", Path(self.input))
        if self.time_policy not in TIME_POLICIES:
            raise ValueError(f"time_policy must be one of {TIME_POLICIES}, got {self.time_policy!r}")
        if self.ext and not self.ext.startswith("."):
            object.__setattr__(self, "ext", f".{self.ext}")

    @property
    def is_zip(self) -> bool:
        return self.input.suffix.lower() == ".zip"

    @property
    def output_dir(self) -> Path:
        """Directory new files are written to."""
        if self.output is not None:
            return self.output.parent
        if self.outdir is not None:
            return self.outdir
        return self.input.parent
