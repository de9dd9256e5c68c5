"""End-to-end and ordering tests for the conversion driver."""

import shutil
import zipfile
from pathlib import Path

import pydicom
import pytest
import SimpleITK as sitk

import dicom2suv
import dicom2suv.convert as convert_mod
from dicom2suv.config import ConverterConfig
from dicom2suv.errors import ReconstructionFailed
from dicom2suv.reconstruct import WriteResult

F18_FACTOR = 70000 / (1e9 * 2 ** (-3600 / 6588))


def _config(tmp_path: Path, input_path: Path, **kwargs) -> ConverterConfig:
    out = tmp_path / "out"
    out.mkdir(exist_ok=True)
    kwargs.setdefault("time_policy", "naive")
    return ConverterConfig(input=input_path, outdir=out, ext=".nii.gz", **kwargs)


def test_ct_and_pet(tmp_path, write_series):
    src = tmp_path / "study"
    write_series(src / "a_ct", n=3, modality="CT", series_description="CHEST", pixel_value=-500)
    pet_files = write_series(src / "b_pet", n=3, modality="PT", series_description="PET WB", pixel_value=100)

    summary = convert_mod.convert(_config(tmp_path, src))

    assert summary.ok
    assert [o.status for o in summary.outcomes] == ["written", "written"]
    assert summary.outcomes[1].rescaled_files == 3

    ct = sitk.ReadImage(str(tmp_path / "out" / "CHEST.nii.gz"))
    assert ct.GetPixelID() == sitk.sitkInt16
    assert sitk.GetArrayViewFromImage(ct).min() == -500

    pet = sitk.ReadImage(str(tmp_path / "out" / "PET WB.nii.gz"))
    assert pet.GetPixelID() == sitk.sitkFloat32
    assert float(sitk.GetArrayViewFromImage(pet).mean()) == pytest.approx(100 * F18_FACTOR, rel=1e-5)

    for path in pet_files:
        slope = str(pydicom.dcmread(str(path), stop_before_pixels=True).RescaleSlope)
        assert len(slope) <= 16
        assert float(slope) == pytest.approx(F18_FACTOR, rel=1e-9)


def test_same_description_gets_disambiguated(tmp_path, write_series):
    src = tmp_path / "study"
    write_series(src / "a", n=2, series_description="CHEST")
    write_series(src / "b", n=2, series_description="CHEST")

    summary = convert_mod.convert(_config(tmp_path, src))

    assert [o.output_path.name for o in summary.outcomes] == ["CHEST.nii.gz", "CHEST_(0).nii.gz"]
    assert (tmp_path / "out" / "CHEST.nii.gz").exists()
    assert (tmp_path / "out" / "CHEST_(0).nii.gz").exists()


def test_explicit_output_names(tmp_path, write_series):
    src = tmp_path / "study"
    write_series(src / "a", n=2)
    write_series(src / "b", n=2)
    out = tmp_path / "result.nii.gz"

    summary = convert_mod.convert(ConverterConfig(input=src, output=out))

    assert summary.ok
    assert out.exists()
    assert (tmp_path / "result_(2).nii.gz").exists()


def test_zip_input(tmp_path, write_series):
    src = tmp_path / "study"
    write_series(src / "ct", n=2, series_description="CHEST")
    archive = tmp_path / "study.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        for f in src.rglob("*.dcm"):
            zf.write(f, str(f.relative_to(src)))
    shutil.rmtree(src)
    work = tmp_path / "work"
    work.mkdir()

    summary = convert_mod.convert(_config(tmp_path, archive, tmpdir=work))

    assert summary.ok
    assert (tmp_path / "out" / "CHEST.nii.gz").exists()
    assert list(work.iterdir()) == []


def test_package_exposes_driver_module():
    assert dicom2suv.convert is convert_mod
    assert callable(convert_mod.convert)


def test_series_split_over_folders(tmp_path, write_series):
    src = tmp_path / "study"
    uid = "1.2.826.0.1.3680043.8.498.90"
    for folder, instance in [("a", 3), ("a", 4), ("b", 1), ("b", 2)]:
        write_series(
            src / folder, n=1, series_uid=uid, first_instance=instance,
            series_description="SPLIT", pixel_value=instance * 10,
        )

    summary = convert_mod.convert(_config(tmp_path, src))

    assert summary.ok
    img = sitk.ReadImage(str(tmp_path / "out" / "SPLIT.nii.gz"))
    assert sitk.GetArrayFromImage(img)[:, 0, 0].tolist() == [10, 20, 30, 40]
    assert img.GetOrigin()[2] == pytest.approx(2.0)
    assert img.GetSpacing()[2] == pytest.approx(2.0)


def test_empty_directory_is_success(tmp_path):
    src = tmp_path / "empty"
    src.mkdir()
    summary = convert_mod.convert(_config(tmp_path, src))
    assert summary.ok
    assert summary.outcomes == []


class TestOrdering:
    def test_pet_files_rescaled_before_reconstruction(self, tmp_path, write_series, monkeypatch):
        files = write_series(tmp_path / "pet", n=3, modality="PT")
        seen = {}

        def fake_write(file_paths, output_path, plan):
            seen["slopes"] = [
                str(pydicom.dcmread(str(p), stop_before_pixels=True).RescaleSlope) for p in file_paths
            ]
            return WriteResult(output_path)

        monkeypatch.setattr(convert_mod, "reconstruct_and_write", fake_write)
        summary = convert_mod.convert(_config(tmp_path, tmp_path / "pet"))

        assert summary.ok
        assert len(seen["slopes"]) == len(files)
        assert all(s != "1" for s in seen["slopes"])

    def test_non_pet_is_never_rescaled(self, tmp_path, write_series, monkeypatch):
        write_series(tmp_path / "ct", n=2, modality="CT")

        def boom(*args, **kwargs):
            raise AssertionError("SUV path used for a CT series")

        monkeypatch.setattr(convert_mod, "calculate_bw_factor", boom)
        monkeypatch.setattr(convert_mod, "rescale_file", boom)
        summary = convert_mod.convert(_config(tmp_path, tmp_path / "ct"))
        assert summary.ok

    def test_bad_pet_metadata_leaves_files_untouched(self, tmp_path, write_series):
        files = write_series(tmp_path / "pet", n=3, modality="PT")
        ds = pydicom.dcmread(str(files[-1]))
        del ds.PatientWeight
        ds.save_as(str(files[-1]))

        summary = convert_mod.convert(_config(tmp_path, tmp_path / "pet"))

        assert not summary.ok
        assert "(0010,1030)" in summary.failures[0].error
        for path in files:
            assert str(pydicom.dcmread(str(path), stop_before_pixels=True).RescaleSlope) == "1"


class TestFailurePolicy:
    def _two_series(self, tmp_path, write_series):
        src = tmp_path / "study"
        write_series(src / "a", n=2, series_description="FIRST")
        write_series(src / "b", n=2, series_description="SECOND")
        return src

    def _failing_first(self, monkeypatch):
        calls = []

        def fake_write(file_paths, output_path, plan):
            calls.append(output_path.name)
            if len(calls) == 1:
                return WriteResult(output_path, ReconstructionFailed(output_path))
            return WriteResult(output_path)

        monkeypatch.setattr(convert_mod, "reconstruct_and_write", fake_write)
        return calls

    def test_abort_on_first_failure(self, tmp_path, write_series, monkeypatch):
        src = self._two_series(tmp_path, write_series)
        calls = self._failing_first(monkeypatch)

        summary = convert_mod.convert(_config(tmp_path, src))

        assert calls == ["FIRST.nii.gz"]
        assert [o.status for o in summary.outcomes] == ["failed"]
        assert summary.outcomes[0].output_path == tmp_path / "out" / "FIRST.nii.gz"

    def test_keep_going(self, tmp_path, write_series, monkeypatch):
        src = self._two_series(tmp_path, write_series)
        calls = self._failing_first(monkeypatch)

        summary = convert_mod.convert(_config(tmp_path, src, keep_going=True))

        assert calls == ["FIRST.nii.gz", "SECOND.nii.gz"]
        assert [o.status for o in summary.outcomes] == ["failed", "written"]
        assert not summary.ok

    def test_pet_rewrite_error_fails_only_that_series(self, tmp_path, write_series, monkeypatch):
        src = tmp_path / "study"
        write_series(src / "a_pet", n=2, modality="PT", series_description="PET")
        write_series(src / "b_ct", n=2, modality="CT", series_description="CT")

        def read_only(self, *args, **kwargs):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(pydicom.dataset.Dataset, "save_as", read_only)
        summary = convert_mod.convert(_config(tmp_path, src, keep_going=True))

        assert [o.status for o in summary.outcomes] == ["failed", "written"]
        assert "Failed to write" in summary.failures[0].error
        assert summary.failures[0].output_path == tmp_path / "out" / "PET.nii.gz"
        assert (tmp_path / "out" / "CT.nii.gz").exists()
