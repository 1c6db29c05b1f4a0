"""Tests for the bounded-concurrency metadata writer."""

from pathlib import Path

import pytest

from conftest import FakeExifRunner
from core.errors import ExifToolError
from core.models import Photo, Roll
from infrastructure.exif_tool import ExifToolService
from infrastructure.metadata_sync import (
    MAX_CONCURRENT_WRITES,
    MetadataSyncExecutor,
    plan_photo,
    plan_roll,
)


def _roll(**kwargs) -> Roll:
    base = dict(
        id=26,
        name="roll",
        path="/lib/2024/0000001A",
        film_stock="Kodak Portra 400",
        camera="Canon AE-1",
        shoot_date="2024-01-15",
        lens="FD 50mm f/1.8",
    )
    base.update(kwargs)
    return Roll(**base)


def _photos(tmp_path: Path, count: int) -> list[Photo]:
    photos = []
    for i in range(1, count + 1):
        path = tmp_path / f"ROLL_0000001A_{i:03d}.jpg"
        path.write_bytes(b"jpeg")
        photos.append(Photo(id=i, roll_id=26, filename=path.name, file_path=str(path)))
    return photos


def _assignments(args: list[str]) -> dict[str, str]:
    out = {}
    for arg in args[1:-1]:
        if arg.startswith("-") and "=" in arg:
            key, value = arg[1:].split("=", 1)
            out[key] = value
    return out


def test_plan_roll_fields():
    plan = plan_roll(_roll(city="Tokyo", country="Japan", notes="Sunny", lat=35.5, lon=-139.25))

    assert plan.comment == "Shot on Kodak Portra 400 | Tokyo, Japan | Sunny"
    assert plan.fields["Make"] == "Canon"
    assert plan.fields["Model"] == "AE-1"
    assert plan.fields["LensModel"] == "FD 50mm f/1.8"
    assert plan.fields["DateTimeOriginal"] == "2024:01:15 12:00:00"
    assert plan.fields["CreateDate"] == "2024:01:15 12:00:00"
    assert plan.fields["UserComment"] == plan.comment
    assert plan.fields["GPSLatitudeRef"] == "N"
    assert plan.fields["GPSLongitude"] == "139.250000"
    assert plan.fields["GPSLongitudeRef"] == "W"
    assert len(plan.data_hash) == 40


def test_plan_without_coordinates_has_no_gps_fields():
    plan = plan_roll(_roll())
    assert not any(key.startswith("GPS") for key in plan.fields)


@pytest.mark.parametrize("lat, lon", [(35.5, None), (None, -139.25)])
def test_plan_with_half_coordinates_has_no_gps_fields(lat, lon):
    plan = plan_roll(_roll(lat=lat, lon=lon))
    assert not any(key.startswith("GPS") for key in plan.fields)


def test_plan_photo_prefers_photo_location():
    roll = _roll(city="Osaka", country="Japan")
    photo = Photo(
        id=1, roll_id=26, filename="a.jpg", file_path="/a.jpg", city="Kyoto", country="Japan"
    )
    assert plan_photo(photo, roll, "temple").comment == (
        "Shot on Kodak Portra 400 | Kyoto, Japan | temple"
    )


def test_sync_roll_writes_every_photo(tmp_path, fake_exif):
    photos = _photos(tmp_path, 3)
    executor = MetadataSyncExecutor(ExifToolService(runner=fake_exif))

    result = executor.sync_roll(_roll(), photos)

    assert result.success_count == 3
    assert result.failed_count == 0
    assert result.succeeded_paths == [p.file_path for p in photos]
    for photo in photos:
        (args,) = fake_exif.calls_for(photo.file_path)
        assert "-overwrite_original" in args
        assert "-MakerNotes:All=" in args
        assert _assignments(args)["UserComment"] == "Shot on Kodak Portra 400"
        assert "LensModel" in _assignments(args)


def test_sync_roll_respects_concurrency_bound(tmp_path):
    runner = FakeExifRunner(delay=0.05)
    photos = _photos(tmp_path, 12)
    executor = MetadataSyncExecutor(ExifToolService(runner=runner))

    result = executor.sync_roll(_roll(), photos)

    assert result.success_count == 12
    assert runner.peak == MAX_CONCURRENT_WRITES


def test_partial_failure_is_counted_per_path(tmp_path):
    photos = _photos(tmp_path, 5)
    failing = {photos[1].file_path, photos[3].file_path}
    runner = FakeExifRunner(fail_paths=failing)
    executor = MetadataSyncExecutor(ExifToolService(runner=runner))

    result = executor.sync_roll(_roll(), photos)

    assert result.success_count == 3
    assert result.failed_count == 2
    assert result.total == 5
    failed_paths = [path for path, _ in result.failed_files]
    assert set(failed_paths) == failing
    assert len(failed_paths) == len(set(failed_paths))
    assert all("cannot write" in error for _, error in result.failed_files)


def test_duplicate_paths_are_written_once(tmp_path, fake_exif):
    photos = _photos(tmp_path, 2)
    executor = MetadataSyncExecutor(ExifToolService(runner=fake_exif))

    result = executor.sync_roll(_roll(), photos + photos[:1])

    assert result.total == 2
    assert len(fake_exif.calls_for(photos[0].file_path)) == 1


def test_missing_file_counts_as_failure(tmp_path, fake_exif):
    photos = _photos(tmp_path, 2)
    Path(photos[0].file_path).unlink()
    executor = MetadataSyncExecutor(ExifToolService(runner=fake_exif))

    result = executor.sync_roll(_roll(), photos)

    assert result.success_count == 1
    assert result.failed_files[0][0] == photos[0].file_path


def test_empty_batch(fake_exif):
    result = MetadataSyncExecutor(ExifToolService(runner=fake_exif)).sync_roll(_roll(), [])
    assert result.total == 0
    assert fake_exif.calls == []


def test_sync_photo_raises_first_error(tmp_path):
    (photo,) = _photos(tmp_path, 1)
    runner = FakeExifRunner(fail_paths={photo.file_path})
    executor = MetadataSyncExecutor(ExifToolService(runner=runner))

    with pytest.raises(ExifToolError, match="cannot write"):
        executor.sync_photo(photo, _roll())


def test_clear_single_photo_and_roll(tmp_path, fake_exif):
    photos = _photos(tmp_path, 3)
    executor = MetadataSyncExecutor(ExifToolService(runner=fake_exif))

    assert executor.clear(photos[0]).success_count == 1
    assert executor.clear(photos).success_count == 3
    assert all("-all=" in call for call in fake_exif.calls)
