"""Tests for comment composition, camera parsing and date conversion."""

import pytest

from core.models import Photo, Roll
from core.services.comment_builder import (
    build_comment,
    build_photo_comment,
    effective_location,
    extract_film_stock,
    format_shoot_date_for_exif,
    parse_camera_string,
)


def _roll(**kwargs) -> Roll:
    base = dict(
        id=1,
        name="r",
        path="/lib/2024/00000001",
        film_stock="Kodak Portra 400",
        camera="Canon AE-1",
        shoot_date="2024-01-15",
    )
    base.update(kwargs)
    return Roll(**base)


def _photo(**kwargs) -> Photo:
    base = dict(id=10, roll_id=1, filename="ROLL_00000001_001.jpg", file_path="/x.jpg")
    base.update(kwargs)
    return Photo(**base)


def test_build_comment_fragments():
    assert build_comment("Kodak Portra 400", None, None, None) == "Shot on Kodak Portra 400"
    assert (
        build_comment("Kodak Portra 400", "Tokyo", "Japan", None)
        == "Shot on Kodak Portra 400 | Tokyo, Japan"
    )
    assert (
        build_comment("Kodak Portra 400", "Tokyo", "Japan", "Sunny day")
        == "Shot on Kodak Portra 400 | Tokyo, Japan | Sunny day"
    )
    assert build_comment("", "Tokyo", "Japan", "Sunny day") == "Tokyo, Japan | Sunny day"


def test_build_comment_requires_both_city_and_country():
    assert build_comment("Ilford HP5", "Tokyo", None, "x") == "Shot on Ilford HP5 | x"
    assert build_comment("Ilford HP5", "", "Japan") == "Shot on Ilford HP5"


def test_build_comment_all_empty_is_empty_string():
    assert build_comment("", "", "", "") == ""
    assert build_comment(None) == ""


@pytest.mark.parametrize(
    "camera,expected",
    [
        ("Canon AE-1", ("Canon", "AE-1")),
        ("Nikon FM2", ("Nikon", "FM2")),
        ("Leica", ("Leica", "")),
        ("", ("", "")),
        ("  Olympus   OM-1   MD ", ("Olympus", "OM-1 MD")),
    ],
)
def test_parse_camera_string(camera, expected):
    assert parse_camera_string(camera) == expected


def test_format_shoot_date_for_exif():
    assert format_shoot_date_for_exif("2024-01-15") == "2024:01:15 12:00:00"
    assert format_shoot_date_for_exif("2023-12-31") == "2023:12:31 12:00:00"
    assert format_shoot_date_for_exif("") == ""


def test_extract_film_stock():
    assert extract_film_stock("Shot on Kodak Gold 200 | Paris, France") == "Kodak Gold 200"
    assert extract_film_stock("Shot on CineStill 800T") == "CineStill 800T"
    assert extract_film_stock("holiday") is None
    assert extract_film_stock(None) is None


def test_effective_location_uses_photo_pair_when_complete():
    roll = _roll(city="Osaka", country="Japan", lat=34.7, lon=135.5)
    photo = _photo(city="Kyoto", country="Japan")
    loc = effective_location(photo, roll)
    assert (loc.city, loc.country) == ("Kyoto", "Japan")
    assert (loc.lat, loc.lon) == (34.7, 135.5)


def test_effective_location_never_mixes_fields():
    roll = _roll(city="Osaka", country="Japan")
    photo = _photo(city="Kyoto", country=None)
    loc = effective_location(photo, roll)
    assert (loc.city, loc.country) == ("Osaka", "Japan")


def test_build_photo_comment_prefers_override_then_description_then_notes():
    roll = _roll(city="Osaka", country="Japan", notes="roll notes")
    photo = _photo(exif_description="at the station")
    assert build_photo_comment(roll, photo, "override") == (
        "Shot on Kodak Portra 400 | Osaka, Japan | override"
    )
    assert build_photo_comment(roll, photo).endswith("| at the station")
    assert build_photo_comment(roll, _photo()).endswith("| roll notes")
