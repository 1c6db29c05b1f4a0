"""Composition of embedded-metadata strings from roll and photo fields.

All functions are pure and total: they never raise for any string input.
"""

from __future__ import annotations

from core.models import Location, Photo, Roll

COMMENT_SEPARATOR = " | "
FILM_STOCK_PREFIX = "Shot on "
EXIF_NOON = " 12:00:00"


def build_comment(
    film_stock: str | None,
    city: str | None = None,
    country: str | None = None,
    free_text: str | None = None,
) -> str:
    """Join the non-empty fragments `Shot on <stock>`, `<city>, <country>`, `<text>`.

    The place fragment needs both city and country. Empty input yields "".
    """
    parts: list[str] = []
    if film_stock:
        parts.append(f"{FILM_STOCK_PREFIX}{film_stock}")
    if city and country:
        parts.append(f"{city}, {country}")
    if free_text:
        parts.append(free_text)
    return COMMENT_SEPARATOR.join(parts)


def parse_camera_string(camera: str | None) -> tuple[str, str]:
    """Split a camera string into (make, model) on the first whitespace run.

    Examples: "Canon AE-1" -> ("Canon", "AE-1"), "Leica" -> ("Leica", "").
    """
    tokens = (camera or "").split()
    if not tokens:
        return "", ""
    return tokens[0], " ".join(tokens[1:])


def format_shoot_date_for_exif(shoot_date: str | None) -> str:
    """Convert `YYYY-MM-DD` into the embedded form `YYYY:MM:DD 12:00:00`."""
    if not shoot_date:
        return ""
    return shoot_date.replace("-", ":") + EXIF_NOON


def extract_film_stock(user_comment: str | None) -> str | None:
    """Recover the film stock from a comment written by `build_comment`."""
    if not user_comment or FILM_STOCK_PREFIX not in user_comment:
        return None
    tail = user_comment.split(FILM_STOCK_PREFIX, 1)[1]
    stock = tail.split(COMMENT_SEPARATOR, 1)[0].strip()
    return stock or None


def effective_location(photo: Photo | None, roll: Roll) -> Location:
    """Pick the location used for a photo.

    City/country are taken as a pair: the photo's pair when it has both,
    otherwise the roll's pair. Coordinates follow the same rule independently.
    """
    roll_loc = roll.location
    if photo is None:
        return roll_loc
    photo_loc = photo.location
    place = photo_loc if photo_loc.has_place else roll_loc
    coords = photo_loc if photo_loc.has_coordinates else roll_loc
    return Location(city=place.city, country=place.country, lat=coords.lat, lon=coords.lon)


def build_photo_comment(
    roll: Roll, photo: Photo | None = None, free_text: str | None = None
) -> str:
    """Comment for one photo: roll film stock, effective place, free text.

    `free_text` defaults to the photo's stored description, then roll notes.
    """
    loc = effective_location(photo, roll)
    if free_text is None:
        free_text = (photo.exif_description if photo is not None else None) or roll.notes
    return build_comment(roll.film_stock, loc.city, loc.country, free_text)
