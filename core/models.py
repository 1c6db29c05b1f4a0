"""Core domain models for rolls, photos and import/metadata exchange."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class Location:
    """City/country pair with optional coordinates."""

    city: str | None = None
    country: str | None = None
    lat: float | None = None
    lon: float | None = None

    @property
    def has_place(self) -> bool:
        """True when both city and country are non-empty."""
        return bool(self.city) and bool(self.country)

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None


@dataclass
class Roll:
    """A named batch of photos sharing shoot metadata."""

    id: int
    name: str
    path: str
    film_stock: str
    camera: str
    shoot_date: str
    lens: str | None = None
    lab_info: str | None = None
    notes: str | None = None
    city: str | None = None
    country: str | None = None
    lat: float | None = None
    lon: float | None = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def location(self) -> Location:
        return Location(city=self.city, country=self.country, lat=self.lat, lon=self.lon)

    @property
    def year(self) -> str:
        """Year bucket of the roll directory (4-digit prefix of `shoot_date`)."""
        return self.shoot_date[:4]


@dataclass
class Photo:
    """A single managed image belonging to a roll."""

    id: int
    roll_id: int
    filename: str
    file_path: str
    thumbnail_path: str | None = None
    preview_path: str | None = None
    rating: int = 0
    is_cover: bool = False
    is_favorite: bool = False
    lat: float | None = None
    lon: float | None = None
    city: str | None = None
    country: str | None = None
    exif_synced: bool = False
    exif_written_at: str | None = None
    exif_data_hash: str | None = None
    exif_user_comment: str | None = None
    exif_description: str | None = None
    created_at: str = ""

    @property
    def location(self) -> Location:
        return Location(city=self.city, country=self.country, lat=self.lat, lon=self.lon)


@dataclass
class NewRoll:
    """Roll fields supplied on creation or update (no id, no timestamps)."""

    name: str
    film_stock: str
    camera: str
    shoot_date: str
    path: str = ""
    lens: str | None = None
    lab_info: str | None = None
    notes: str | None = None
    city: str | None = None
    country: str | None = None
    lat: float | None = None
    lon: float | None = None


@dataclass
class NewPhoto:
    """Photo fields persisted right after import."""

    roll_id: int
    filename: str
    file_path: str
    thumbnail_path: str | None = None
    preview_path: str | None = None


@dataclass
class ProcessedPaths:
    """Result of processing one source file into the roll directory.

    Transient: consumed immediately to build a `NewPhoto`.
    """

    filename: str
    original_path: Path
    thumbnail_path: Path
    preview_path: Path


@dataclass
class ImportOptions:
    """Caller-supplied parameters for one import call."""

    source_path: str
    library_root: str
    film_stock: str
    camera: str
    shoot_date: str
    lens: str | None = None
    roll_name: str | None = None
    lab_info: str | None = None
    notes: str | None = None
    city: str | None = None
    country: str | None = None
    lat: float | None = None
    lon: float | None = None
    copy_mode: bool = True
    auto_write_exif: bool = False


@dataclass
class ImportResult:
    """Outcome of a successful import call."""

    roll_id: int
    photos_count: int
    roll_path: str
    message: str
    skipped: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class RollWithPhotos:
    roll: Roll
    photos: list[Photo]
    cover_photo: Photo | None = None


@dataclass
class ExifData:
    """Embedded metadata read back from a file by the external tool."""

    make: str | None = None
    model: str | None = None
    lens_model: str | None = None
    date_time_original: str | None = None
    film_stock: str | None = None
    iso: int | None = None
    aperture: str | None = None
    shutter_speed: str | None = None
    focal_length: str | None = None
    gps_latitude: float | None = None
    gps_longitude: float | None = None
    gps_altitude: float | None = None
    rating: int | None = None
    user_comment: str | None = None
    description: str | None = None
