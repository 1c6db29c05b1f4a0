"""Propagation of roll/photo metadata into image files with bounded concurrency.

One ExifTool process is launched per file; at most `max_workers` run at the
same time. Batch calls fold per-file errors into a `BatchResult` keyed by path
and never let one failure cancel the others.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import hashlib

from loguru import logger

from core.models import Location, Photo, Roll
from core.services.comment_builder import (
    build_comment,
    build_photo_comment,
    effective_location,
    format_shoot_date_for_exif,
    parse_camera_string,
)
from core.services.interfaces import BatchResult
from infrastructure.exif_tool import ExifToolService

MAX_CONCURRENT_WRITES = 4


@dataclass
class SyncPlan:
    """Field assignments for one write plus the bookkeeping stored afterwards."""

    fields: dict[str, str]
    comment: str
    data_hash: str


def _gps_fields(loc: Location) -> dict[str, str]:
    lat, lon = loc.lat, loc.lon
    if lat is None or lon is None:
        return {}
    return {
        "GPSLatitude": f"{abs(lat):.6f}",
        "GPSLatitudeRef": "N" if lat >= 0 else "S",
        "GPSLongitude": f"{abs(lon):.6f}",
        "GPSLongitudeRef": "E" if lon >= 0 else "W",
    }


def hash_fields(fields: dict[str, str]) -> str:
    """Stable SHA-1 of the non-empty assignments in insertion order."""
    payload = "\n".join(f"{k}={v}" for k, v in fields.items() if v)
    return hashlib.sha1(payload.encode("utf-8", errors="ignore")).hexdigest()


def build_exif_fields(roll: Roll, comment: str, loc: Location) -> dict[str, str]:
    """Roll-level assignments; empty strings are dropped by the writer."""
    make, model = parse_camera_string(roll.camera)
    date_time = format_shoot_date_for_exif(roll.shoot_date)
    fields = {
        "Make": make,
        "Model": model,
        "LensModel": roll.lens or "",
        "DateTimeOriginal": date_time,
        "CreateDate": date_time,
        "UserComment": comment,
        "ImageDescription": comment,
    }
    fields.update(_gps_fields(loc))
    return fields


def plan_roll(roll: Roll) -> SyncPlan:
    """Plan the write shared by every photo of `roll`."""
    comment = build_comment(roll.film_stock, roll.city, roll.country, roll.notes)
    fields = build_exif_fields(roll, comment, roll.location)
    return SyncPlan(fields=fields, comment=comment, data_hash=hash_fields(fields))


def plan_photo(photo: Photo, roll: Roll, override_comment: str | None = None) -> SyncPlan:
    """Plan the write for one photo, preferring its own location over the roll's."""
    comment = build_photo_comment(roll, photo, override_comment)
    fields = build_exif_fields(roll, comment, effective_location(photo, roll))
    return SyncPlan(fields=fields, comment=comment, data_hash=hash_fields(fields))


class MetadataSyncExecutor:
    """Writes and clears embedded metadata for rolls and photos."""

    def __init__(self, exif: ExifToolService, max_workers: int = MAX_CONCURRENT_WRITES) -> None:
        self._exif = exif
        self._max_workers = max(1, int(max_workers))

    @property
    def max_workers(self) -> int:
        return self._max_workers

    def sync_roll(self, roll: Roll, photos: Iterable[Photo]) -> BatchResult:
        """Write roll-level metadata into every photo file."""
        plan = plan_roll(roll)
        logger.info("Writing roll {} metadata: {}", roll.id, plan.comment or "(no comment)")

        def write(path: str) -> None:
            self._exif.write(path, plan.fields, clear_maker_notes=True)

        result = self._fan_out([p.file_path for p in photos], write)
        logger.info(
            "Roll {} metadata write complete: {} success, {} failed",
            roll.id,
            result.success_count,
            result.failed_count,
        )
        return result

    def sync_photo(self, photo: Photo, roll: Roll, override_comment: str | None = None) -> bool:
        """Write metadata into one photo; errors propagate to the caller."""
        plan = plan_photo(photo, roll, override_comment)
        self._exif.write(photo.file_path, plan.fields, clear_maker_notes=True)
        logger.info("Wrote metadata for photo {}", photo.id)
        return True

    def clear(self, photos: Photo | Iterable[Photo]) -> BatchResult:
        """Strip all metadata from one photo or a roll's photos."""
        items = [photos] if isinstance(photos, Photo) else list(photos)
        result = self._fan_out([p.file_path for p in items], self._exif.clear)
        logger.info(
            "Metadata clear complete: {} success, {} failed",
            result.success_count,
            result.failed_count,
        )
        return result

    # Internal helpers
    def _fan_out(self, paths: list[str], action: Callable[[str], None]) -> BatchResult:
        """Run `action` for each distinct path under the concurrency bound."""
        unique = list(dict.fromkeys(paths))
        if len(unique) != len(paths):
            logger.warning("Ignoring {} duplicate paths in batch", len(paths) - len(unique))
        if not unique:
            return BatchResult()

        errors: dict[str, str | None] = {}
        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="exif") as pool:
            futures = {path: pool.submit(action, path) for path in unique}
            for path, future in futures.items():
                try:
                    future.result()
                    errors[path] = None
                except Exception as ex:  # pylint: disable=broad-exception-caught
                    logger.warning("Metadata operation failed for {}: {}", path, ex)
                    errors[path] = str(ex) or type(ex).__name__

        result = BatchResult()
        for path in unique:
            error = errors[path]
            if error is None:
                result.success_count += 1
                result.succeeded_paths.append(path)
            else:
                result.failed_count += 1
                result.failed_files.append((path, error))
        return result
