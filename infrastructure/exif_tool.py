"""ExifTool command-line integration for reading, writing and clearing metadata.

The executable is invoked once per file. Writes always pass
`-overwrite_original` and only the non-empty `-Field=value` assignments, with
the target path as the final argument. A non-zero exit status is a failure and
its standard-error text becomes the error detail.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
import json
import os
import subprocess
from typing import Any

from loguru import logger

from core.errors import ExifToolError
from core.models import ExifData
from core.services.comment_builder import extract_film_stock

Runner = Callable[..., subprocess.CompletedProcess]

DEFAULT_EXECUTABLE = "exiftool"


def _as_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _as_int(value: Any) -> int | None:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _parse_coordinate(value: Any) -> float | None:
    """Parse a decimal coordinate such as `35.681236`, `"35.681236 N"` or `"139.7 W"`."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    parts = text.split()
    try:
        number = float(parts[0])
    except (IndexError, ValueError):
        return None
    if len(parts) > 1 and parts[-1].upper() in {"S", "W"}:
        number = -abs(number)
    return number


def _format_aperture(value: Any) -> str | None:
    text = _as_str(value)
    if text is None:
        return None
    return text if text.lower().startswith("f") else f"f/{text}"


def exif_data_from_json(obj: Mapping[str, Any]) -> ExifData:
    """Map one element of `exiftool -j` output onto `ExifData`."""
    user_comment = _as_str(obj.get("UserComment"))
    return ExifData(
        make=_as_str(obj.get("Make")),
        model=_as_str(obj.get("Model")),
        lens_model=_as_str(obj.get("LensModel") or obj.get("Lens")),
        date_time_original=_as_str(obj.get("DateTimeOriginal") or obj.get("CreateDate")),
        film_stock=extract_film_stock(user_comment),
        iso=_as_int(obj.get("ISO", obj.get("ISOSpeedRatings"))),
        aperture=_format_aperture(obj.get("Aperture") or obj.get("FNumber")),
        shutter_speed=_as_str(obj.get("ShutterSpeed") or obj.get("ExposureTime")),
        focal_length=_as_str(obj.get("FocalLength")),
        gps_latitude=_parse_coordinate(obj.get("GPSLatitude")),
        gps_longitude=_parse_coordinate(obj.get("GPSLongitude")),
        gps_altitude=_parse_coordinate(obj.get("GPSAltitude")),
        rating=_as_int(obj.get("Rating")),
        user_comment=user_comment,
        description=_as_str(obj.get("Description") or obj.get("ImageDescription")),
    )


class ExifToolService:
    """Thin wrapper over the `exiftool` executable.

    `runner` has the signature of `subprocess.run` and exists so callers can
    substitute the process launcher.
    """

    def __init__(
        self,
        executable: str = DEFAULT_EXECUTABLE,
        runner: Runner | None = None,
        timeout: float | None = 60,
    ) -> None:
        self._exe = executable or DEFAULT_EXECUTABLE
        self._runner: Runner = runner or subprocess.run
        self._timeout = timeout

    @property
    def executable(self) -> str:
        return self._exe

    def is_available(self) -> bool:
        """True if `exiftool -ver` runs and exits successfully."""
        try:
            proc = self._runner(
                [self._exe, "-ver"],
                capture_output=True,
                text=True,
                check=False,
                timeout=self._timeout,
            )
        except (OSError, subprocess.SubprocessError) as ex:
            logger.debug("ExifTool availability check failed: {}", ex)
            return False
        return proc.returncode == 0

    def write(
        self, file_path: str, fields: Mapping[str, str | None], clear_maker_notes: bool = False
    ) -> None:
        """Assign `fields` in place; empty values are omitted entirely."""
        self._require_file(file_path)
        args = [self._exe, "-overwrite_original"]
        if clear_maker_notes:
            args.append("-MakerNotes:All=")
        for name, value in fields.items():
            if value is None or value == "":
                continue
            args.append(f"-{name}={value}")
        args.append(file_path)
        logger.debug("ExifTool write: {}", args[1:])
        self._run(args)

    def clear(self, file_path: str) -> None:
        """Strip all metadata from `file_path` in place."""
        self._require_file(file_path)
        self._run([self._exe, "-overwrite_original", "-all=", file_path])

    def read(self, file_path: str) -> ExifData:
        """Read metadata as JSON with decimal coordinates."""
        self._require_file(file_path)
        proc = self._run([self._exe, "-j", "-coordFormat", "%.6f", file_path])
        text = (proc.stdout or "").strip()
        if not text:
            logger.info("No metadata returned for {}", file_path)
            return ExifData()
        try:
            items = json.loads(text)
        except json.JSONDecodeError as ex:
            raise ExifToolError(f"Failed to parse ExifTool output: {ex}") from ex
        if not isinstance(items, list):
            raise ExifToolError("Unexpected ExifTool output: expected a JSON array")
        if not items:
            return ExifData()
        if not isinstance(items[0], dict):
            raise ExifToolError("Unexpected ExifTool output: expected an object")
        return exif_data_from_json(items[0])

    # Internal helpers
    @staticmethod
    def _require_file(file_path: str) -> None:
        if not os.path.isfile(file_path):
            raise FileNotFoundError(f"File not found: {file_path}")

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        try:
            proc = self._runner(
                args, capture_output=True, text=True, check=False, timeout=self._timeout
            )
        except FileNotFoundError as ex:
            raise ExifToolError(f"ExifTool not found: {self._exe}") from ex
        except subprocess.TimeoutExpired as ex:
            raise ExifToolError(f"ExifTool timed out after {ex.timeout}s") from ex
        except OSError as ex:
            raise ExifToolError(f"Failed to execute exiftool: {ex}") from ex
        if proc.returncode != 0:
            stderr = (proc.stderr or "").strip() or f"exit status {proc.returncode}"
            logger.debug("ExifTool failed ({}): {}", proc.returncode, stderr)
            raise ExifToolError(f"ExifTool error: {stderr}")
        return proc
