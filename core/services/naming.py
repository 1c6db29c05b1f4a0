"""Deterministic naming for roll directories and managed photo files.

Roll directories live at `<library_root>/<YYYY>/<ROLLHEX>` and managed files are
named `ROLL_<ROLLHEX>_<SEQ>.<ext>`, where `ROLLHEX` is the roll id rendered as
8 zero-padded uppercase hex digits and `SEQ` the 1-based position of the file
in source enumeration order.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from core.errors import RollDirectoryExistsError, ValidationError

SUPPORTED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "tif", "tiff", "webp", "bmp"})

SHOOT_DATE_FMT = "%Y-%m-%d"

_UNSAFE_CHARS = frozenset(' /\\:*?"<>|')


def roll_hex(roll_id: int) -> str:
    """Return `roll_id` as 8 zero-padded uppercase hex digits."""
    if roll_id < 0:
        raise ValidationError(f"Invalid roll id: {roll_id}")
    return f"{roll_id:08X}"


def roll_directory_path(library_root: str | Path, year: str, roll_id: int) -> Path:
    """Compute `<library_root>/<year>/<ROLLHEX>` without touching the filesystem."""
    if len(year) != 4 or not year.isdigit():
        raise ValidationError(f"Invalid year bucket: {year!r}")
    return Path(library_root) / year / roll_hex(roll_id)


def allocate_roll_directory(library_root: str | Path, year: str, roll_id: int) -> Path:
    """Create and return the directory for `roll_id`.

    Raises:
        RollDirectoryExistsError: the directory already exists. Roll ids are
            issued once by the store, so an existing directory means the roll
            was imported twice.
    """
    path = roll_directory_path(library_root, year, roll_id)
    if path.exists():
        raise RollDirectoryExistsError(f"Roll directory already exists: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    # exist_ok=False so a concurrent creator still fails loudly
    try:
        path.mkdir()
    except FileExistsError as ex:
        raise RollDirectoryExistsError(f"Roll directory already exists: {path}") from ex
    return path


def allocate_filename(roll_id: int, sequence_index: int, original_extension: str) -> str:
    """Return the managed filename for the `sequence_index`-th file of a roll.

    `original_extension` may be given with or without the leading dot; it is
    lowercased in the result.
    """
    if sequence_index < 1:
        raise ValidationError(f"Sequence index must start at 1, got {sequence_index}")
    ext = original_extension.lstrip(".").lower()
    if not ext:
        raise ValidationError("Missing file extension")
    return f"ROLL_{roll_hex(roll_id)}_{sequence_index:03d}.{ext}"


def parse_shoot_date(value: str) -> str:
    """Validate a shoot date and return it in canonical `YYYY-MM-DD` form."""
    text = (value or "").strip()
    try:
        return datetime.strptime(text, SHOOT_DATE_FMT).date().isoformat()
    except ValueError as ex:
        raise ValidationError(f"Invalid shoot date {value!r}. Use YYYY-MM-DD") from ex


def sanitize_filename(name: str) -> str:
    """Replace characters unsafe in file names with `_`, keeping length."""
    return "".join("_" if ch in _UNSAFE_CHARS else ch for ch in name)


def is_supported_image(path: str | Path) -> bool:
    """True if `path` has a supported image extension (case-insensitive)."""
    return Path(path).suffix.lstrip(".").lower() in SUPPORTED_EXTENSIONS


def list_source_images(source_dir: str | Path) -> list[Path]:
    """Return supported image files directly under `source_dir`.

    Order is directory-enumeration order as reported by the OS, not sorted.
    Callers needing alphabetic order must sort the result themselves.
    """
    root = Path(source_dir)
    return [p for p in root.iterdir() if p.is_file() and is_supported_image(p)]
