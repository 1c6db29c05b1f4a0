"""SQLite persistence for rolls, photos and settings.

One connection is shared across threads behind a re-entrant lock; every public
method runs as its own transaction. Queries are always parameterized.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
import sqlite3
import threading

from loguru import logger

from core.models import NewPhoto, NewRoll, Photo, Roll

SCHEMA = """
CREATE TABLE IF NOT EXISTS rolls (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    path TEXT NOT NULL DEFAULT '',
    film_stock TEXT NOT NULL DEFAULT '',
    camera TEXT NOT NULL DEFAULT '',
    lens TEXT,
    shoot_date TEXT NOT NULL,
    lab_info TEXT,
    notes TEXT,
    city TEXT,
    country TEXT,
    lat REAL,
    lon REAL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS photos (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    roll_id INTEGER NOT NULL REFERENCES rolls(id) ON DELETE CASCADE,
    filename TEXT NOT NULL,
    file_path TEXT NOT NULL,
    thumbnail_path TEXT,
    preview_path TEXT,
    rating INTEGER NOT NULL DEFAULT 0 CHECK (rating BETWEEN 0 AND 5),
    is_cover BOOLEAN NOT NULL DEFAULT 0,
    is_favorite BOOLEAN NOT NULL DEFAULT 0,
    lat REAL,
    lon REAL,
    city TEXT,
    country TEXT,
    exif_synced BOOLEAN NOT NULL DEFAULT 0,
    exif_written_at TIMESTAMP,
    exif_data_hash TEXT,
    exif_user_comment TEXT,
    exif_description TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_photos_roll_id ON photos(roll_id);

CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL DEFAULT '',
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

ROLL_COLUMNS = (
    "id, name, path, film_stock, camera, lens, shoot_date, lab_info, notes, "
    "city, country, lat, lon, created_at, updated_at"
)
PHOTO_COLUMNS = (
    "id, roll_id, filename, file_path, thumbnail_path, preview_path, rating, is_cover, "
    "is_favorite, lat, lon, city, country, exif_synced, exif_written_at, exif_data_hash, "
    "exif_user_comment, exif_description, created_at"
)

LIBRARY_ROOT_KEY = "library_root"


def _row_to_roll(row: sqlite3.Row) -> Roll:
    return Roll(
        id=int(row["id"]),
        name=row["name"],
        path=row["path"] or "",
        film_stock=row["film_stock"] or "",
        camera=row["camera"] or "",
        lens=row["lens"],
        shoot_date=row["shoot_date"],
        lab_info=row["lab_info"],
        notes=row["notes"],
        city=row["city"],
        country=row["country"],
        lat=row["lat"],
        lon=row["lon"],
        created_at=str(row["created_at"] or ""),
        updated_at=str(row["updated_at"] or ""),
    )


def _row_to_photo(row: sqlite3.Row) -> Photo:
    return Photo(
        id=int(row["id"]),
        roll_id=int(row["roll_id"]),
        filename=row["filename"],
        file_path=row["file_path"],
        thumbnail_path=row["thumbnail_path"],
        preview_path=row["preview_path"],
        rating=int(row["rating"] or 0),
        is_cover=bool(row["is_cover"]),
        is_favorite=bool(row["is_favorite"]),
        lat=row["lat"],
        lon=row["lon"],
        city=row["city"],
        country=row["country"],
        exif_synced=bool(row["exif_synced"]),
        exif_written_at=row["exif_written_at"],
        exif_data_hash=row["exif_data_hash"],
        exif_user_comment=row["exif_user_comment"],
        exif_description=row["exif_description"],
        created_at=str(row["created_at"] or ""),
    )


def open_connection(db_path: str | Path) -> sqlite3.Connection:
    """Open `db_path` (or ":memory:") with row access by name and FK enforcement."""
    target = str(db_path)
    if target != ":memory:":
        Path(target).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(target, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


class SqliteLibraryRepository:
    """Rolls, photos and settings stored in a single SQLite database."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()

    @classmethod
    def open(cls, db_path: str | Path) -> SqliteLibraryRepository:
        """Connect, create the schema if needed and seed default settings."""
        logger.info("Opening library database: {}", db_path)
        repo = cls(open_connection(db_path))
        repo.init_schema()
        return repo

    def init_schema(self) -> None:
        with self._lock:
            self._conn.executescript(SCHEMA)
            self._conn.execute(
                "INSERT OR IGNORE INTO settings (key, value) VALUES (?, '')", (LIBRARY_ROOT_KEY,)
            )
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except BaseException:
                self._conn.rollback()
                raise

    # Settings
    def get_setting(self, key: str) -> str | None:
        with self._lock:
            row = self._conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return None if row is None else row["value"]

    def set_setting(self, key: str, value: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO settings (key, value) VALUES (?1, ?2) "
                "ON CONFLICT(key) DO UPDATE SET value = ?2, updated_at = CURRENT_TIMESTAMP",
                (key, value),
            )

    def get_library_root(self) -> str:
        return self.get_setting(LIBRARY_ROOT_KEY) or ""

    def set_library_root(self, path: str) -> None:
        logger.info("Setting library_root to: '{}'", path)
        self.set_setting(LIBRARY_ROOT_KEY, path)

    # Rolls
    def create_roll(self, roll: NewRoll) -> int:
        with self._transaction() as conn:
            cur = conn.execute(
                "INSERT INTO rolls (name, path, film_stock, camera, lens, shoot_date, lab_info, "
                "notes, city, country, lat, lon) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    roll.name,
                    roll.path,
                    roll.film_stock,
                    roll.camera,
                    roll.lens,
                    roll.shoot_date,
                    roll.lab_info,
                    roll.notes,
                    roll.city,
                    roll.country,
                    roll.lat,
                    roll.lon,
                ),
            )
            roll_id = int(cur.lastrowid)
        logger.debug("Created roll {} ({})", roll_id, roll.name)
        return roll_id

    def update_roll_path(self, roll_id: int, path: str) -> bool:
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE rolls SET path = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (path, roll_id),
            )
        return cur.rowcount > 0

    def get_roll(self, roll_id: int) -> Roll | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {ROLL_COLUMNS} FROM rolls WHERE id = ?", (roll_id,)
            ).fetchone()
        return None if row is None else _row_to_roll(row)

    def get_all_rolls(self) -> list[Roll]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {ROLL_COLUMNS} FROM rolls ORDER BY shoot_date DESC, id DESC"
            ).fetchall()
        return [_row_to_roll(r) for r in rows]

    def update_roll(self, roll_id: int, roll: NewRoll) -> bool:
        """Update descriptive fields; the directory path never changes here."""
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE rolls SET name = ?, film_stock = ?, camera = ?, lens = ?, shoot_date = ?, "
                "lab_info = ?, notes = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (
                    roll.name,
                    roll.film_stock,
                    roll.camera,
                    roll.lens,
                    roll.shoot_date,
                    roll.lab_info,
                    roll.notes,
                    roll_id,
                ),
            )
        return cur.rowcount > 0

    def update_roll_location(
        self,
        roll_id: int,
        city: str | None,
        country: str | None,
        lat: float | None,
        lon: float | None,
    ) -> bool:
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE rolls SET city = ?, country = ?, lat = ?, lon = ?, "
                "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (city, country, lat, lon, roll_id),
            )
        return cur.rowcount > 0

    def delete_roll(self, roll_id: int) -> bool:
        with self._transaction() as conn:
            cur = conn.execute("DELETE FROM rolls WHERE id = ?", (roll_id,))
        return cur.rowcount > 0

    # Photos
    def create_photos(self, photos: Iterable[NewPhoto]) -> list[int]:
        """Insert all photos in a single transaction."""
        ids: list[int] = []
        with self._transaction() as conn:
            for photo in photos:
                cur = conn.execute(
                    "INSERT INTO photos "
                    "(roll_id, filename, file_path, thumbnail_path, preview_path) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (
                        photo.roll_id,
                        photo.filename,
                        photo.file_path,
                        photo.thumbnail_path,
                        photo.preview_path,
                    ),
                )
                ids.append(int(cur.lastrowid))
        return ids

    def get_photo(self, photo_id: int) -> Photo | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {PHOTO_COLUMNS} FROM photos WHERE id = ?", (photo_id,)
            ).fetchone()
        return None if row is None else _row_to_photo(row)

    def get_photos_by_roll(self, roll_id: int) -> list[Photo]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {PHOTO_COLUMNS} FROM photos WHERE roll_id = ? ORDER BY filename",
                (roll_id,),
            ).fetchall()
        return [_row_to_photo(r) for r in rows]

    def get_favorite_photos(self, roll_id: int) -> list[Photo]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {PHOTO_COLUMNS} FROM photos WHERE roll_id = ? AND is_favorite = 1 "
                "ORDER BY filename",
                (roll_id,),
            ).fetchall()
        return [_row_to_photo(r) for r in rows]

    def get_roll_cover(self, roll_id: int) -> Photo | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {PHOTO_COLUMNS} FROM photos WHERE roll_id = ? AND is_cover = 1 LIMIT 1",
                (roll_id,),
            ).fetchone()
        return None if row is None else _row_to_photo(row)

    def set_photo_as_cover(self, roll_id: int, photo_id: int) -> bool:
        """Make `photo_id` the only cover of `roll_id`.

        Clearing and setting happen in one transaction; when `photo_id` does not
        belong to the roll nothing changes.
        """
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT 1 FROM photos WHERE id = ? AND roll_id = ?", (photo_id, roll_id)
            ).fetchone()
            if row is None:
                return False
            conn.execute("UPDATE photos SET is_cover = 0 WHERE roll_id = ?", (roll_id,))
            conn.execute(
                "UPDATE photos SET is_cover = 1 WHERE id = ? AND roll_id = ?", (photo_id, roll_id)
            )
        return True

    def update_photo_rating(self, photo_id: int, rating: int) -> bool:
        with self._transaction() as conn:
            cur = conn.execute("UPDATE photos SET rating = ? WHERE id = ?", (rating, photo_id))
        return cur.rowcount > 0

    def update_photo_location(
        self,
        photo_id: int,
        lat: float | None,
        lon: float | None,
        city: str | None = None,
        country: str | None = None,
    ) -> bool:
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE photos SET lat = ?, lon = ?, city = ?, country = ? WHERE id = ?",
                (lat, lon, city, country, photo_id),
            )
        return cur.rowcount > 0

    def apply_roll_location_to_photos(self, roll_id: int) -> int:
        """Copy the roll's location onto every photo of the roll; return rows changed."""
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE photos SET "
                "city = (SELECT city FROM rolls WHERE id = ?1), "
                "country = (SELECT country FROM rolls WHERE id = ?1), "
                "lat = (SELECT lat FROM rolls WHERE id = ?1), "
                "lon = (SELECT lon FROM rolls WHERE id = ?1) "
                "WHERE roll_id = ?1",
                (roll_id,),
            )
        return cur.rowcount

    def set_photo_favorite(self, photo_id: int, is_favorite: bool) -> bool:
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE photos SET is_favorite = ? WHERE id = ?", (int(is_favorite), photo_id)
            )
        return cur.rowcount > 0

    def toggle_photo_favorite(self, photo_id: int) -> bool | None:
        """Flip the favorite flag; return the new value, or None if missing."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT is_favorite FROM photos WHERE id = ?", (photo_id,)
            ).fetchone()
            if row is None:
                return None
            new_value = not bool(row["is_favorite"])
            conn.execute(
                "UPDATE photos SET is_favorite = ? WHERE id = ?", (int(new_value), photo_id)
            )
        return new_value

    def update_photo_metadata(
        self, photo_id: int, user_comment: str | None, description: str | None
    ) -> bool:
        with self._transaction() as conn:
            cur = conn.execute(
                "UPDATE photos SET exif_user_comment = ?, exif_description = ? WHERE id = ?",
                (user_comment, description, photo_id),
            )
        return cur.rowcount > 0

    def mark_photos_exif_synced(
        self, photo_ids: Iterable[int], data_hash: str, comment: str
    ) -> int:
        """Record a successful metadata write for each photo."""
        ids = list(photo_ids)
        with self._transaction() as conn:
            conn.executemany(
                "UPDATE photos SET exif_synced = 1, exif_written_at = CURRENT_TIMESTAMP, "
                "exif_data_hash = ?, exif_user_comment = ? WHERE id = ?",
                [(data_hash, comment, pid) for pid in ids],
            )
        return len(ids)

    def clear_photos_exif_synced(self, photo_ids: Iterable[int]) -> int:
        ids = list(photo_ids)
        with self._transaction() as conn:
            conn.executemany(
                "UPDATE photos SET exif_synced = 0, exif_written_at = NULL, "
                "exif_data_hash = NULL WHERE id = ?",
                [(pid,) for pid in ids],
            )
        return len(ids)

    def delete_photos(self, photo_ids: Iterable[int]) -> int:
        ids = list(photo_ids)
        with self._transaction() as conn:
            deleted = 0
            for pid in ids:
                deleted += conn.execute("DELETE FROM photos WHERE id = ?", (pid,)).rowcount
        return deleted
