"""Command facade used by the front-end for library, roll, photo and metadata operations.

Every command first acquires the shared store through the readiness gate, then
delegates to the infrastructure services. Single-entity commands raise the
first error; roll-wide metadata commands return a `BatchResult`.
"""

from __future__ import annotations

from dataclasses import replace

from loguru import logger

from core.errors import NotFoundError, ValidationError
from core.models import ExifData, ImportOptions, ImportResult, NewRoll, Photo, Roll, RollWithPhotos
from core.services.interfaces import BatchResult, DeleteResult, ProgressSink
from core.services.naming import parse_shoot_date
from infrastructure.delete_service import DeleteService
from infrastructure.exif_tool import ExifToolService
from infrastructure.image_service import ImageService
from infrastructure.import_service import ImportService
from infrastructure.metadata_sync import MetadataSyncExecutor, plan_photo, plan_roll
from infrastructure.readiness import ReadinessGate
from infrastructure.settings import JsonSettings
from infrastructure.sqlite_repository import SqliteLibraryRepository

DEFAULT_WAIT_SECONDS = 10.0
IMPORT_WAIT_SECONDS = 30.0


class LibraryVM:
    """Application-level commands over the photo library."""

    def __init__(
        self,
        store: ReadinessGate[SqliteLibraryRepository],
        image_service: ImageService | None = None,
        exif_tool: ExifToolService | None = None,
        delete_service: DeleteService | None = None,
        settings: JsonSettings | None = None,
    ) -> None:
        """Create a LibraryVM.

        Args:
            store: Gate that yields the repository once the database is open.
            image_service: Artifact generator (defaults to `ImageService()`).
            exif_tool: ExifTool wrapper; its executable comes from settings.
            delete_service: Recycle-bin service (defaults to `DeleteService()`).
            settings: Optional settings for timeouts and defaults.
        """
        self._store = store
        self._settings = settings
        self._images = image_service or ImageService()
        self._exif = exif_tool or ExifToolService(
            executable=self._setting("exif.executable", "exiftool"),
            timeout=float(self._setting("exif.timeout_seconds", 60)),
        )
        self._sync = MetadataSyncExecutor(
            self._exif, max_workers=int(self._setting("exif.max_concurrency", 4))
        )
        self._deleter = delete_service or DeleteService()
        self._wait = float(self._setting("store.wait_timeout_seconds", DEFAULT_WAIT_SECONDS))
        self._import_wait = float(
            self._setting("store.import_wait_timeout_seconds", IMPORT_WAIT_SECONDS)
        )

    def _setting(self, key: str, default):
        if self._settings is None:
            return default
        return self._settings.get(key, default)

    def _repo(self, timeout: float | None = None) -> SqliteLibraryRepository:
        return self._store.acquire(self._wait if timeout is None else timeout)

    def _require_roll(self, repo: SqliteLibraryRepository, roll_id: int) -> Roll:
        roll = repo.get_roll(roll_id)
        if roll is None:
            raise NotFoundError("Roll not found")
        return roll

    def _require_photo(self, repo: SqliteLibraryRepository, photo_id: int) -> Photo:
        photo = repo.get_photo(photo_id)
        if photo is None:
            raise NotFoundError("Photo not found")
        return photo

    # Config
    def get_config(self) -> dict[str, str]:
        return {"library_root": self._repo().get_library_root()}

    def update_library_root(self, path: str) -> bool:
        self._repo().set_library_root(path)
        return True

    # Import
    def preview_import_count(self, source_path: str) -> int:
        return ImportService(self._repo(), self._images).preview_import_count(source_path)

    def import_folder(
        self, options: ImportOptions, sink: ProgressSink | None = None
    ) -> ImportResult:
        """Import `options.source_path` as a new roll.

        An empty `library_root` falls back to the one stored in the settings table.
        """
        repo = self._repo(self._import_wait)
        if not options.library_root:
            options = replace(options, library_root=repo.get_library_root())
        service = ImportService(repo, self._images, self._sync)
        return service.import_folder(options, sink)

    # Rolls
    def get_all_rolls(self) -> list[Roll]:
        return self._repo().get_all_rolls()

    def get_roll(self, roll_id: int) -> Roll | None:
        return self._repo().get_roll(roll_id)

    def get_roll_with_photos(self, roll_id: int) -> RollWithPhotos:
        repo = self._repo()
        roll = self._require_roll(repo, roll_id)
        return RollWithPhotos(
            roll=roll,
            photos=repo.get_photos_by_roll(roll_id),
            cover_photo=repo.get_roll_cover(roll_id),
        )

    def get_photos_by_roll(self, roll_id: int) -> list[Photo]:
        return self._repo().get_photos_by_roll(roll_id)

    def update_roll(self, roll_id: int, roll: NewRoll) -> bool:
        roll = replace(roll, shoot_date=parse_shoot_date(roll.shoot_date))
        return self._repo().update_roll(roll_id, roll)

    def update_roll_location(
        self,
        roll_id: int,
        city: str | None,
        country: str | None,
        lat: float | None = None,
        lon: float | None = None,
    ) -> bool:
        return self._repo().update_roll_location(roll_id, city, country, lat, lon)

    def delete_roll(self, roll_id: int, delete_files: bool = False) -> bool:
        """Delete a roll and its photos; optionally recycle its directory."""
        repo = self._repo()
        roll = self._require_roll(repo, roll_id)
        if delete_files and roll.path:
            result = self._deleter.delete_to_recycle([roll.path])
            if result.failed:
                _, reason = result.failed[0]
                raise OSError(f"Failed to delete roll directory: {reason}")
        deleted = repo.delete_roll(roll_id)
        logger.info("Deleted roll {} (files removed: {})", roll_id, delete_files)
        return deleted

    # Photos
    def set_photo_as_cover(self, roll_id: int, photo_id: int) -> bool:
        return self._repo().set_photo_as_cover(roll_id, photo_id)

    def update_photo_rating(self, photo_id: int, rating: int) -> bool:
        if not 0 <= rating <= 5:
            raise ValidationError("Rating must be between 0 and 5")
        return self._repo().update_photo_rating(photo_id, rating)

    def update_photo_location(
        self,
        photo_id: int,
        lat: float | None,
        lon: float | None,
        city: str | None = None,
        country: str | None = None,
    ) -> bool:
        return self._repo().update_photo_location(photo_id, lat, lon, city, country)

    def apply_roll_location_to_photos(self, roll_id: int) -> int:
        repo = self._repo()
        self._require_roll(repo, roll_id)
        return repo.apply_roll_location_to_photos(roll_id)

    def toggle_photo_favorite(self, photo_id: int) -> bool:
        value = self._repo().toggle_photo_favorite(photo_id)
        if value is None:
            raise NotFoundError("Photo not found")
        return value

    def update_photo_favorite(self, photo_id: int, is_favorite: bool) -> bool:
        return self._repo().set_photo_favorite(photo_id, is_favorite)

    def get_favorite_photos(self, roll_id: int) -> list[Photo]:
        return self._repo().get_favorite_photos(roll_id)

    def delete_photos(self, photo_ids: list[int], delete_files: bool = False) -> DeleteResult:
        """Remove photos from the library, optionally recycling their files.

        A photo whose original could not be recycled stays in the library.
        """
        repo = self._repo()
        removed_ids: list[int] = []
        success: list[str] = []
        failed: list[tuple[str, str]] = []
        for photo_id in photo_ids:
            photo = repo.get_photo(photo_id)
            if photo is None:
                failed.append((str(photo_id), "Photo not found"))
                continue
            if delete_files:
                result = self._deleter.delete_photo_files(photo)
                if result.failed:
                    failed.extend(result.failed)
                    continue
            removed_ids.append(photo_id)
            success.append(photo.file_path)
        repo.delete_photos(removed_ids)
        return DeleteResult(success_paths=success, failed=failed)

    # Metadata
    def check_exiftool_available(self) -> bool:
        return self._exif.is_available()

    def write_roll_exif(self, roll_id: int) -> BatchResult:
        repo = self._repo()
        roll = self._require_roll(repo, roll_id)
        photos = repo.get_photos_by_roll(roll_id)
        if not photos:
            return BatchResult()
        result = self._sync.sync_roll(roll, photos)
        if result.succeeded_paths:
            plan = plan_roll(roll)
            by_path = {p.file_path: p.id for p in photos}
            repo.mark_photos_exif_synced(
                [by_path[p] for p in result.succeeded_paths], plan.data_hash, plan.comment
            )
        return result

    def write_photo_exif(self, photo_id: int, user_comment: str | None = None) -> bool:
        """Write one photo's metadata; `user_comment` is its free-text notes."""
        repo = self._repo()
        photo = self._require_photo(repo, photo_id)
        roll = self._require_roll(repo, photo.roll_id)
        self._sync.sync_photo(photo, roll, user_comment)
        plan = plan_photo(photo, roll, user_comment)
        if user_comment is not None:
            repo.update_photo_metadata(photo_id, plan.comment, user_comment)
        repo.mark_photos_exif_synced([photo_id], plan.data_hash, plan.comment)
        return True

    def clear_photo_exif(self, photo_id: int) -> bool:
        repo = self._repo()
        photo = self._require_photo(repo, photo_id)
        self._exif.clear(photo.file_path)
        repo.clear_photos_exif_synced([photo_id])
        logger.info("Cleared metadata for photo {}", photo_id)
        return True

    def clear_roll_exif(self, roll_id: int) -> BatchResult:
        repo = self._repo()
        self._require_roll(repo, roll_id)
        photos = repo.get_photos_by_roll(roll_id)
        if not photos:
            return BatchResult()
        result = self._sync.clear(photos)
        cleared = set(result.succeeded_paths)
        repo.clear_photos_exif_synced([p.id for p in photos if p.file_path in cleared])
        return result

    def read_photo_exif(self, photo_id: int) -> ExifData:
        photo = self._require_photo(self._repo(), photo_id)
        return self._exif.read(photo.file_path)
