"""Import orchestration: source folder -> managed roll directory -> store.

Per call the import moves through
`validate -> roll created -> directory ready -> processing(i/N) -> persisted ->
(metadata synced) -> done`. Files are processed sequentially so that progress
events arrive in the same order files are handled. A file that fails is logged
and skipped; the import fails only when every candidate fails.

A roll record exists with an empty `path` between its creation and the
back-fill after its directory is allocated, because the directory name is
derived from the roll id. If no file ends up imported, the roll directory and
record are removed again before the error is raised.
"""

from __future__ import annotations

from pathlib import Path
import shutil

from loguru import logger

from core.errors import (
    ImageProcessingError,
    ImportFailedError,
    NoImagesFoundError,
    SourceNotFoundError,
    ValidationError,
)
from core.models import ImportOptions, ImportResult, NewPhoto, NewRoll, ProcessedPaths
from core.services.interfaces import (
    ILibraryRepository,
    ImportComplete,
    ImportProgress,
    NullProgressSink,
    ProgressSink,
)
from core.services.naming import (
    allocate_filename,
    allocate_roll_directory,
    list_source_images,
    parse_shoot_date,
    sanitize_filename,
)
from infrastructure.image_service import ImageService
from infrastructure.metadata_sync import MetadataSyncExecutor, plan_roll


def default_roll_name(shoot_date: str, film_stock: str, camera: str) -> str:
    """Display name used when the caller gives none: `<date>_<stock>_<camera>`."""
    parts = [shoot_date, sanitize_filename(film_stock.strip()), sanitize_filename(camera.strip())]
    return "_".join(p for p in parts if p)


def _validate_source(source_path: str) -> Path:
    if not source_path:
        raise ValidationError("Source path is required")
    source = Path(source_path)
    if not source.is_dir():
        raise SourceNotFoundError(source_path)
    return source


class ImportService:
    """Imports a folder of images as a new roll."""

    def __init__(
        self,
        repo: ILibraryRepository,
        image_service: ImageService,
        metadata_sync: MetadataSyncExecutor | None = None,
    ) -> None:
        self._repo = repo
        self._images = image_service
        self._sync = metadata_sync

    def preview_import_count(self, source_path: str) -> int:
        """Count importable images directly under `source_path` without side effects."""
        return len(list_source_images(_validate_source(source_path)))

    def import_folder(
        self, options: ImportOptions, sink: ProgressSink | None = None
    ) -> ImportResult:
        """Run one import and return its result.

        Raises:
            ValidationError: missing source, library root or malformed date.
            RollDirectoryExistsError: the allocated roll directory already exists.
            NoImagesFoundError: the source holds no supported images.
            ImportFailedError: every candidate file failed.
        """
        sink = sink or NullProgressSink()
        source = _validate_source(options.source_path)
        if not options.library_root:
            raise ValidationError("Library root is not configured")
        shoot_date = parse_shoot_date(options.shoot_date)
        name = options.roll_name or default_roll_name(
            shoot_date, options.film_stock, options.camera
        )
        logger.info("Import started: {} -> {} ({})", source, options.library_root, name)

        roll_id = self._repo.create_roll(
            NewRoll(
                name=name,
                path="",
                film_stock=options.film_stock,
                camera=options.camera,
                shoot_date=shoot_date,
                lens=options.lens or None,
                lab_info=options.lab_info or None,
                notes=options.notes or None,
                city=options.city or None,
                country=options.country or None,
                lat=options.lat,
                lon=options.lon,
            )
        )
        try:
            roll_dir = allocate_roll_directory(options.library_root, shoot_date[:4], roll_id)
        except (OSError, ValidationError):
            self._repo.delete_roll(roll_id)
            raise
        self._repo.update_roll_path(roll_id, str(roll_dir))

        try:
            files = list_source_images(source)
        except OSError:
            self._discard_roll(roll_id, roll_dir)
            raise
        if not files:
            self._discard_roll(roll_id, roll_dir)
            raise NoImagesFoundError("No images found in source directory")

        processed, skipped = self._process_files(roll_id, roll_dir, files, options.copy_mode, sink)
        if not processed:
            self._discard_roll(roll_id, roll_dir)
            raise ImportFailedError(
                f"Failed to import any of {len(files)} images", failures=skipped
            )

        self._repo.create_photos(
            [
                NewPhoto(
                    roll_id=roll_id,
                    filename=p.filename,
                    file_path=str(p.original_path),
                    thumbnail_path=str(p.thumbnail_path),
                    preview_path=str(p.preview_path),
                )
                for p in processed
            ]
        )
        logger.info("Persisted {} photos for roll {}", len(processed), roll_id)

        if options.auto_write_exif:
            self._auto_write_metadata(roll_id)

        self._emit_complete(
            sink, ImportComplete(roll_id=roll_id, count=len(processed), path=str(roll_dir))
        )
        message = f"Successfully imported {len(processed)} photos as roll '{name}'"
        if skipped:
            message += f" ({len(skipped)} skipped)"
        logger.info("{}", message)
        return ImportResult(
            roll_id=roll_id,
            photos_count=len(processed),
            roll_path=str(roll_dir),
            message=message,
            skipped=skipped,
        )

    # Internal helpers
    def _process_files(
        self,
        roll_id: int,
        roll_dir: Path,
        files: list[Path],
        copy_mode: bool,
        sink: ProgressSink,
    ) -> tuple[list[ProcessedPaths], list[tuple[str, str]]]:
        processed: list[ProcessedPaths] = []
        skipped: list[tuple[str, str]] = []
        total = len(files)
        for index, path in enumerate(files, start=1):
            self._emit_progress(
                sink,
                ImportProgress(current=index, total=total, filename=path.name, roll_id=roll_id),
            )
            try:
                new_name = allocate_filename(roll_id, index, path.suffix)
                processed.append(
                    self._images.process_image_with_copy(path, roll_dir, new_name, copy_mode)
                )
            except (ImageProcessingError, OSError, ValueError) as ex:
                logger.warning("Failed to process {}: {}", path, ex)
                skipped.append((path.name, str(ex)))
        return processed, skipped

    def _auto_write_metadata(self, roll_id: int) -> None:
        """Stamp roll metadata into the new files; failures are only logged."""
        if self._sync is None:
            logger.warning("Auto metadata write requested but no metadata writer is configured")
            return
        try:
            roll = self._repo.get_roll(roll_id)
            if roll is None:
                logger.warning("Roll {} vanished before metadata write", roll_id)
                return
            photos = self._repo.get_photos_by_roll(roll_id)
            result = self._sync.sync_roll(roll, photos)
            by_path = {p.file_path: p.id for p in photos}
            plan = plan_roll(roll)
            if result.succeeded_paths:
                self._repo.mark_photos_exif_synced(
                    [by_path[p] for p in result.succeeded_paths], plan.data_hash, plan.comment
                )
            for path, error in result.failed_files:
                logger.warning("Auto metadata write failed for {}: {}", path, error)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.warning("Auto metadata write failed for roll {}: {}", roll_id, ex)

    def _discard_roll(self, roll_id: int, roll_dir: Path) -> None:
        """Remove an empty roll's directory and record."""
        try:
            shutil.rmtree(roll_dir)
        except OSError as ex:
            logger.error("Failed to remove roll directory {}: {}", roll_dir, ex)
        self._repo.delete_roll(roll_id)
        logger.info("Discarded empty roll {}", roll_id)

    @staticmethod
    def _emit_progress(sink: ProgressSink, event: ImportProgress) -> None:
        try:
            sink.progress(event)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.warning("Progress sink failed: {}", ex)

    @staticmethod
    def _emit_complete(sink: ProgressSink, event: ImportComplete) -> None:
        try:
            sink.complete(event)
        except Exception as ex:  # pylint: disable=broad-exception-caught
            logger.warning("Progress sink failed: {}", ex)
