from __future__ import annotations

import argparse
from pathlib import Path
import sys
import threading

from PySide6.QtCore import QCoreApplication
from loguru import logger

from app.import_tasks import ImportSignals, ImportTaskRunner
from app.viewmodels.library_vm import LibraryVM
from core.models import ImportOptions
from infrastructure.logging import find_latest_log_file, get_app_data_directory, init_logging
from infrastructure.readiness import ReadinessGate
from infrastructure.settings import JsonSettings
from infrastructure.sqlite_repository import SqliteLibraryRepository

BASE_DIR = Path(__file__).parent


def _database_path(settings: JsonSettings) -> Path:
    raw = settings.get("library.database", "")
    if isinstance(raw, str) and raw:
        return Path(raw).expanduser()
    return get_app_data_directory() / "film_vault.db"


def _open_store(
    gate: ReadinessGate[SqliteLibraryRepository], db_path: Path, library_root: str
) -> None:
    """Open the database in the background and publish it through `gate`."""
    try:
        repo = SqliteLibraryRepository.open(db_path)
        if library_root and not repo.get_library_root():
            repo.set_library_root(library_root)
    except Exception as ex:  # pylint: disable=broad-exception-caught
        gate.set_failed(ex)
        return
    gate.set_ready(repo)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import a folder of scans as a new roll.")
    parser.add_argument("source", help="folder with the scanned images")
    parser.add_argument("--film-stock", default="")
    parser.add_argument("--camera", default="")
    parser.add_argument("--lens", default=None)
    parser.add_argument("--date", required=True, help="shoot date, YYYY-MM-DD")
    parser.add_argument("--name", default=None)
    parser.add_argument("--notes", default=None)
    parser.add_argument("--library-root", default="")
    parser.add_argument("--move", action="store_true", help="move instead of copy")
    parser.add_argument("--write-exif", action="store_true")
    return parser.parse_args(argv)


def main() -> int:
    args = _parse_args(sys.argv[1:])
    settings = JsonSettings(BASE_DIR / "settings.json")
    init_logging(
        settings.get("logging.dir") or None,
        settings.get("logging.level", "INFO"),
        console=True,
    )

    app = QCoreApplication(sys.argv[:1])

    gate: ReadinessGate[SqliteLibraryRepository] = ReadinessGate("Library database")
    threading.Thread(
        target=_open_store,
        args=(gate, _database_path(settings), settings.get("library.root", "")),
        daemon=True,
    ).start()

    vm = LibraryVM(gate, settings=settings)
    options = ImportOptions(
        source_path=args.source,
        library_root=args.library_root,
        film_stock=args.film_stock,
        camera=args.camera,
        shoot_date=args.date,
        lens=args.lens,
        roll_name=args.name,
        notes=args.notes,
        copy_mode=not args.move and settings.get_bool("import.copy_mode", True),
        auto_write_exif=args.write_exif or settings.get_bool("import.auto_write_exif", False),
    )

    exit_code = {"value": 0}
    receiver = ImportSignals()
    receiver.importProgress.connect(
        lambda cur, total, name, roll_id: logger.info(
            "[{}/{}] {} (roll {})", cur, total, name, roll_id
        )
    )
    receiver.importFinished.connect(
        lambda roll_id, count, path: (
            logger.info("Imported {} photos into roll {} at {}", count, roll_id, path),
            app.quit(),
        )
    )

    def _on_failed(message: str) -> None:
        logger.error("Import failed: {}", message)
        log_file = find_latest_log_file(settings.get("logging.dir") or None)
        if log_file is not None:
            logger.info("Details in {}", log_file)
        exit_code["value"] = 1
        app.quit()

    receiver.importFailed.connect(_on_failed)

    ImportTaskRunner(vm=vm, receiver=receiver).start(options)
    app.exec()
    return exit_code["value"]


if __name__ == "__main__":
    raise SystemExit(main())
