"""Core service interfaces and shared data structures.

This module defines the dataclasses that represent batch outcomes and the
progress events emitted during an import, together with the protocols the
infrastructure layer implements.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from core.models import NewPhoto, NewRoll, Photo, Roll


@dataclass
class BatchResult:
    """Outcome of one metadata operation fanned out over many files.

    Attributes:
        success_count: Files processed successfully.
        failed_count: Files that failed.
        failed_files: Tuples of (path, error message), one per failed path.
        succeeded_paths: Paths processed successfully, in input order.
    """

    success_count: int = 0
    failed_count: int = 0
    failed_files: list[tuple[str, str]] = field(default_factory=list)
    succeeded_paths: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.success_count + self.failed_count


@dataclass
class DeleteResult:
    """Outcome of a delete operation.

    Attributes:
        success_paths: Paths successfully sent to the recycle bin.
        failed: Tuples of (path, reason) for failures.
    """

    success_paths: list[str]
    failed: list[tuple[str, str]]


@dataclass
class ImportProgress:
    """Emitted once per file, before that file is processed."""

    current: int
    total: int
    filename: str
    roll_id: int


@dataclass
class ImportComplete:
    """Terminal event of a successful import."""

    roll_id: int
    count: int
    path: str


class ProgressSink(Protocol):
    """Receiver of import events; delivery is best-effort, in emission order."""

    def progress(self, event: ImportProgress) -> None:
        """Called before each file is processed."""
        ...

    def complete(self, event: ImportComplete) -> None:
        """Called once after the photo records are persisted."""
        ...


class NullProgressSink:
    """Progress sink that drops every event."""

    def progress(self, event: ImportProgress) -> None:  # pylint: disable=unused-argument
        return

    def complete(self, event: ImportComplete) -> None:  # pylint: disable=unused-argument
        return


class ILibraryRepository(Protocol):
    """Persistence operations the import and metadata pipelines rely on."""

    def create_roll(self, roll: NewRoll) -> int:
        """Insert a roll and return its id."""
        ...

    def update_roll_path(self, roll_id: int, path: str) -> bool:
        """Back-fill the managed directory of a roll."""
        ...

    def delete_roll(self, roll_id: int) -> bool:
        """Delete a roll and, by cascade, its photos."""
        ...

    def get_roll(self, roll_id: int) -> Roll | None:
        """Return the roll or None."""
        ...

    def create_photos(self, photos: list[NewPhoto]) -> list[int]:
        """Insert all photos in one transaction and return their ids."""
        ...

    def get_photos_by_roll(self, roll_id: int) -> list[Photo]:
        """Return the photos of a roll ordered by filename."""
        ...

    def mark_photos_exif_synced(self, photo_ids: list[int], data_hash: str, comment: str) -> int:
        """Record a successful metadata write for each photo."""
        ...
