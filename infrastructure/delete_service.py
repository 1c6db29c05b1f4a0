"""Recycle-bin removal of library files and roll directories."""

from __future__ import annotations

from collections.abc import Iterable
import os

from loguru import logger
from send2trash import send2trash

from core.models import Photo
from core.services.interfaces import DeleteResult


def photo_files(photo: Photo) -> list[str]:
    """Original plus any derived artifacts recorded for `photo`."""
    return [p for p in (photo.file_path, photo.thumbnail_path, photo.preview_path) if p]


class DeleteService:
    """Sends files and directories to the recycle bin and reports per-path results."""

    def delete_to_recycle(self, paths: Iterable[str]) -> DeleteResult:
        """Send each path to the recycle bin; missing paths are reported as failures."""
        success: list[str] = []
        failed: list[tuple[str, str]] = []
        for p in paths:
            normalized_path = os.path.normpath(p)
            if not os.path.exists(normalized_path):
                logger.error("File does not exist: {}", normalized_path)
                failed.append((p, "File does not exist"))
                continue
            try:
                send2trash(normalized_path)
                success.append(p)
            except (UnicodeEncodeError, OSError) as ex:
                logger.warning("Failed to delete with normalized path {}: {}", normalized_path, ex)
                # Retry with absolute path
                try:
                    send2trash(os.path.abspath(p))
                    success.append(p)
                except (UnicodeEncodeError, OSError) as ex2:
                    logger.error("All delete methods failed for {}: {} / {}", p, ex, ex2)
                    failed.append((p, f"Multiple delete failures: {ex}, {ex2}"))
        logger.info("Recycle: {} success, {} failed", len(success), len(failed))
        return DeleteResult(success_paths=success, failed=failed)

    def delete_photo_files(self, photo: Photo) -> DeleteResult:
        """Recycle the original of `photo`, then its artifacts if the original went."""
        result = self.delete_to_recycle([photo.file_path])
        if result.failed:
            return result
        artifacts = [p for p in photo_files(photo)[1:] if os.path.exists(p)]
        extra = self.delete_to_recycle(artifacts)
        for path, reason in extra.failed:
            logger.warning("Artifact left behind {}: {}", path, reason)
        return DeleteResult(success_paths=result.success_paths + extra.success_paths, failed=[])
