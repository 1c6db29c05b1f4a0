"""Thumbnail/preview generation and managed-copy placement for imported images.

Artifacts are written next to the roll's originals:

    <roll_dir>/originals/<managed name>
    <roll_dir>/thumbnails/<stem>.webp
    <roll_dir>/previews/<stem>.webp   (or <stem>.<ext> when copied verbatim)

Every file is first written to a hidden temporary sibling and then renamed into
place, so a failed decode or encode never leaves a partial destination file.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import os
from pathlib import Path
import shutil
from typing import Any

from PIL import Image, ImageOps
from loguru import logger

from core.errors import ImageProcessingError
from core.models import ProcessedPaths

THUMBNAIL_WIDTH = 300
PREVIEW_WIDTH = 1920
PREVIEW_QUALITY = 90
ARTIFACT_FORMAT = "WEBP"
ARTIFACT_SUFFIX = ".webp"

ORIGINALS_DIR = "originals"
THUMBNAILS_DIR = "thumbnails"
PREVIEWS_DIR = "previews"

_DECODE_ERRORS = (OSError, ValueError, SyntaxError, Image.DecompressionBombError)


def _ensure_dir(p: Path) -> None:
    """Create directory `p` if missing (including parents)."""
    p.mkdir(parents=True, exist_ok=True)


def scaled_height(width: int, height: int, target_width: int) -> int:
    """Height for `target_width` preserving aspect ratio (rounded, at least 1)."""
    return max(1, round(height * target_width / width))


@contextmanager
def _atomic_target(dest: Path) -> Iterator[Path]:
    """Yield a temporary path that replaces `dest` only if the block succeeds."""
    tmp = dest.with_name(f".{dest.name}.tmp")
    try:
        yield tmp
        os.replace(tmp, dest)
    except BaseException:
        try:
            tmp.unlink()
        except FileNotFoundError:
            pass
        raise


def _resample() -> Any:
    resampling = getattr(Image, "Resampling", Image)
    return getattr(resampling, "LANCZOS")


def _open_oriented(path: Path) -> Image.Image:
    """Decode `path` fully, apply EXIF orientation, and validate dimensions."""
    try:
        with Image.open(path) as im:
            im.load()
            img = ImageOps.exif_transpose(im) or im
            img = img.copy()
    except _DECODE_ERRORS as ex:
        raise ImageProcessingError(f"Failed to decode image {path.name}: {ex}") from ex
    if img.width <= 0 or img.height <= 0:
        raise ImageProcessingError(f"Image has zero dimension: {path.name}")
    return img


def _webp_ready(img: Image.Image) -> Image.Image:
    """Convert modes WebP cannot store to RGB/RGBA."""
    if img.mode in ("RGB", "RGBA"):
        return img
    has_alpha = img.mode in ("LA", "PA") or (img.mode == "P" and "transparency" in img.info)
    return img.convert("RGBA" if has_alpha else "RGB")


def _save_webp(img: Image.Image, dest: Path, **params: Any) -> None:
    with _atomic_target(dest) as tmp:
        try:
            _webp_ready(img).save(tmp, format=ARTIFACT_FORMAT, **params)
        except (OSError, ValueError) as ex:
            raise ImageProcessingError(f"Failed to encode {dest.name}: {ex}") from ex


def _copy_verified(source: Path, dest: Path) -> None:
    """Copy `source` to `dest` through a temp file and check the byte count."""
    with _atomic_target(dest) as tmp:
        shutil.copy2(source, tmp)
        expected = source.stat().st_size
        actual = tmp.stat().st_size
        if actual != expected:
            raise OSError(f"Incomplete copy of {source.name}: {actual} of {expected} bytes")


class ImageService:
    """Produces thumbnails and previews for managed originals."""

    def __init__(
        self,
        thumbnail_width: int = THUMBNAIL_WIDTH,
        preview_width: int = PREVIEW_WIDTH,
        preview_quality: int = PREVIEW_QUALITY,
    ) -> None:
        self._thumb_w = int(thumbnail_width)
        self._preview_w = int(preview_width)
        self._preview_q = int(preview_quality)

    # Public API
    def generate_thumbnail(self, source_path: str | Path, roll_dir: str | Path) -> Path:
        """Resize `source_path` to the thumbnail width and store it losslessly as WebP."""
        source = Path(source_path)
        dest_dir = Path(roll_dir) / THUMBNAILS_DIR
        _ensure_dir(dest_dir)
        dest = dest_dir / f"{source.stem}{ARTIFACT_SUFFIX}"

        img = _open_oriented(source)
        size = (self._thumb_w, scaled_height(img.width, img.height, self._thumb_w))
        thumb = img.resize(size, _resample())
        _save_webp(thumb, dest, lossless=True, method=6)
        logger.debug("Thumbnail {} -> {} {}x{}", source.name, dest.name, size[0], size[1])
        return dest

    def generate_preview(self, source_path: str | Path, roll_dir: str | Path) -> Path:
        """Store a preview: downscaled WebP for wide images, otherwise a verbatim copy."""
        source = Path(source_path)
        dest_dir = Path(roll_dir) / PREVIEWS_DIR
        _ensure_dir(dest_dir)

        img = _open_oriented(source)
        if img.width > self._preview_w:
            dest = dest_dir / f"{source.stem}{ARTIFACT_SUFFIX}"
            size = (self._preview_w, scaled_height(img.width, img.height, self._preview_w))
            preview = img.resize(size, _resample())
            _save_webp(preview, dest, quality=self._preview_q, method=6)
            logger.debug("Preview {} resized to {}x{}", source.name, size[0], size[1])
        else:
            dest = dest_dir / f"{source.stem}{source.suffix.lower()}"
            try:
                _copy_verified(source, dest)
            except OSError as ex:
                raise ImageProcessingError(
                    f"Failed to copy preview for {source.name}: {ex}"
                ) from ex
            logger.debug("Preview {} copied verbatim", source.name)
        return dest

    def process_image_with_copy(
        self,
        source_path: str | Path,
        roll_dir: str | Path,
        new_filename: str,
        copy_mode: bool = True,
    ) -> ProcessedPaths:
        """Place `source_path` under `originals/` as `new_filename` and derive artifacts.

        In move mode the source is renamed, or copied and then deleted once the
        copy is verified when a rename is not possible (e.g. across devices).
        Artifacts are generated from the managed copy. If artifact generation
        fails, the managed copy is undone (removed, or moved back to the source
        path) before the error propagates.
        """
        source = Path(source_path)
        roll_path = Path(roll_dir)
        originals = roll_path / ORIGINALS_DIR
        _ensure_dir(originals)
        dest = originals / new_filename
        if dest.exists():
            raise FileExistsError(f"Managed file already exists: {dest}")

        if copy_mode:
            _copy_verified(source, dest)
        else:
            self._move(source, dest)

        produced: list[Path] = []
        try:
            produced.append(self.generate_thumbnail(dest, roll_path))
            produced.append(self.generate_preview(dest, roll_path))
        except BaseException:
            for artifact in produced:
                try:
                    artifact.unlink()
                except OSError as ex:
                    logger.warning("Could not remove artifact {}: {}", artifact, ex)
            self._undo_placement(source, dest, copy_mode)
            raise

        return ProcessedPaths(
            filename=new_filename,
            original_path=dest,
            thumbnail_path=produced[0],
            preview_path=produced[1],
        )

    # Internal helpers
    @staticmethod
    def _move(source: Path, dest: Path) -> None:
        try:
            os.rename(source, dest)
            return
        except OSError as ex:
            logger.debug("Rename failed for {} ({}), falling back to copy+delete", source, ex)
        _copy_verified(source, dest)
        source.unlink()

    @staticmethod
    def _undo_placement(source: Path, dest: Path, copy_mode: bool) -> None:
        """Remove a managed copy, or return a moved original to its source path."""
        try:
            if copy_mode:
                dest.unlink()
            else:
                shutil.move(str(dest), str(source))
        except OSError as ex:
            logger.error("Could not undo placement of {}: {}", dest, ex)
