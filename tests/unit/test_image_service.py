"""Tests for thumbnail/preview generation and managed-copy placement."""

import errno
from pathlib import Path

from PIL import Image
import pytest

from core.errors import ImageProcessingError
from infrastructure import image_service
from infrastructure.image_service import ImageService, scaled_height


@pytest.fixture
def service() -> ImageService:
    return ImageService()


@pytest.fixture
def roll_dir(tmp_path: Path) -> Path:
    path = tmp_path / "library" / "2024" / "00000001"
    path.mkdir(parents=True)
    return path


def test_scaled_height_rounds_and_never_drops_to_zero():
    assert scaled_height(640, 480, 300) == 225
    assert scaled_height(3000, 2000, 1920) == 1280
    assert scaled_height(10000, 1, 300) == 1


def test_thumbnail_is_300px_wide_webp(service, roll_dir, image_factory):
    src = image_factory("scan.jpg", size=(640, 480))
    thumb = service.generate_thumbnail(src, roll_dir)

    assert thumb == roll_dir / "thumbnails" / "scan.webp"
    with Image.open(thumb) as img:
        assert img.format == "WEBP"
        assert img.size == (300, 225)


def test_small_preview_is_a_verbatim_copy(service, roll_dir, image_factory):
    src = image_factory("scan.JPG", size=(800, 600))
    preview = service.generate_preview(src, roll_dir)

    assert preview == roll_dir / "previews" / "scan.jpg"
    assert preview.read_bytes() == src.read_bytes()


def test_wide_preview_is_resized_to_1920(service, roll_dir, image_factory):
    src = image_factory("wide.png", size=(2400, 1600), fmt="PNG")
    preview = service.generate_preview(src, roll_dir)

    assert preview == roll_dir / "previews" / "wide.webp"
    with Image.open(preview) as img:
        assert img.format == "WEBP"
        assert img.size == (1920, 1280)


def test_corrupt_source_leaves_no_artifact(service, roll_dir, tmp_path):
    bad = tmp_path / "src" / "broken.jpg"
    bad.parent.mkdir()
    bad.write_bytes(b"not really a jpeg")

    with pytest.raises(ImageProcessingError):
        service.generate_thumbnail(bad, roll_dir)
    assert list((roll_dir / "thumbnails").iterdir()) == []


def test_process_with_copy_keeps_source(service, roll_dir, image_factory):
    src = image_factory("a.jpg")
    paths = service.process_image_with_copy(src, roll_dir, "ROLL_00000001_001.jpg", copy_mode=True)

    assert src.exists()
    assert paths.filename == "ROLL_00000001_001.jpg"
    assert paths.original_path == roll_dir / "originals" / "ROLL_00000001_001.jpg"
    assert paths.original_path.read_bytes() == src.read_bytes()
    assert paths.thumbnail_path == roll_dir / "thumbnails" / "ROLL_00000001_001.webp"
    assert paths.preview_path == roll_dir / "previews" / "ROLL_00000001_001.jpg"
    assert paths.thumbnail_path.exists() and paths.preview_path.exists()


def test_process_with_move_removes_source(service, roll_dir, image_factory):
    src = image_factory("a.jpg")
    data = src.read_bytes()
    paths = service.process_image_with_copy(src, roll_dir, "ROLL_00000001_001.jpg", copy_mode=False)

    assert not src.exists()
    assert paths.original_path.read_bytes() == data


def test_process_refuses_to_overwrite_managed_file(service, roll_dir, image_factory):
    src = image_factory("a.jpg")
    existing = roll_dir / "originals" / "ROLL_00000001_001.jpg"
    existing.parent.mkdir()
    existing.write_bytes(b"keep me")

    with pytest.raises(FileExistsError):
        service.process_image_with_copy(src, roll_dir, "ROLL_00000001_001.jpg")
    assert existing.read_bytes() == b"keep me"


def test_failed_copy_import_removes_managed_copy(service, roll_dir, tmp_path):
    bad = tmp_path / "src" / "broken.jpg"
    bad.parent.mkdir()
    bad.write_bytes(b"garbage")

    with pytest.raises(ImageProcessingError):
        service.process_image_with_copy(bad, roll_dir, "ROLL_00000001_001.jpg", copy_mode=True)
    assert bad.exists()
    assert list((roll_dir / "originals").iterdir()) == []


def test_failed_move_import_restores_source(service, roll_dir, tmp_path):
    bad = tmp_path / "src" / "broken.jpg"
    bad.parent.mkdir()
    bad.write_bytes(b"garbage")

    with pytest.raises(ImageProcessingError):
        service.process_image_with_copy(bad, roll_dir, "ROLL_00000001_001.jpg", copy_mode=False)
    assert bad.read_bytes() == b"garbage"
    assert list((roll_dir / "originals").iterdir()) == []


def test_regenerating_artifacts_is_byte_identical(service, roll_dir, image_factory):
    small = image_factory("small.jpg", size=(640, 480))
    wide = image_factory("wide.png", size=(2400, 1600), fmt="PNG")

    outputs = {}
    for src in (small, wide):
        for generate in (service.generate_thumbnail, service.generate_preview):
            first = generate(src, roll_dir).read_bytes()
            path = generate(src, roll_dir)
            outputs[path.name] = (first, path.read_bytes())

    assert len(outputs) == 4
    for first, second in outputs.values():
        assert first == second


def test_move_falls_back_to_copy_and_delete(service, roll_dir, image_factory, monkeypatch):
    src = image_factory("a.jpg")
    data = src.read_bytes()

    def cross_device(*args):
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    monkeypatch.setattr(image_service.os, "rename", cross_device)
    paths = service.process_image_with_copy(src, roll_dir, "ROLL_00000001_001.jpg", copy_mode=False)

    assert not src.exists()
    assert paths.original_path.read_bytes() == data
    assert paths.thumbnail_path.exists()


def test_move_keeps_source_when_fallback_copy_fails(service, roll_dir, image_factory, monkeypatch):
    src = image_factory("a.jpg")
    data = src.read_bytes()

    def cross_device(*args):
        raise OSError(errno.EXDEV, "Invalid cross-device link")

    def truncated_copy(source, dest):
        Path(dest).write_bytes(Path(source).read_bytes()[:10])

    monkeypatch.setattr(image_service.os, "rename", cross_device)
    monkeypatch.setattr(image_service.shutil, "copy2", truncated_copy)

    with pytest.raises(OSError, match="Incomplete copy"):
        service.process_image_with_copy(src, roll_dir, "ROLL_00000001_001.jpg", copy_mode=False)
    assert src.read_bytes() == data
    assert list((roll_dir / "originals").iterdir()) == []
