"""Shared fixtures: temporary libraries, generated images and a fake exiftool."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
import subprocess
import threading
import time

from PIL import Image
import pytest

from infrastructure.readiness import ReadinessGate
from infrastructure.sqlite_repository import SqliteLibraryRepository


def make_image(
    path: Path, size: tuple[int, int] = (640, 480), fmt: str = "JPEG", color=(200, 120, 40)
) -> Path:
    """Write a solid-colour image with a gradient stripe so encoders have detail."""
    path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.new("RGB", size, color)
    for x in range(0, size[0], max(1, size[0] // 16)):
        for y in range(size[1]):
            img.putpixel((x, y), (x % 256, y % 256, 90))
    img.save(path, format=fmt)
    return path


class FakeExifRunner:
    """Stand-in for `subprocess.run` that records exiftool invocations.

    Paths listed in `fail_paths` exit with status 1 and an error on stderr.
    `delay` keeps each call busy so concurrency can be observed.
    """

    def __init__(
        self,
        fail_paths: set[str] | None = None,
        stdout: str = "",
        delay: float = 0.0,
        available: bool = True,
    ) -> None:
        self.fail_paths = set(fail_paths or ())
        self.stdout = stdout
        self.delay = delay
        self.available = available
        self.calls: list[list[str]] = []
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    # pylint: disable-next=unused-argument
    def __call__(self, args, **kwargs) -> subprocess.CompletedProcess:
        with self._lock:
            self.calls.append(list(args))
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if "-ver" in args:
                code = 0 if self.available else 1
                return subprocess.CompletedProcess(args, code, "13.30\n", "")
            target = args[-1]
            if target in self.fail_paths:
                return subprocess.CompletedProcess(args, 1, "", f"Error: cannot write {target}")
            return subprocess.CompletedProcess(args, 0, self.stdout, "")
        finally:
            with self._lock:
                self.active -= 1

    def calls_for(self, path: str) -> list[list[str]]:
        return [c for c in self.calls if c and c[-1] == path]


@pytest.fixture
def image_factory(tmp_path: Path) -> Callable[..., Path]:
    def _make(
        name: str, size: tuple[int, int] = (640, 480), fmt: str = "JPEG", folder: str = "src"
    ):
        return make_image(tmp_path / folder / name, size=size, fmt=fmt)

    return _make


@pytest.fixture
def repo():
    repository = SqliteLibraryRepository.open(":memory:")
    yield repository
    repository.close()


@pytest.fixture
def ready_gate(repo) -> ReadinessGate[SqliteLibraryRepository]:
    gate: ReadinessGate[SqliteLibraryRepository] = ReadinessGate("test store")
    gate.set_ready(repo)
    return gate


@pytest.fixture
def fake_exif() -> FakeExifRunner:
    return FakeExifRunner()


@pytest.fixture
def library_root(tmp_path: Path) -> Path:
    root = tmp_path / "library"
    root.mkdir()
    return root
