"""One-shot readiness gate for lazily initialized shared resources."""

from __future__ import annotations

import threading
from typing import Generic, TypeVar, cast

from loguru import logger

from core.errors import NotReadyError

T = TypeVar("T")

NOT_READY_MESSAGE = "Database not initialized. Please wait a moment and try again."


class ReadinessGate(Generic[T]):
    """Holds a resource that is either pending or ready.

    `acquire` blocks on a one-shot event for at most `timeout` seconds and
    raises `NotReadyError` afterwards. If initialization failed, the stored
    error is reported immediately instead of waiting out the bound.
    """

    def __init__(self, name: str = "resource") -> None:
        self._name = name
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._resource: T | None = None
        self._error: BaseException | None = None

    @property
    def is_ready(self) -> bool:
        return self._event.is_set() and self._error is None

    def set_ready(self, resource: T) -> None:
        """Publish `resource`; a gate becomes ready only once."""
        with self._lock:
            if self._event.is_set():
                raise RuntimeError(f"{self._name} already initialized")
            self._resource = resource
            self._event.set()
        logger.info("{} ready", self._name)

    def set_failed(self, error: BaseException) -> None:
        """Record an initialization failure and release all waiters."""
        with self._lock:
            if self._event.is_set():
                raise RuntimeError(f"{self._name} already initialized")
            self._error = error
            self._event.set()
        logger.error("{} failed to initialize: {}", self._name, error)

    def acquire(self, timeout: float = 10.0) -> T:
        """Return the resource, waiting up to `timeout` seconds."""
        if not self._event.wait(timeout):
            logger.warning("{} not ready after {}s", self._name, timeout)
            raise NotReadyError(NOT_READY_MESSAGE)
        if self._error is not None:
            raise NotReadyError(f"{NOT_READY_MESSAGE} ({self._error})") from self._error
        return cast(T, self._resource)
