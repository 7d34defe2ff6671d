"""Kinesis stream lifecycle: existence check, creation, readiness wait."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from botocore.exceptions import ClientError, ConnectTimeoutError, ReadTimeoutError

from .client import StreamClient
from .errors import StreamTimeoutError, error_code, error_detail
from .retry import poll_until

logger = logging.getLogger(__name__)

T = TypeVar("T")

STREAM_ACTIVE = "ACTIVE"
_NOT_FOUND_CODES = {"ResourceNotFoundException"}
_IN_USE_CODES = {"ResourceInUseException"}
_CONFIRMED_ACTIVE = object()


@dataclass(frozen=True)
class StreamHandle:
    """A stream confirmed ACTIVE.

    Only ``StreamLifecycleManager`` can build one; direct construction raises
    ``TypeError``.
    """

    name: str
    endpoint_url: str | None
    region: str | None
    kinesis: Any
    _confirmed: object = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self._confirmed is not _CONFIRMED_ACTIVE:
            raise TypeError("StreamHandle is only issued by StreamLifecycleManager.ensure_active")


class StreamLifecycleManager:
    def __init__(
        self,
        client: StreamClient,
        *,
        poll_interval_seconds: float = 1.0,
        max_poll_interval_seconds: float = 10.0,
        create_timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.poll_interval_seconds = poll_interval_seconds
        self.max_poll_interval_seconds = max_poll_interval_seconds
        self.create_timeout_seconds = create_timeout_seconds
        self._clock = clock
        self._sleep = sleep

    def exists(self, name: str, timeout: float = 60) -> bool:
        """True only when the stream is present and ACTIVE."""
        status = self._stream_status(name, timeout)
        exists = status == STREAM_ACTIVE
        if exists:
            logger.info("Stream %s exists and is active", name)
        else:
            logger.info("Stream %s doesn't exist or is not active status=%s", name, status or "ABSENT")
        return exists

    def ensure_active(self, name: str, size: int, timeout: float = 60) -> StreamHandle:
        """Return a handle once ``name`` is ACTIVE, creating it if needed.

        ``timeout`` bounds the whole call: existence check, creation request
        and readiness wait share one deadline.
        """
        deadline = self._clock() + timeout
        if self.exists(name, timeout):
            return self._handle(name)

        remaining = self._remaining(deadline, name, timeout)
        create_timeout = min(self.create_timeout_seconds or remaining, remaining)
        logger.info("Creating stream %s of size %s", name, size)
        self._create(name, size, create_timeout)
        logger.info("Successfully requested stream %s. Waiting until it's active", name)

        def _is_active(remaining_seconds: float) -> bool:
            return self._stream_status(name, remaining_seconds) == STREAM_ACTIVE

        def _on_wait(attempt: int, delay: float) -> None:
            logger.info("Stream %s not active yet attempt=%s next_check_in=%.2fs", name, attempt, delay)

        try:
            polls = poll_until(
                _is_active,
                timeout_seconds=self._remaining(deadline, name, timeout),
                interval_seconds=self.poll_interval_seconds,
                max_interval_seconds=self.max_poll_interval_seconds,
                on_wait=_on_wait,
                clock=self._clock,
                sleep=self._sleep,
            )
        except StreamTimeoutError as exc:
            logger.error("Stream %s did not become active within %ss", name, timeout)
            raise StreamTimeoutError("STREAM_NOT_ACTIVE", f"stream={name} {exc.detail or ''}".strip()) from exc
        logger.info("Stream %s active polls=%s", name, polls)
        return self._handle(name)

    def _remaining(self, deadline: float, name: str, timeout: float) -> float:
        remaining = deadline - self._clock()
        if remaining <= 0:
            logger.error("Stream %s did not become active within %ss", name, timeout)
            raise StreamTimeoutError("STREAM_NOT_ACTIVE", f"stream={name} timeout={timeout}s")
        return remaining

    def _stream_status(self, name: str, timeout: float) -> str | None:
        try:
            response = self._bounded(
                lambda: self.client.kinesis.describe_stream_summary(StreamName=name),
                timeout,
                operation="DESCRIBE_STREAM",
            )
        except ClientError as exc:
            if error_code(exc) in _NOT_FOUND_CODES:
                return None
            raise
        return response.get("StreamDescriptionSummary", {}).get("StreamStatus")

    def _create(self, name: str, size: int, timeout: float) -> None:
        try:
            self._bounded(
                lambda: self.client.kinesis.create_stream(StreamName=name, ShardCount=int(size)),
                timeout,
                operation="CREATE_STREAM",
            )
        except ClientError as exc:
            if error_code(exc) not in _IN_USE_CODES:
                raise
            logger.warning(
                "Stream %s is already being created or updated detail=%s",
                name,
                error_detail(exc),
            )

    def _bounded(self, call: Callable[[], T], timeout: float, *, operation: str) -> T:
        # A call that overruns is abandoned, not cancelled; its daemon thread
        # ends when botocore's own read timeout fires and never blocks exit.
        outcome: dict[str, Any] = {}
        done = threading.Event()

        def _run() -> None:
            try:
                outcome["value"] = call()
            except BaseException as exc:
                outcome["error"] = exc
            finally:
                done.set()

        worker = threading.Thread(target=_run, name=f"kinesis-{operation.lower()}", daemon=True)
        worker.start()
        if not done.wait(timeout=max(0.0, timeout)):
            raise StreamTimeoutError(f"{operation}_TIMEOUT", f"timeout={timeout}s")
        error = outcome.get("error")
        if isinstance(error, (ConnectTimeoutError, ReadTimeoutError)):
            raise StreamTimeoutError(f"{operation}_TIMEOUT", error_detail(error)) from error
        if error is not None:
            raise error
        return outcome["value"]

    def _handle(self, name: str) -> StreamHandle:
        return StreamHandle(
            name=name,
            endpoint_url=self.client.endpoint_url,
            region=self.client.region,
            kinesis=self.client.kinesis,
            _confirmed=_CONFIRMED_ACTIVE,
        )
