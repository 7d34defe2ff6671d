"""Asynchronous Kinesis publisher on a fixed-size worker pool."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Union

from .errors import error_code, error_detail
from .stream import StreamHandle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishRequest:
    payload: bytes
    partition_key: str


@dataclass(frozen=True)
class PublishSuccess:
    shard_id: str
    sequence_number: str
    request: PublishRequest | None = field(default=None, repr=False)
    ok: bool = True


@dataclass(frozen=True)
class PublishFailure:
    message: str
    code: str = ""
    request: PublishRequest | None = field(default=None, repr=False)
    ok: bool = False


PublishOutcome = Union[PublishSuccess, PublishFailure]
CompletionHandler = Callable[[PublishOutcome], None]


def log_outcome(outcome: PublishOutcome) -> None:
    request = outcome.request
    partition_key = request.partition_key if request else ""
    if isinstance(outcome, PublishSuccess):
        logger.info(
            "Writing successful. shard_id=%s sequence_number=%s partition_key=%s bytes=%s",
            outcome.shard_id,
            outcome.sequence_number,
            partition_key,
            len(request.payload) if request else 0,
        )
    else:
        logger.error(
            "Writing failed. partition_key=%s code=%s detail=%s",
            partition_key,
            outcome.code,
            outcome.message,
        )


class AsyncPublisher:
    """Fire-and-forget ``put_record`` submission.

    ``publish`` never blocks on the network; each record is an independent
    task on the pool and its outcome reaches the completion handler exactly
    once. Records are not retried and may complete in any order.
    """

    def __init__(self, threadpool_size: int, *, on_complete: CompletionHandler | None = None) -> None:
        if threadpool_size < 1:
            raise ValueError("threadpool_size must be >= 1")
        logger.info("Creating thread pool of size %s", threadpool_size)
        self.threadpool_size = threadpool_size
        self._default_handler = on_complete or log_outcome
        self._executor = ThreadPoolExecutor(max_workers=threadpool_size, thread_name_prefix="kinesis-put")
        self._closed = False
        self._lock = threading.Lock()

    def publish(
        self,
        handle: StreamHandle,
        payload: bytes,
        partition_key: str,
        on_complete: CompletionHandler | None = None,
    ) -> None:
        if not isinstance(handle, StreamHandle):
            raise TypeError("publish requires a StreamHandle")
        request = PublishRequest(payload=bytes(payload), partition_key=partition_key)
        handler = on_complete or self._default_handler
        with self._lock:
            if self._closed:
                raise RuntimeError("PUBLISHER_CLOSED")
            self._executor.submit(self._put, handle, request, handler)

    def close(self, wait: bool = True) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "AsyncPublisher":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close(wait=True)

    def _put(self, handle: StreamHandle, request: PublishRequest, handler: CompletionHandler) -> None:
        outcome: PublishOutcome
        try:
            response = handle.kinesis.put_record(
                StreamName=handle.name,
                Data=request.payload,
                PartitionKey=request.partition_key,
            )
            outcome = PublishSuccess(
                shard_id=str(response.get("ShardId", "")),
                sequence_number=str(response.get("SequenceNumber", "")),
                request=request,
            )
        except Exception as exc:
            outcome = PublishFailure(message=error_detail(exc), code=error_code(exc), request=request)
        try:
            handler(outcome)
        except Exception:
            logger.exception(
                "Completion handler failed stream=%s partition_key=%s",
                handle.name,
                request.partition_key,
            )
