"""Kinesis sink for the event collector."""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from .client import StreamClient, build_stream_client
from .config import SinkConfig
from .publisher import AsyncPublisher, CompletionHandler
from .stream import StreamHandle, StreamLifecycleManager

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    def store_raw_event(self, payload: bytes, key: str) -> None:
        ...


class KinesisSink:
    """Startup wiring plus the per-event write path.

    Construction blocks until the configured stream is ACTIVE (creating it
    when absent); any ``ConfigurationError`` or ``StreamTimeoutError`` aborts
    it, so a constructed sink always holds a ready stream handle.
    """

    def __init__(
        self,
        config: SinkConfig,
        *,
        client_factory: Callable[[SinkConfig], StreamClient] = build_stream_client,
        on_complete: CompletionHandler | None = None,
        manager_factory: Callable[..., StreamLifecycleManager] = StreamLifecycleManager,
    ) -> None:
        self.config = config
        self.client = client_factory(config)
        manager = manager_factory(
            self.client,
            poll_interval_seconds=config.poll_interval_seconds,
            max_poll_interval_seconds=config.max_poll_interval_seconds,
            create_timeout_seconds=config.create_timeout_seconds,
        )
        self.stream: StreamHandle = manager.ensure_active(
            config.stream_name,
            config.stream_size,
            config.describe_timeout_seconds,
        )
        self.publisher = AsyncPublisher(config.threadpool_size, on_complete=on_complete)

    def store_raw_event(self, payload: bytes, key: str) -> None:
        logger.debug("Writing record to Kinesis stream=%s partition_key=%s bytes=%s", self.stream.name, key, len(payload))
        self.publisher.publish(self.stream, payload, key)

    def close(self, wait: bool = True) -> None:
        self.publisher.close(wait=wait)

    def __enter__(self) -> "KinesisSink":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close(wait=True)
