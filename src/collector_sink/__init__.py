"""Kinesis sink: credential policy, stream lifecycle, async publishing."""

from .config import SinkConfig
from .credentials import CredentialResolver, CredentialStrategy, ResolvedCredentials
from .errors import ConfigurationError, SinkError, StreamTimeoutError
from .publisher import AsyncPublisher, PublishFailure, PublishOutcome, PublishRequest, PublishSuccess
from .sink import EventSink, KinesisSink
from .stream import StreamHandle, StreamLifecycleManager

__all__ = [
    "AsyncPublisher",
    "ConfigurationError",
    "CredentialResolver",
    "CredentialStrategy",
    "EventSink",
    "KinesisSink",
    "PublishFailure",
    "PublishOutcome",
    "PublishRequest",
    "PublishSuccess",
    "ResolvedCredentials",
    "SinkConfig",
    "SinkError",
    "StreamHandle",
    "StreamLifecycleManager",
    "StreamTimeoutError",
]
