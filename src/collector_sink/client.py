"""Kinesis client bound to one stream."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from botocore.config import Config
from botocore.exceptions import NoRegionError

from .config import SinkConfig
from .credentials import build_session, resolve_credentials
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamClient:
    stream_name: str
    endpoint_url: str | None
    region: str | None
    kinesis: Any


def build_stream_client(config: SinkConfig) -> StreamClient:
    """Resolve credentials and build the shared Kinesis client.

    Credential pairing is validated before any boto3 object is created, so a
    bad pairing fails without touching the network.
    """
    resolved = resolve_credentials(config.aws_access_key, config.aws_secret_key)
    session = build_session(
        resolved,
        region=config.region,
        credentials_file=config.credentials_file,
        credentials_profile=config.credentials_profile,
    )
    timeout = max(1.0, float(config.describe_timeout_seconds))
    try:
        kinesis = session.client(
            "kinesis",
            region_name=config.region,
            endpoint_url=config.stream_endpoint,
            config=Config(
                connect_timeout=timeout,
                read_timeout=timeout,
                max_pool_connections=max(10, config.threadpool_size),
            ),
        )
    except NoRegionError as exc:
        raise ConfigurationError("REGION_MISSING", "set sink.stream.region or a regional endpoint") from exc
    logger.info(
        "Kinesis client ready stream=%s endpoint=%s region=%s",
        config.stream_name,
        config.stream_endpoint or "",
        config.region or "",
    )
    return StreamClient(
        stream_name=config.stream_name,
        endpoint_url=config.stream_endpoint,
        region=config.region,
        kinesis=kinesis,
    )
