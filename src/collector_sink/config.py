"""Sink configuration loader (YAML profiles)."""

from __future__ import annotations

from dataclasses import dataclass
import os
import re
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")
_ENDPOINT_REGION_PATTERN = re.compile(r"kinesis[.-]([a-z0-9-]+)\.amazonaws\.com")

SINK_KINDS = {"kinesis"}


def _resolve_env(value: Any) -> Any:
    if not value or not isinstance(value, str):
        return value
    match = _ENV_PATTERN.fullmatch(value.strip())
    if match:
        return os.getenv(match.group(1)) or ""
    return value


def region_from_endpoint(endpoint: str | None) -> str | None:
    if not endpoint:
        return None
    match = _ENDPOINT_REGION_PATTERN.search(endpoint)
    return match.group(1) if match else None


@dataclass(frozen=True)
class SinkConfig:
    aws_access_key: str
    aws_secret_key: str
    stream_name: str
    stream_endpoint: str | None = None
    stream_region: str | None = None
    stream_size: int = 1
    threadpool_size: int = 10
    describe_timeout_seconds: float = 60.0
    create_timeout_seconds: float = 60.0
    poll_interval_seconds: float = 1.0
    max_poll_interval_seconds: float = 10.0
    credentials_file: str | None = None
    credentials_profile: str | None = None
    profile_id: str = "local"

    def __post_init__(self) -> None:
        if not self.stream_name:
            raise ConfigurationError("STREAM_NAME_MISSING")
        if not self.aws_access_key or not self.aws_secret_key:
            raise ConfigurationError("AWS_KEYS_MISSING", "aws.access_key and aws.secret_key are required")
        for field_name in ("stream_size", "threadpool_size"):
            if int(getattr(self, field_name)) < 1:
                raise ConfigurationError("INVALID_SIZE", f"{field_name} must be >= 1")
        for field_name in (
            "describe_timeout_seconds",
            "create_timeout_seconds",
            "poll_interval_seconds",
            "max_poll_interval_seconds",
        ):
            if float(getattr(self, field_name)) <= 0:
                raise ConfigurationError("INVALID_TIMEOUT", f"{field_name} must be > 0")

    @property
    def region(self) -> str | None:
        return self.stream_region or region_from_endpoint(self.stream_endpoint)

    @classmethod
    def load(cls, path: Path) -> "SinkConfig":
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigurationError("PROFILE_UNREADABLE", str(exc)) from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError("PROFILE_INVALID_YAML", str(exc)) from exc
        if not isinstance(data, dict):
            raise ConfigurationError("PROFILE_INVALID", f"expected a mapping in {path}")
        return cls.from_mapping(data)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "SinkConfig":
        aws = data.get("aws") or {}
        sink = data.get("sink") or {}
        stream = sink.get("stream") or {}
        timeouts = sink.get("timeouts") or {}

        kind = str(sink.get("kind", "kinesis")).strip().lower()
        if kind not in SINK_KINDS:
            raise ConfigurationError("UNSUPPORTED_SINK_KIND", kind)

        try:
            return cls(
                aws_access_key=str(_resolve_env(aws.get("access_key")) or ""),
                aws_secret_key=str(_resolve_env(aws.get("secret_key")) or ""),
                stream_name=str(_resolve_env(stream.get("name")) or ""),
                stream_endpoint=_resolve_env(stream.get("endpoint")) or None,
                stream_region=_resolve_env(stream.get("region")) or None,
                stream_size=int(stream.get("size", 1)),
                threadpool_size=int(sink.get("threadpool_size", 10)),
                describe_timeout_seconds=float(timeouts.get("describe_seconds", 60)),
                create_timeout_seconds=float(timeouts.get("create_seconds", 60)),
                poll_interval_seconds=float(timeouts.get("poll_interval_seconds", 1.0)),
                max_poll_interval_seconds=float(timeouts.get("max_poll_interval_seconds", 10.0)),
                credentials_file=_resolve_env(aws.get("credentials_file")) or None,
                credentials_profile=_resolve_env(aws.get("credentials_profile")) or None,
                profile_id=str(data.get("profile_id", "local")),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError("PROFILE_INVALID", str(exc)) from exc
