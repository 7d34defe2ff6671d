"""Sink error taxonomy and helpers."""

from __future__ import annotations

from botocore.exceptions import ClientError


class SinkError(RuntimeError):
    """Stable error surfaced as a reason code."""

    def __init__(self, code: str, detail: str | None = None) -> None:
        self.code = code
        self.detail = detail
        message = f"{code}:{detail}" if detail else code
        super().__init__(message)


class ConfigurationError(SinkError):
    """Invalid or inconsistent sink configuration. Never retried."""


class StreamTimeoutError(SinkError, TimeoutError):
    """A lifecycle call or readiness wait ran past its deadline."""


def reason_code(exc: BaseException) -> str:
    if isinstance(exc, SinkError):
        return exc.code
    text = str(exc or "").strip()
    if text.isupper():
        return text
    if ":" in text:
        head = text.split(":", 1)[0].strip()
        if head.isupper():
            return head
    return "INTERNAL_ERROR"


def error_code(exc: BaseException) -> str:
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Code") or "")
    if isinstance(exc, SinkError):
        return exc.code
    return exc.__class__.__name__


def error_detail(exc: BaseException) -> str:
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Message") or "")[:256]
    return str(exc)[:256]
