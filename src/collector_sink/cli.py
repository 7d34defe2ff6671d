"""Collector sink CLI (ensure/put)."""

from __future__ import annotations

import argparse
import json
import sys
import threading
from pathlib import Path
from typing import Iterable, TextIO

from botocore.exceptions import BotoCoreError, ClientError

from .config import SinkConfig
from .errors import SinkError, error_code, error_detail, reason_code
from .logging_utils import configure_logging
from .publisher import PublishOutcome, PublishSuccess, log_outcome
from .sink import KinesisSink


class _OutcomeCounter:
    def __init__(self) -> None:
        self.succeeded = 0
        self.failed = 0
        self._lock = threading.Lock()

    def __call__(self, outcome: PublishOutcome) -> None:
        log_outcome(outcome)
        with self._lock:
            if isinstance(outcome, PublishSuccess):
                self.succeeded += 1
            else:
                self.failed += 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collector Kinesis sink")
    parser.add_argument("--log-file", action="append", default=None, help="Also write logs to this file (repeatable)")
    sub = parser.add_subparsers(dest="command", required=True)
    ensure = sub.add_parser("ensure", help="Create the stream if missing and wait until ACTIVE")
    ensure.add_argument("--profile", required=True, help="Path to sink profile YAML")
    put = sub.add_parser("put", help="Publish one record per input line")
    put.add_argument("--profile", required=True, help="Path to sink profile YAML")
    put.add_argument("--partition-key", required=True, help="Partition key for every record")
    put.add_argument("--input", default=None, help="Input file (default: stdin)")
    return parser


def _iter_payloads(handle: TextIO) -> Iterable[bytes]:
    for line in handle:
        text = line.rstrip("\r\n")
        if text.strip():
            yield text.encode("utf-8")


def _cmd_ensure(args: argparse.Namespace) -> int:
    config = SinkConfig.load(Path(args.profile))
    with KinesisSink(config) as sink:
        print(
            json.dumps(
                {
                    "stream": sink.stream.name,
                    "endpoint": sink.stream.endpoint_url,
                    "region": sink.stream.region,
                    "status": "ACTIVE",
                },
                sort_keys=True,
            )
        )
    return 0


def _cmd_put(args: argparse.Namespace) -> int:
    config = SinkConfig.load(Path(args.profile))
    counter = _OutcomeCounter()
    submitted = 0
    with KinesisSink(config, on_complete=counter) as sink:
        if args.input:
            with Path(args.input).open("r", encoding="utf-8") as handle:
                for payload in _iter_payloads(handle):
                    sink.store_raw_event(payload, args.partition_key)
                    submitted += 1
        else:
            for payload in _iter_payloads(sys.stdin):
                sink.store_raw_event(payload, args.partition_key)
                submitted += 1
    print(
        json.dumps(
            {"submitted": submitted, "succeeded": counter.succeeded, "failed": counter.failed},
            sort_keys=True,
        )
    )
    return 1 if counter.failed else 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(log_paths=args.log_file)
    try:
        if args.command == "ensure":
            return _cmd_ensure(args)
        if args.command == "put":
            return _cmd_put(args)
    except SinkError as exc:
        print(json.dumps({"error": reason_code(exc), "detail": exc.detail}, sort_keys=True))
        return 2
    except (ClientError, BotoCoreError) as exc:
        print(json.dumps({"error": error_code(exc), "detail": error_detail(exc)}, sort_keys=True))
        return 2
    raise SystemExit("UNKNOWN_COMMAND")


if __name__ == "__main__":
    raise SystemExit(main())
