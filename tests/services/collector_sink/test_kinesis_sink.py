from __future__ import annotations

import functools
import json
import logging
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from collector_sink import cli
from collector_sink import client as client_module
from collector_sink.client import StreamClient, build_stream_client
from collector_sink.config import SinkConfig
from collector_sink.credentials import CredentialStrategy
from collector_sink.errors import ConfigurationError
from collector_sink.logging_utils import configure_logging
from collector_sink.publisher import PublishOutcome, PublishRequest, PublishSuccess
from collector_sink.sink import KinesisSink
from collector_sink.stream import StreamLifecycleManager


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class _ProvisioningKinesis:
    """Absent until created, then ACTIVE after ``polls_until_active`` describes."""

    def __init__(self, polls_until_active: int = 2, fail_keys: set[str] | None = None) -> None:
        self.polls_until_active = polls_until_active
        self.fail_keys = fail_keys or set()
        self.created: dict[str, int] = {}
        self.describe_calls = 0
        self.create_calls: list[dict[str, object]] = []
        self.put_calls: list[dict[str, object]] = []

    def describe_stream_summary(self, *, StreamName: str):  # type: ignore[no-untyped-def]
        self.describe_calls += 1
        if StreamName not in self.created:
            raise ClientError(
                {"Error": {"Code": "ResourceNotFoundException", "Message": "not found"}},
                operation_name="DescribeStreamSummary",
            )
        self.created[StreamName] += 1
        status = "ACTIVE" if self.created[StreamName] >= self.polls_until_active else "CREATING"
        return {"StreamDescriptionSummary": {"StreamName": StreamName, "StreamStatus": status}}

    def create_stream(self, **kwargs):  # type: ignore[no-untyped-def]
        self.create_calls.append(dict(kwargs))
        self.created[str(kwargs["StreamName"])] = 0
        return {}

    def put_record(self, **kwargs):  # type: ignore[no-untyped-def]
        self.put_calls.append(dict(kwargs))
        if kwargs["PartitionKey"] in self.fail_keys:
            raise ClientError(
                {"Error": {"Code": "InternalFailure", "Message": "backend unavailable"}},
                operation_name="PutRecord",
            )
        return {"ShardId": "shardId-000000000000", "SequenceNumber": str(len(self.put_calls))}


def _config(**overrides) -> SinkConfig:  # type: ignore[no-untyped-def]
    values = dict(
        aws_access_key="env",
        aws_secret_key="env",
        stream_name="events-v1",
        stream_endpoint="http://localhost:4566",
        stream_region="us-east-1",
        stream_size=2,
        threadpool_size=2,
        describe_timeout_seconds=30,
    )
    values.update(overrides)
    return SinkConfig(**values)


def _fake_client_factory(kinesis: object):  # type: ignore[no-untyped-def]
    def _factory(config: SinkConfig) -> StreamClient:
        return StreamClient(
            stream_name=config.stream_name,
            endpoint_url=config.stream_endpoint,
            region=config.region,
            kinesis=kinesis,
        )

    return _factory


def test_absent_stream_is_created_polled_and_bound() -> None:
    kinesis = _ProvisioningKinesis(polls_until_active=2)
    clock = _FakeClock()
    sink = KinesisSink(
        _config(),
        client_factory=_fake_client_factory(kinesis),
        manager_factory=functools.partial(StreamLifecycleManager, clock=clock, sleep=clock.sleep),
    )
    with sink:
        assert sink.stream.name == "events-v1"
        assert kinesis.create_calls == [{"StreamName": "events-v1", "ShardCount": 2}]
        assert len(clock.sleeps) >= 1
        assert kinesis.describe_calls >= 2


def test_store_raw_event_publishes_to_bound_stream() -> None:
    kinesis = _ProvisioningKinesis(polls_until_active=1)
    outcomes: list[PublishOutcome] = []
    with KinesisSink(
        _config(),
        client_factory=_fake_client_factory(kinesis),
        on_complete=outcomes.append,
    ) as sink:
        sink.store_raw_event(b"\x0b\x00\x01raw", "10.0.0.1")

    assert kinesis.put_calls == [
        {"StreamName": "events-v1", "Data": b"\x0b\x00\x01raw", "PartitionKey": "10.0.0.1"}
    ]
    assert isinstance(outcomes[0], PublishSuccess)
    assert outcomes[0].request == PublishRequest(payload=b"\x0b\x00\x01raw", partition_key="10.0.0.1")


def test_env_credentials_select_environment_strategy(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "env-access")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "env-secret")
    seen = []
    real_build_session = client_module.build_session

    def _spy(resolved, **kwargs):  # type: ignore[no-untyped-def]
        seen.append(resolved)
        return real_build_session(resolved, **kwargs)

    monkeypatch.setattr(client_module, "build_session", _spy)
    stream_client = build_stream_client(_config())

    assert [item.strategy for item in seen] == [CredentialStrategy.ENVIRONMENT]
    assert seen[0].access_key is None and seen[0].secret_key is None
    assert stream_client.stream_name == "events-v1"
    assert stream_client.region == "us-east-1"


def test_mismatched_credentials_abort_before_any_network_call(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    def _no_session(*args, **kwargs):  # type: ignore[no-untyped-def]
        calls.append("build_session")
        raise AssertionError("session must not be built")

    monkeypatch.setattr(client_module, "build_session", _no_session)
    with pytest.raises(ConfigurationError) as excinfo:
        KinesisSink(_config(aws_access_key="cpf", aws_secret_key="static-secret"))

    assert excinfo.value.code == "CREDENTIAL_TOKEN_MISMATCH"
    assert calls == []


def _write_profile(tmp_path: Path) -> Path:
    path = tmp_path / "sink.yaml"
    path.write_text(
        """
profile_id: test
aws:
  access_key: env
  secret_key: env
sink:
  threadpool_size: 2
  stream:
    name: events-v1
    endpoint: http://localhost:4566
    region: us-east-1
    size: 1
  timeouts:
    describe_seconds: 5
""",
        encoding="utf-8",
    )
    return path


def test_cli_put_reports_counts(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:  # type: ignore[no-untyped-def]
    kinesis = _ProvisioningKinesis(polls_until_active=1, fail_keys=set())
    monkeypatch.setattr(cli, "KinesisSink", functools.partial(KinesisSink, client_factory=_fake_client_factory(kinesis)))
    input_path = tmp_path / "events.txt"
    input_path.write_text('{"e":"pv"}\n\n{"e":"se"}\n', encoding="utf-8")

    code = cli.main(
        ["put", "--profile", str(_write_profile(tmp_path)), "--partition-key", "pk", "--input", str(input_path)]
    )

    assert code == 0
    summary = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert summary == {"submitted": 2, "succeeded": 2, "failed": 0}
    assert sorted(call["Data"] for call in kinesis.put_calls) == [b'{"e":"pv"}', b'{"e":"se"}']


def test_cli_put_exit_code_reflects_failures(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:  # type: ignore[no-untyped-def]
    kinesis = _ProvisioningKinesis(polls_until_active=1, fail_keys={"pk"})
    monkeypatch.setattr(cli, "KinesisSink", functools.partial(KinesisSink, client_factory=_fake_client_factory(kinesis)))
    input_path = tmp_path / "events.txt"
    input_path.write_text("one\n", encoding="utf-8")

    code = cli.main(
        ["put", "--profile", str(_write_profile(tmp_path)), "--partition-key", "pk", "--input", str(input_path)]
    )

    assert code == 1
    summary = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert summary == {"submitted": 1, "succeeded": 0, "failed": 1}


def test_cli_reports_configuration_errors(tmp_path: Path, capsys) -> None:  # type: ignore[no-untyped-def]
    code = cli.main(["ensure", "--profile", str(tmp_path / "missing.yaml")])
    assert code == 2
    assert json.loads(capsys.readouterr().out.strip())["error"] == "PROFILE_UNREADABLE"


class _DeniedKinesis:
    def describe_stream_summary(self, **kwargs):  # type: ignore[no-untyped-def]
        raise ClientError(
            {"Error": {"Code": "AccessDeniedException", "Message": "User is not authorized"}},
            operation_name="DescribeStreamSummary",
        )


def test_cli_reports_service_errors_as_json(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.setattr(
        cli, "KinesisSink", functools.partial(KinesisSink, client_factory=_fake_client_factory(_DeniedKinesis()))
    )

    code = cli.main(["ensure", "--profile", str(_write_profile(tmp_path))])

    assert code == 2
    report = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert report == {"error": "AccessDeniedException", "detail": "User is not authorized"}


def test_configure_logging_writes_requested_log_files(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    root = logging.getLogger()
    monkeypatch.setattr(root, "handlers", [])
    monkeypatch.setattr(root, "level", root.level)
    log_path = tmp_path / "logs" / "sink.log"

    configure_logging(level=logging.INFO, log_paths=[str(log_path)])
    try:
        logging.getLogger("collector_sink.test").info("Stream events-v1 active")
    finally:
        for handler in list(root.handlers):
            handler.flush()
            handler.close()

    assert "Stream events-v1 active" in log_path.read_text(encoding="utf-8")


def test_cli_accepts_log_file_option(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[object] = []
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: seen.append(kwargs.get("log_paths")))
    log_path = str(tmp_path / "sink.log")

    cli.main(["--log-file", log_path, "ensure", "--profile", str(tmp_path / "missing.yaml")])

    assert seen == [[log_path]]
