from __future__ import annotations

import io
from pathlib import Path

import pytest

from gopackagesdriver.bazel import (
    EVENT_FILE_PREFIX,
    BazelClient,
    BazelDeps,
    event_log_file,
)
from gopackagesdriver.exceptions import BuildInvocationError
from tests.bazel_helpers import FakeBazel, event_log, named_set_event


def test_event_log_file_is_removed_after_use(tmp_path: Path) -> None:
    with event_log_file(tmp_path) as path:
        assert path.exists()
        assert path.name.startswith(EVENT_FILE_PREFIX)
        path.write_bytes(b"data")
    assert not path.exists()


def test_event_log_file_is_removed_on_error(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError):
        with event_log_file(tmp_path) as path:
            raise RuntimeError("boom")
    assert not path.exists()


def test_event_log_file_names_are_unique(tmp_path: Path) -> None:
    with event_log_file(tmp_path) as first, event_log_file(tmp_path) as second:
        assert first != second


def test_event_log_file_in_missing_directory_is_an_invocation_error(tmp_path: Path) -> None:
    with pytest.raises(BuildInvocationError) as excinfo:
        with event_log_file(tmp_path / "missing"):
            pass
    assert excinfo.value.exit_code is None
    assert str(excinfo.value).startswith(
        "error running bazel build: could not create build event file:"
    )
    assert "\n" not in str(excinfo.value)


def test_build_command_line(
    bazel_client: BazelClient, fake_bazel: FakeBazel
) -> None:
    fake_bazel.event_data = event_log(named_set_event("a", ["x"]))
    data = bazel_client.build(
        ["//pkg:pkg", "//other:all"],
        output_group="gopackagesdriver_data",
        build_flags=["--config=ci"],
    )
    assert data == fake_bazel.event_data
    [cmd] = fake_bazel.build_commands
    event_file = fake_bazel.event_files[0]
    assert cmd == [
        "bazel",
        "build",
        "--output_groups=gopackagesdriver_data",
        f"--build_event_binary_file={event_file}",
        "--config=ci",
        "--",
        "//pkg:pkg",
        "//other:all",
    ]
    assert not event_file.exists()


def test_startup_flags_precede_command(fake_bazel: FakeBazel) -> None:
    client = BazelClient(
        bazel="/opt/bazelisk",
        startup_flags=("--output_base=/tmp/ob",),
        deps=BazelDeps(run=fake_bazel.run, print_err=lambda _message: None),
    )
    client.build(["//a:a"], output_group="g")
    assert fake_bazel.build_commands[0][:3] == ["/opt/bazelisk", "--output_base=/tmp/ob", "build"]


def _streaming_client(fake_bazel: FakeBazel, stream: io.StringIO) -> BazelClient:
    return BazelClient(
        deps=BazelDeps(
            run=fake_bazel.run,
            print_err=lambda _message: None,
            diagnostic_stream=lambda: stream,
        )
    )


def test_build_output_streams_to_diagnostics(fake_bazel: FakeBazel) -> None:
    stream = io.StringIO()
    fake_bazel.build_output = "INFO: Build completed successfully\n"
    _streaming_client(fake_bazel, stream).build(["//a:a"], output_group="g")
    assert stream.getvalue() == "INFO: Build completed successfully\n"


def test_build_output_defaults_to_stderr(
    bazel_client: BazelClient,
    fake_bazel: FakeBazel,
    capsys: pytest.CaptureFixture[str],
) -> None:
    fake_bazel.build_output = "INFO: Analyzed 1 target\n"
    bazel_client.build(["//a:a"], output_group="g")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "INFO: Analyzed 1 target" in captured.err


def test_build_failure_raises_and_removes_event_file(fake_bazel: FakeBazel) -> None:
    stream = io.StringIO()
    fake_bazel.build_returncode = 1
    fake_bazel.build_output = "ERROR: //a:a failed\nFAILED: Build did NOT complete successfully\n"
    with pytest.raises(BuildInvocationError) as excinfo:
        _streaming_client(fake_bazel, stream).build(["//a:a"], output_group="g")
    assert excinfo.value.exit_code == 1
    assert str(excinfo.value) == "error running bazel build: exit status 1"
    assert "did NOT complete" in stream.getvalue()
    assert not fake_bazel.event_files[0].exists()


def test_query_returns_stdout_and_forwards_stderr(
    bazel_client: BazelClient, fake_bazel: FakeBazel, stderr_messages: list[str]
) -> None:
    fake_bazel.query_output = {"pkg/x.go": "//pkg:x.go\n"}
    assert bazel_client.query("pkg/x.go") == "//pkg:x.go\n"
    assert fake_bazel.query_commands == [["bazel", "query", "pkg/x.go"]]
    assert stderr_messages == ["Loading: 0 packages\n"]


def test_query_failure_raises(bazel_client: BazelClient, fake_bazel: FakeBazel) -> None:
    fake_bazel.query_returncode = 2
    with pytest.raises(BuildInvocationError) as excinfo:
        bazel_client.query("pkg/x.go")
    assert excinfo.value.command == "query"
    assert excinfo.value.exit_code == 2


def test_missing_bazel_binary_is_an_invocation_error() -> None:
    def _run(cmd: list[str], **_kwargs: object):
        raise FileNotFoundError(2, "No such file or directory", cmd[0])

    client = BazelClient(
        bazel="/nonexistent/bazel",
        deps=BazelDeps(run=_run, print_err=lambda _message: None),
    )
    with pytest.raises(BuildInvocationError) as excinfo:
        client.build(["//a:a"], output_group="g")
    assert excinfo.value.exit_code == 127
    with pytest.raises(BuildInvocationError):
        client.query("a/a.go")
