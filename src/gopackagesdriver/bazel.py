from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
import os
from pathlib import Path
import subprocess
import sys
import tempfile
from typing import Callable, Iterator, Sequence, TextIO

from gopackagesdriver.diagnostics import print_err as _default_print_err
from gopackagesdriver.exceptions import BuildInvocationError

EVENT_FILE_PREFIX = "gopackagesdriver-bazel-bep-"
EVENT_FILE_SUFFIX = ".bin"

RunCommand = Callable[..., subprocess.CompletedProcess[str]]
PrintErr = Callable[[str], None]
DiagnosticStream = Callable[[], TextIO]


def _default_diagnostic_stream() -> TextIO:
    return sys.stderr


@dataclass(frozen=True)
class BazelDeps:
    run: RunCommand = subprocess.run
    print_err: PrintErr = _default_print_err
    # Looked up per call so a replaced sys.stderr is honoured.
    diagnostic_stream: DiagnosticStream = _default_diagnostic_stream


@contextmanager
def event_log_file(directory: Path | None = None) -> Iterator[Path]:
    """Reserve a uniquely named file for bazel's binary event log.

    The file is removed when the block exits, whether or not it raised.
    """
    try:
        fd, name = tempfile.mkstemp(
            prefix=EVENT_FILE_PREFIX,
            suffix=EVENT_FILE_SUFFIX,
            dir=str(directory) if directory is not None else None,
        )
    except OSError as exc:
        raise BuildInvocationError(
            "build", None, f"could not create build event file: {exc}"
        ) from exc
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)


@dataclass(frozen=True)
class BazelClient:
    bazel: str = "bazel"
    startup_flags: tuple[str, ...] = ()
    cwd: Path | None = None
    deps: BazelDeps = field(default_factory=BazelDeps)

    def command(self, name: str, *args: str) -> list[str]:
        return [self.bazel, *self.startup_flags, name, *args]

    def _run(self, name: str, cmd: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        try:
            return self.deps.run(cmd, cwd=self.cwd, check=False, text=True, **kwargs)
        except OSError as exc:
            raise BuildInvocationError(name, 127, str(exc)) from exc

    def query(self, expression: str) -> str:
        """Run `bazel query` and return its stdout; stderr goes to diagnostics."""
        proc = self._run("query", self.command("query", expression), capture_output=True)
        if proc.stderr:
            self.deps.print_err(proc.stderr)
        if proc.returncode != 0:
            raise BuildInvocationError("query", proc.returncode, str(proc.stderr or "").strip())
        return str(proc.stdout or "")

    def build_command(
        self,
        targets: Sequence[str],
        *,
        output_group: str,
        event_file: Path,
        build_flags: Sequence[str] = (),
    ) -> list[str]:
        return self.command(
            "build",
            f"--output_groups={output_group}",
            f"--build_event_binary_file={event_file}",
            *build_flags,
            "--",
            *targets,
        )

    def build(
        self,
        targets: Sequence[str],
        *,
        output_group: str,
        build_flags: Sequence[str] = (),
    ) -> bytes:
        """Build `output_group` for `targets` and return the raw event log."""
        with event_log_file() as event_file:
            cmd = self.build_command(
                targets,
                output_group=output_group,
                event_file=event_file,
                build_flags=build_flags,
            )
            # bazel writes progress to both streams; both go to stderr as it runs.
            proc = self._run(
                "build",
                cmd,
                stdout=self.deps.diagnostic_stream(),
                stderr=subprocess.STDOUT,
            )
            if proc.returncode != 0:
                raise BuildInvocationError("build", proc.returncode)
            try:
                return event_file.read_bytes()
            except OSError as exc:
                raise BuildInvocationError(
                    "build", proc.returncode, f"could not read build event file: {exc}"
                ) from exc
