"""Error taxonomy for the driver pipeline.

Every error is terminal for the invocation: the CLI reports it as a single
diagnostic line and exits non-zero without writing a response.
"""

from __future__ import annotations


class DriverError(RuntimeError):
    """Base class for failures surfaced by the driver pipeline."""


class EmptyInputError(DriverError):
    def __init__(self) -> None:
        super().__init__("no targets specified")


class UnsupportedQueryError(DriverError):
    def __init__(self, identifier: str) -> None:
        super().__init__(f"don't know how to handle pattern query argument {identifier!r}")
        self.identifier = identifier


class UnsupportedFileKindError(DriverError):
    def __init__(self, path: str, suffix: str) -> None:
        super().__init__(f"don't know how to handle non-{suffix} file {path!r}")
        self.path = path
        self.suffix = suffix


class AmbiguousSourceMappingError(DriverError):
    def __init__(self, path: str, labels: list[str] | None = None, *, reason: str = "") -> None:
        found = list(labels or [])
        if reason:
            message = f"unable to map source file {path!r} to bazel label: {reason}"
        else:
            message = (
                f"mapping source file {path!r} to bazel label got {len(found)} label(s), "
                f"want 1: {found}"
            )
        super().__init__(message)
        self.path = path
        self.labels = found


class BuildInvocationError(DriverError):
    def __init__(self, command: str, exit_code: int | None, diagnostics: str = "") -> None:
        message = f"error running bazel {command}"
        if exit_code is not None:
            message = f"{message}: exit status {exit_code}"
        lines = [line.strip() for line in diagnostics.splitlines() if line.strip()]
        if lines:
            # Full output was already forwarded; keep the message to one line.
            message = f"{message}: {lines[-1]}"
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code
        self.diagnostics = diagnostics


class EventStreamDecodeError(DriverError):
    def __init__(self, reason: str, *, offset: int | None = None) -> None:
        message = f"could not decode bazel build event file: {reason}"
        if offset is not None:
            message = f"{message} (at byte {offset})"
        super().__init__(message)
        self.reason = reason
        self.offset = offset


class TargetBuildFailedError(DriverError):
    def __init__(self, label: str) -> None:
        super().__init__(f"{label}: target did not build successfully")
        self.label = label


class RequestDecodeError(DriverError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"could not unmarshal driver request: {reason}")


class ResponseEncodeError(DriverError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"could not marshal driver response: {reason}")


class DescriptorLoadError(DriverError):
    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"could not load package data file {path!r}: {reason}")
        self.path = path
