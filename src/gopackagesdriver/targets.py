from __future__ import annotations

from dataclasses import dataclass
import posixpath
from typing import Iterable, Protocol, Sequence, TypeAlias

from gopackagesdriver.exceptions import (
    AmbiguousSourceMappingError,
    DriverError,
    EmptyInputError,
    UnsupportedFileKindError,
    UnsupportedQueryError,
)

FILE_QUERY_PREFIX = "file="
PATTERN_QUERY_PREFIX = "query="
PACKAGE_WILDCARD = "all"

ResolvedTargetSet: TypeAlias = tuple[str, ...]


class QueryService(Protocol):
    def query(self, expression: str) -> str: ...


@dataclass(frozen=True)
class TargetOrQuery:
    """One positional argument: a bazel label, `file=<path>` or `query=<expr>`."""

    text: str

    def __str__(self) -> str:
        return self.text

    @property
    def file_query(self) -> str:
        if self.text.startswith(FILE_QUERY_PREFIX):
            return self.text[len(FILE_QUERY_PREFIX):]
        return ""

    @property
    def pattern_query(self) -> str:
        if self.text.startswith(PATTERN_QUERY_PREFIX):
            return self.text[len(PATTERN_QUERY_PREFIX):]
        return ""

    @property
    def is_bazel_target(self) -> bool:
        return not self.text.startswith((FILE_QUERY_PREFIX, PATTERN_QUERY_PREFIX))


def parse_targets_and_queries(args: Sequence[str]) -> list[TargetOrQuery]:
    if not args:
        raise EmptyInputError()
    return [TargetOrQuery(str(arg)) for arg in args]


def resolve_targets(
    identifiers: Sequence[TargetOrQuery],
    *,
    query_service: QueryService,
    source_suffix: str = ".go",
) -> list[ResolvedTargetSet]:
    if not identifiers:
        raise EmptyInputError()
    # Pattern queries are rejected up front so nothing is queried or built.
    for identifier in identifiers:
        if identifier.text.startswith(PATTERN_QUERY_PREFIX):
            raise UnsupportedQueryError(identifier.text)
    resolved: list[ResolvedTargetSet] = []
    for identifier in identifiers:
        if identifier.is_bazel_target:
            resolved.append((identifier.text,))
            continue
        resolved.append(
            targets_with_src_file(
                identifier.file_query,
                query_service=query_service,
                source_suffix=source_suffix,
            )
        )
    return resolved


def targets_with_src_file(
    source_file: str,
    *,
    query_service: QueryService,
    source_suffix: str = ".go",
) -> ResolvedTargetSet:
    """Map a source file to every target in the bazel package containing it."""
    if not source_file.endswith(source_suffix):
        raise UnsupportedFileKindError(source_file, source_suffix)
    label = src_file_target(source_file, query_service=query_service)
    return (f"{label_package(label, source_file)}:{PACKAGE_WILDCARD}",)


def src_file_target(source_file: str, *, query_service: QueryService) -> str:
    try:
        output = query_service.query(source_file)
    except DriverError as exc:
        raise AmbiguousSourceMappingError(source_file, reason=str(exc)) from exc
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    if len(lines) != 1:
        raise AmbiguousSourceMappingError(source_file, lines)
    return lines[0]


def label_package(label: str, source_file: str = "") -> str:
    base = posixpath.basename(source_file) if source_file else ""
    if base and label.endswith(f":{base}"):
        return label[: -len(base) - 1]
    head, sep, _name = label.rpartition(":")
    return head if sep else label


def flatten_targets(resolved: Iterable[ResolvedTargetSet]) -> list[str]:
    return [target for target_set in resolved for target in target_set]
