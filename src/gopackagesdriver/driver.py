from __future__ import annotations

import json
from typing import Protocol, Sequence

from pydantic import ValidationError

from gopackagesdriver.bep import iter_build_events
from gopackagesdriver.config import DriverSettings
from gopackagesdriver.diagnostics import Reporter
from gopackagesdriver.exceptions import RequestDecodeError, ResponseEncodeError
from gopackagesdriver.file_sets import FileSetGraph
from gopackagesdriver.packages import load_descriptors, refine, select_roots
from gopackagesdriver.schema import DriverRequest, DriverResponse
from gopackagesdriver.targets import (
    flatten_targets,
    parse_targets_and_queries,
    resolve_targets,
)


class BuildClient(Protocol):
    def query(self, expression: str) -> str: ...

    def build(
        self,
        targets: Sequence[str],
        *,
        output_group: str,
        build_flags: Sequence[str] = (),
    ) -> bytes: ...


def decode_request(data: str | bytes) -> DriverRequest:
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RequestDecodeError(f"request is not valid UTF-8: {exc}") from exc
    if not data.strip():
        return DriverRequest()
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        raise RequestDecodeError(str(exc)) from exc
    if not isinstance(payload, dict):
        raise RequestDecodeError(f"expected a JSON object, got {type(payload).__name__}")
    try:
        return DriverRequest.model_validate(payload)
    except ValidationError as exc:
        raise RequestDecodeError(str(exc).splitlines()[0]) from exc


def encode_response(response: DriverResponse) -> str:
    try:
        return json.dumps(response.to_payload(), separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise ResponseEncodeError(str(exc)) from exc


def build_response(
    targets: Sequence[str],
    request: DriverRequest,
    *,
    settings: DriverSettings,
    client: BuildClient,
    reporter: Reporter,
) -> DriverResponse:
    build_flags = [*settings.build_flags, *request.build_flags]
    reporter.info(f"building {len(targets)} target(s): {' '.join(targets)}")
    if build_flags:
        reporter.info(f"build flags: {' '.join(build_flags)}")
    event_data = client.build(
        targets,
        output_group=settings.output_group,
        build_flags=build_flags,
    )

    file_sets = FileSetGraph()
    file_sets.consume(iter_build_events(event_data), output_group=settings.output_group)
    files = file_sets.flatten()
    reporter.info(
        f"read {file_sets.event_count} build event(s), "
        f"{file_sets.target_completed_count} completed target(s), {len(files)} output file(s)"
    )

    graph = refine(load_descriptors(files, root=settings.workspace_root))
    roots = select_roots(graph, targets)
    reporter.info(f"loaded {len(graph.packages)} package(s), {len(roots)} root(s)")
    return DriverResponse(roots=roots, packages=graph.sorted_packages())


def run_driver(
    args: Sequence[str],
    request_data: str | bytes,
    *,
    settings: DriverSettings,
    client: BuildClient,
    reporter: Reporter | None = None,
) -> str:
    """Resolve `args`, build them and return the driver response JSON.

    Any `DriverError` raised along the way propagates; no partial response
    is produced.
    """
    reporter = reporter if reporter is not None else Reporter(verbose=settings.verbose)
    identifiers = parse_targets_and_queries(args)
    request = decode_request(request_data)
    resolved = resolve_targets(
        identifiers,
        query_service=client,
        source_suffix=settings.source_suffix,
    )
    targets = flatten_targets(resolved)
    response = build_response(
        targets,
        request,
        settings=settings,
        client=client,
        reporter=reporter,
    )
    return encode_response(response)
