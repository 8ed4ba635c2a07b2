from __future__ import annotations

import itertools

import pytest

from gopackagesdriver.bep import BuildEvent, BuildEventId, NamedSetOfFilesId, iter_build_events
from gopackagesdriver.config import DEFAULT_OUTPUT_GROUP
from gopackagesdriver.exceptions import TargetBuildFailedError
from gopackagesdriver.file_sets import FileSetGraph, resolve_output_files
from tests.bazel_helpers import (
    event_log,
    last_message_event,
    named_set_event,
    target_completed_event,
)

_GROUP = DEFAULT_OUTPUT_GROUP


def test_single_target_with_nested_sets() -> None:
    events = iter_build_events(
        event_log(
            named_set_event("b", ["pkg/z.src"]),
            named_set_event("a", ["pkg/y.src", "pkg/x.src"], ["b"]),
            target_completed_event("//pkg:pkg", ["a"]),
        )
    )
    assert resolve_output_files(events, output_group=_GROUP) == [
        "pkg/x.src",
        "pkg/y.src",
        "pkg/z.src",
    ]


def test_forward_references_resolve_after_stream_ends() -> None:
    graph = FileSetGraph()
    graph.consume(
        [
            target_completed_event("//pkg:pkg", ["a"]),
            named_set_event("a", ["a.json"], ["b"]),
            named_set_event("b", ["b.json"]),
            last_message_event(),
        ],
        output_group=_GROUP,
    )
    assert graph.root_sets == ["a"]
    assert graph.flatten() == ["a.json", "b.json"]
    assert graph.event_count == 4
    assert graph.target_completed_count == 1


def test_undefined_sets_contribute_nothing() -> None:
    graph = FileSetGraph()
    graph.consume(
        [
            target_completed_event("//pkg:pkg", ["missing", "a"]),
            named_set_event("a", ["a.json"], ["also-missing"]),
        ],
        output_group=_GROUP,
    )
    assert graph.flatten() == ["a.json"]


def test_no_roots_flatten_to_empty() -> None:
    graph = FileSetGraph()
    graph.consume([named_set_event("a", ["a.json"])], output_group=_GROUP)
    assert graph.flatten() == []


def test_shared_sets_are_collected_once() -> None:
    graph = FileSetGraph()
    graph.consume(
        [
            named_set_event("shared", ["dep.json", "common.json"]),
            named_set_event("a", ["a.json", "common.json"], ["shared"]),
            named_set_event("b", ["b.json"], ["shared", "a"]),
            target_completed_event("//a:a", ["a"]),
            target_completed_event("//b:b", ["b", "a"]),
        ],
        output_group=_GROUP,
    )
    assert graph.reachable_sets() == {"a", "b", "shared"}
    assert graph.flatten() == ["a.json", "b.json", "common.json", "dep.json"]


def test_cycles_terminate() -> None:
    graph = FileSetGraph()
    graph.consume(
        [
            named_set_event("a", ["a.json"], ["b"]),
            named_set_event("b", ["b.json"], ["a", "b"]),
            target_completed_event("//pkg:pkg", ["a"]),
        ],
        output_group=_GROUP,
    )
    assert graph.flatten() == ["a.json", "b.json"]


def test_other_output_groups_are_not_roots() -> None:
    graph = FileSetGraph()
    graph.consume(
        [
            named_set_event("default", ["pkg/pkg.a"]),
            named_set_event("data", ["pkg/pkg.json"]),
            target_completed_event("//pkg:pkg", ["default"], output_group="default"),
            target_completed_event("//pkg:pkg", ["data"]),
        ],
        output_group=_GROUP,
    )
    assert graph.flatten() == ["pkg/pkg.json"]


def test_failed_target_aborts_even_after_successes() -> None:
    events = [
        target_completed_event("//ok:ok", ["a"]),
        named_set_event("a", ["a.json"]),
        target_completed_event("//bad:bad", success=False),
        last_message_event(),
    ]
    with pytest.raises(TargetBuildFailedError) as excinfo:
        resolve_output_files(events, output_group=_GROUP)
    assert excinfo.value.label == "//bad:bad"


def test_completion_without_payload_counts_as_failure() -> None:
    aborted = BuildEvent(id=target_completed_event("//pkg:pkg").id)
    with pytest.raises(TargetBuildFailedError):
        FileSetGraph().observe(aborted, output_group=_GROUP)


def test_named_set_id_without_definition_records_empty_set() -> None:
    graph = FileSetGraph()
    graph.observe(
        BuildEvent(id=BuildEventId(named_set=NamedSetOfFilesId("a"))),
        output_group=_GROUP,
    )
    assert graph.set_to_files == {"a": []}
    assert graph.set_to_sets == {"a": []}


def test_later_definition_does_not_replace_recorded_set() -> None:
    graph = FileSetGraph()
    graph.consume(
        [
            named_set_event("a", ["a.json"]),
            BuildEvent(id=BuildEventId(named_set=NamedSetOfFilesId("a"))),
            named_set_event("a", ["other.json"]),
            target_completed_event("//pkg:pkg", ["a"]),
        ],
        output_group=_GROUP,
    )
    assert graph.flatten() == ["a.json"]


def test_flattening_is_independent_of_event_order() -> None:
    events = [
        named_set_event("a", ["x.json"], ["b", "c"]),
        named_set_event("b", ["y.json"], ["c"]),
        named_set_event("c", ["z.json", "x.json"]),
        target_completed_event("//one:one", ["a"]),
        target_completed_event("//two:two", ["c"]),
    ]
    expected = ["x.json", "y.json", "z.json"]
    for ordering in itertools.permutations(events):
        graph = FileSetGraph()
        graph.consume([*ordering, last_message_event()], output_group=_GROUP)
        assert graph.flatten() == expected
