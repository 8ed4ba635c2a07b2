from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, NewType

from gopackagesdriver.bep import BuildEvent
from gopackagesdriver.exceptions import TargetBuildFailedError

SetID = NewType("SetID", str)


@dataclass
class FileSetGraph:
    """Named file sets seen in a build event stream, keyed by set id.

    A set may be referenced (as a root or as a child) before the event that
    defines it, so nothing is linked while events arrive. `flatten` walks the
    recorded ids only after the whole stream has been observed.
    """

    set_to_files: dict[SetID, list[str]] = field(default_factory=dict)
    set_to_sets: dict[SetID, list[SetID]] = field(default_factory=dict)
    root_sets: list[SetID] = field(default_factory=list)
    event_count: int = 0
    target_completed_count: int = 0

    def observe(self, event: BuildEvent, *, output_group: str) -> None:
        self.event_count += 1
        target_completed = event.id.target_completed
        if target_completed is not None:
            self.target_completed_count += 1
            completed = event.completed
            if completed is None or not completed.success:
                raise TargetBuildFailedError(target_completed.label)
            for group in completed.output_groups:
                if group.name != output_group:
                    continue
                for set_id in group.file_sets:
                    if set_id.id:
                        self.root_sets.append(SetID(set_id.id))

        named_set = event.id.named_set
        if named_set is None or not named_set.id:
            return
        set_id = SetID(named_set.id)
        if set_id in self.set_to_files:
            # First definition stands.
            return
        definition = event.named_set_of_files
        if definition is None:
            self.set_to_files[set_id] = []
            self.set_to_sets[set_id] = []
            return
        self.set_to_files[set_id] = [file.path for file in definition.files]
        self.set_to_sets[set_id] = [SetID(child.id) for child in definition.file_sets if child.id]

    def consume(self, events: Iterable[BuildEvent], *, output_group: str) -> None:
        for event in events:
            self.observe(event, output_group=output_group)

    def reachable_sets(self) -> set[SetID]:
        visited: set[SetID] = set()
        for root in self.root_sets:
            stack = [root]
            while stack:
                set_id = stack.pop()
                if set_id in visited:
                    continue
                visited.add(set_id)
                stack.extend(
                    child for child in self.set_to_sets.get(set_id, ()) if child not in visited
                )
        return visited

    def flatten(self) -> list[str]:
        files: set[str] = set()
        for set_id in self.reachable_sets():
            files.update(self.set_to_files.get(set_id, ()))
        return sorted(files)


def resolve_output_files(events: Iterable[BuildEvent], *, output_group: str) -> list[str]:
    graph = FileSetGraph()
    graph.consume(events, output_group=output_group)
    return graph.flatten()
