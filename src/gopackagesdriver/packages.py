"""Loading and linking of the per-package data files produced by the build.

Linking is done in two passes. Each data file lists its imports by package ID
only, and a file may import a package whose data file is read later, so all
files are parsed first and the import stubs are checked afterwards against
the complete ID index (`refine`). A stub with no data file becomes a
`ListError` on the importing package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import posixpath
from pathlib import Path
from typing import Iterable, Mapping, Sequence

from pydantic import ValidationError

from gopackagesdriver.exceptions import DescriptorLoadError
from gopackagesdriver.schema import LIST_ERROR, PackageDescriptor, PackageError

DESCRIPTOR_SUFFIX = ".json"
_PACKAGE_WILDCARDS = frozenset({"all", "*", "all-targets"})
_RECURSIVE_SUFFIX = "/..."


@dataclass
class PackageGraph:
    packages: dict[str, PackageDescriptor] = field(default_factory=dict)

    def sorted_packages(self) -> list[PackageDescriptor]:
        return [self.packages[package_id] for package_id in sorted(self.packages)]


def descriptor_files(files: Iterable[str]) -> list[str]:
    return [path for path in files if path.endswith(DESCRIPTOR_SUFFIX)]


def load_descriptor(path: Path) -> PackageDescriptor:
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeError) as exc:
        raise DescriptorLoadError(str(path), str(exc)) from exc
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DescriptorLoadError(str(path), str(exc)) from exc
    if not isinstance(payload, Mapping):
        raise DescriptorLoadError(str(path), "expected a JSON object")
    try:
        return PackageDescriptor.model_validate(payload)
    except ValidationError as exc:
        raise DescriptorLoadError(str(path), str(exc).splitlines()[0]) from exc


def load_descriptors(files: Sequence[str], *, root: Path) -> list[PackageDescriptor]:
    descriptors: list[PackageDescriptor] = []
    seen: set[str] = set()
    for name in descriptor_files(files):
        path = Path(name)
        if not path.is_absolute():
            path = root / path
        descriptor = load_descriptor(path)
        if descriptor.id in seen:
            continue
        seen.add(descriptor.id)
        descriptors.append(descriptor)
    return descriptors


def refine(descriptors: Iterable[PackageDescriptor]) -> PackageGraph:
    by_id: dict[str, PackageDescriptor] = {}
    for descriptor in descriptors:
        by_id.setdefault(descriptor.id, descriptor)

    graph = PackageGraph()
    for package_id, descriptor in by_id.items():
        missing: list[PackageError] = []
        for import_path, stub_id in sorted(descriptor.imports.items()):
            if stub_id not in by_id:
                missing.append(
                    PackageError(
                        msg=f"could not import {import_path} (no metadata for {stub_id})",
                        kind=LIST_ERROR,
                    )
                )
        if missing:
            descriptor = descriptor.model_copy(
                update={"errors": [*descriptor.errors, *missing]}
            )
        graph.packages[package_id] = descriptor
    return graph


def _normalize_label(label: str) -> str:
    for prefix in ("@@//", "@//"):
        if label.startswith(prefix):
            return label[len(prefix) - 2:]
    return label


def _split_label(label: str) -> tuple[str, str]:
    package, sep, name = label.rpartition(":")
    if sep:
        return package, name
    # `//foo/bar` is shorthand for `//foo/bar:bar`.
    return label, posixpath.basename(label)


def target_matches(package_id: str, target: str) -> bool:
    package_label = _normalize_label(package_id)
    target_label = _normalize_label(target)
    if package_label == target_label:
        return True
    target_package, target_name = _split_label(target_label)
    package, name = _split_label(package_label)
    if target_package.endswith(_RECURSIVE_SUFFIX):
        base = target_package[: -len(_RECURSIVE_SUFFIX)].rstrip("/")
        return package == base or package.startswith(f"{base}/")
    if target_name in _PACKAGE_WILDCARDS:
        return package == target_package
    return package == target_package and name == target_name


def select_roots(graph: PackageGraph, targets: Sequence[str]) -> list[str]:
    roots = {
        package_id
        for package_id in graph.packages
        if any(target_matches(package_id, target) for target in targets)
    }
    return sorted(roots)
