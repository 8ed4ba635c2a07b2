from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
import os
from pathlib import Path
import re
from typing import Mapping, TypeAlias
import tomllib

DEFAULT_CONFIG_NAME = "gopackagesdriver.toml"
DEFAULT_BAZEL = "bazel"
DEFAULT_OUTPUT_GROUP = "gopackagesdriver_data"
DEFAULT_SOURCE_SUFFIX = ".go"

CONFIG_ENV = "GOPACKAGESDRIVER_CONFIG"
BAZEL_ENV = "GOPACKAGESDRIVER_BAZEL"
BAZEL_FLAGS_ENV = "GOPACKAGESDRIVER_BAZEL_FLAGS"
BAZEL_BUILD_FLAGS_ENV = "GOPACKAGESDRIVER_BAZEL_BUILD_FLAGS"
WORKSPACE_ENV = "GOPACKAGESDRIVER_WORKSPACE"
VERBOSE_ENV = "GOPACKAGESDRIVER_VERBOSE"

_TRUTHY_VALUES = {"1", "true", "yes", "on"}
_FLAG_SPLIT_RE = re.compile(r"[,\s]+")

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


@dataclass(frozen=True)
class DriverSettings:
    bazel: str = DEFAULT_BAZEL
    bazel_startup_flags: tuple[str, ...] = ()
    output_group: str = DEFAULT_OUTPUT_GROUP
    source_suffix: str = DEFAULT_SOURCE_SUFFIX
    build_flags: tuple[str, ...] = ()
    workspace_root: Path = field(default_factory=Path.cwd)
    verbose: bool = False


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def driver_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("driver", {})
    return section if isinstance(section, dict) else {}


def env_text(name: str, *, default: str = "", environ: Mapping[str, str] | None = None) -> str:
    source = os.environ if environ is None else environ
    return source.get(name, default).strip()


def _split_flags(value: TomlValue) -> list[str]:
    items: list[str] = []
    if value is None:
        return items
    if isinstance(value, str):
        items = [part for part in _FLAG_SPLIT_RE.split(value.strip()) if part]
    elif isinstance(value, (list, tuple)):
        items = [str(item).strip() for item in value if str(item).strip()]
    return items


def _as_bool(value: TomlValue) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_VALUES
    return False


def _as_text(value: TomlValue, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def load_settings(
    root: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> DriverSettings:
    """Resolve driver settings from the config file and the environment.

    Environment variables win over `[driver]` keys in the config file, which
    win over the built-in defaults.
    """
    base = root if root is not None else Path.cwd()
    config_override = env_text(CONFIG_ENV, environ=environ)
    section = driver_defaults(
        root=base,
        config_path=Path(config_override) if config_override else None,
    )

    bazel = env_text(BAZEL_ENV, environ=environ) or _as_text(section.get("bazel"), DEFAULT_BAZEL)

    startup_env = env_text(BAZEL_FLAGS_ENV, environ=environ)
    startup_flags = _split_flags(startup_env) if startup_env else _split_flags(
        section.get("bazel_startup_flags")
    )

    build_flags = _split_flags(section.get("build_flags"))
    build_flags.extend(_split_flags(env_text(BAZEL_BUILD_FLAGS_ENV, environ=environ)))

    workspace_text = env_text(WORKSPACE_ENV, environ=environ) or _as_text(
        section.get("workspace_root"), ""
    )
    workspace_root = Path(workspace_text) if workspace_text else base
    if not workspace_root.is_absolute():
        workspace_root = base / workspace_root

    verbose_env = env_text(VERBOSE_ENV, environ=environ)
    verbose = _as_bool(verbose_env) if verbose_env else _as_bool(section.get("verbose"))

    return DriverSettings(
        bazel=bazel,
        bazel_startup_flags=tuple(startup_flags),
        output_group=_as_text(section.get("output_group"), DEFAULT_OUTPUT_GROUP),
        source_suffix=_as_text(section.get("source_suffix"), DEFAULT_SOURCE_SUFFIX),
        build_flags=tuple(build_flags),
        workspace_root=workspace_root,
        verbose=verbose,
    )
