from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from gopackagesdriver.json_types import JSONObject

# go/packages ErrorKind values.
UNKNOWN_ERROR = 0
LIST_ERROR = 1
PARSE_ERROR = 2
TYPE_ERROR = 3


def _empty_if_none(value: object, empty: object) -> object:
    # Go encodes nil slices and maps as null.
    return empty if value is None else value


class DriverRequest(BaseModel):
    """JSON object sent by golang.org/x/tools/go/packages on stdin."""

    model_config = ConfigDict(extra="ignore")

    command: str = ""
    mode: int = 0
    env: List[str] = []
    build_flags: List[str] = []
    tests: bool = False
    # []byte values arrive base64 encoded; overlays are accepted but not applied.
    overlay: Dict[str, str] = {}

    @field_validator("env", "build_flags", mode="before")
    @classmethod
    def _list_or_empty(cls, value: object) -> object:
        return _empty_if_none(value, [])

    @field_validator("overlay", mode="before")
    @classmethod
    def _map_or_empty(cls, value: object) -> object:
        return _empty_if_none(value, {})

    @field_validator("command", mode="before")
    @classmethod
    def _text_or_empty(cls, value: object) -> object:
        return _empty_if_none(value, "")


class PackageError(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    pos: str = Field("", alias="Pos")
    msg: str = Field("", alias="Msg")
    kind: int = Field(UNKNOWN_ERROR, alias="Kind")


class PackageDescriptor(BaseModel):
    """A package in go/packages' flat JSON form.

    `imports` maps import path to package ID; the IDs are stubs until the
    descriptor is checked against the rest of the graph.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(alias="ID")
    name: str = Field("", alias="Name")
    pkg_path: str = Field("", alias="PkgPath")
    errors: List[PackageError] = Field([], alias="Errors")
    go_files: List[str] = Field([], alias="GoFiles")
    compiled_go_files: List[str] = Field([], alias="CompiledGoFiles")
    other_files: List[str] = Field([], alias="OtherFiles")
    embed_patterns: List[str] = Field([], alias="EmbedPatterns")
    embed_files: List[str] = Field([], alias="EmbedFiles")
    ignored_files: List[str] = Field([], alias="IgnoredFiles")
    export_file: str = Field("", alias="ExportFile")
    imports: Dict[str, str] = Field({}, alias="Imports")
    standard: bool = Field(False, alias="Standard")

    @field_validator(
        "errors",
        "go_files",
        "compiled_go_files",
        "other_files",
        "embed_patterns",
        "embed_files",
        "ignored_files",
        mode="before",
    )
    @classmethod
    def _list_or_empty(cls, value: object) -> object:
        return _empty_if_none(value, [])

    @field_validator("imports", mode="before")
    @classmethod
    def _imports_or_empty(cls, value: object) -> object:
        return _empty_if_none(value, {})

    def to_payload(self) -> JSONObject:
        # Mirrors the omitempty tags on go/packages' flatPackage.
        payload = self.model_dump(mode="json", by_alias=True, exclude_defaults=True)
        if self.errors:
            payload["Errors"] = [
                error.model_dump(mode="json", by_alias=True) for error in self.errors
            ]
        return payload


class DriverResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Architecture size inference is not performed; always null.
    sizes: Optional[Dict[str, int]] = Field(None, alias="Sizes")
    roots: List[str] = Field([], alias="Roots")
    packages: List[PackageDescriptor] = Field([], alias="Packages")

    @field_validator("roots", "packages", mode="before")
    @classmethod
    def _list_or_empty(cls, value: object) -> object:
        return _empty_if_none(value, [])

    def to_payload(self) -> JSONObject:
        payload: JSONObject = {"Sizes": self.sizes}
        if self.roots:
            payload["Roots"] = list(self.roots)
        payload["Packages"] = [package.to_payload() for package in self.packages]
        return payload
