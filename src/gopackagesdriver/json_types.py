"""JSON value types for the driver request/response and package data files.

The driver only ever exchanges JSON with its caller and with the descriptor
files produced by the build, so payloads that have not yet been validated are
typed with these aliases instead of `Any`.
"""

from __future__ import annotations

from typing import TypeAlias


JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
JSONObject: TypeAlias = dict[str, JSONValue]
JSONArray: TypeAlias = list[JSONValue]
