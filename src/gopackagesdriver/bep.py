"""Protobuf wire encoders/decoders for bazel's binary build event log.

Only the subset of `build_event_stream.proto` that output-file resolution
needs is modelled. Everything else in the stream is skipped by wire type, so
newer bazel releases that add fields or event kinds still decode.

The log written by `--build_event_binary_file` is a sequence of `BuildEvent`
messages, each preceded by its varint-encoded length.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

from gopackagesdriver.exceptions import EventStreamDecodeError

# BuildEvent
_EVENT_ID = 1
_EVENT_COMPLETED = 8
_EVENT_NAMED_SET_OF_FILES = 15
_EVENT_LAST_MESSAGE = 20
# BuildEventId
_ID_TARGET_COMPLETED = 5
_ID_NAMED_SET = 13
# BuildEventId.TargetCompletedId / BuildEventId.NamedSetOfFilesId
_TARGET_COMPLETED_LABEL = 1
_NAMED_SET_ID = 1
# NamedSetOfFiles
_NAMED_SET_FILES = 1
_NAMED_SET_FILE_SETS = 2
# File
_FILE_NAME = 1
_FILE_URI = 2
_FILE_PATH_PREFIX = 4
# TargetComplete
_COMPLETE_SUCCESS = 1
_COMPLETE_OUTPUT_GROUP = 2
# OutputGroup
_GROUP_NAME = 1
_GROUP_FILE_SETS = 3
_GROUP_INCOMPLETE = 4

_WIRE_VARINT = 0
_WIRE_FIXED64 = 1
_WIRE_LENGTH_DELIMITED = 2
_WIRE_FIXED32 = 5


@dataclass(frozen=True)
class NamedSetOfFilesId:
    id: str


@dataclass(frozen=True)
class TargetCompletedId:
    label: str


@dataclass(frozen=True)
class File:
    name: str
    path_prefix: tuple[str, ...] = ()
    uri: str = ""

    @property
    def path(self) -> str:
        return "/".join([*self.path_prefix, self.name])


@dataclass(frozen=True)
class NamedSetOfFiles:
    files: tuple[File, ...] = ()
    file_sets: tuple[NamedSetOfFilesId, ...] = ()


@dataclass(frozen=True)
class OutputGroup:
    name: str
    file_sets: tuple[NamedSetOfFilesId, ...] = ()
    incomplete: bool = False


@dataclass(frozen=True)
class TargetComplete:
    success: bool = False
    output_groups: tuple[OutputGroup, ...] = ()


@dataclass(frozen=True)
class BuildEventId:
    target_completed: TargetCompletedId | None = None
    named_set: NamedSetOfFilesId | None = None


@dataclass(frozen=True)
class BuildEvent:
    id: BuildEventId = BuildEventId()
    last_message: bool = False
    named_set_of_files: NamedSetOfFiles | None = None
    completed: TargetComplete | None = None


def _encode_varint(value: int) -> bytes:
    out = bytearray()
    current = value
    while current > 0x7F:
        out.append((current & 0x7F) | 0x80)
        current >>= 7
    out.append(current)
    return bytes(out)


def _decode_varint(data: bytes, offset: int) -> tuple[int, int]:
    result = 0
    shift = 0
    index = offset
    while True:
        if index >= len(data):
            raise ValueError("truncated varint")
        byte = data[index]
        result |= (byte & 0x7F) << shift
        index += 1
        if byte < 0x80:
            return result, index
        shift += 7
        if shift >= 64:
            raise ValueError("varint too large")


def _key(field_number: int, wire_type: int) -> bytes:
    return _encode_varint((field_number << 3) | wire_type)


def _encode_bool(field_number: int, value: bool) -> bytes:
    if not value:
        return b""
    return _key(field_number, _WIRE_VARINT) + _encode_varint(1)


def _encode_string(field_number: int, value: str) -> bytes:
    raw = value.encode("utf-8")
    return _key(field_number, _WIRE_LENGTH_DELIMITED) + _encode_varint(len(raw)) + raw


def _encode_message(field_number: int, payload: bytes) -> bytes:
    return _key(field_number, _WIRE_LENGTH_DELIMITED) + _encode_varint(len(payload)) + payload


def _read_key(data: bytes, offset: int) -> tuple[int, int, int]:
    key, index = _decode_varint(data, offset)
    field = key >> 3
    if field == 0:
        raise ValueError("invalid field number 0")
    return field, key & 0b111, index


def _read_length_delimited(data: bytes, offset: int) -> tuple[bytes, int]:
    size, index = _decode_varint(data, offset)
    end = index + size
    if end > len(data):
        raise ValueError("truncated length-delimited field")
    return data[index:end], end


def _read_fixed(data: bytes, offset: int, width: int) -> int:
    end = offset + width
    if end > len(data):
        raise ValueError("truncated fixed-width field")
    return end


def _skip(data: bytes, offset: int, wire_type: int) -> int:
    if wire_type == _WIRE_VARINT:
        _, index = _decode_varint(data, offset)
        return index
    if wire_type == _WIRE_LENGTH_DELIMITED:
        _, index = _read_length_delimited(data, offset)
        return index
    if wire_type == _WIRE_FIXED64:
        return _read_fixed(data, offset, 8)
    if wire_type == _WIRE_FIXED32:
        return _read_fixed(data, offset, 4)
    raise ValueError(f"unsupported wire type: {wire_type}")


def _read_string(data: bytes, offset: int) -> tuple[str, int]:
    raw, index = _read_length_delimited(data, offset)
    return raw.decode("utf-8"), index


def serialize_named_set_id(set_id: NamedSetOfFilesId) -> bytes:
    return _encode_string(_NAMED_SET_ID, set_id.id)


def parse_named_set_id(data: bytes) -> NamedSetOfFilesId:
    set_id = ""
    index = 0
    while index < len(data):
        field, wire_type, index = _read_key(data, index)
        if field == _NAMED_SET_ID and wire_type == _WIRE_LENGTH_DELIMITED:
            set_id, index = _read_string(data, index)
            continue
        index = _skip(data, index, wire_type)
    return NamedSetOfFilesId(id=set_id)


def serialize_file(file: File) -> bytes:
    payload = [_encode_string(_FILE_NAME, file.name)]
    if file.uri:
        payload.append(_encode_string(_FILE_URI, file.uri))
    payload.extend(_encode_string(_FILE_PATH_PREFIX, prefix) for prefix in file.path_prefix)
    return b"".join(payload)


def parse_file(data: bytes) -> File:
    name = ""
    uri = ""
    path_prefix: list[str] = []
    index = 0
    while index < len(data):
        field, wire_type, index = _read_key(data, index)
        if field in {_FILE_NAME, _FILE_URI, _FILE_PATH_PREFIX} and wire_type == _WIRE_LENGTH_DELIMITED:
            text, index = _read_string(data, index)
            if field == _FILE_NAME:
                name = text
            elif field == _FILE_URI:
                uri = text
            else:
                path_prefix.append(text)
            continue
        index = _skip(data, index, wire_type)
    return File(name=name, path_prefix=tuple(path_prefix), uri=uri)


def serialize_named_set_of_files(named_set: NamedSetOfFiles) -> bytes:
    payload = [_encode_message(_NAMED_SET_FILES, serialize_file(file)) for file in named_set.files]
    payload.extend(
        _encode_message(_NAMED_SET_FILE_SETS, serialize_named_set_id(set_id))
        for set_id in named_set.file_sets
    )
    return b"".join(payload)


def parse_named_set_of_files(data: bytes) -> NamedSetOfFiles:
    files: list[File] = []
    file_sets: list[NamedSetOfFilesId] = []
    index = 0
    while index < len(data):
        field, wire_type, index = _read_key(data, index)
        if field in {_NAMED_SET_FILES, _NAMED_SET_FILE_SETS} and wire_type == _WIRE_LENGTH_DELIMITED:
            raw, index = _read_length_delimited(data, index)
            if field == _NAMED_SET_FILES:
                files.append(parse_file(raw))
            else:
                file_sets.append(parse_named_set_id(raw))
            continue
        index = _skip(data, index, wire_type)
    return NamedSetOfFiles(files=tuple(files), file_sets=tuple(file_sets))


def serialize_output_group(group: OutputGroup) -> bytes:
    payload = [_encode_string(_GROUP_NAME, group.name)]
    payload.extend(
        _encode_message(_GROUP_FILE_SETS, serialize_named_set_id(set_id))
        for set_id in group.file_sets
    )
    payload.append(_encode_bool(_GROUP_INCOMPLETE, group.incomplete))
    return b"".join(payload)


def parse_output_group(data: bytes) -> OutputGroup:
    name = ""
    file_sets: list[NamedSetOfFilesId] = []
    incomplete = False
    index = 0
    while index < len(data):
        field, wire_type, index = _read_key(data, index)
        if field == _GROUP_NAME and wire_type == _WIRE_LENGTH_DELIMITED:
            name, index = _read_string(data, index)
            continue
        if field == _GROUP_FILE_SETS and wire_type == _WIRE_LENGTH_DELIMITED:
            raw, index = _read_length_delimited(data, index)
            file_sets.append(parse_named_set_id(raw))
            continue
        if field == _GROUP_INCOMPLETE and wire_type == _WIRE_VARINT:
            value, index = _decode_varint(data, index)
            incomplete = value != 0
            continue
        index = _skip(data, index, wire_type)
    return OutputGroup(name=name, file_sets=tuple(file_sets), incomplete=incomplete)


def serialize_target_complete(completed: TargetComplete) -> bytes:
    payload = [_encode_bool(_COMPLETE_SUCCESS, completed.success)]
    payload.extend(
        _encode_message(_COMPLETE_OUTPUT_GROUP, serialize_output_group(group))
        for group in completed.output_groups
    )
    return b"".join(payload)


def parse_target_complete(data: bytes) -> TargetComplete:
    success = False
    output_groups: list[OutputGroup] = []
    index = 0
    while index < len(data):
        field, wire_type, index = _read_key(data, index)
        if field == _COMPLETE_SUCCESS and wire_type == _WIRE_VARINT:
            value, index = _decode_varint(data, index)
            success = value != 0
            continue
        if field == _COMPLETE_OUTPUT_GROUP and wire_type == _WIRE_LENGTH_DELIMITED:
            raw, index = _read_length_delimited(data, index)
            output_groups.append(parse_output_group(raw))
            continue
        index = _skip(data, index, wire_type)
    return TargetComplete(success=success, output_groups=tuple(output_groups))


def serialize_build_event_id(event_id: BuildEventId) -> bytes:
    payload: list[bytes] = []
    if event_id.target_completed is not None:
        payload.append(
            _encode_message(
                _ID_TARGET_COMPLETED,
                _encode_string(_TARGET_COMPLETED_LABEL, event_id.target_completed.label),
            )
        )
    if event_id.named_set is not None:
        payload.append(_encode_message(_ID_NAMED_SET, serialize_named_set_id(event_id.named_set)))
    return b"".join(payload)


def _parse_target_completed_id(data: bytes) -> TargetCompletedId:
    label = ""
    index = 0
    while index < len(data):
        field, wire_type, index = _read_key(data, index)
        if field == _TARGET_COMPLETED_LABEL and wire_type == _WIRE_LENGTH_DELIMITED:
            label, index = _read_string(data, index)
            continue
        index = _skip(data, index, wire_type)
    return TargetCompletedId(label=label)


def parse_build_event_id(data: bytes) -> BuildEventId:
    target_completed: TargetCompletedId | None = None
    named_set: NamedSetOfFilesId | None = None
    index = 0
    while index < len(data):
        field, wire_type, index = _read_key(data, index)
        if field == _ID_TARGET_COMPLETED and wire_type == _WIRE_LENGTH_DELIMITED:
            raw, index = _read_length_delimited(data, index)
            target_completed = _parse_target_completed_id(raw)
            continue
        if field == _ID_NAMED_SET and wire_type == _WIRE_LENGTH_DELIMITED:
            raw, index = _read_length_delimited(data, index)
            named_set = parse_named_set_id(raw)
            continue
        index = _skip(data, index, wire_type)
    return BuildEventId(target_completed=target_completed, named_set=named_set)


def serialize_build_event(event: BuildEvent) -> bytes:
    payload = [_encode_message(_EVENT_ID, serialize_build_event_id(event.id))]
    if event.completed is not None:
        payload.append(_encode_message(_EVENT_COMPLETED, serialize_target_complete(event.completed)))
    if event.named_set_of_files is not None:
        payload.append(
            _encode_message(
                _EVENT_NAMED_SET_OF_FILES,
                serialize_named_set_of_files(event.named_set_of_files),
            )
        )
    payload.append(_encode_bool(_EVENT_LAST_MESSAGE, event.last_message))
    return b"".join(payload)


def _parse_build_event(data: bytes) -> BuildEvent:
    event_id = BuildEventId()
    last_message = False
    named_set_of_files: NamedSetOfFiles | None = None
    completed: TargetComplete | None = None
    index = 0
    while index < len(data):
        field, wire_type, index = _read_key(data, index)
        if field == _EVENT_LAST_MESSAGE and wire_type == _WIRE_VARINT:
            value, index = _decode_varint(data, index)
            last_message = value != 0
            continue
        if field in {_EVENT_ID, _EVENT_COMPLETED, _EVENT_NAMED_SET_OF_FILES} and (
            wire_type == _WIRE_LENGTH_DELIMITED
        ):
            raw, index = _read_length_delimited(data, index)
            if field == _EVENT_ID:
                event_id = parse_build_event_id(raw)
            elif field == _EVENT_COMPLETED:
                completed = parse_target_complete(raw)
            else:
                named_set_of_files = parse_named_set_of_files(raw)
            continue
        index = _skip(data, index, wire_type)
    return BuildEvent(
        id=event_id,
        last_message=last_message,
        named_set_of_files=named_set_of_files,
        completed=completed,
    )


def parse_build_event(data: bytes) -> BuildEvent:
    try:
        return _parse_build_event(data)
    except ValueError as exc:
        raise EventStreamDecodeError(str(exc)) from exc


def iter_build_events(data: bytes) -> Iterator[BuildEvent]:
    """Decode length-delimited events up to and including the last message."""
    index = 0
    while True:
        if index >= len(data):
            raise EventStreamDecodeError("stream ended before the last message", offset=index)
        start = index
        try:
            raw, index = _read_length_delimited(data, index)
            event = _parse_build_event(raw)
        except ValueError as exc:
            raise EventStreamDecodeError(str(exc), offset=start) from exc
        yield event
        if event.last_message:
            return


def frame_build_events(events: Iterable[BuildEvent]) -> bytes:
    framed: list[bytes] = []
    for event in events:
        payload = serialize_build_event(event)
        framed.append(_encode_varint(len(payload)) + payload)
    return b"".join(framed)
