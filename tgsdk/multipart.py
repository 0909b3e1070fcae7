"""Request body encoding — compact JSON or streaming ``multipart/form-data``.

:func:`encode_body` picks the encoding: any parameter that holds an
uploadable :class:`~tgsdk.files.InputFile` (directly or nested inside a
structured value such as a media group) selects multipart, everything else
is sent as a single JSON object.

A :class:`MultipartBody` has a known ``len()`` and streams its parts
through :attr:`MultipartBody.data`.  The transport sends it with a fixed
``Content-Length`` while path-backed files are read chunk by chunk, so an
upload never sits in memory as a whole.
"""

from __future__ import annotations

import enum
import json
import uuid
from typing import Any, AsyncIterator, Iterator, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel

from tgsdk.files import InputFile, contains_upload

CRLF = b"\r\n"
ATTACH_PREFIX = "attach://"


def to_jsonable(value: Any) -> Any:
    """Convert models, enums and remote file references to plain JSON data."""
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True, mode="json")
    if isinstance(value, InputFile):
        if value.is_upload:
            raise ValueError(f"upload {value.filename!r} cannot be JSON encoded")
        return value.value
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, Mapping):
        return {key: to_jsonable(item) for key, item in value.items() if item is not None}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    return value


def dumps(value: Any) -> str:
    """Compact JSON text."""
    return json.dumps(to_jsonable(value), separators=(",", ":"), ensure_ascii=False)


def _field_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, InputFile):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return dumps(value)


def _quote(name: str) -> str:
    return name.replace("\\", "\\\\").replace('"', "%22").replace("\r", "%0D").replace("\n", "%0A")


class JsonBody:
    """A compact JSON object body."""

    content_type = "application/json"

    def __init__(self, params: Mapping[str, Any]) -> None:
        self.data: bytes = dumps(dict(params)).encode("utf-8")

    def __len__(self) -> int:
        return len(self.data)


class MultipartBody:
    """A ``multipart/form-data`` body: text fields first, then files.

    Part order follows parameter order, which keeps the output
    deterministic for a fixed *boundary*.
    """

    def __init__(
        self,
        fields: List[Tuple[str, str]],
        files: List[Tuple[str, InputFile]],
        boundary: Optional[str] = None,
    ) -> None:
        self.fields = fields
        self.files = files
        self.boundary = boundary or uuid.uuid4().hex

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    @property
    def data(self) -> AsyncIterator[bytes]:
        """The encoded body as an async byte stream."""
        return self._stream()

    async def _stream(self) -> AsyncIterator[bytes]:
        for chunk in self:
            yield chunk

    def _field_head(self, name: str) -> bytes:
        return (
            f"--{self.boundary}\r\n"
            f'Content-Disposition: form-data; name="{_quote(name)}"\r\n'
            "\r\n"
        ).encode("utf-8")

    def _file_head(self, name: str, file: InputFile) -> bytes:
        return (
            f"--{self.boundary}\r\n"
            f'Content-Disposition: form-data; name="{_quote(name)}"; filename="{_quote(file.filename or name)}"\r\n'
            f"Content-Type: {file.content_type}\r\n"
            "\r\n"
        ).encode("utf-8")

    def _tail(self) -> bytes:
        return f"--{self.boundary}--\r\n".encode("utf-8")

    def __iter__(self) -> Iterator[bytes]:
        for name, text in self.fields:
            yield self._field_head(name) + text.encode("utf-8") + CRLF
        for name, file in self.files:
            yield self._file_head(name, file)
            yield from file.iter_chunks()
            yield CRLF
        yield self._tail()

    def __len__(self) -> int:
        total = len(self._tail())
        for name, text in self.fields:
            total += len(self._field_head(name)) + len(text.encode("utf-8")) + len(CRLF)
        for name, file in self.files:
            total += len(self._file_head(name, file)) + file.size() + len(CRLF)
        return total


class _Attacher:
    """Collects nested uploads, replacing them with ``attach://`` names."""

    def __init__(self, taken: set) -> None:
        self.files: List[Tuple[str, InputFile]] = []
        self._taken = taken

    def _name(self) -> str:
        index = len(self.files)
        name = f"file{index}"
        while name in self._taken:
            index += 1
            name = f"file{index}"
        self._taken.add(name)
        return name

    def replace(self, value: Any) -> Any:
        if isinstance(value, InputFile) and value.is_upload:
            name = self._name()
            self.files.append((name, value))
            return ATTACH_PREFIX + name
        if isinstance(value, BaseModel):
            return self.replace(value.model_dump(by_alias=True, exclude_none=True))
        if isinstance(value, Mapping):
            return {key: self.replace(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.replace(item) for item in value]
        return value


def encode_multipart(params: Mapping[str, Any], boundary: Optional[str] = None) -> MultipartBody:
    """Split *params* into text fields and file parts."""
    fields: List[Tuple[str, str]] = []
    files: List[Tuple[str, InputFile]] = []
    attacher = _Attacher(set(params))

    for name, value in params.items():
        if isinstance(value, InputFile) and value.is_upload:
            files.append((name, value))
        else:
            fields.append((name, _field_text(attacher.replace(value))))

    return MultipartBody(fields, files + attacher.files, boundary)


def encode_body(params: Mapping[str, Any], boundary: Optional[str] = None) -> Union[JsonBody, MultipartBody]:
    """Choose and build the wire body for *params*."""
    if any(contains_upload(value) for value in params.values()):
        return encode_multipart(params, boundary)
    return JsonBody(params)
