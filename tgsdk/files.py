"""File references accepted wherever a method takes a file parameter."""

from __future__ import annotations

import dataclasses
import enum
import mimetypes
import os
from typing import Iterator, Mapping, Optional

DEFAULT_CONTENT_TYPE = "application/octet-stream"
CHUNK_SIZE = 64 * 1024


class InputFileKind(enum.Enum):
    BYTES = "bytes"
    PATH = "path"
    FILE_ID = "file_id"
    URL = "url"


@dataclasses.dataclass(frozen=True)
class InputFile:
    """A file to send: inline bytes, a path on disk, or a remote reference.

    Build instances with the ``from_*`` constructors::

        InputFile.from_path("reports/weekly.pdf")
        InputFile.from_bytes(png_bytes, "chart.png")
        InputFile.from_file_id("AgACAgIAAxkBAAI…")

    Only ``BYTES`` and ``PATH`` references are uploaded; the other kinds
    are sent as plain strings the platform resolves itself.
    """

    kind: InputFileKind
    value: object = dataclasses.field(repr=False)
    filename: Optional[str] = None

    @classmethod
    def from_bytes(cls, data: bytes, filename: str) -> InputFile:
        if not filename:
            raise ValueError("inline file data needs a filename")
        return cls(InputFileKind.BYTES, bytes(data), filename)

    @classmethod
    def from_path(cls, path: str | os.PathLike, filename: Optional[str] = None) -> InputFile:
        path = os.fspath(path)
        return cls(InputFileKind.PATH, path, filename or os.path.basename(path))

    @classmethod
    def from_file_id(cls, file_id: str) -> InputFile:
        return cls(InputFileKind.FILE_ID, file_id)

    @classmethod
    def from_url(cls, url: str) -> InputFile:
        return cls(InputFileKind.URL, url)

    @property
    def is_upload(self) -> bool:
        return self.kind in (InputFileKind.BYTES, InputFileKind.PATH)

    @property
    def content_type(self) -> str:
        """MIME type guessed from the filename extension."""
        if not self.filename:
            return DEFAULT_CONTENT_TYPE
        guessed, _ = mimetypes.guess_type(self.filename)
        return guessed or DEFAULT_CONTENT_TYPE

    def size(self) -> int:
        """Number of bytes an upload will send."""
        if self.kind is InputFileKind.BYTES:
            return len(self.value)  # type: ignore[arg-type]
        if self.kind is InputFileKind.PATH:
            return os.path.getsize(self.value)  # type: ignore[arg-type]
        raise ValueError(f"{self.kind.value} references are not uploaded")

    def iter_chunks(self, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        """Yield the upload content; paths are read lazily, chunk by chunk."""
        if self.kind is InputFileKind.BYTES:
            yield self.value  # type: ignore[misc]
            return
        if self.kind is not InputFileKind.PATH:
            raise ValueError(f"{self.kind.value} references are not uploaded")
        with open(self.value, "rb") as fh:  # type: ignore[arg-type]
            while True:
                chunk = fh.read(chunk_size)
                if not chunk:
                    break
                yield chunk

    def __str__(self) -> str:
        if self.is_upload:
            return f"<upload {self.filename}>"
        return str(self.value)


def contains_upload(value: object) -> bool:
    """True if *value* is, or nests, an :class:`InputFile` that must be uploaded."""
    if isinstance(value, InputFile):
        return value.is_upload
    if isinstance(value, Mapping):
        return any(contains_upload(item) for item in value.values())
    if isinstance(value, (list, tuple)):
        return any(contains_upload(item) for item in value)
    return False
