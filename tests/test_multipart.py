"""Tests for request body encoding — JSON vs streaming multipart."""

import json
import sys
import os

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from tgsdk.files import CHUNK_SIZE, InputFile, InputFileKind, contains_upload
from tgsdk.multipart import JsonBody, MultipartBody, dumps, encode_body


def render(body: MultipartBody) -> bytes:
    return b"".join(body)


# ── Encoding choice ──────────────────────────────────────────────────────────


class TestEncodeBody:
    """Uploads select multipart; everything else stays JSON."""

    @pytest.mark.parametrize(
        "params",
        [
            {"chat_id": 42, "text": "hello"},
            {"chat_id": "@channel", "text": "ünïcödé ✓", "disable_notification": False},
            {"offset": 10, "allowed_updates": ["message", "callback_query"], "timeout": 0},
            {"commands": [{"command": "start", "description": "Start the bot"}]},
        ],
    )
    def test_json_round_trip(self, params: dict) -> None:
        body = encode_body(params)
        assert isinstance(body, JsonBody)
        assert json.loads(body.data) == params
        assert len(body) == len(body.data)

    def test_json_is_compact(self) -> None:
        assert dumps({"a": 1, "b": [1, 2]}) == '{"a":1,"b":[1,2]}'

    def test_remote_reference_stays_json(self) -> None:
        body = encode_body({"chat_id": 1, "photo": InputFile.from_file_id("AgAD123")})
        assert isinstance(body, JsonBody)
        assert json.loads(body.data) == {"chat_id": 1, "photo": "AgAD123"}

    def test_url_reference_stays_json(self) -> None:
        body = encode_body({"chat_id": 1, "document": InputFile.from_url("https://example.com/a.pdf")})
        assert json.loads(body.data)["document"] == "https://example.com/a.pdf"


# ── Multipart layout ─────────────────────────────────────────────────────────


class TestMultipart:
    """Validate part layout, MIME types and Content-Length."""

    def test_single_file_exact_layout(self) -> None:
        body = encode_body(
            {"chat_id": 42, "photo": InputFile.from_bytes(b"abc", "photo.png")},
            boundary="XyZ",
        )

        assert isinstance(body, MultipartBody)
        assert body.content_type == "multipart/form-data; boundary=XyZ"
        expected = (
            b"--XyZ\r\n"
            b'Content-Disposition: form-data; name="chat_id"\r\n'
            b"\r\n"
            b"42\r\n"
            b"--XyZ\r\n"
            b'Content-Disposition: form-data; name="photo"; filename="photo.png"\r\n'
            b"Content-Type: image/png\r\n"
            b"\r\n"
            b"abc\r\n"
            b"--XyZ--\r\n"
        )
        assert render(body) == expected
        assert len(body) == len(expected)

    def test_unknown_extension_is_octet_stream(self) -> None:
        body = encode_body({"document": InputFile.from_bytes(b"\x00\x01", "data.bin")}, boundary="b")
        assert b"Content-Type: application/octet-stream\r\n" in render(body)

    def test_no_extension_is_octet_stream(self) -> None:
        assert InputFile.from_bytes(b"x", "README").content_type == "application/octet-stream"

    def test_scalar_fields_are_plain_text(self) -> None:
        body = encode_body(
            {
                "chat_id": 7,
                "document": InputFile.from_bytes(b"x", "a.txt"),
                "disable_content_type_detection": True,
                "reply_markup": {"inline_keyboard": [[{"text": "Go", "url": "https://example.com"}]]},
            },
            boundary="b",
        )
        fields = dict(body.fields)
        assert fields["chat_id"] == "7"
        assert fields["disable_content_type_detection"] == "true"
        assert json.loads(fields["reply_markup"]) == {"inline_keyboard": [[{"text": "Go", "url": "https://example.com"}]]}

    def test_path_upload_is_streamed_in_chunks(self, tmp_path) -> None:
        payload = os.urandom(CHUNK_SIZE * 3 + 100)
        path = tmp_path / "report.pdf"
        path.write_bytes(payload)
        upload = InputFile.from_path(path)

        assert upload.kind is InputFileKind.PATH
        assert upload.filename == "report.pdf"
        assert upload.size() == len(payload)
        chunks = list(upload.iter_chunks())
        assert len(chunks) == 4
        assert all(len(chunk) <= CHUNK_SIZE for chunk in chunks)

        body = encode_body({"chat_id": 1, "document": upload}, boundary="B")
        rendered = render(body)
        assert len(body) == len(rendered)
        assert payload in rendered
        assert b"Content-Type: application/pdf\r\n" in rendered

    def test_nested_uploads_are_attached(self) -> None:
        media = [
            {"type": "photo", "media": InputFile.from_bytes(b"one", "a.jpg"), "caption": "first"},
            {"type": "photo", "media": InputFile.from_file_id("AgAD42")},
            {"type": "photo", "media": InputFile.from_bytes(b"two", "b.jpg")},
        ]
        body = encode_body({"chat_id": 1, "media": media}, boundary="M")

        assert isinstance(body, MultipartBody)
        assert json.loads(dict(body.fields)["media"]) == [
            {"type": "photo", "media": "attach://file0", "caption": "first"},
            {"type": "photo", "media": "AgAD42"},
            {"type": "photo", "media": "attach://file1"},
        ]
        assert [name for name, _ in body.files] == ["file0", "file1"]
        assert b'name="file1"; filename="b.jpg"' in render(body)

    def test_random_boundary_per_body(self) -> None:
        upload = InputFile.from_bytes(b"x", "x.txt")
        first = encode_body({"document": upload})
        second = encode_body({"document": upload})
        assert first.boundary != second.boundary


# ── InputFile ────────────────────────────────────────────────────────────────


class TestInputFile:
    """Validate construction rules and the upload check."""

    def test_bytes_need_filename(self) -> None:
        with pytest.raises(ValueError):
            InputFile.from_bytes(b"x", "")

    def test_remote_reference_has_no_size(self) -> None:
        with pytest.raises(ValueError):
            InputFile.from_file_id("abc").size()

    def test_contains_upload_recurses(self) -> None:
        assert contains_upload({"media": [{"media": InputFile.from_bytes(b"x", "x.png")}]})
        assert not contains_upload({"media": [{"media": InputFile.from_url("https://x")}]})
        assert not contains_upload("plain")

    def test_repr_hides_content(self) -> None:
        assert "secret-bytes" not in repr(InputFile.from_bytes(b"secret-bytes", "a.bin"))
