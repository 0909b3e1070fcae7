"""Response envelope decoding.

Every call answers with the same outer object::

    {"ok": true,  "result": ...}
    {"ok": false, "error_code": 429, "description": "...", "parameters": {"retry_after": 3}}

:func:`decode` turns raw bytes into a :class:`Success` or a
:class:`Failure` without knowing which method produced them; the caller
then validates ``Success.result`` into the type it expects with
:meth:`Success.parse`.
"""

from __future__ import annotations

import functools
import json
from typing import Any, Optional, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

from tgsdk.exceptions import ApiError, ProtocolError, TypeMismatchError
from tgsdk.models import ResponseParameters


@functools.lru_cache(maxsize=None)
def _adapter(result_type: Any) -> TypeAdapter:
    return TypeAdapter(result_type)


class Success(BaseModel):
    ok: bool = True
    result: Any = None

    def parse(self, result_type: Any = Any) -> Any:
        """Validate ``result`` into *result_type*.

        Raises:
            TypeMismatchError: If the result does not fit the expected shape.
        """
        if result_type is Any:
            return self.result
        try:
            return _adapter(result_type).validate_python(self.result)
        except ValidationError as exc:
            raise TypeMismatchError(result_type, str(exc)) from exc


class Failure(BaseModel):
    ok: bool = False
    error_code: int = 0
    description: str = "Unknown error"
    parameters: Optional[ResponseParameters] = None

    @property
    def retry_after(self) -> Optional[int]:
        return self.parameters.retry_after if self.parameters else None

    @property
    def migrate_to_chat_id(self) -> Optional[int]:
        return self.parameters.migrate_to_chat_id if self.parameters else None

    def to_error(self, method: Optional[str] = None) -> ApiError:
        return ApiError(
            self.error_code,
            self.description,
            retry_after=self.retry_after,
            migrate_to_chat_id=self.migrate_to_chat_id,
            method=method,
        )


ResponseEnvelope = Union[Success, Failure]


def decode(raw: bytes, status_code: Optional[int] = None) -> ResponseEnvelope:
    """Parse an envelope; *status_code* only enriches error messages.

    Raises:
        ProtocolError: If *raw* is not JSON or lacks a boolean ``ok``.
    """
    try:
        body = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as exc:
        raise ProtocolError(f"body is not JSON ({exc})", status_code) from exc

    if not isinstance(body, dict):
        raise ProtocolError(f"expected a JSON object, got {type(body).__name__}", status_code)
    ok = body.get("ok")
    if not isinstance(ok, bool):
        raise ProtocolError("missing boolean 'ok' field", status_code)

    try:
        if ok:
            if "result" not in body:
                raise ProtocolError("successful envelope without 'result'", status_code)
            return Success.model_validate(body)
        return Failure.model_validate(body)
    except ValidationError as exc:
        raise ProtocolError(f"invalid envelope fields ({exc.error_count()} errors)", status_code) from exc
