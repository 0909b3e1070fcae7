"""Exception hierarchy for the tgrelay Bot API SDK."""

from typing import Optional


class BotError(Exception):
    """Base class for every error raised by the SDK."""


class TransportError(BotError):
    """The request never produced an HTTP response (DNS, reset, timeout).

    Potentially transient.  The call engine never retries it on its own.
    """

    def __init__(self, method: str, reason: str) -> None:
        self.method = method
        self.reason = reason
        super().__init__(f"{method}: transport failure: {reason}")


class ProtocolError(BotError):
    """The response body is not a valid response envelope."""

    def __init__(self, reason: str, status_code: Optional[int] = None) -> None:
        self.reason = reason
        self.status_code = status_code
        suffix = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"Malformed response envelope: {reason}{suffix}")


class ApiError(BotError):
    """The platform rejected the call (bad parameters, permissions, rate limit).

    Attributes:
        error_code: Platform error code, usually mirroring the HTTP status.
        description: Human readable reason from the envelope.
        retry_after: Seconds to wait before repeating the call, when rate limited.
        migrate_to_chat_id: New chat id when a group was upgraded to a supergroup.
    """

    def __init__(
        self,
        error_code: int,
        description: str,
        retry_after: Optional[int] = None,
        migrate_to_chat_id: Optional[int] = None,
        method: Optional[str] = None,
    ) -> None:
        self.error_code = error_code
        self.description = description
        self.retry_after = retry_after
        self.migrate_to_chat_id = migrate_to_chat_id
        self.method = method
        prefix = f"{method}: " if method else ""
        super().__init__(f"{prefix}API error {error_code}: {description}")

    @property
    def is_rate_limit(self) -> bool:
        return self.retry_after is not None


class TypeMismatchError(BotError):
    """``result`` did not match the type the descriptor expects.

    Points at version skew between this library and the platform rather
    than at a caller mistake.
    """

    def __init__(self, expected: object, reason: str) -> None:
        self.expected = expected
        self.reason = reason
        name = getattr(expected, "__name__", repr(expected))
        super().__init__(f"Result does not match {name}: {reason}")
