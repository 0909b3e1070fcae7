"""Structured logging for tgrelay.

All packages log through one ``logging.Logger`` named ``tgrelay``.  Each
record is rendered as a JSON line on stderr and, once a log directory is
configured, appended to ``<log_dir>/tgrelay.log`` with size-based rotation.

Call sites pass context through ``extra``::

    logger.info("Batch delivered", extra={"count": 3, "offset": 1042})

which ends up as top-level keys of the JSON line.
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Iterator, Optional

# Attributes every LogRecord carries; anything else on a record came from ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", (), None))
) | {"message", "asctime"}


class _JsonFormatter(logging.Formatter):
    """Render a record as one JSON object: fixed envelope keys, then extras."""

    def _envelope(self, record: logging.LogRecord) -> Dict[str, Any]:
        return {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "func_name": record.funcName,
        }

    @staticmethod
    def _extras(record: logging.LogRecord) -> Iterator[tuple]:
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                yield key, value

    def format(self, record: logging.LogRecord) -> str:
        entry = self._envelope(record)
        for key, value in self._extras(record):
            entry.setdefault(key, value)
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)
        # Non-JSON values (enums, exceptions, paths) fall back to str().
        return json.dumps(entry, ensure_ascii=False, default=str)


class RelayLogger:
    """Process-wide owner of the ``tgrelay`` logger and its handlers.

    Modules grab the logger at import time with :meth:`get_logger`; the
    entry point calls :meth:`configure` once settings are known, which
    swaps the handlers in place so those module-level references keep
    working.
    """

    _instance: Optional["RelayLogger"] = None
    _logger: Optional[logging.Logger] = None

    LOGGER_NAME: str = "tgrelay"

    _LOG_FILE: str = "tgrelay.log"
    _MAX_BYTES: int = 5 * 1024 * 1024
    _BACKUP_COUNT: int = 5

    def __new__(cls, level: int = logging.INFO, log_dir: str | None = None) -> "RelayLogger":
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._setup(level, log_dir)
            cls._instance = instance
        return cls._instance

    def _setup(self, level: int, log_dir: str | None) -> None:
        logger = logging.getLogger(self.LOGGER_NAME)
        logger.setLevel(level)
        # Already wired, e.g. by a previous import of a reloaded module.
        if not logger.handlers:
            formatter = _JsonFormatter()
            for handler in self._handlers(log_dir):
                handler.setLevel(level)
                handler.setFormatter(formatter)
                logger.addHandler(handler)
        self._logger = logger

    def _handlers(self, log_dir: str | None) -> Iterator[logging.Handler]:
        yield logging.StreamHandler()
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            yield RotatingFileHandler(
                os.path.join(log_dir, self._LOG_FILE),
                maxBytes=self._MAX_BYTES,
                backupCount=self._BACKUP_COUNT,
                encoding="utf-8",
            )

    @staticmethod
    def get_logger(level: int = logging.INFO) -> logging.Logger:
        """The ``tgrelay`` logger; *level* only matters on the very first call."""
        logger = RelayLogger(level)._logger
        assert logger is not None
        return logger

    @classmethod
    def configure(cls, level: int | str = logging.INFO, log_dir: str | None = None) -> logging.Logger:
        """Replace the handlers with ones at *level*, plus a file under *log_dir*.

        *level* may be a name such as ``"debug"``; unknown names mean INFO.
        """
        if isinstance(level, str):
            resolved = logging.getLevelName(level.upper())
            level = resolved if isinstance(resolved, int) else logging.INFO
        if cls._instance is not None:
            cls._instance.cleanup()
            cls._instance = None
        logger = cls(level, log_dir)._logger
        assert logger is not None
        return logger

    def cleanup(self) -> None:
        """Detach the handlers, flushing and closing each one."""
        if self._logger is None:
            return
        while self._logger.handlers:
            handler = self._logger.handlers[-1]
            handler.flush()
            handler.close()
            self._logger.removeHandler(handler)
