"""Runtime settings — environment variables and derived values.

Loads a ``.env`` file via ``python-dotenv`` and reads every ``BOT_*``
option into an immutable :class:`Settings` instance.  Nothing is resolved
at import time; call :meth:`Settings.from_env` from the application entry
point.
"""

# ── stdlib ───────────────────────────────────────────────────────────────────
import dataclasses
import os
from typing import Mapping

# ── third-party ──────────────────────────────────────────────────────────────
from dotenv import load_dotenv

# ── core ─────────────────────────────────────────────────────────────────────
from tgcore.logger import RelayLogger

logger = RelayLogger.get_logger()

DEFAULT_API_HOST = "https://api.telegram.org"

# Published source ranges for webhook deliveries.
DEFAULT_WEBHOOK_NETWORKS: tuple[str, ...] = ("149.154.160.0/20", "91.108.4.0/22")


# ── Helper functions (private) ───────────────────────────────────────────────


def _parse_list(raw: str | None) -> tuple[str, ...]:
    """Split a comma-separated value, dropping empty tokens."""
    if not raw:
        return ()
    return tuple(token.strip() for token in raw.split(",") if token.strip())


def _parse_number(env: Mapping[str, str], key: str, default: float, cast: type = float):
    """Read a numeric option, falling back to *default* on bad input."""
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning("Invalid numeric setting, using default", extra={"setting": key, "value": raw, "default": default})
        return default
    if value < 0:
        logger.warning("Negative numeric setting, using default", extra={"setting": key, "value": raw, "default": default})
        return default
    return value


# ── Public API ───────────────────────────────────────────────────────────────


@dataclasses.dataclass(frozen=True)
class Settings:
    """Every option recognised by the client, the poller and the webhook."""

    token: str = ""
    api_host: str = DEFAULT_API_HOST
    timeout: float = 10.0              # per ordinary call, seconds
    proxy: str | None = None           # http://, https:// or socks5:// URL
    poll_timeout: int = 30             # server-side long-wait, seconds
    poll_limit: int = 100
    max_retry_backoff: float = 60.0
    allowed_updates: tuple[str, ...] = ()
    webhook_secret: str | None = None
    webhook_host: str = "0.0.0.0"
    webhook_port: int = 8443
    webhook_path: str = "/webhook"
    webhook_allowed_ips: tuple[str, ...] = ()
    log_level: str = "INFO"
    log_dir: str | None = None

    @property
    def base_url(self) -> str:
        """Call base URL, ``https://<host>/bot<token>``."""
        return f"{self.api_host.rstrip('/')}/bot{self.token}"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, *, dotenv: bool = True) -> "Settings":
        """Build settings from *env* (defaults to :data:`os.environ`).

        When *dotenv* is true a ``.env`` file in the working directory is
        loaded first; variables already set in the process win.
        """
        if dotenv:
            load_dotenv()
        if env is None:
            env = os.environ

        settings = cls(
            token=env.get("BOT_TOKEN", ""),
            api_host=env.get("BOT_API_HOST") or DEFAULT_API_HOST,
            proxy=env.get("BOT_PROXY") or None,
            timeout=_parse_number(env, "BOT_TIMEOUT", 10.0),
            poll_timeout=_parse_number(env, "BOT_POLL_TIMEOUT", 30, int),
            poll_limit=_parse_number(env, "BOT_POLL_LIMIT", 100, int),
            max_retry_backoff=_parse_number(env, "BOT_MAX_RETRY_BACKOFF", 60.0),
            allowed_updates=_parse_list(env.get("BOT_ALLOWED_UPDATES")),
            webhook_secret=env.get("BOT_WEBHOOK_SECRET") or None,
            webhook_host=env.get("BOT_WEBHOOK_HOST") or "0.0.0.0",
            webhook_port=_parse_number(env, "BOT_WEBHOOK_PORT", 8443, int),
            webhook_path=env.get("BOT_WEBHOOK_PATH") or "/webhook",
            webhook_allowed_ips=_parse_list(env.get("BOT_WEBHOOK_ALLOWED_IPS")),
            log_level=env.get("BOT_LOG_LEVEL") or "INFO",
            log_dir=env.get("BOT_LOG_DIR") or None,
        )

        if settings.token:
            logger.info("Settings loaded — BOT_TOKEN is set", extra={"api_host": settings.api_host, "proxy": bool(settings.proxy)})
        else:
            logger.warning("Settings loaded — BOT_TOKEN is NOT set")
        return settings
