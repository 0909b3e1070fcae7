"""Ambient concerns shared by every layer — logging and settings.

This package must NEVER import from ``tgsdk/`` or ``tgbot/``.
"""

from tgcore.config import Settings
from tgcore.logger import RelayLogger

__all__ = [
    "RelayLogger",
    "Settings",
]
