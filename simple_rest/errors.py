"""Error types raised inside simple-rest.

Configuration and permission errors are raised by ``DataStore.acquire`` and
turned into ``None`` results by the verb methods. ``UnsupportedModeError`` is the
only error a verb call lets escape.
"""

from __future__ import annotations


class SimpleRestError(Exception):
    """Base class for simple-rest errors."""


class ConfigError(SimpleRestError):
    """Raised when the settings file cannot be loaded or validated."""


class NotConfiguredError(SimpleRestError):
    """Raised when no settings exist for a client and ad-hoc use is not allowed."""


class NotPermittedError(SimpleRestError):
    """Raised when settings exist but none of them allow the query type."""


class UnsupportedModeError(SimpleRestError):
    """Raised when asynchronous dispatch is requested."""


class TransferError(SimpleRestError):
    """Raised when a synchronous transfer fails (connection error, timeout, etc.)."""
