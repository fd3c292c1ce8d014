"""ClientRegistry - the shared context every client instance works against.

One registry owns the loaded settings, the handle cache, the client-type level
hooks and the transfer defaults. Create it at startup, pass it to clients, and
close it at shutdown:

    with ClientRegistry.from_file() as registry:
        hbase = RestClient("hbase", "Production", registry=registry)
        rows = hbase.json().auto_convert().location("table/row1").get()
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Iterable, NamedTuple

import httpx

from simple_rest.config_loader import SettingsResolver, default_settings_path, load_settings
from simple_rest.hooks import HookRegistry
from simple_rest.log import set_debug
from simple_rest.models import ClientIdentity, ParameterSet
from simple_rest.transfer import DEFAULT_TIMEOUT, TransferHandle


logger = logging.getLogger(__name__)


class HandleKey(NamedTuple):
    """Cache key for one handle. query_type is a QueryType value or '*'."""

    client_type: str
    environment: str
    instance_name: str
    query_type: str

    @classmethod
    def for_identity(cls, identity: ClientIdentity, query_type: str) -> "HandleKey":
        return cls(identity.client_type, identity.environment, identity.instance_name, query_type)


class ClientRegistry:
    """Settings, cached handles and client-type hooks shared by clients.

    Usage:
        registry = ClientRegistry.from_file(Path("etc/settings.yaml"))
        try:
            ...
        finally:
            registry.close()
    """

    def __init__(
        self,
        resolver: SettingsResolver | None = None,
        transport: httpx.BaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the registry.

        Args:
            resolver: Settings lookup. An empty resolver means every client is ad-hoc.
            transport: Optional httpx transport used by every handle built here.
            timeout: Timeout in seconds for synchronous transfers.
        """
        self.resolver = resolver or SettingsResolver()
        self.transport = transport
        self.timeout = timeout

        self._handles: dict[HandleKey, TransferHandle] = {}
        self._class_hooks: dict[str, HookRegistry] = {}
        self._initialized: set[tuple[str, str]] = set()

        # One lock per identity guards the look-up-or-build sequence
        self._locks: dict[tuple[str, str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_file(
        cls,
        settings_path: Path | None = None,
        **kwargs: Any,
    ) -> "ClientRegistry":
        """Build a registry from a settings file (default: $SIMPLE_REST_SETTINGS)."""
        path = settings_path or default_settings_path()
        return cls(SettingsResolver(load_settings(path)), **kwargs)

    def __enter__(self) -> "ClientRegistry":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close every cached handle once and empty the cache.

        One handle is usually stored under several keys, so handles are
        de-duplicated by identity before closing.
        """
        seen: set[int] = set()
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            if id(handle) in seen:
                continue
            seen.add(id(handle))
            handle.close()

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def resolve(self, identity: ClientIdentity) -> list[ParameterSet]:
        return self.resolver.resolve(identity)

    def mark_initialized(self, client_type: str, environment: str) -> bool:
        """Record that a client type was set up for an environment.

        Returns True only the first time, so per-type setup runs once.
        """
        key = (client_type, environment)
        if key in self._initialized:
            return False
        self._initialized.add(key)
        return True

    # -------------------------------------------------------------------------
    # Handle cache
    # -------------------------------------------------------------------------

    def lock_for(self, identity: ClientIdentity) -> threading.Lock:
        key = (identity.client_type, identity.environment, identity.instance_name)
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def cached(self, key: HandleKey) -> TransferHandle | None:
        return self._handles.get(key)

    def store(self, handle: TransferHandle, keys: Iterable[HandleKey]) -> None:
        """Cache handle under each key. Existing entries are never replaced."""
        for key in keys:
            if key in self._handles:
                continue
            logger.debug("Caching handle for %s/%s/%s [%s]", *key)
            self._handles[key] = handle

    def cached_keys(self) -> list[HandleKey]:
        return list(self._handles)

    # -------------------------------------------------------------------------
    # Hooks and debug
    # -------------------------------------------------------------------------

    def hooks_for(self, client_type: str) -> HookRegistry:
        """Return the class-level hook registry for a client type."""
        hooks = self._class_hooks.get(client_type)
        if hooks is None:
            hooks = self._class_hooks[client_type] = HookRegistry()
        return hooks

    def debug(self, enabled: bool = True) -> None:
        set_debug(enabled)
