"""Pytest configuration and fixtures for simple-rest tests.

This file provides:
- RecordingTransport: httpx.MockTransport that keeps every request it served
- RawListener: loopback socket that captures fire-and-forget writes
- Fixtures: settings files, registries and clients wired to the transport
"""

from __future__ import annotations

import socket
import threading
from pathlib import Path
from typing import Any, Callable, Generator

import httpx
import pytest

from simple_rest.client import RestClient
from simple_rest.config_loader import SettingsResolver
from simple_rest.models import ParameterSet, SettingsFile
from simple_rest.registry import ClientRegistry


Handler = Callable[[httpx.Request], httpx.Response]


class RecordingTransport(httpx.MockTransport):
    """MockTransport that records requests and answers with a swappable handler.

    Usage:
        transport = RecordingTransport()
        transport.respond_with(lambda request: httpx.Response(200, text="ok"))
        ...
        assert transport.requests[0].method == "GET"
    """

    def __init__(self, handler: Handler | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self._handler: Handler = handler or (lambda request: httpx.Response(200, text="ok"))
        super().__init__(self._record)

    def respond_with(self, handler: Handler) -> None:
        self._handler = handler

    def _record(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        return self._handler(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


class RawListener:
    """Accepts one loopback connection and keeps everything written to it.

    Fire-and-forget writes never read a response; tests inspect the bytes
    received here instead.
    """

    def __init__(self) -> None:
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._socket.bind(("127.0.0.1", 0))
        self._socket.listen(1)
        self._socket.settimeout(5.0)
        self.port = self._socket.getsockname()[1]
        self._received = bytearray()
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        try:
            conn, _ = self._socket.accept()
        except OSError:
            return
        with conn:
            conn.settimeout(5.0)
            while True:
                try:
                    chunk = conn.recv(65536)
                except OSError:
                    break
                if not chunk:
                    break
                self._received.extend(chunk)

    def received(self, timeout: float = 5.0) -> bytes:
        """Wait for the writer to close the connection, then return its bytes."""
        self._thread.join(timeout)
        return bytes(self._received)

    def close(self) -> None:
        self._socket.close()


def find_closed_port() -> int:
    """Return a loopback port nothing is listening on (at the time of the call)."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def make_registry(
    clients: dict[str, list[dict[str, Any]]] | None = None,
    environment: str = "Development",
    client_type: str = "REST Clients",
    transport: httpx.BaseTransport | None = None,
) -> ClientRegistry:
    """Create a registry whose settings contain clients for one environment."""
    settings = SettingsFile(
        environments={
            environment: {
                client_type: {
                    name: [ParameterSet.model_validate(p) for p in profiles]
                    for name, profiles in (clients or {}).items()
                }
            }
        }
    )
    return ClientRegistry(SettingsResolver(settings), transport=transport)


# =============================================================================
# Pytest Fixtures
# =============================================================================


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def hbase_settings() -> dict[str, list[dict[str, Any]]]:
    """Read and write profiles for an 'hbase' client."""
    return {
        "hbase": [
            {"address": "http://hbase-read:8080", "allow": ["get"]},
            {"address": "http://hbase-write:8080", "allow": ["post", "put", "delete"]},
        ]
    }


@pytest.fixture
def registry(
    transport: RecordingTransport,
    hbase_settings: dict[str, list[dict[str, Any]]],
) -> Generator[ClientRegistry, None, None]:
    with make_registry(hbase_settings, transport=transport) as reg:
        yield reg


@pytest.fixture
def hbase(registry: ClientRegistry) -> RestClient:
    return RestClient("hbase", registry=registry)


@pytest.fixture
def adhoc(transport: RecordingTransport) -> Generator[RestClient, None, None]:
    """Ad-hoc client with no settings, talking to http://api.test/base."""
    registry = ClientRegistry(transport=transport)
    with registry:
        yield RestClient("http://api.test/base", registry=registry)


@pytest.fixture
def raw_listener() -> Generator[RawListener, None, None]:
    listener = RawListener()
    try:
        yield listener
    finally:
        listener.close()


@pytest.fixture
def settings_file(tmp_path: Path) -> Callable[[str], Path]:
    """Write YAML text to a settings file and return its path."""

    def _write(text: str) -> Path:
        path = tmp_path / "settings.yaml"
        path.write_text(text, encoding="utf-8")
        return path

    return _write


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Tag every test with the unit marker so `pytest -m unit` selects them."""
    for item in items:
        item.add_marker(pytest.mark.unit)
