"""Dispatch helpers - mode selection, body encoding and fire-and-forget writes.

Fire-and-forget requests bypass httpx entirely: a raw socket is opened, a
minimal HTTP/1.1 request is written and the socket is closed without reading
anything back.
"""

from __future__ import annotations

import logging
import socket
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any
from urllib.parse import urlencode, urlsplit


logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 30.0
DEFAULT_PORT = 80
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

RequestData = Mapping[str, Any] | Sequence[tuple[str, Any]] | str | bytes | None


class DispatchMode(str, Enum):
    """How a verb call is executed."""

    ASYNC = "async"
    FIRE_AND_FORGET = "fire_and_forget"
    SYNC = "sync"


def select_mode(asynchronous: bool, wait: bool) -> DispatchMode:
    """Pick the dispatch mode. Async wins over no-wait, which wins over sync."""
    if asynchronous:
        return DispatchMode.ASYNC
    if not wait:
        return DispatchMode.FIRE_AND_FORGET
    return DispatchMode.SYNC


def encode_form(data: RequestData) -> str:
    """Form-url-encode a mapping or a sequence of pairs. Lists repeat the key."""
    if not data:
        return ""
    if isinstance(data, (str, bytes)):
        raise TypeError("encode_form expects a mapping or pairs; pass skip_encoding=True for raw bodies")
    return urlencode(data, doseq=True)


def encode_body(data: RequestData, skip_encoding: bool = False) -> bytes:
    """Encode a POST/PUT body.

    Form-url-encoded by default. With skip_encoding, str and bytes pass through
    unchanged (str as UTF-8).
    """
    if data is None:
        return b""
    if skip_encoding:
        if isinstance(data, bytes):
            return data
        return str(data).encode("utf-8")
    return encode_form(data).encode("ascii")


def append_query(url: str, params: RequestData) -> str:
    """Append encoded params to url as a query string."""
    query = encode_form(params)
    if not query:
        return url
    joiner = "&" if "?" in url else "?"
    return f"{url}{joiner}{query}"


def _flatten_lists(data: RequestData) -> RequestData:
    """Join list values with commas, the way raw fire-and-forget bodies carry them."""
    if not isinstance(data, Mapping):
        return data
    return {
        key: ",".join(str(v) for v in value) if isinstance(value, (list, tuple)) else value
        for key, value in data.items()
    }


def build_raw_request(
    url: str,
    method: str,
    params: RequestData = None,
    skip_encoding: bool = False,
) -> tuple[str, int, bytes]:
    """Build (host, port, request bytes) for a fire-and-forget write.

    GET requests fold params into the path and send an empty body; other
    methods send them as a form-encoded body.
    """
    parts = urlsplit(url)
    host = parts.hostname or ""
    port = parts.port or DEFAULT_PORT
    method = method.upper()

    path = parts.path or "/"
    query = parts.query
    if method == "GET":
        extra = encode_form(params) if params else ""
        query = "&".join(q for q in (query, extra) if q)
        body = b""
    elif skip_encoding:
        body = encode_body(params, skip_encoding=True)
    else:
        body = encode_form(_flatten_lists(params)).encode("ascii")
    if query:
        path = f"{path}?{query}"

    host_header = f"{host}:{parts.port}" if parts.port else host
    head = (
        f"{method} {path} HTTP/1.1\r\n"
        f"Host: {host_header}\r\n"
        f"Content-Type: {FORM_CONTENT_TYPE}\r\n"
        f"Content-Length: {len(body)}\r\n"
        "Connection: Close\r\n\r\n"
    )
    return host, port, head.encode("latin-1") + body


def fire_and_forget(
    url: str,
    method: str,
    params: RequestData = None,
    skip_encoding: bool = False,
    connect_timeout: float = CONNECT_TIMEOUT,
) -> int | None:
    """Write a request without waiting for the response.

    Returns:
        Number of bytes written, or None if the connection could not be opened
        or the URL has no usable port.
    """
    try:
        host, port, payload = build_raw_request(url, method, params, skip_encoding)
    except ValueError as e:
        logger.warning("Cannot build %s request for %s: %s", method.upper(), url, e)
        return None

    try:
        sock = socket.create_connection((host, port), timeout=connect_timeout)
    except OSError as e:
        logger.warning("Could not connect to %s:%s for %s: %s", host, port, method.upper(), e)
        return None

    try:
        sock.sendall(payload)
    except OSError as e:
        logger.warning("Write to %s:%s failed: %s", host, port, e)
        return None
    finally:
        sock.close()

    logger.debug("Wrote %d bytes to %s:%s without waiting", len(payload), host, port)
    return len(payload)
