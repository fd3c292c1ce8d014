"""Transfer handles - cached httpx clients plus the settings they were built from.

A TransferHandle is immutable. Per-call changes (location, headers, redirect
flag) are applied with ``with_overrides``, which returns a copy sharing the
same underlying ``httpx.Client``.
"""

from __future__ import annotations

import logging
import time
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any, NamedTuple

import httpx
from pydantic import BaseModel, ConfigDict, Field

from simple_rest.errors import TransferError


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class RawTransfer(NamedTuple):
    """Header block and body as one byte string, plus transfer info."""

    raw: bytes
    header_size: int
    info: dict[str, Any]


def open_client(
    user_agent: str | None = None,
    transport: httpx.BaseTransport | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> httpx.Client:
    """Create the httpx client backing a handle.

    TLS verification is always off and redirects are opt-in per request.
    httpx never stores cookies itself; the only cookies sent are the ones a
    client puts in its Cookie header.
    """
    headers = {"User-Agent": user_agent} if user_agent else None
    return httpx.Client(
        headers=headers,
        cookies=CookieJar(policy=DefaultCookiePolicy(allowed_domains=[])),
        verify=False,
        follow_redirects=False,
        timeout=timeout,
        transport=transport,
    )


def header_pairs(lines: tuple[str, ...] | list[str]) -> list[tuple[str, str]]:
    """Convert 'Name: Value' lines into pairs. Lines without a colon are skipped."""
    pairs: list[tuple[str, str]] = []
    for line in lines:
        name, sep, value = line.partition(":")
        if not sep or not name.strip():
            continue
        pairs.append((name.strip(), value.strip()))
    return pairs


def build_header_block(response: httpx.Response) -> str:
    """Rebuild the response header block: status line, raw headers, blank line."""
    status_line = f"{response.http_version} {response.status_code} {response.reason_phrase}".rstrip()
    lines = [status_line]
    for name, value in response.headers.raw:
        lines.append(f"{name.decode('latin-1')}: {value.decode('latin-1')}")
    return "\r\n".join(lines) + "\r\n\r\n"


class TransferHandle(BaseModel):
    """A reusable transfer resource bound to one address."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    client: httpx.Client = Field(description="Underlying transfer library handle")
    address: str = Field(description="Resolved target URL")
    headers: tuple[str, ...] = Field(default=(), description="'Name: Value' lines to send")
    settings: dict[str, Any] = Field(default_factory=dict, description="Resolved parameter set")
    follow_redirects: bool = Field(default=False, description="Follow 3xx responses")
    ephemeral: bool = Field(default=False, description="Not cached; closed after one dispatch")

    def with_overrides(self, **changes: Any) -> "TransferHandle":
        """Return a copy with changes applied. The original is left untouched."""
        if "headers" in changes:
            changes["headers"] = tuple(changes["headers"])
        return self.model_copy(update=changes)

    def execute(
        self,
        method: str,
        url: str | None = None,
        content: bytes | None = None,
    ) -> RawTransfer:
        """Send one request and return the raw header+body bytes.

        Raises:
            TransferError: If the request fails (connection error, timeout, etc.).
        """
        target = url or self.address
        start_time = time.perf_counter()
        try:
            response = self.client.request(
                method,
                target,
                headers=header_pairs(self.headers) or None,
                content=content or None,
                follow_redirects=self.follow_redirects,
            )
        except httpx.TimeoutException as e:
            raise TransferError(f"{method} {target} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransferError(f"{method} {target} failed: {e}") from e
        except UnicodeEncodeError as e:
            raise TransferError(
                f"{method} {target} has non-ASCII characters in a header or URL: "
                f"{e.object[e.start:e.end]!r}"
            ) from e
        total_time = time.perf_counter() - start_time

        header_block = build_header_block(response).encode("latin-1")
        body = response.content
        info = {
            "url": str(response.url),
            "http_code": response.status_code,
            "content_type": response.headers.get("content-type"),
            "header_size": len(header_block),
            "size_download": len(body),
            "total_time": total_time,
            "redirect_count": len(response.history),
        }
        logger.debug("%s %s -> %s (%.3fs)", method, target, response.status_code, total_time)
        return RawTransfer(header_block + body, len(header_block), info)

    def close(self) -> None:
        self.client.close()
