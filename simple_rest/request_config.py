"""Request Configurator - chainable request settings merged in before dispatch.

Merge order when a handle is about to be used:

1. location: absolute URLs (containing '://') replace the address, anything
   else is appended to it as a path segment
2. Accept header
3. Content-Type header
4. ad-hoc headers, then the cookie jar as one Cookie header
5. duplicate lines removed (first occurrence kept)
6. redirect flag

The merge always produces a copy. The cached handle is never modified, so two
clients sharing a handle cannot see each other's headers.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Self

from simple_rest.models import AcceptFormat, PendingRequestOverrides
from simple_rest.transfer import TransferHandle


ACCEPT_HEADERS: dict[AcceptFormat, str] = {
    AcceptFormat.BINARY: "application/octet-stream",
    AcceptFormat.HTML: "text/html",
    AcceptFormat.JSON: "application/json",
    AcceptFormat.PLAIN: "text/plain",
    AcceptFormat.PROTOBUF: "application/x-protobuf",
    AcceptFormat.XML: "text/xml",
}

XML_CONTENT_TYPE = "text/xml"
JSON_CONTENT_TYPE = "application/json"


def _header_name(line: str) -> str:
    return line.partition(":")[0].strip().lower()


def _header_lines(headers: Mapping[str, str] | Iterable[str]) -> list[str]:
    if isinstance(headers, str):
        return [headers]
    if isinstance(headers, Mapping):
        return [f"{name}: {value}" for name, value in headers.items()]
    return [str(line) for line in headers]


def join_address(address: str, location: str) -> str:
    """Resolve location against address.

    Examples:
        ("http://host/base", "rows/1")        -> "http://host/base/rows/1"
        ("http://host/base", "http://other/x") -> "http://other/x"
    """
    if not location:
        return address
    if "://" in location:
        return location
    return f"{address.rstrip('/')}/{location.lstrip('/')}"


def dedupe_headers(lines: Iterable[str]) -> list[str]:
    """Remove repeated lines, keeping the first occurrence and the order."""
    return list(dict.fromkeys(lines))


class RequestConfigurator:
    """Accumulates request overrides for one client instance."""

    def __init__(self) -> None:
        self.overrides = PendingRequestOverrides()

    # -------------------------------------------------------------------------
    # Location and headers
    # -------------------------------------------------------------------------

    def location(self, url: str = "") -> Self:
        self.overrides.location = url or ""
        return self

    def headers(
        self,
        headers: Mapping[str, str] | Iterable[str] | None = None,
        merge: bool = False,
    ) -> Self:
        """Set ad-hoc headers, replacing the previous set unless merge is True.

        A single string is taken as one "Name: Value" line.
        """
        lines = _header_lines(headers or {})
        if merge:
            self.overrides.headers = self.overrides.headers + lines
        else:
            self.overrides.headers = lines
        return self

    def add_header(self, name: str, value: str) -> Self:
        """Set one ad-hoc header, replacing any earlier value for that name."""
        self.remove_header(name)
        self.overrides.headers.append(f"{name}: {value}")
        return self

    def remove_header(self, name: str) -> Self:
        wanted = name.strip().lower()
        self.overrides.headers = [
            line for line in self.overrides.headers if _header_name(line) != wanted
        ]
        return self

    # -------------------------------------------------------------------------
    # Formats
    # -------------------------------------------------------------------------

    def binary(self) -> Self:
        self._set_accept(AcceptFormat.BINARY)
        return self

    def html(self) -> Self:
        self._set_accept(AcceptFormat.HTML)
        self.overrides.content_type = None
        return self

    def json(self, accepts: bool = True, content_type: bool = False) -> Self:
        """Ask for JSON responses; optionally declare a JSON request body too."""
        if content_type:
            self.overrides.content_type = JSON_CONTENT_TYPE
        if accepts:
            self._set_accept(AcceptFormat.JSON)
        return self

    def plain(self) -> Self:
        self._set_accept(AcceptFormat.PLAIN)
        self.overrides.content_type = None
        return self

    def protobuf(self) -> Self:
        self._set_accept(AcceptFormat.PROTOBUF)
        self.overrides.content_type = None
        return self

    def xml(self, version: str = "1.0") -> Self:
        self._set_accept(AcceptFormat.XML)
        self.overrides.content_type = XML_CONTENT_TYPE
        self.overrides.xml_version = version
        return self

    def _set_accept(self, fmt: AcceptFormat) -> None:
        self.overrides.accept_format = fmt
        self.overrides.accept = ACCEPT_HEADERS[fmt]

    def accepts(self, fragment: str) -> bool:
        """True if the Accept value contains fragment (case-insensitive)."""
        accept = self.overrides.accept
        return bool(accept) and fragment.lower() in accept.lower()

    # -------------------------------------------------------------------------
    # Flags and cookies
    # -------------------------------------------------------------------------

    def follow(self, flag: bool = True) -> Self:
        self.overrides.follow_redirects = bool(flag)
        return self

    def auto_convert(self, flag: bool = True) -> Self:
        self.overrides.auto_convert = bool(flag)
        return self

    def auto_set_cookies(self, flag: bool = True) -> Self:
        self.overrides.auto_set_cookies = bool(flag)
        return self

    def add_cookie(self, name: str, value: str | None = None) -> Self:
        """Add a cookie. ``add_cookie("a=b")`` is the same as ``add_cookie("a", "b")``."""
        if value is None and "=" in name:
            name, value = name.split("=", 1)
        self.overrides.cookies[name.strip()] = "" if value is None else str(value)
        return self

    def remove_cookie(self, name: str) -> Self:
        self.overrides.cookies.pop(name, None)
        return self

    def cookie_header(self) -> str | None:
        if not self.overrides.cookies:
            return None
        pairs = "; ".join(f"{name}={value}" for name, value in self.overrides.cookies.items())
        return f"Cookie: {pairs}"

    # -------------------------------------------------------------------------
    # Merge
    # -------------------------------------------------------------------------

    def apply(self, handle: TransferHandle) -> TransferHandle:
        """Return a copy of handle with the pending overrides merged in.

        The location override is cleared; all other overrides are kept.
        """
        address = join_address(handle.address, self.overrides.location)
        self.overrides.location = ""

        headers = list(handle.headers)
        if self.overrides.accept:
            headers.append(f"Accept: {self.overrides.accept}")
        if self.overrides.content_type:
            headers.append(f"Content-Type: {self.overrides.content_type}")
        headers.extend(self.overrides.headers)
        cookie = self.cookie_header()
        if cookie:
            headers.append(cookie)

        return handle.with_overrides(
            address=address,
            headers=dedupe_headers(headers),
            follow_redirects=self.overrides.follow_redirects,
        )
