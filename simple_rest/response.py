"""Response Normalizer - turns raw transfer bytes into a ResponseRecord.

Body conversion depends on the Accept value the client asked for, not on the
Content-Type the server sent back:

    Accept contains "json" + auto_convert -> decoded JSON (HBase rows unpacked)
    Accept contains "xml"  + auto_convert -> xml.etree.ElementTree.Element
    binary / protobuf                     -> bytes
    everything else                       -> str

A body that fails to parse as the requested format becomes None.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
import xml.etree.ElementTree as ET
from typing import Any

from simple_rest.models import ResponseRecord
from simple_rest.transfer import RawTransfer


_SET_COOKIE = re.compile(r"Set-Cookie:\s*(.*?);", re.IGNORECASE)
_CHARSET = re.compile(r"charset=([\w.:-]+)", re.IGNORECASE)

_BINARY_ACCEPTS = ("octet-stream", "protobuf")


def split_response(raw: bytes, header_size: int) -> tuple[str, bytes]:
    """Split raw bytes into (header block, body) at header_size."""
    header_size = max(0, min(header_size, len(raw)))
    return raw[:header_size].decode("latin-1"), raw[header_size:]


def parse_headers(header_block: str) -> dict[str, str]:
    """Parse 'Name: Value' lines on the first colon. Lines without one are dropped."""
    headers: dict[str, str] = {}
    for line in header_block.splitlines():
        name, sep, value = line.partition(":")
        if not sep:
            continue
        headers[name.strip()] = value.strip()
    return headers


def extract_cookies(header_block: str) -> list[tuple[str, str]]:
    """Find 'Set-Cookie: name=value;' pairs in a header block."""
    cookies: list[tuple[str, str]] = []
    for match in _SET_COOKIE.finditer(header_block):
        name, sep, value = match.group(1).partition("=")
        if not sep:
            continue
        cookies.append((name.strip(), value))
    return cookies


def decode_json_body(body: bytes) -> Any:
    """Parse body as JSON, or return None when it is empty or invalid."""
    if not body.strip():
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None


def parse_xml_body(body: bytes) -> ET.Element | None:
    """Parse body as an XML document, or return None when it is not well-formed."""
    if not body.strip():
        return None
    try:
        return ET.fromstring(body)
    except ET.ParseError:
        return None


def _b64_value(value: Any) -> Any:
    """Base64-decode a string field.

    Decoded bytes are returned as text when they are valid UTF-8 and as bytes
    otherwise. Values that are not valid base64 are returned unchanged.
    """
    if not isinstance(value, str):
        return value
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return value
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw


def decode_hbase_rows(document: Any) -> Any:
    """Unpack HBase Stargate row sets in place.

    Stargate base64-encodes row keys, column names and cell values:

        {"Row": [{"key": "...", "Cell": [{"column": "...", "$": "..."}]}]}

    Documents without a "Row" list are returned unchanged.
    """
    if not isinstance(document, dict) or not isinstance(document.get("Row"), list):
        return document

    for row in document["Row"]:
        if not isinstance(row, dict):
            continue
        if "key" in row:
            row["key"] = _b64_value(row["key"])
        cells = row.get("Cell")
        if not isinstance(cells, list):
            continue
        for cell in cells:
            if not isinstance(cell, dict):
                continue
            if "column" in cell:
                cell["column"] = _b64_value(cell["column"])
            # Stargate puts the cell data under "$" in JSON
            if "$" in cell:
                cell["$"] = _b64_value(cell["$"])

    return document


def _charset(content_type: str | None) -> str:
    if content_type:
        match = _CHARSET.search(content_type)
        if match:
            return match.group(1)
    return "utf-8"


class ResponseNormalizer:
    """Builds ResponseRecords for one client's current format settings."""

    def __init__(
        self,
        accept: str | None = None,
        auto_convert: bool = False,
        xml_version: str | None = None,
    ) -> None:
        self.accept = accept
        self.auto_convert = auto_convert
        self.xml_version = xml_version

    def accepts(self, fragment: str) -> bool:
        return bool(self.accept) and fragment.lower() in self.accept.lower()

    def normalize_body(self, body: bytes, content_type: str | None = None) -> Any:
        if self.auto_convert and self.accepts("json"):
            return decode_hbase_rows(decode_json_body(body))
        if self.auto_convert and self.accepts("xml"):
            return parse_xml_body(body)
        if any(self.accepts(fragment) for fragment in _BINARY_ACCEPTS):
            return body
        try:
            return body.decode(_charset(content_type), errors="replace")
        except LookupError:
            return body.decode("utf-8", errors="replace")

    def normalize(
        self,
        transfer: RawTransfer,
        metadata: dict[str, Any] | None = None,
    ) -> ResponseRecord:
        """Split, parse and decode one transfer.

        metadata entries are merged over the transfer info in request_metadata.
        """
        raw_headers, body = split_response(transfer.raw, transfer.header_size)
        parsed_headers = parse_headers(raw_headers)

        request_metadata: dict[str, Any] = dict(transfer.info)
        request_metadata["headers_resp_str"] = raw_headers
        request_metadata["headers_resp"] = parsed_headers
        if self.xml_version and self.accepts("xml"):
            request_metadata["xml_version"] = self.xml_version
        request_metadata.update(metadata or {})

        return ResponseRecord(
            status_code=int(transfer.info.get("http_code") or 0),
            raw_headers=raw_headers,
            parsed_headers=parsed_headers,
            raw_body=body,
            normalized_body=self.normalize_body(body, transfer.info.get("content_type")),
            request_metadata=request_metadata,
        )
