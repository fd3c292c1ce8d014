"""Internal data models for simple-rest.

All models use Pydantic v2. Models describing the settings file forbid unknown
keys so that typos in ``settings.yaml`` fail loudly at load time.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


WILDCARD = "*"


class QueryType(str, Enum):
    """Query types a RestClient can gate through the ``allow`` setting."""

    DELETE = "delete"
    GET = "get"
    POST = "post"
    PUT = "put"


class AcceptFormat(str, Enum):
    """Response formats selectable through the format setters."""

    BINARY = "binary"
    HTML = "html"
    JSON = "json"
    PLAIN = "plain"
    PROTOBUF = "protobuf"
    XML = "xml"


# =============================================================================
# Identity and Settings
# =============================================================================


class ClientIdentity(BaseModel):
    """Which settings and cached handles a client instance uses."""

    model_config = ConfigDict(frozen=True)

    client_type: str = Field(description="Settings category, e.g. 'REST Clients'")
    instance_name: str = Field(description="Logical client name or base URL")
    environment: str = Field(default="Development", description="Settings environment")


def _split_commas(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class ParameterSet(BaseModel):
    """One configured connection profile.

    ``pass`` and ``userAgent`` keep the spelling used in settings files; the
    Python attributes are ``password`` and ``user_agent``.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    address: str | None = Field(default=None, description="Base URL (defaults to the instance name)")
    user: str | None = Field(default=None, description="User embedded in the URL")
    password: str | None = Field(default=None, alias="pass", description="Password embedded in the URL")
    user_agent: str | None = Field(default=None, alias="userAgent", description="User-Agent header")
    headers: list[str] = Field(
        default_factory=list, description="Ordered 'Name: Value' header lines"
    )
    allow: list[str] = Field(
        default_factory=list, description="Query types this profile may serve"
    )

    @field_validator("headers", mode="before")
    @classmethod
    def coerce_headers(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return _split_commas(v)
        if isinstance(v, Mapping):
            return [f"{name}: {value}" for name, value in v.items()]
        return v

    @field_validator("allow", mode="before")
    @classmethod
    def coerce_allow(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [part.lower() for part in _split_commas(v)]
        return [str(part).strip().lower() for part in v]

    def permits(self, query_type: str) -> bool:
        return query_type in self.allow


class SettingsFile(BaseModel):
    """Top-level settings file structure.

    environments -> client type -> instance name -> ordered parameter sets.
    """

    model_config = ConfigDict(extra="forbid")

    environments: dict[str, dict[str, dict[str, list[ParameterSet]]]] = Field(
        default_factory=dict, description="Environment -> client type -> name -> profiles"
    )


# =============================================================================
# Responses
# =============================================================================


class ResponseRecord(BaseModel):
    """Result of one synchronous dispatch, kept until the next one."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    status_code: int = Field(description="HTTP status code (0 when the transfer failed)")
    raw_headers: str = Field(default="", description="Response header block as received")
    parsed_headers: dict[str, str] = Field(
        default_factory=dict, description="Header name -> value, later duplicates win"
    )
    raw_body: bytes = Field(default=b"", description="Response body bytes")
    normalized_body: Any = Field(
        default=None, description="bytes, str, decoded JSON, ElementTree element or None"
    )
    request_metadata: dict[str, Any] = Field(
        default_factory=dict, description="Transfer info plus sent headers and request data"
    )


# =============================================================================
# Request Overrides
# =============================================================================


class PendingRequestOverrides(BaseModel):
    """Per-client request settings merged into a handle copy before dispatch.

    ``location`` is consumed by the next dispatch; everything else stays in
    effect until it is changed again.
    """

    location: str = Field(default="", description="Relative path or absolute URL")
    headers: list[str] = Field(default_factory=list, description="Extra 'Name: Value' lines")
    accept_format: AcceptFormat | None = Field(default=None, description="Last format selected")
    accept: str | None = Field(default=None, description="Accept header value")
    content_type: str | None = Field(default=None, description="Content-Type header value")
    xml_version: str | None = Field(default=None, description="XML version for parsed documents")
    follow_redirects: bool = Field(default=False, description="Follow 3xx responses")
    cookies: dict[str, str] = Field(default_factory=dict, description="Cookie name -> value")
    auto_convert: bool = Field(default=False, description="Decode JSON/XML bodies")
    auto_set_cookies: bool = Field(default=False, description="Reuse cookies from Set-Cookie")
