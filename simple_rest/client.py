"""RestClient - a small, chainable REST client built on DataStore.

Usage:
    rest = RestClient("http://localhost:8080")      # ad-hoc, no settings needed

    rest.json().auto_convert()
    rows = rest.location("MyTable/row1").get()
    rest.location("MyTable/row1").post({"name": "Mitch", "age": 28})

    rest.wait(False).get({"ping": 1})               # returns bytes written
    rest.last_request(), rest.response_code()

With a settings file, the name selects a configured client and each query type
is served by the first parameter set whose ``allow`` list contains it:

    with ClientRegistry.from_file() as registry:
        hbase = RestClient("hbase", "Production", registry=registry)
        version = hbase.plain().location("version/cluster").get()

Configuration errors (no settings, query type not allowed) are logged and make
the verb return None. Asking for asynchronous dispatch raises
UnsupportedModeError.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Self

from simple_rest.datastore import DataStore
from simple_rest.dispatch import (
    FORM_CONTENT_TYPE,
    DispatchMode,
    RequestData,
    append_query,
    encode_body,
    encode_form,
    fire_and_forget,
    select_mode,
)
from simple_rest.errors import (
    NotConfiguredError,
    NotPermittedError,
    TransferError,
    UnsupportedModeError,
)
from simple_rest.hooks import HookPoint
from simple_rest.models import ParameterSet, QueryType, ResponseRecord
from simple_rest.registry import ClientRegistry
from simple_rest.request_config import RequestConfigurator
from simple_rest.response import ResponseNormalizer, extract_cookies
from simple_rest.transfer import TransferHandle, open_client


logger = logging.getLogger(__name__)


def _has_header(lines: Iterable[str], name: str) -> bool:
    return any(line.partition(":")[0].strip().lower() == name for line in lines)


class RestClient(DataStore):
    """DELETE/GET/POST/PUT client for REST backends such as HBase Stargate."""

    ad_hoc = True

    def __init__(
        self,
        name: str = "localhost",
        environment: str = "Development",
        *,
        registry: ClientRegistry | None = None,
        settings: ParameterSet | Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(name, environment, registry=registry, settings=settings)
        self.request = RequestConfigurator()
        self._asynchronous = False
        self._wait = True
        self._last_record: ResponseRecord | None = None
        self._cookie_history: list[dict[str, str]] = []

    # -------------------------------------------------------------------------
    # DataStore operations
    # -------------------------------------------------------------------------

    @classmethod
    def client_type(cls) -> str:
        return "REST Clients"

    @classmethod
    def configurable_query_types(cls) -> tuple[str, ...]:
        return tuple(q.value for q in QueryType)

    def build_handle(self, params: ParameterSet) -> TransferHandle:
        client = open_client(
            params.user_agent,
            transport=self.registry.transport,
            timeout=self.registry.timeout,
        )
        return TransferHandle(
            client=client,
            address=params.address or self.identity.instance_name,
            headers=tuple(params.headers),
            settings=params.model_dump(by_alias=True, exclude_none=True),
        )

    # -------------------------------------------------------------------------
    # Chainable configuration
    # -------------------------------------------------------------------------

    def location(self, url: str = "") -> Self:
        """Set the path (relative to the base address) or URL of the next request."""
        self.request.location(url)
        return self

    def headers(
        self,
        headers: Mapping[str, str] | Iterable[str] | None = None,
        merge: bool = False,
    ) -> Self:
        self.request.headers(headers, merge=merge)
        return self

    def add_header(self, name: str, value: str) -> Self:
        self.request.add_header(name, value)
        return self

    def remove_header(self, name: str) -> Self:
        self.request.remove_header(name)
        return self

    def binary(self) -> Self:
        self.request.binary()
        return self

    def html(self) -> Self:
        self.request.html()
        return self

    def json(self, accepts: bool = True, content_type: bool = False) -> Self:
        self.request.json(accepts=accepts, content_type=content_type)
        return self

    def plain(self) -> Self:
        self.request.plain()
        return self

    def protobuf(self) -> Self:
        self.request.protobuf()
        return self

    def xml(self, version: str = "1.0") -> Self:
        self.request.xml(version)
        return self

    def follow(self, flag: bool = True) -> Self:
        self.request.follow(flag)
        return self

    def auto_convert(self, flag: bool = True) -> Self:
        """Decode JSON (and HBase rows) or XML responses instead of returning text."""
        self.request.auto_convert(flag)
        return self

    def auto_set_cookies(self, flag: bool = True) -> Self:
        """Send cookies from GET responses' Set-Cookie headers on later requests."""
        self.request.auto_set_cookies(flag)
        return self

    def add_cookie(self, name: str, value: str | None = None) -> Self:
        self.request.add_cookie(name, value)
        return self

    def remove_cookie(self, name: str) -> Self:
        self.request.remove_cookie(name)
        return self

    def wait(self, flag: bool = True) -> Self:
        """wait(False) writes requests to a raw socket and returns without a response."""
        self._wait = bool(flag)
        return self

    def asynchronous(self, flag: bool = True) -> Self:
        """Request asynchronous dispatch. Not supported: every verb call will raise."""
        self._asynchronous = bool(flag)
        return self

    def sync(self, flag: bool = True) -> Self:
        self._asynchronous = not flag
        return self

    # -------------------------------------------------------------------------
    # Verbs
    # -------------------------------------------------------------------------

    def delete(self) -> Any:
        return self._dispatch(QueryType.DELETE)

    def get(self, params: RequestData = None) -> Any:
        """GET with params appended to the URL as a query string."""
        return self._dispatch(QueryType.GET, params)

    def post(self, data: RequestData = None, skip_encoding: bool = False) -> Any:
        """POST data form-url-encoded, or as-is when skip_encoding is True."""
        return self._dispatch(QueryType.POST, data, skip_encoding)

    def put(self, data: RequestData = None, skip_encoding: bool = False) -> Any:
        """PUT data form-url-encoded, or as-is when skip_encoding is True."""
        return self._dispatch(QueryType.PUT, data, skip_encoding)

    def _dispatch(
        self,
        query_type: QueryType,
        data: RequestData = None,
        skip_encoding: bool = False,
    ) -> Any:
        """Run one verb call.

        Returns:
            The normalized body (sync), the number of bytes written (no-wait),
            or None when the client is not configured for query_type or the
            transfer failed.

        Raises:
            UnsupportedModeError: If asynchronous dispatch is enabled.
        """
        mode = select_mode(self._asynchronous, self._wait)
        if mode is DispatchMode.ASYNC:
            raise UnsupportedModeError("Async is currently not supported")

        try:
            handle = self.acquire(query_type)
        except (NotConfiguredError, NotPermittedError) as e:
            logger.warning("%s %s skipped: %s", query_type.value.upper(), self.identity.instance_name, e)
            return None
        handle = self.request.apply(handle)

        try:
            if mode is DispatchMode.FIRE_AND_FORGET:
                return fire_and_forget(handle.address, query_type.value, data, skip_encoding)
            return self._execute(handle, query_type, data, skip_encoding)
        finally:
            if handle.ephemeral:
                handle.close()

    def _execute(
        self,
        handle: TransferHandle,
        query_type: QueryType,
        data: RequestData,
        skip_encoding: bool,
    ) -> Any:
        method = query_type.value.upper()
        url = handle.address
        body = b""
        metadata: dict[str, Any] = {"method": method}

        if query_type is QueryType.GET:
            if data:
                url = append_query(url, data)
                metadata["query"] = encode_form(data)
        elif query_type in (QueryType.POST, QueryType.PUT):
            body = encode_body(data, skip_encoding)
            metadata[f"{query_type.value}_data"] = data
            metadata[f"{query_type.value}_data_str"] = body.decode("utf-8", errors="replace")
            if body and not skip_encoding and not _has_header(handle.headers, "content-type"):
                handle = handle.with_overrides(
                    headers=[*handle.headers, f"Content-Type: {FORM_CONTENT_TYPE}"]
                )

        metadata["headers_sent"] = list(handle.headers)
        self.call_hook(HookPoint.BEFORE_DISPATCH, handle, method, url, body)

        try:
            transfer = handle.execute(method, url, body)
        except TransferError as e:
            logger.warning("%s", e)
            metadata.update({"url": url, "http_code": 0, "error": str(e)})
            self._last_record = ResponseRecord(status_code=0, request_metadata=metadata)
            return None

        overrides = self.request.overrides
        normalizer = ResponseNormalizer(
            accept=overrides.accept,
            auto_convert=overrides.auto_convert,
            xml_version=overrides.xml_version,
        )
        record = normalizer.normalize(transfer, metadata)

        if query_type is QueryType.GET and overrides.auto_set_cookies:
            self._remember_cookies(record.raw_headers)

        self._last_record = record
        self.call_hook(HookPoint.AFTER_RESPONSE, record)
        return record.normalized_body

    def _remember_cookies(self, header_block: str) -> None:
        for name, value in extract_cookies(header_block):
            self._cookie_history.append({name: value})
            self.request.add_cookie(name, value)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def last_request(self) -> ResponseRecord | None:
        """Record of the last synchronous request, or None if there was none."""
        return self._last_record

    def response_code(self) -> int | None:
        if self._last_record is None:
            return None
        return self._last_record.status_code

    def cookie_history(self) -> list[dict[str, str]]:
        return list(self._cookie_history)
