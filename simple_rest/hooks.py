"""Named extension points and the registries that hold their callbacks.

Hooks are registered either on one client instance or on every client of a
client type (through the ClientRegistry). When both exist for a point, the
instance-level hook wins and the class-level one is not called.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from simple_rest.models import ResponseRecord
    from simple_rest.transfer import TransferHandle


class HookPoint(str, Enum):
    """Points in a client's execution where callbacks may run."""

    # (handle) -> replacement handle or None to keep the original
    BEFORE_HANDLE_RETURNED = "before_handle_returned"
    # (handle, method, url, body) -> ignored
    BEFORE_DISPATCH = "before_dispatch"
    # (record) -> ignored
    AFTER_RESPONSE = "after_response"


class BeforeHandleReturned(Protocol):
    def __call__(self, handle: TransferHandle) -> TransferHandle | None: ...


class BeforeDispatch(Protocol):
    def __call__(self, handle: TransferHandle, method: str, url: str, body: bytes) -> None: ...


class AfterResponse(Protocol):
    def __call__(self, record: ResponseRecord) -> None: ...


# Signature per point; any callable with a matching signature is accepted
HookFn = BeforeHandleReturned | BeforeDispatch | AfterResponse | Callable[..., Any]


class HookRegistry:
    """Holds at most one callback per HookPoint."""

    def __init__(self) -> None:
        self._hooks: dict[HookPoint, HookFn] = {}

    def register(self, point: HookPoint | str, fn: HookFn) -> None:
        if not callable(fn):
            raise TypeError(f"Hook for '{point}' must be callable, got {type(fn).__name__}")
        self._hooks[HookPoint(point)] = fn

    def unregister(self, point: HookPoint | str) -> None:
        self._hooks.pop(HookPoint(point), None)

    def get(self, point: HookPoint | str) -> HookFn | None:
        return self._hooks.get(HookPoint(point))

    def __contains__(self, point: object) -> bool:
        try:
            return HookPoint(point) in self._hooks  # type: ignore[arg-type]
        except ValueError:
            return False

    def __len__(self) -> int:
        return len(self._hooks)
