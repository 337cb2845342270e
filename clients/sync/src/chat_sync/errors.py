"""Failure taxonomy and tagged results for store operations.

Stores never let a ``SyncError`` escape to their caller; they return
``Err(error)`` instead and report ``error.message`` to the notification sink.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


class SyncError(Exception):
    """Base class for failures surfaced by the sync layer."""

    @property
    def message(self) -> str:
        return str(self)


class ValidationFailure(SyncError):
    """Local precondition failed; no request was issued."""


class RemoteFailure(SyncError):
    """The HTTP gateway rejected the request or could not be reached."""

    def __init__(
        self,
        status: int | None,
        *,
        method: str,
        url: str,
        detail: str | None = None,
    ):
        self.status = status
        self.method = method
        self.url = url
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        detail = (self.detail or "").strip()
        if detail:
            return detail
        if self.status is not None:
            return f"Request failed with status {self.status}"
        return f"Request failed: {self.method} {self.url}"

    def __str__(self) -> str:
        return self.message


class ChannelFailure(SyncError):
    """The real-time channel is unavailable."""


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    error: SyncError

    @property
    def ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return self.error.message


Result = Union[Ok[T], Err]
