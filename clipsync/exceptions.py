"""Sync engine exception types.

Convention:
- ``RemoteError`` and its subclasses are raised by the remote client only.
- Every ``SyncError`` carries a ``user_message`` that is safe to show in a
  status line or notice; the orchestrator and host catch ``SyncError`` at
  the call boundary.
- Write failures of a record are not wrapped: whatever the storage backend
  raises is caught per record by the download pipeline and the id is queued
  for retry. Failures on the target directory itself abort the cycle and are
  raised as ``TargetDirectoryError``.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all sync engine errors.

    ``user_message`` is safe to show to the user.
    """

    user_message: str = "Sync failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)
        if message is not None:
            self.user_message = message


class TargetDirectoryError(SyncError):
    """Raised when the local target directory cannot be checked or created."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Can't write to {path}")


class RemoteError(SyncError):
    """Raised when a call to the remote service does not succeed."""


class RemoteTransportError(RemoteError):
    """Raised when no response was received at all (DNS, connect, timeout)."""

    user_message = "Can't connect to server"


class RemoteResponseError(RemoteError):
    """Raised for a non-success HTTP response.

    The message is the response's status text unless a subclass maps the
    status code to a more specific cause.
    """

    def __init__(self, status_code: int, reason: str = "") -> None:
        self.status_code = status_code
        self.reason = reason
        super().__init__(self._describe())

    def _describe(self) -> str:
        return self.reason or f"Request failed with status {self.status_code}"


class SyncConflictError(RemoteResponseError):
    """Another client is in the middle of a sync (HTTP 409)."""

    def _describe(self) -> str:
        return "Sync in progress initiated by different client"


class SyncLockedError(RemoteResponseError):
    """The export is temporarily locked by the server (HTTP 417)."""

    def _describe(self) -> str:
        return "Export is locked. Wait for an hour."


class InvalidResponseError(RemoteResponseError):
    """The response body could not be parsed into the expected shape."""

    def _describe(self) -> str:
        if self.reason:
            return f"Invalid response from server: {self.reason}"
        return "Invalid response from server"
