"""
Error taxonomy for the memory store.

Every store, policy, search and guard operation raises one of these
synchronously. The HTTP layer maps them to status codes via `http_status`.
"""

from typing import Optional


class MemoryStoreError(Exception):
    """Base class for all memory store errors."""

    code: str = "internal"
    http_status: int = 500

    def __init__(self, message: str, *, session_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.session_id = session_id

    def to_dict(self) -> dict:
        """Convert to dict for JSON error bodies."""
        data = {"code": self.code, "message": self.message}
        if self.session_id is not None:
            data["session_id"] = self.session_id
        return data


class NotFoundError(MemoryStoreError):
    """Referenced session, message or summary is absent."""

    code = "not_found"
    http_status = 404


class PermissionDeniedError(MemoryStoreError):
    """Privileged metadata write attempted without privilege."""

    code = "permission_denied"
    http_status = 403


class InvalidArgumentError(MemoryStoreError):
    """Malformed query, non-positive limit, empty session id, etc."""

    code = "invalid_argument"
    http_status = 400


class ConflictError(MemoryStoreError):
    """Write targets a message that does not exist in the session."""

    code = "conflict"
    http_status = 409


class UnavailableError(MemoryStoreError):
    """Transient backend failure. Callers may retry."""

    code = "unavailable"
    http_status = 503


class InternalError(MemoryStoreError):
    """Unexpected backend error."""

    code = "internal"
    http_status = 500


def require_session_id(session_id: str) -> str:
    """Validate a session id, returning it stripped."""
    if not isinstance(session_id, str) or not session_id.strip():
        raise InvalidArgumentError("session_id must be a non-empty string")
    return session_id.strip()
