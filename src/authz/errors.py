"""Authorization error types.

Only precondition failures raise. Denials are ``PermissionDecision``
values, and malformed settings rows become diagnostics.
"""

from __future__ import annotations

from uuid import UUID


class AuthzError(Exception):
    """Base class for authorization errors."""


class ResourceNotFound(AuthzError, LookupError):
    """The referenced workspace or board does not exist (HTTP 404, not 403)."""

    def __init__(self, kind: str, resource_id: UUID | str | None = None) -> None:
        self.kind = kind
        self.resource_id = resource_id
        label = kind.capitalize()
        message = f"{label} not found" if resource_id is None else f"{label} {resource_id} not found"
        super().__init__(message)

    @property
    def detail(self) -> str:
        """Short message for API responses, e.g. ``"Board not found"``."""
        return f"{self.kind.capitalize()} not found"


class InvalidSettingUpdate(AuthzError, ValueError):
    """A proposed workspace setting write has an unknown type or value."""


class ConfirmationMismatch(AuthzError, ValueError):
    """The typed confirmation name does not match the resource being deleted."""
