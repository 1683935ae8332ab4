"""Shared types, enums, and base models used across BoardGate domain models."""

from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field
from uuid_extensions import uuid7


def utc_now() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(tz=timezone.utc)


def new_uuid7() -> UUID:
    """Generate a new time-sortable UUID v7."""
    return uuid7()


# --- Reusable annotated types ---

UUIDv7 = Annotated[UUID, Field(description="Time-sortable UUID v7.")]
UTCTimestamp = Annotated[
    datetime, Field(description="UTC timezone-aware timestamp.")
]


# --- Shared enums ---


class Role(StrEnum):
    """Effective role of a principal on a workspace or board.

    ``NONE`` means "no relationship"; it is a valid resolver output but
    never a persisted membership role.
    """

    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    GUEST = "guest"
    NONE = "none"


class WorkspaceVisibility(StrEnum):
    """Who can discover a workspace."""

    PRIVATE = "private"
    PUBLIC = "public"


class BoardVisibility(StrEnum):
    """Who can open a board.

    ``WORKSPACE`` boards are implicitly open to every workspace member.
    """

    PRIVATE = "private"
    PUBLIC = "public"
    WORKSPACE = "workspace"


# --- Base model ---


class BoardGateBase(BaseModel):
    """Base model with common configuration for all BoardGate Pydantic models."""

    model_config = {
        "populate_by_name": True,
        "ser_json_timedelta": "iso8601",
        "protected_namespaces": (),
    }
