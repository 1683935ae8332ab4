"""Workspace settings resolution.

Persisted settings are loosely typed (type, value) rows in two shapes:

* current: ``membership_restriction``, ``board_creation_simplified`` and
  ``board_deletion_simplified`` hold a single threshold string;
* legacy: ``board_creation_restriction`` / ``board_deletion_restriction``
  hold ``{public_boards, workspace_visible_boards, private_boards}``.

A current-shape row always beats a legacy row for the same field, in any
row order. Legacy rows migrate by taking ``workspace_visible_boards``.
Rows that cannot be decoded are logged, reported as diagnostics, and
leave the field at its default. Resolution never raises.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from src.authz.errors import InvalidSettingUpdate
from src.authz.models import (
    THRESHOLD_ALIASES,
    NormalizedSettings,
    SettingsDiagnostic,
    SettingsResolution,
)
from src.models.workspace import WorkspaceSettingRecord

logger = logging.getLogger(__name__)

MEMBERSHIP_RESTRICTION = "membership_restriction"
BOARD_CREATION_SIMPLIFIED = "board_creation_simplified"
BOARD_DELETION_SIMPLIFIED = "board_deletion_simplified"
BOARD_CREATION_RESTRICTION = "board_creation_restriction"
BOARD_DELETION_RESTRICTION = "board_deletion_restriction"
BOARD_SHARING_RESTRICTION = "board_sharing_restriction"

# setting type -> NormalizedSettings field
CURRENT_SHAPE_FIELDS: dict[str, str] = {
    MEMBERSHIP_RESTRICTION: "membership_restriction",
    BOARD_CREATION_SIMPLIFIED: "board_creation",
    BOARD_DELETION_SIMPLIFIED: "board_deletion",
}
LEGACY_SHAPE_FIELDS: dict[str, str] = {
    BOARD_CREATION_RESTRICTION: "board_creation",
    BOARD_DELETION_RESTRICTION: "board_deletion",
}
# Read and accepted on write, but no permission consults it.
INERT_SETTING_TYPES = frozenset({BOARD_SHARING_RESTRICTION})

WRITABLE_SETTING_TYPES = frozenset(
    set(CURRENT_SHAPE_FIELDS) | set(LEGACY_SHAPE_FIELDS) | INERT_SETTING_TYPES
)

LEGACY_VISIBILITY_KEYS = ("public_boards", "workspace_visible_boards", "private_boards")
LEGACY_MIGRATION_KEY = "workspace_visible_boards"
LEGACY_VALUES = frozenset({"any_member", "admin_only", "nobody"})
LEGACY_DEFAULT = "any_member"

# Values accepted on write per current-shape type.
CURRENT_VALUES: dict[str, frozenset[str]] = {
    MEMBERSHIP_RESTRICTION: frozenset({"anyone", "admins_only", "owner_only"}),
    BOARD_CREATION_SIMPLIFIED: frozenset({"any_member", "admins_only", "owner_only"}),
    BOARD_DELETION_SIMPLIFIED: frozenset({"any_member", "admins_only", "owner_only"}),
    BOARD_SHARING_RESTRICTION: frozenset({"anyone", "admins_only", "owner_only"}),
}

_UNDECODABLE = object()


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def decode_setting_value(raw: Any) -> Any:
    """Decode a stored value that may be JSON text or already structured.

    Returns ``_UNDECODABLE`` for text that is not JSON and is not a bare
    threshold word (some rows store ``admins_only`` without JSON quotes).
    """
    if not isinstance(raw, (str, bytes, bytearray)):
        return raw
    try:
        text = raw.decode() if isinstance(raw, (bytes, bytearray)) else raw
        return json.loads(text)
    except UnicodeDecodeError:
        return _UNDECODABLE
    except json.JSONDecodeError:
        if text.strip().lower() in THRESHOLD_ALIASES:
            return text.strip()
        return _UNDECODABLE


def _coerce_record(record: WorkspaceSettingRecord | Mapping[str, Any]) -> WorkspaceSettingRecord:
    if isinstance(record, WorkspaceSettingRecord):
        return record
    return WorkspaceSettingRecord.model_validate(record)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class SettingsResolver:
    """Turns raw settings rows into ``NormalizedSettings``.

    Rows are read once and split by shape; current-shape rows are applied
    first, then legacy rows fill only the fields no current row set.
    """

    def resolve(
        self,
        raw_records: Iterable[WorkspaceSettingRecord | Mapping[str, Any]],
    ) -> SettingsResolution:
        diagnostics: list[SettingsDiagnostic] = []
        current: list[tuple[str, Any]] = []
        legacy: list[tuple[str, Any]] = []

        for raw in raw_records:
            try:
                record = _coerce_record(raw)
            except ValidationError as exc:
                diagnostics.append(self._diagnose("<unknown>", f"invalid row: {exc.error_count()} error(s)", raw))
                continue

            setting_type = record.setting_type
            if setting_type in CURRENT_SHAPE_FIELDS:
                current.append((setting_type, record.setting_value))
            elif setting_type in LEGACY_SHAPE_FIELDS:
                legacy.append((setting_type, record.setting_value))
            # INERT_SETTING_TYPES and unknown types fall through

        values: dict[str, str] = NormalizedSettings().model_dump()
        applied: set[str] = set()

        for setting_type, raw_value in current:
            value = decode_setting_value(raw_value)
            if not isinstance(value, str) or not value:
                diagnostics.append(self._diagnose(setting_type, "expected a threshold string", raw_value))
                continue
            target = CURRENT_SHAPE_FIELDS[setting_type]
            values[target] = value
            applied.add(target)

        for setting_type, raw_value in legacy:
            target = LEGACY_SHAPE_FIELDS[setting_type]
            if target in applied:
                continue
            value = decode_setting_value(raw_value)
            migrated = value.get(LEGACY_MIGRATION_KEY) if isinstance(value, Mapping) else None
            if not isinstance(migrated, str) or not migrated:
                if not isinstance(value, Mapping):
                    diagnostics.append(self._diagnose(setting_type, "expected a restriction object", raw_value))
                migrated = LEGACY_DEFAULT
            values[target] = migrated

        return SettingsResolution(settings=NormalizedSettings(**values), diagnostics=diagnostics)

    @staticmethod
    def _diagnose(setting_type: str, reason: str, raw_value: Any) -> SettingsDiagnostic:
        logger.warning("Ignoring workspace setting %s: %s", setting_type, reason)
        return SettingsDiagnostic(setting_type=setting_type, reason=reason, raw_value=raw_value)


_default_resolver = SettingsResolver()


def resolve_settings(
    raw_records: Iterable[WorkspaceSettingRecord | Mapping[str, Any]],
) -> NormalizedSettings:
    """Normalize raw settings rows; defaults fill every missing field."""
    return _default_resolver.resolve(raw_records).settings


# ---------------------------------------------------------------------------
# Write validation
# ---------------------------------------------------------------------------


def validate_setting_update(setting_type: str, value: Any) -> str:
    """Check a proposed settings write and return its JSON-encoded value.

    Raises:
        InvalidSettingUpdate: If the type is not writable or the value is
            not valid for it.
    """
    if setting_type not in WRITABLE_SETTING_TYPES:
        raise InvalidSettingUpdate("Invalid setting type")

    if setting_type in LEGACY_SHAPE_FIELDS:
        if not isinstance(value, Mapping) or not value:
            msg = f"{setting_type} must be an object keyed by board visibility"
            raise InvalidSettingUpdate(msg)
        unknown_keys = set(value) - set(LEGACY_VISIBILITY_KEYS)
        if unknown_keys:
            msg = f"Unknown keys for {setting_type}: {', '.join(sorted(unknown_keys))}"
            raise InvalidSettingUpdate(msg)
        bad = {k: v for k, v in value.items() if not isinstance(v, str) or v not in LEGACY_VALUES}
        if bad:
            msg = f"Invalid value for {setting_type}: {bad}"
            raise InvalidSettingUpdate(msg)
        return json.dumps(dict(value))

    allowed = CURRENT_VALUES[setting_type]
    if not isinstance(value, str) or value not in allowed:
        msg = f"Invalid value for {setting_type}; expected one of: {', '.join(sorted(allowed))}"
        raise InvalidSettingUpdate(msg)
    return json.dumps(value)
