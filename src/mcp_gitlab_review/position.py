"""Discussion position parsing and validation.

A position arrives either as an object or as a JSON-encoded string. Both are
resolved to one :class:`DiscussionPosition` by :func:`coerce_position`, and
:func:`validate_position` then applies GitLab's structural rules. GitLab's own
answer to a malformed position is a bare 400, so every rule is checked here
before a request is built.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from .exceptions import GitLabValidationError
from .models.merge_requests import DiffVersion, DiscussionPosition

POSITION_TYPES = ("text", "image")
SHA_FIELDS = ("base_sha", "head_sha", "start_sha")

RULE_SHAPE = "shape"
RULE_SHAS = "shas"
RULE_PATHS = "paths"
RULE_LINES = "lines"
RULE_POSITION_TYPE = "position_type"

PositionInput = DiscussionPosition | Mapping[str, Any] | str


def _present(value: str | None) -> bool:
    return bool(value and value.strip())


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item["loc"]) or "position"
        parts.append(f"{loc}: {item['msg']}")
    return "; ".join(parts)


def coerce_position(raw: PositionInput) -> DiscussionPosition:
    """Resolve an object or JSON string into a :class:`DiscussionPosition`.

    A string is decoded exactly once; it must hold a JSON object.
    """
    if isinstance(raw, DiscussionPosition):
        return raw

    value: Any = raw
    if isinstance(raw, str):
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as e:
            msg = f"position string is not valid JSON: {e.msg} (char {e.pos})"
            raise GitLabValidationError(msg, rule=RULE_SHAPE) from e

    if not isinstance(value, Mapping):
        msg = (
            "position must be a GitLab discussion position object, "
            f"got {type(value).__name__}"
        )
        raise GitLabValidationError(msg, rule=RULE_SHAPE)

    try:
        return DiscussionPosition.model_validate(dict(value))
    except ValidationError as e:
        msg = f"position has invalid fields: {_describe(e)}"
        raise GitLabValidationError(msg, rule=RULE_SHAPE) from e


def missing_shas(position: DiscussionPosition) -> list[str]:
    return [name for name in SHA_FIELDS if not _present(getattr(position, name))]


def fill_missing_shas(position: DiscussionPosition, version: DiffVersion) -> DiscussionPosition:
    """Copy SHAs from *version* into the fields *position* leaves empty.

    SHAs the caller supplied are kept as they are.
    """
    update = {name: getattr(version, name) for name in missing_shas(position)}
    if not update:
        return position
    return position.model_copy(update=update)


def validate_position(
    position: DiscussionPosition, *, require_shas: bool = True
) -> DiscussionPosition:
    """Check the structural rules and return the canonical position.

    The canonical form has ``position_type`` set and both paths filled: an
    empty side takes the value of the other one.

    Raises:
        GitLabValidationError: with ``rule`` naming the violated check.
    """
    if require_shas:
        missing = missing_shas(position)
        if missing:
            msg = (
                "position requires non-empty base_sha, head_sha and start_sha "
                f"(missing: {', '.join(missing)}); take them from the first entry "
                "of get_merge_request_versions"
            )
            raise GitLabValidationError(msg, rule=RULE_SHAS)

    old_path = position.old_path if _present(position.old_path) else ""
    new_path = position.new_path if _present(position.new_path) else ""
    if not old_path and not new_path:
        msg = "position requires old_path or new_path; both are empty"
        raise GitLabValidationError(msg, rule=RULE_PATHS)

    if position.old_line is None and position.new_line is None:
        msg = (
            "position requires old_line, new_line or both: new_line alone for an "
            "added line, old_line alone for a removed line, both for an unchanged line"
        )
        raise GitLabValidationError(msg, rule=RULE_LINES)

    position_type = position.position_type or "text"
    if position_type not in POSITION_TYPES:
        msg = f"position_type must be one of {', '.join(POSITION_TYPES)}, got {position_type!r}"
        raise GitLabValidationError(msg, rule=RULE_POSITION_TYPE)

    return position.model_copy(
        update={
            "old_path": old_path or new_path,
            "new_path": new_path or old_path,
            "position_type": position_type,
        }
    )


def parse_position(raw: PositionInput, *, require_shas: bool = True) -> DiscussionPosition:
    """Coerce and validate in one step."""
    return validate_position(coerce_position(raw), require_shas=require_shas)
