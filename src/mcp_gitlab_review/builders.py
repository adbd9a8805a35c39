"""Request construction for the merge request review endpoints.

Every builder is pure: it validates its inputs and returns an
:class:`ApiRequest` whose path is relative to the ``/api/v4`` base.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, unquote

from pydantic import ValidationError

from .exceptions import GitLabValidationError
from .models.merge_requests import DiffVersion
from .position import PositionInput, coerce_position, fill_missing_shas, validate_position

ProjectRef = int | str

# Matches:  <host>/<namespace/project>/-/merge_requests/<iid>
_MR_URL_RE = re.compile(r"https?://[^/]+/(.+?)/-/merge_requests/(\d+)")
# Matches:  <host>/<namespace/project> (no /-/ suffix)
_PROJECT_URL_RE = re.compile(r"https?://[^/]+/(.+?)(?:/-/.*)?/?$")


@dataclass(frozen=True)
class ApiRequest:
    method: str
    path: str
    json: dict[str, Any] | None = None

    @property
    def is_write(self) -> bool:
        return self.method != "GET"


def parse_merge_request_url(value: str) -> tuple[str, int | None]:
    """Extract (project_path, iid) from a GitLab MR URL.

    If *value* is not an MR URL, returns it unchanged with ``None``.
    """
    m = _MR_URL_RE.match(value.strip())
    if m:
        return unquote(m.group(1)), int(m.group(2))
    return value, None


def parse_project_ref(value: str | int) -> ProjectRef:
    """Validate a project ID, namespaced path or project URL.

    Numeric strings become integer IDs. URLs are reduced to their path.
    """
    if isinstance(value, bool):
        msg = "project must be an ID or a path, not a boolean"
        raise GitLabValidationError(msg, rule="project")
    if isinstance(value, int):
        if value <= 0:
            msg = f"project ID must be a positive integer, got {value}"
            raise GitLabValidationError(msg, rule="project")
        return value

    text = value.strip()
    if text.startswith(("http://", "https://")):
        m = _PROJECT_URL_RE.match(text)
        if m:
            text = unquote(m.group(1))
    if not text:
        msg = "project must not be empty"
        raise GitLabValidationError(msg, rule="project")
    if text.isdecimal() and text.isascii():
        return parse_project_ref(int(text))
    if any(not segment for segment in text.split("/")):
        msg = f"project path must look like 'group/project', got {value!r}"
        raise GitLabValidationError(msg, rule="project")
    return text


def encode_project(project: ProjectRef) -> str:
    """Numeric IDs pass through; paths are URL-encoded (``/`` becomes ``%2F``)."""
    if isinstance(project, int):
        return str(project)
    return quote(project, safe="")


@dataclass(frozen=True)
class MergeRequestRef:
    """A merge request addressed by project and per-project IID."""

    project: ProjectRef
    iid: int

    @classmethod
    def parse(cls, project: str | int, merge_request_iid: int) -> MergeRequestRef:
        if isinstance(merge_request_iid, bool) or not isinstance(merge_request_iid, int):
            msg = "merge_request_iid must be an integer"
            raise GitLabValidationError(msg, rule="merge_request_iid")
        if merge_request_iid <= 0:
            msg = (
                f"merge_request_iid must be a positive integer, got {merge_request_iid} "
                "(use the project-scoped IID shown as !N, not the global ID)"
            )
            raise GitLabValidationError(msg, rule="merge_request_iid")
        return cls(parse_project_ref(project), merge_request_iid)

    @property
    def path(self) -> str:
        return f"/projects/{encode_project(self.project)}/merge_requests/{self.iid}"


def validate_body(body: str) -> None:
    if not body or not body.strip():
        msg = "body must be a non-empty markdown string"
        raise GitLabValidationError(msg, rule="body")


def select_diff_version(
    versions: Sequence[DiffVersion | Mapping[str, Any]], version_id: int | None = None
) -> DiffVersion:
    """Pick the version a new discussion anchors to.

    GitLab lists versions newest first, so the default is entry 0.
    """
    if not versions:
        msg = "merge request has no diff versions yet; wait for GitLab to compute the diff"
        raise GitLabValidationError(msg, rule="version")
    try:
        parsed = [
            v if isinstance(v, DiffVersion) else DiffVersion.model_validate(v) for v in versions
        ]
    except ValidationError as e:
        msg = f"diff versions are malformed: {e.error_count()} invalid field(s)"
        raise GitLabValidationError(msg, rule="version") from e
    if version_id is None:
        return parsed[0]
    for version in parsed:
        if version.id == version_id:
            return version
    msg = f"version_id {version_id} is not one of the merge request's diff versions"
    raise GitLabValidationError(msg, rule="version")


def build_get_merge_request(ref: MergeRequestRef) -> ApiRequest:
    return ApiRequest("GET", ref.path)


def build_get_changes(ref: MergeRequestRef) -> ApiRequest:
    return ApiRequest("GET", f"{ref.path}/changes")


def build_get_versions(ref: MergeRequestRef) -> ApiRequest:
    return ApiRequest("GET", f"{ref.path}/versions")


def build_create_discussion(
    ref: MergeRequestRef,
    body: str,
    position: PositionInput,
    *,
    versions: Sequence[DiffVersion | Mapping[str, Any]] | None = None,
    version_id: int | None = None,
    resolve: bool | None = None,
) -> ApiRequest:
    """Build a positioned discussion.

    When *versions* is given, SHAs missing from *position* are taken from
    :func:`select_diff_version`; *version_id* is only consulted then.
    """
    validate_body(body)
    parsed = coerce_position(position)
    if versions is not None:
        parsed = fill_missing_shas(parsed, select_diff_version(versions, version_id))
    canonical = validate_position(parsed)

    payload: dict[str, Any] = {"body": body, "position": canonical.to_dict()}
    if resolve is not None:
        payload["resolve"] = resolve
    return ApiRequest("POST", f"{ref.path}/discussions", payload)


def build_create_note(
    ref: MergeRequestRef, body: str, confidential: bool | None = None
) -> ApiRequest:
    validate_body(body)
    payload: dict[str, Any] = {"body": body}
    if confidential is not None:
        payload["confidential"] = confidential
    return ApiRequest("POST", f"{ref.path}/notes", payload)
