"""GitLab MCP server: merge request review tools."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastmcp import Context, FastMCP
from pydantic import Field

from ..builders import MergeRequestRef, validate_body
from ..client import GitLabClient
from ..config import GitLabConfig
from ..exceptions import (
    ErrorKind,
    GitLabApiError,
    GitLabError,
    GitLabRateLimitError,
    GitLabTransportError,
    GitLabValidationError,
    GitLabWriteDisabledError,
)
from ..logging_config import get_logger, setup_logging
from ..position import missing_shas, parse_position

logger = get_logger(__name__)

INSTRUCTIONS = (
    "GitLab merge request review tools. Workflow: (1) get_merge_request for metadata and "
    "get_merge_request_changes for the diff; (2) get_merge_request_versions and take the "
    "first entry's base/head/start commit SHAs; (3) create_merge_request_discussion with a "
    "markdown body and a position containing base_sha, head_sha, start_sha, new_path, "
    "old_path and line numbers (new_line for added lines, old_line for removed lines, both "
    "for unchanged lines). position_type defaults to 'text'. Use create_merge_request_note "
    "for top-level comments."
)

_HINTS = {
    ErrorKind.UNAUTHORIZED: "Check GITLAB_TOKEN permissions. Token needs 'api' scope.",
    ErrorKind.NOT_FOUND: (
        "Verify the project ID/path and pass the merge request IID (the !N number), "
        "not its global ID."
    ),
    ErrorKind.VALIDATION_FAILED: "Correct the parameters named in the error and call again.",
    ErrorKind.RATE_LIMITED: "Rate limited. Wait before retrying.",
    ErrorKind.SERVER_ERROR: "GitLab failed to handle the request. Try again later.",
    ErrorKind.UNEXPECTED_STATUS: "GitLab answered with an unexpected status.",
    ErrorKind.TRANSPORT_FAILURE: (
        "No usable response from GitLab. Check GITLAB_URL and network access."
    ),
    ErrorKind.WRITE_DISABLED: (
        "Server is in read-only mode. Set GITLAB_READ_ONLY=false to enable writes."
    ),
}


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    config = GitLabConfig.from_env()
    config.validate()
    setup_logging(config.log_level)
    client = GitLabClient(config)
    logger.info("Using GitLab API at %s (read_only=%s)", config.api_url, config.read_only)
    try:
        yield {"client": client, "config": config}
    finally:
        await client.close()


mcp = FastMCP(
    name="GitLab MR Review MCP Server",
    instructions=INSTRUCTIONS,
    lifespan=lifespan,
)


def _get_client(ctx: Context) -> GitLabClient:
    return ctx.request_context.lifespan_context["client"]


def _get_config(ctx: Context) -> GitLabConfig:
    return ctx.request_context.lifespan_context["config"]


def _check_write(ctx: Context) -> None:
    if _get_config(ctx).read_only:
        raise GitLabWriteDisabledError


def _ok(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _err(error: GitLabError) -> str:
    detail: dict[str, Any] = {"error": str(error), "kind": error.kind.value}
    hint = _HINTS[error.kind]

    if isinstance(error, GitLabApiError):
        detail["status_code"] = error.status_code
        detail["body"] = error.body
        if isinstance(error, GitLabRateLimitError) and error.retry_after is not None:
            detail["retry_after"] = error.retry_after
            hint = f"Rate limited. Wait {error.retry_after}s before retrying."
    elif isinstance(error, GitLabValidationError):
        if error.rule:
            detail["rule"] = error.rule
        if error.status_code is not None:
            detail["status_code"] = error.status_code
            detail["body"] = error.body
            hint = (
                "GitLab rejected the request. For discussions, take the SHAs from the first "
                "entry of get_merge_request_versions and check the line exists in the diff."
            )
    elif isinstance(error, GitLabTransportError):
        detail["write_may_have_applied"] = error.write_may_have_applied
        if error.write_may_have_applied:
            hint = (
                "The comment may have been created. Check the merge request before "
                "calling again to avoid a duplicate."
            )

    detail["hint"] = hint
    logger.info("Tool call failed (%s): %s", error.kind.value, error)
    return json.dumps(detail, indent=2, ensure_ascii=False)


ProjectParam = Annotated[
    int | str,
    Field(description="Project ID or full path (e.g. 'my-group/my-project')"),
]
IidParam = Annotated[
    int,
    Field(description="Merge request IID (the project-scoped !N number, not the global ID)"),
]


# ════════════════════════════════════════════════════════════════════
# Merge Requests
# ════════════════════════════════════════════════════════════════════


@mcp.tool(
    tags={"gitlab", "merge_requests", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def get_merge_request(
    ctx: Context,
    project: ProjectParam,
    merge_request_iid: IidParam,
) -> str:
    """Fetch metadata for a GitLab merge request.

    Returns title, state, author, source/target branches, diff_refs, and merge status.
    """
    try:
        ref = MergeRequestRef.parse(project, merge_request_iid)
        data = await _get_client(ctx).get_merge_request(ref)
        return _ok(data)
    except GitLabError as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "merge_requests", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def get_merge_request_changes(
    ctx: Context,
    project: ProjectParam,
    merge_request_iid: IidParam,
) -> str:
    """Fetch the diff of a merge request: changed files with old/new paths and hunks."""
    try:
        ref = MergeRequestRef.parse(project, merge_request_iid)
        data = await _get_client(ctx).get_merge_request_changes(ref)
        return _ok(data)
    except GitLabError as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "merge_requests", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def get_merge_request_versions(
    ctx: Context,
    project: ProjectParam,
    merge_request_iid: IidParam,
) -> str:
    """Fetch the diff versions of a merge request, newest first.

    The first entry's base/head/start commit SHAs anchor new discussions.
    """
    try:
        ref = MergeRequestRef.parse(project, merge_request_iid)
        versions = await _get_client(ctx).get_merge_request_versions(ref)
        return _ok([v.to_dict() for v in versions])
    except GitLabError as e:
        return _err(e)


# ════════════════════════════════════════════════════════════════════
# MR Discussions & Notes
# ════════════════════════════════════════════════════════════════════


@mcp.tool(
    tags={"gitlab", "discussions", "write"},
    annotations={"readOnlyHint": False, "openWorldHint": True},
)
async def create_merge_request_discussion(
    ctx: Context,
    project: ProjectParam,
    merge_request_iid: IidParam,
    body: Annotated[str, Field(description="Discussion body (markdown)")],
    position: Annotated[
        dict[str, Any] | str,
        Field(
            description=(
                "Diff position as an object or a JSON string: base_sha, head_sha, start_sha "
                "(from get_merge_request_versions), old_path, new_path, and new_line for an "
                "added line, old_line for a removed line, both for an unchanged line. "
                "Optional: position_type ('text' or 'image', default 'text'), line_range. "
                "Omitted SHAs are filled from the newest diff version."
            )
        ),
    ],
    version_id: Annotated[
        int | None,
        Field(description="Diff version whose SHAs fill omitted ones (default: newest)"),
    ] = None,
    resolve: Annotated[
        bool | None, Field(description="Resolve the discussion immediately")
    ] = None,
) -> str:
    """Create a line-level discussion on a merge request.

    The position is validated before anything is sent to GitLab.
    """
    try:
        _check_write(ctx)
        ref = MergeRequestRef.parse(project, merge_request_iid)
        validate_body(body)
        parsed = parse_position(position, require_shas=False)

        client = _get_client(ctx)
        versions = None
        if missing_shas(parsed):
            versions = await client.get_merge_request_versions(ref)

        data = await client.create_merge_request_discussion(
            ref, body, parsed, versions=versions, version_id=version_id, resolve=resolve
        )
        return _ok(data)
    except GitLabError as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "notes", "write"},
    annotations={"readOnlyHint": False, "openWorldHint": True},
)
async def create_merge_request_note(
    ctx: Context,
    project: ProjectParam,
    merge_request_iid: IidParam,
    body: Annotated[str, Field(description="Comment body (markdown)")],
    confidential: Annotated[
        bool | None,
        Field(description="Confidential note, visible only to project members"),
    ] = None,
) -> str:
    """Add a top-level note (comment) to a merge request."""
    try:
        _check_write(ctx)
        ref = MergeRequestRef.parse(project, merge_request_iid)
        data = await _get_client(ctx).create_merge_request_note(ref, body, confidential)
        return _ok(data)
    except GitLabError as e:
        return _err(e)
