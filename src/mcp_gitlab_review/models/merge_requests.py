"""Merge request diff version and discussion position models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class GitLabModel(BaseModel):
    """Unknown keys from GitLab are dropped; unset fields stay out of payloads."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class DiffVersion(GitLabModel):
    """One entry of ``GET /merge_requests/:iid/versions``, newest first."""

    id: int
    head_commit_sha: str
    base_commit_sha: str
    start_commit_sha: str
    created_at: str = ""
    merge_request_id: int = 0
    state: str = ""
    real_size: str = ""
    patch_id_sha: str | None = None

    @property
    def base_sha(self) -> str:
        return self.base_commit_sha

    @property
    def head_sha(self) -> str:
        return self.head_commit_sha

    @property
    def start_sha(self) -> str:
        return self.start_commit_sha


class LineReference(GitLabModel):
    line_code: str
    type: Literal["new", "old"]
    old_line: int | None = Field(default=None, gt=0)
    new_line: int | None = Field(default=None, gt=0)


class LineRange(GitLabModel):
    start: LineReference
    end: LineReference


class DiscussionPosition(GitLabModel):
    """Anchor of a line-level discussion.

    Every field is optional at this level so that a partially filled
    position can be completed from a :class:`DiffVersion` before the
    structural rules in :mod:`mcp_gitlab_review.position` run.
    """

    base_sha: str | None = None
    head_sha: str | None = None
    start_sha: str | None = None
    position_type: str | None = None
    old_path: str | None = None
    new_path: str | None = None
    old_line: int | None = Field(default=None, gt=0)
    new_line: int | None = Field(default=None, gt=0)
    line_range: LineRange | None = None
    width: int | None = None
    height: int | None = None
    x: int | None = None
    y: int | None = None
