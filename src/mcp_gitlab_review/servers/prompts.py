"""MCP prompts: review workflow template for merge requests."""

from __future__ import annotations

import functools
from pathlib import Path
from string import Template

from fastmcp.prompts.prompt import Message

from ..builders import parse_merge_request_url
from .gitlab import mcp

_PROMPTS_DIR = Path(__file__).resolve().parent.parent / "resources" / "prompts"

_PROMPT_FILES = ["review-mr.md"]


@functools.cache
def _load_prompt(filename: str) -> str:
    """Load a prompt markdown file, refusing names that leave the prompts directory."""
    path = _PROMPTS_DIR / filename
    if "/" in filename or "\\" in filename or ".." in filename or path.parent != _PROMPTS_DIR:
        msg = f"Invalid filename: {filename}"
        raise ValueError(msg)
    return path.read_text(encoding="utf-8")


def _render(filename: str, **kwargs: str) -> str:
    """Load a prompt template and substitute variables safely.

    Uses string.Template ($var) instead of str.format({var}) to avoid
    KeyError when parameter values contain curly braces.
    """
    return Template(_load_prompt(filename)).safe_substitute(kwargs)


@mcp.prompt(tags={"gitlab", "review"})
def review_mr(project: str, merge_request_iid: str = "") -> list[Message]:
    """Review a GitLab merge request: read the diff, leave line-level
    discussions, and finish with a summary note.

    Accepts a full MR URL (e.g. https://gitlab.com/group/project/-/merge_requests/42)
    as project; merge_request_iid is extracted automatically.
    """
    parsed_project, parsed_iid = parse_merge_request_url(project)
    if parsed_iid is not None:
        project, merge_request_iid = parsed_project, str(parsed_iid)
    text = _render("review-mr.md", project=project, merge_request_iid=merge_request_iid)
    return [
        Message(role="user", content=text),
        Message(
            role="assistant",
            content=(
                f"I'll review MR !{merge_request_iid} in project {project}. "
                "Let me start by fetching the merge request and its changes."
            ),
        ),
    ]


def _validate_prompts() -> None:
    """Verify all expected prompt files exist at import time."""
    missing = [f for f in _PROMPT_FILES if not (_PROMPTS_DIR / f).is_file()]
    if missing:
        msg = f"Missing prompt files (packaging error): {missing}"
        raise RuntimeError(msg)


_validate_prompts()
