"""Shared test fixtures for mcp-gitlab-review."""

from __future__ import annotations

import pytest
import respx

from mcp_gitlab_review.builders import MergeRequestRef
from mcp_gitlab_review.client import GitLabClient
from mcp_gitlab_review.config import GitLabConfig
from mcp_gitlab_review.logging_config import reset_logging

TEST_URL = "https://gitlab.example.com"
TEST_TOKEN = "test-token"
API_URL = f"{TEST_URL}/api/v4"

SHAS = {
    "base_sha": "1111111111111111111111111111111111111111",
    "head_sha": "2222222222222222222222222222222222222222",
    "start_sha": "3333333333333333333333333333333333333333",
}

VERSIONS = [
    {
        "id": 110,
        "head_commit_sha": "b" * 40,
        "base_commit_sha": "a" * 40,
        "start_commit_sha": "c" * 40,
        "created_at": "2026-10-01T12:00:00.000Z",
        "merge_request_id": 5001,
        "state": "collected",
        "real_size": "1",
    },
    {
        "id": 109,
        "head_commit_sha": "y" * 40,
        "base_commit_sha": "x" * 40,
        "start_commit_sha": "z" * 40,
        "created_at": "2026-09-30T12:00:00.000Z",
        "merge_request_id": 5001,
        "state": "collected",
        "real_size": "1",
    },
]


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    reset_logging()


@pytest.fixture
def config() -> GitLabConfig:
    return GitLabConfig(url=TEST_URL, token=TEST_TOKEN)


@pytest.fixture
async def client(config: GitLabConfig) -> GitLabClient:
    gl = GitLabClient(config)
    yield gl
    await gl.close()


@pytest.fixture
def mr_ref() -> MergeRequestRef:
    return MergeRequestRef(project="team/sub/proj", iid=7)


@pytest.fixture
def position() -> dict:
    return {**SHAS, "old_path": "app/main.py", "new_path": "app/main.py", "new_line": 12}


@pytest.fixture
def mock_api() -> respx.MockRouter:
    with respx.mock(base_url=API_URL) as router:
        yield router


@pytest.fixture
def versions() -> list[dict]:
    return [dict(v) for v in VERSIONS]
