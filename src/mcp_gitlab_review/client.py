"""GitLab API client using httpx."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import ValidationError

from .builders import (
    ApiRequest,
    MergeRequestRef,
    build_create_discussion,
    build_create_note,
    build_get_changes,
    build_get_merge_request,
    build_get_versions,
)
from .config import GitLabConfig
from .exceptions import GitLabTransportError, error_for_status
from .logging_config import get_logger
from .models.merge_requests import DiffVersion
from .position import PositionInput

logger = get_logger(__name__)

USER_AGENT = "mcp-gitlab-review"

# Raised before the request reached GitLab.
_NOT_SENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)


class GitLabClient:
    """Async HTTP client for the merge request review endpoints of REST API v4.

    One instance lives for the whole server lifetime and is shared by
    concurrent tool calls; it holds no per-call state. Nothing is retried:
    a repeated POST would create a duplicate comment.
    """

    def __init__(self, config: GitLabConfig | None = None) -> None:
        self.config = config or GitLabConfig.from_env()
        self.config.validate()
        self._client = httpx.AsyncClient(
            base_url=self.config.api_url,
            headers={
                "PRIVATE-TOKEN": self.config.token,
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            },
            timeout=self.config.timeout,
            verify=self.config.ssl_verify,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # ── HTTP helpers ──────────────────────────────────────────────

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        """GitLab's error text: the ``message``/``error`` field, else the raw body."""
        try:
            data = resp.json()
        except ValueError:
            return resp.text.strip() or resp.reason_phrase
        detail = data
        if isinstance(data, dict):
            detail = data.get("message") or data.get("error") or data
        if isinstance(detail, str):
            return detail
        return json.dumps(detail, ensure_ascii=False)

    @staticmethod
    def _retry_after(resp: httpx.Response) -> int | None:
        value = resp.headers.get("Retry-After", "").strip()
        return int(value) if value.isdecimal() and value.isascii() else None

    async def send(self, request: ApiRequest, *, expect: type = dict) -> Any:
        """Issue *request* once and return its decoded JSON body.

        Raises:
            GitLabError: the subclass matching the response status, or
                GitLabTransportError when no usable response arrived.
        """
        kwargs: dict[str, Any] = {}
        if request.json is not None:
            kwargs["json"] = request.json

        logger.debug("GitLab API request: %s %s", request.method, request.path)

        try:
            resp = await self._client.request(request.method, request.path, **kwargs)
        except asyncio.CancelledError as e:
            if not request.is_write:
                raise
            logger.warning(
                "Cancelled %s %s; GitLab may already have applied it",
                request.method,
                request.path,
            )
            raise GitLabTransportError(
                "Request cancelled before GitLab answered", e, write_may_have_applied=True
            ) from e
        except _NOT_SENT_ERRORS as e:
            logger.warning("Could not reach GitLab for %s %s: %r", request.method, request.path, e)
            raise GitLabTransportError("Could not reach GitLab", e) from e
        except httpx.HTTPError as e:
            logger.warning("GitLab request %s %s failed: %r", request.method, request.path, e)
            raise GitLabTransportError(
                "GitLab request failed", e, write_may_have_applied=request.is_write
            ) from e

        if not resp.is_success:
            error = error_for_status(
                resp.status_code,
                resp.text,
                message=self._error_message(resp),
                status_text=resp.reason_phrase,
                retry_after=self._retry_after(resp) if resp.status_code == 429 else None,
            )
            logger.warning(
                "GitLab API %s %s returned %s (%s)",
                request.method,
                request.path,
                resp.status_code,
                error.kind.value,
            )
            raise error

        return self._decode(request, resp, expect)

    @staticmethod
    def _decode(request: ApiRequest, resp: httpx.Response, expect: type) -> Any:
        applied = request.is_write
        content_type = resp.headers.get("content-type", "")
        if "text/html" in content_type:
            msg = "Unexpected HTML response; check GITLAB_URL and authentication"
            raise GitLabTransportError(msg, write_may_have_applied=applied)
        if not resp.content:
            msg = f"GitLab returned an empty {resp.status_code} response"
            raise GitLabTransportError(msg, write_may_have_applied=applied)

        try:
            data = resp.json()
        except ValueError as e:
            raise GitLabTransportError(
                "GitLab returned invalid JSON", e, write_may_have_applied=applied
            ) from e

        if not isinstance(data, expect):
            msg = (
                f"GitLab returned a JSON {type(data).__name__} "
                f"where a {expect.__name__} was expected"
            )
            raise GitLabTransportError(msg, write_may_have_applied=applied)
        return data

    # ── Merge Requests ────────────────────────────────────────────

    async def get_merge_request(self, ref: MergeRequestRef) -> dict:
        return await self.send(build_get_merge_request(ref))

    async def get_merge_request_changes(self, ref: MergeRequestRef) -> dict:
        return await self.send(build_get_changes(ref))

    async def get_merge_request_versions(self, ref: MergeRequestRef) -> list[DiffVersion]:
        data = await self.send(build_get_versions(ref), expect=list)
        try:
            return [DiffVersion.model_validate(item) for item in data]
        except ValidationError as e:
            raise GitLabTransportError("GitLab returned malformed diff versions", e) from e

    # ── MR Discussions & Notes ────────────────────────────────────

    async def create_merge_request_discussion(
        self,
        ref: MergeRequestRef,
        body: str,
        position: PositionInput,
        *,
        versions: Sequence[DiffVersion] | None = None,
        version_id: int | None = None,
        resolve: bool | None = None,
    ) -> dict:
        request = build_create_discussion(
            ref, body, position, versions=versions, version_id=version_id, resolve=resolve
        )
        return await self.send(request)

    async def create_merge_request_note(
        self, ref: MergeRequestRef, body: str, confidential: bool | None = None
    ) -> dict:
        return await self.send(build_create_note(ref, body, confidential))
