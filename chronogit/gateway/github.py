"""
GitHub Gateway — REST API implementation of the remote gateway.

Uses ``httpx.AsyncClient`` against ``https://api.github.com`` (override with
CHRONOGIT_API_BASE). Each call maps the HTTP outcome onto a tagged error at
the point it is received:

| Status                                   | Error                 |
|------------------------------------------|-----------------------|
| 401                                      | ConfigurationError    |
| 404                                      | NotFoundError         |
| 429, or 403 with exhausted rate budget   | RateLimitError        |
| 409 / 422 on a content write             | ConflictError         |
| 5xx, timeouts, other 4xx                 | TransientRemoteError  |

Payloads are validated with the pydantic schemas in ``chronogit.models``;
a mismatch raises ``ValidationError``.
"""

from __future__ import annotations

import base64
import logging
import os
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
import pydantic
from pydantic import BaseModel, TypeAdapter

from ..errors import (
    ConfigurationError,
    ConflictError,
    MirrorError,
    NotFoundError,
    RateLimitError,
    TransientRemoteError,
    ValidationError,
)
from ..models import CommitRecord, FileVersion, GitHubCommit, GitHubRepo, GitHubUser
from .base import Committer, Gateway

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.github.com"
API_VERSION = "2022-11-28"
USER_AGENT = "chronogit/0.1"
REQUEST_TIMEOUT = 30.0

M = TypeVar("M", bound=BaseModel)


def _get_headers(token: str) -> Dict[str, str]:
    """Get GitHub API headers."""
    return {
        "Accept": "application/vnd.github+json",
        "Authorization": f"Bearer {token}",
        "User-Agent": USER_AGENT,
        "X-GitHub-Api-Version": API_VERSION,
    }


def _retry_after(resp: httpx.Response) -> Optional[float]:
    value = resp.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _is_rate_limited(resp: httpx.Response) -> bool:
    if resp.status_code == 429:
        return True
    if resp.status_code == 403:
        if resp.headers.get("x-ratelimit-remaining") == "0":
            return True
        # Secondary rate limits come back as 403 with Retry-After
        if "retry-after" in resp.headers:
            return True
    return False


def map_response_error(resp: httpx.Response, write: bool = False) -> MirrorError:
    """Translate a non-success response into a tagged error."""
    status = resp.status_code
    detail = f"{resp.request.method} {resp.request.url.path}: {resp.text[:200]}"

    if _is_rate_limited(resp):
        return RateLimitError(detail, status_code=status, retry_after=_retry_after(resp))
    if status == 401:
        return ConfigurationError(f"Access token rejected ({detail})", status_code=status)
    if status == 404:
        return NotFoundError(detail, status_code=status)
    if write and status in (409, 422):
        return ConflictError(detail, status_code=status)
    return TransientRemoteError(detail, status_code=status)


class GitHubApiGateway(Gateway):
    """
    Real GitHub gateway.

    One instance wraps one ``httpx.AsyncClient``; close it with ``aclose()``
    or use it as an async context manager.
    """

    def __init__(
        self,
        token: str,
        api_base: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        if not token:
            raise ConfigurationError("No access token provided")
        self.api_base = (api_base or os.environ.get("CHRONOGIT_API_BASE") or DEFAULT_API_BASE).rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self.api_base,
            headers=_get_headers(token),
            timeout=timeout,
        )

    async def __aenter__(self) -> "GitHubApiGateway":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        write: bool = False,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientRemoteError(f"{method} {path} timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransientRemoteError(f"{method} {path} failed: {e}") from e

        if resp.status_code >= 400:
            error = map_response_error(resp, write=write)
            logger.debug(f"[github] {error}")
            raise error
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise ValidationError(f"Invalid JSON from {resp.request.url.path}: {e}") from e

    def _parse(self, resp: httpx.Response, model: Type[M]) -> M:
        try:
            return model.model_validate(self._json(resp))
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Unexpected {model.__name__} payload from {resp.request.url.path}: "
                f"{e.error_count()} error(s)"
            ) from e

    def _parse_list(self, resp: httpx.Response, model: Type[M]) -> List[M]:
        try:
            return TypeAdapter(List[model]).validate_python(self._json(resp))
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Unexpected {model.__name__} list from {resp.request.url.path}: "
                f"{e.error_count()} error(s)"
            ) from e

    async def get_authenticated_user(self) -> GitHubUser:
        resp = await self._request("GET", "/user")
        return self._parse(resp, GitHubUser)

    async def get_repo(self, owner: str, name: str) -> GitHubRepo:
        resp = await self._request("GET", f"/repos/{owner}/{name}")
        return self._parse(resp, GitHubRepo)

    async def create_repo(
        self,
        name: str,
        private: bool = False,
        description: str = "",
        auto_init: bool = True,
    ) -> GitHubRepo:
        resp = await self._request(
            "POST",
            "/user/repos",
            json={
                "name": name,
                "private": private,
                "description": description,
                "auto_init": auto_init,
            },
        )
        repo = self._parse(resp, GitHubRepo)
        logger.info(f"[github] Created repository {repo.full_name}")
        return repo

    async def list_user_repos(self) -> List[GitHubRepo]:
        resp = await self._request(
            "GET",
            "/user/repos",
            params={"per_page": 100, "sort": "updated", "visibility": "all"},
        )
        return self._parse_list(resp, GitHubRepo)

    async def list_commits(
        self, owner: str, name: str, page_size: int
    ) -> List[CommitRecord]:
        try:
            resp = await self._request(
                "GET",
                f"/repos/{owner}/{name}/commits",
                params={"per_page": page_size},
            )
        except TransientRemoteError as e:
            # GitHub answers 409 for a repository without any commits
            if e.status_code == 409:
                return []
            raise
        return [c.to_record() for c in self._parse_list(resp, GitHubCommit)]

    async def get_file_content(self, owner: str, repo: str, path: str) -> FileVersion:
        resp = await self._request("GET", f"/repos/{owner}/{repo}/contents/{path}")
        data = self._json(resp)
        if not isinstance(data, dict) or not isinstance(data.get("sha"), str):
            raise ValidationError(f"{path} in {owner}/{repo} is not a file")
        return FileVersion(path=path, token=data["sha"])

    async def put_file_content(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        committer: Committer,
        prior_token: Optional[str] = None,
    ) -> None:
        body: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "committer": committer.to_dict(),
        }
        if prior_token:
            body["sha"] = prior_token

        await self._request(
            "PUT",
            f"/repos/{owner}/{repo}/contents/{path}",
            write=True,
            json=body,
        )
        logger.debug(f"[github] Wrote {path} to {owner}/{repo}")
