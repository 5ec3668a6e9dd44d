"""
Authenticated HTTP client for the hosted Git REST API.

Provides a clean interface to the GitHub Git Data and Contents APIs with:
- Session lifecycle management
- Token authentication when a credential is present
- Normalization of every non-2xx response into the store exceptions

There are deliberately no retries here; callers decide what is retryable.
"""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from ..config import DEFAULT_API_BASE, DEFAULT_TIMEOUT, RepositoryRef
from ..exceptions import (
    AuthenticationError,
    NotFoundError,
    RemoteError,
    StorageConnectionError,
)
from .types import BlobEncoding, GitObjectId, TreeEntry

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "application/vnd.github.v3+json"
UNKNOWN_ERROR_MESSAGE = "Unknown error"


class ObjectClient:
    """Wrapper around an aiohttp session scoped to the hosting API.

    The client holds no repository state: every call receives the
    `RepositoryRef` it operates on.

    Example:
        >>> async with ObjectClient() as client:
        ...     tip = await client.get_ref(repo, "data")
    """

    def __init__(
        self,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
    ):
        """Initialize the client.

        Args:
            api_base: Base URL of the REST API
            timeout: Total timeout per request (seconds)
            session: Optional externally owned session
        """
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the underlying session if this client created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> ObjectClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def url_for(self, repo: RepositoryRef, endpoint: str) -> str:
        return f"{self.api_base}/repos/{repo.owner}/{repo.repository_name}/{endpoint}"

    @staticmethod
    def require_credential(repo: RepositoryRef, operation: str) -> None:
        """Fail fast before a write when no credential is configured."""
        if not repo.has_credential:
            raise AuthenticationError(repo.slug, f"{operation} requires an API token")

    async def call(
        self,
        repo: RepositoryRef,
        endpoint: str,
        method: str = "GET",
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Issue one request and return the decoded JSON response.

        Raises:
            AuthenticationError: On 401
            NotFoundError: On 404
            RemoteError: On any other non-2xx status
            StorageConnectionError: When the API cannot be reached
        """
        url = self.url_for(repo, endpoint)
        headers = {"Accept": ACCEPT_HEADER}
        if repo.credential:
            headers["Authorization"] = f"token {repo.credential}"

        logger.debug(f"{method} {endpoint}")
        session = self._get_session()
        try:
            async with session.request(
                method, url, json=body, params=params, headers=headers
            ) as response:
                if response.status == 204:
                    return None
                payload = await self._read_payload(response)
                if response.status >= 400:
                    raise self._error_for(endpoint, response.status, payload)
                return payload
        except (aiohttp.ClientError, TimeoutError) as e:
            raise StorageConnectionError(url, e) from e

    @staticmethod
    async def _read_payload(response: aiohttp.ClientResponse) -> Any:
        try:
            return await response.json(content_type=None)
        except ValueError:
            return None

    @staticmethod
    def _error_for(endpoint: str, status: int, payload: Any) -> Exception:
        message = UNKNOWN_ERROR_MESSAGE
        if isinstance(payload, dict) and payload.get("message"):
            message = str(payload["message"])

        if status == 401:
            return AuthenticationError(endpoint, message)
        if status == 404:
            return NotFoundError(endpoint, message)
        return RemoteError(endpoint, status, message)

    # =========================================================================
    # Git Data API
    # =========================================================================

    async def get_ref(self, repo: RepositoryRef, branch: str) -> GitObjectId:
        data = await self.call(repo, f"git/ref/heads/{branch}")
        return GitObjectId(data["object"]["sha"])

    async def get_commit(self, repo: RepositoryRef, sha: GitObjectId) -> dict[str, Any]:
        return await self.call(repo, f"git/commits/{sha}")

    async def create_blob(
        self, repo: RepositoryRef, content: str, encoding: BlobEncoding
    ) -> GitObjectId:
        data = await self.call(
            repo, "git/blobs", "POST", {"content": content, "encoding": encoding}
        )
        return GitObjectId(data["sha"])

    async def create_tree(
        self,
        repo: RepositoryRef,
        entries: list[TreeEntry],
        base_tree: GitObjectId | None = None,
    ) -> GitObjectId:
        body: dict[str, Any] = {"tree": [entry.to_dict() for entry in entries]}
        if base_tree is not None:
            body["base_tree"] = base_tree
        data = await self.call(repo, "git/trees", "POST", body)
        return GitObjectId(data["sha"])

    async def create_commit(
        self,
        repo: RepositoryRef,
        message: str,
        tree: GitObjectId,
        parents: list[GitObjectId],
    ) -> GitObjectId:
        body: dict[str, Any] = {"message": message, "tree": tree}
        if parents:
            body["parents"] = list(parents)
        data = await self.call(repo, "git/commits", "POST", body)
        return GitObjectId(data["sha"])

    async def update_ref(
        self, repo: RepositoryRef, branch: str, sha: GitObjectId, force: bool = False
    ) -> GitObjectId:
        data = await self.call(
            repo, f"git/refs/heads/{branch}", "PATCH", {"sha": sha, "force": force}
        )
        return GitObjectId(data["object"]["sha"])

    async def create_ref(self, repo: RepositoryRef, branch: str, sha: GitObjectId) -> None:
        await self.call(repo, "git/refs", "POST", {"ref": f"refs/heads/{branch}", "sha": sha})

    # =========================================================================
    # Contents / Commits API (outside the atomic chain)
    # =========================================================================

    async def get_contents(self, repo: RepositoryRef, path: str) -> dict[str, Any]:
        return await self.call(repo, f"contents/{path}", params={"ref": repo.branch_name})

    async def delete_contents(
        self, repo: RepositoryRef, path: str, message: str, sha: str
    ) -> dict[str, Any]:
        return await self.call(
            repo,
            f"contents/{path}",
            "DELETE",
            {"message": message, "sha": sha, "branch": repo.branch_name},
        )

    async def list_commits(
        self, repo: RepositoryRef, path: str, per_page: int = 1
    ) -> list[dict[str, Any]]:
        data = await self.call(
            repo,
            "commits",
            params={"path": path, "sha": repo.branch_name, "per_page": per_page},
        )
        return data or []
