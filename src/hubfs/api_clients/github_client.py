"""
GitHub Object Store Client for hubfs.

Implements the ObjectStoreClient surface on top of the GitHub REST API:
the contents API for single-call reads/writes and the git data API
(blobs, trees, commits, refs) for batched commits and large objects.
Transport status codes are translated into ErrorKind values here and
nowhere else.
"""

import logging
import urllib.parse
from typing import Any, Dict, List, Optional

import httpx

from .base import ObjectStoreClient
from ..exceptions import ErrorKind, ObjectStoreError
from ..logging_utils import format_error_log, get_log_extra
from ..models import CommitInfo, ContentsInfo, RepositoryHandle, TreeEntry
from ..utils.encoding import decode_content

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.github.com"
DEFAULT_TIMEOUT_SECONDS = 30.0


class GitHubObjectStore(ObjectStoreClient):
    """
    Async GitHub API client scoped to one repository.

    Owns an httpx.AsyncClient; call aclose() (or use the owning Hubfs as an
    async context manager) to release it.
    """

    def __init__(
        self,
        handle: RepositoryHandle,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the GitHub object store client.

        Args:
            handle: Repository coordinates and API token
            base_url: API root (override for GitHub Enterprise)
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        super().__init__(handle)
        self._base_url = base_url.rstrip("/")
        # GitHub uses Bearer token authentication
        headers = {
            "Authorization": f"Bearer {handle.token}",
            "Accept": "application/vnd.github.v3+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._repository_confirmed = False

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self._handle.owner}/{self._handle.repo}"

    async def aclose(self) -> None:
        await self._client.aclose()

    # Transport helpers

    async def _request(
        self,
        method: str,
        endpoint: str,
        operation: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Make an API request against the repository.

        Raises:
            ObjectStoreError: If the request fails or returns a non-2xx status
        """
        url = f"{self._repo_path}{endpoint}"
        try:
            response = await self._client.request(method, url, json=json, params=params)
        except httpx.TimeoutException as e:
            logger.warning(
                format_error_log(
                    "HUBFS-STORE-001", "GitHub API request timed out", operation=operation
                ),
                extra=get_log_extra("HUBFS-STORE-001", operation=operation),
            )
            raise ObjectStoreError(
                f"GitHub API request timed out during {operation}: {e}",
                ErrorKind.TRANSIENT,
                operation=operation,
            )
        except httpx.HTTPError as e:
            logger.warning(
                format_error_log(
                    "HUBFS-STORE-002",
                    "GitHub API request failed",
                    operation=operation,
                    error=type(e).__name__,
                ),
                extra=get_log_extra("HUBFS-STORE-002", operation=operation),
            )
            raise ObjectStoreError(
                f"GitHub API request failed during {operation}: {e}",
                ErrorKind.TRANSIENT,
                operation=operation,
            )

        logger.debug(f"{method} {url} -> {response.status_code}")
        if response.is_success:
            self._repository_confirmed = True
            return response

        raise await self._error_from_response(response, operation)

    @staticmethod
    def _extract_error_detail(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {"message": response.text}
        return body if isinstance(body, dict) else {"message": str(body)}

    async def _error_from_response(
        self, response: httpx.Response, operation: str
    ) -> ObjectStoreError:
        """Classify a failed response into an ObjectStoreError."""
        status = response.status_code
        detail = self._extract_error_detail(response)
        message = detail.get("message") or response.reason_phrase
        error_codes = {
            error.get("code")
            for error in detail.get("errors", []) or []
            if isinstance(error, dict)
        }

        if status == 404:
            # GitHub answers 404 both for a missing path and a missing repository
            probe_status = await self._probe_repository()
            if probe_status in (401, 404):
                kind = ErrorKind.INVALID_REPO
                status = probe_status
            else:
                kind = ErrorKind.NOT_FOUND
        elif status == 401:
            kind = ErrorKind.INVALID_REPO
        elif status == 403:
            if "too_large" in error_codes or "too large" in str(message).lower():
                kind = ErrorKind.TOO_LARGE
            elif _is_rate_limited(response, message):
                kind = ErrorKind.TRANSIENT
            else:
                kind = ErrorKind.INVALID_REPO
        elif status in (409, 422):
            kind = ErrorKind.CONFLICT
        else:
            # 429 and 5xx
            kind = ErrorKind.TRANSIENT

        if kind is ErrorKind.TRANSIENT:
            logger.warning(
                format_error_log(
                    "HUBFS-STORE-003",
                    "GitHub API returned an error",
                    operation=operation,
                    status=status,
                ),
                extra=get_log_extra("HUBFS-STORE-003", operation=operation),
            )

        return ObjectStoreError(
            f"GitHub API {operation} failed ({status}): {message}",
            kind,
            status_code=status,
            operation=operation,
        )

    async def _probe_repository(self) -> Optional[int]:
        """
        Probe the repository itself to tell a missing repo from a missing path.

        Returns the probe's status code, or None when the repository is known
        to exist or the probe itself could not complete.
        """
        if self._repository_confirmed:
            return None
        try:
            response = await self._client.get(self._repo_path)
        except httpx.HTTPError:
            return None
        if response.status_code == 200:
            self._repository_confirmed = True
            return None
        return response.status_code

    # Repository

    async def get_default_branch(self) -> str:
        response = await self._request("GET", "", "get repository")
        return str(response.json()["default_branch"])

    # Contents API

    async def get_contents(self, path: str, ref: str) -> ContentsInfo:
        response = await self._request(
            "GET",
            f"/contents/{_quote_path(path)}",
            "get contents",
            params={"ref": ref},
        )
        data = response.json()
        if isinstance(data, list) or data.get("type", "file") != "file":
            raise ObjectStoreError(
                f"Path is not a file: {path}",
                ErrorKind.NOT_FOUND,
                status_code=response.status_code,
                operation="get contents",
            )

        encoding = data.get("encoding")
        content = data.get("content")
        size = int(data.get("size") or 0)
        # Files above the contents API ceiling come back without their content
        if encoding == "none" or (content in (None, "") and size > 0):
            raise ObjectStoreError(
                f"File too large for the contents API: {path} ({size} bytes)",
                ErrorKind.TOO_LARGE,
                status_code=response.status_code,
                operation="get contents",
            )

        return ContentsInfo(
            path=data.get("path", path),
            sha=data["sha"],
            content=decode_content(content or "", encoding or "base64"),
            size=size,
        )

    async def put_contents(
        self,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: Optional[str] = None,
    ) -> str:
        payload: Dict[str, Any] = {
            "message": message,
            "content": content,
            "branch": branch,
        }
        if sha is not None:
            payload["sha"] = sha
        response = await self._request(
            "PUT", f"/contents/{_quote_path(path)}", "put contents", json=payload
        )
        return str(response.json()["commit"]["sha"])

    # Git data API

    async def create_blob(self, content: str, encoding: str = "base64") -> str:
        response = await self._request(
            "POST",
            "/git/blobs",
            "create blob",
            json={"content": content, "encoding": encoding},
        )
        return str(response.json()["sha"])

    async def get_blob(self, sha: str) -> bytes:
        response = await self._request("GET", f"/git/blobs/{sha}", "get blob")
        data = response.json()
        return decode_content(data.get("content", ""), data.get("encoding", "base64"))

    async def get_ref(self, ref: str) -> str:
        response = await self._request("GET", f"/git/ref/{ref}", "get ref")
        target = response.json()["object"]
        if target.get("type") == "tag":
            # Annotated tag: peel to the tagged object
            tag = await self._request("GET", f"/git/tags/{target['sha']}", "get tag")
            return str(tag.json()["object"]["sha"])
        return str(target["sha"])

    async def update_ref(self, ref: str, sha: str, force: bool = False) -> None:
        await self._request(
            "PATCH",
            f"/git/refs/{ref}",
            "update ref",
            json={"sha": sha, "force": force},
        )

    async def get_commit(self, sha: str) -> CommitInfo:
        response = await self._request("GET", f"/git/commits/{sha}", "get commit")
        data = response.json()
        return CommitInfo(sha=data["sha"], tree_sha=data["tree"]["sha"])

    async def create_commit(
        self, message: str, tree_sha: str, parents: List[str]
    ) -> str:
        response = await self._request(
            "POST",
            "/git/commits",
            "create commit",
            json={"message": message, "tree": tree_sha, "parents": parents},
        )
        return str(response.json()["sha"])

    async def get_tree(self, sha: str, recursive: bool = False) -> List[TreeEntry]:
        params = {"recursive": "1"} if recursive else None
        response = await self._request(
            "GET", f"/git/trees/{sha}", "get tree", params=params
        )
        data = response.json()
        if data.get("truncated"):
            logger.warning(
                format_error_log(
                    "HUBFS-STORE-004", "Tree listing was truncated by GitHub", tree=sha
                ),
                extra=get_log_extra("HUBFS-STORE-004", tree=sha),
            )
        return [
            TreeEntry(
                path=item["path"],
                sha=item["sha"],
                mode=item.get("mode", ""),
                type=item.get("type", "blob"),
            )
            for item in data.get("tree", [])
        ]

    async def create_tree(self, base_tree: str, entries: List[TreeEntry]) -> str:
        response = await self._request(
            "POST",
            "/git/trees",
            "create tree",
            json={
                "base_tree": base_tree,
                "tree": [entry.to_tree_item() for entry in entries],
            },
        )
        return str(response.json()["sha"])


def _quote_path(path: str) -> str:
    return urllib.parse.quote(path, safe="/")


def _is_rate_limited(response: httpx.Response, message: Any) -> bool:
    """
    Tell a rate-limited 403 from a permission 403.

    Primary limits exhaust ``x-ratelimit-remaining``; secondary limits may
    leave it positive but send ``retry-after`` or say so in the message.
    """
    if response.headers.get("x-ratelimit-remaining") == "0":
        return True
    if "retry-after" in response.headers:
        return True
    return "rate limit" in str(message).lower()
