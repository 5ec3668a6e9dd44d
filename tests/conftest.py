"""
Shared test configuration and fixtures.

Provides an in-memory stand-in for the GitHub Git Data and Contents APIs,
served over real HTTP with aiohttp's test server so the object client is
exercised end to end.
"""

import base64
import hashlib
import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from zen_content_store import ContentStore, ObjectClient, RepositoryRef, StoreConfig

logger = logging.getLogger(__name__)

OWNER = "alice"
REPO = "blog"
BRANCH = "data"
TOKEN = "secret-token"


class FakeGitRemote:
    """
    In-memory Git object store behind the hosting API routes.

    Objects are content addressed; refs only move by fast-forward unless
    forced. Tests can inject one-shot failures and a hook that runs right
    before a ref update to simulate a concurrent writer.
    """

    def __init__(self, token: str = TOKEN, author_login: str | None = OWNER):
        self.token = token
        self.author_login = author_login
        self.author_name = "Alice Writer"

        self.blobs: dict[str, bytes] = {}
        self.trees: dict[str, dict[str, str]] = {}
        self.commits: dict[str, dict[str, Any]] = {}
        self.refs: dict[str, str] = {}

        self.requests: list[tuple[str, str]] = []
        self.blob_uploads = 0
        self.failures: dict[tuple[str, str], list[tuple[int, Any]]] = {}
        self.before_ref_update: Callable[[], Awaitable[None]] | None = None
        self.on_blob: Callable[[dict[str, Any]], Awaitable[web.Response | None]] | None = None
        self._commit_counter = 0

        prefix = f"/repos/{OWNER}/{REPO}"

        @web.middleware
        async def middleware(request: web.Request, handler: Any) -> web.StreamResponse:
            return await self._dispatch(request, handler, prefix)

        self.app = web.Application(middlewares=[middleware])
        router = self.app.router
        router.add_get(prefix + "/git/ref/heads/{branch:.+}", self.get_ref)
        router.add_get(prefix + "/git/commits/{sha}", self.get_commit)
        router.add_post(prefix + "/git/blobs", self.create_blob)
        router.add_post(prefix + "/git/trees", self.create_tree)
        router.add_post(prefix + "/git/commits", self.create_commit)
        router.add_patch(prefix + "/git/refs/heads/{branch:.+}", self.update_ref)
        router.add_post(prefix + "/git/refs", self.create_ref)
        router.add_get(prefix + "/contents/{path:.+}", self.get_contents)
        router.add_delete(prefix + "/contents/{path:.+}", self.delete_contents)
        router.add_get(prefix + "/commits", self.list_commits)

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def fail_next(self, method: str, endpoint: str, status: int, message: Any = None) -> None:
        """Make the next request to `endpoint` fail once.

        `message` None sends a non-JSON body.
        """
        self.failures.setdefault((method, endpoint), []).append((status, message))

    def calls(self, method: str, endpoint_prefix: str) -> int:
        return sum(
            1 for m, endpoint in self.requests if m == method and endpoint.startswith(endpoint_prefix)
        )

    def store_blob(self, data: bytes) -> str:
        sha = hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()
        self.blobs[sha] = data
        return sha

    def store_tree(self, entries: dict[str, str]) -> str:
        payload = json.dumps(sorted(entries.items())).encode()
        sha = hashlib.sha1(b"tree " + payload).hexdigest()
        self.trees[sha] = dict(entries)
        return sha

    def store_commit(self, tree: str, parents: list[str], message: str) -> str:
        self._commit_counter += 1
        payload = json.dumps([tree, parents, message, self._commit_counter]).encode()
        sha = hashlib.sha1(b"commit " + payload).hexdigest()
        self.commits[sha] = {"tree": tree, "parents": list(parents), "message": message}
        return sha

    def seed(self, branch: str, files: dict[str, str | bytes], message: str = "seed") -> str:
        """Create `branch` with `files` on top of its current tip (or as a root)."""
        parent = self.refs.get(branch)
        entries = dict(self.trees[self.commits[parent]["tree"]]) if parent else {}
        for path, content in files.items():
            data = content.encode() if isinstance(content, str) else content
            entries[path] = self.store_blob(data)
        commit = self.store_commit(self.store_tree(entries), [parent] if parent else [], message)
        self.refs[branch] = commit
        return commit

    def tree_at(self, branch: str) -> dict[str, str]:
        return self.trees[self.commits[self.refs[branch]]["tree"]]

    def files_at(self, branch: str) -> dict[str, bytes]:
        return {path: self.blobs[sha] for path, sha in self.tree_at(branch).items()}

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        pending = [descendant]
        seen: set[str] = set()
        while pending:
            sha = pending.pop()
            if sha == ancestor:
                return True
            if sha in seen:
                continue
            seen.add(sha)
            pending.extend(self.commits[sha]["parents"])
        return False

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    async def _dispatch(self, request: web.Request, handler: Any, prefix: str) -> web.StreamResponse:
        endpoint = request.path[len(prefix) + 1 :]
        self.requests.append((request.method, endpoint))

        auth = request.headers.get("Authorization")
        if auth is not None and auth != f"token {self.token}":
            return _error(401, "Bad credentials")
        if auth is None and request.method != "GET":
            return _error(401, "Requires authentication")

        queued = self.failures.get((request.method, endpoint))
        if queued:
            status, message = queued.pop(0)
            if message is None:
                return web.Response(status=status, text="upstream exploded")
            return _error(status, message)

        return await handler(request)

    # ------------------------------------------------------------------
    # Git Data API
    # ------------------------------------------------------------------

    async def get_ref(self, request: web.Request) -> web.Response:
        branch = request.match_info["branch"]
        if branch not in self.refs:
            return _error(404, "Not Found")
        return web.json_response(
            {"ref": f"refs/heads/{branch}", "object": {"sha": self.refs[branch], "type": "commit"}}
        )

    async def get_commit(self, request: web.Request) -> web.Response:
        sha = request.match_info["sha"]
        commit = self.commits.get(sha)
        if commit is None:
            return _error(404, "Not Found")
        return web.json_response(
            {
                "sha": sha,
                "message": commit["message"],
                "tree": {"sha": commit["tree"]},
                "parents": [{"sha": p} for p in commit["parents"]],
            }
        )

    async def create_blob(self, request: web.Request) -> web.Response:
        body = await request.json()
        if self.on_blob is not None:
            response = await self.on_blob(body)
            if response is not None:
                return response
        if body.get("encoding") == "base64":
            data = base64.b64decode(body["content"])
        elif body.get("encoding") == "utf-8":
            data = body["content"].encode()
        else:
            return _error(422, "Invalid encoding")
        self.blob_uploads += 1
        return web.json_response({"sha": self.store_blob(data)}, status=201)

    async def create_tree(self, request: web.Request) -> web.Response:
        body = await request.json()
        base_tree = body.get("base_tree")
        if base_tree is not None and base_tree not in self.trees:
            return _error(422, "Invalid base_tree")

        entries = dict(self.trees[base_tree]) if base_tree else {}
        for item in body.get("tree", []):
            if item.get("mode") != "100644" or item.get("type") != "blob":
                return _error(422, f"Unsupported tree entry for {item.get('path')}")
            if "content" in item:
                entries[item["path"]] = self.store_blob(item["content"].encode())
            elif item.get("sha") is None:
                entries.pop(item["path"], None)
            elif item["sha"] in self.blobs:
                entries[item["path"]] = item["sha"]
            else:
                return _error(422, f"Unknown blob {item['sha']}")
        return web.json_response({"sha": self.store_tree(entries)}, status=201)

    async def create_commit(self, request: web.Request) -> web.Response:
        body = await request.json()
        if body.get("tree") not in self.trees:
            return _error(422, "Tree SHA does not exist")
        parents = body.get("parents", [])
        if any(p not in self.commits for p in parents):
            return _error(422, "Parent SHA does not exist or is not a commit object")
        sha = self.store_commit(body["tree"], parents, body["message"])
        return web.json_response(
            {"sha": sha, "tree": {"sha": body["tree"]}, "parents": [{"sha": p} for p in parents]},
            status=201,
        )

    async def update_ref(self, request: web.Request) -> web.Response:
        branch = request.match_info["branch"]
        body = await request.json()
        if branch not in self.refs:
            return _error(422, "Reference does not exist")
        if body.get("sha") not in self.commits:
            return _error(422, "Object does not exist")

        if self.before_ref_update is not None:
            hook, self.before_ref_update = self.before_ref_update, None
            await hook()

        if not body.get("force") and not self.is_ancestor(self.refs[branch], body["sha"]):
            return _error(422, "Update is not a fast forward")
        self.refs[branch] = body["sha"]
        return web.json_response({"ref": f"refs/heads/{branch}", "object": {"sha": body["sha"]}})

    async def create_ref(self, request: web.Request) -> web.Response:
        body = await request.json()
        ref = body.get("ref", "")
        if not ref.startswith("refs/heads/"):
            return _error(422, "Reference name is invalid")
        branch = ref[len("refs/heads/") :]
        if branch in self.refs:
            return _error(422, "Reference already exists")
        if body.get("sha") not in self.commits:
            return _error(422, "Object does not exist")
        self.refs[branch] = body["sha"]
        return web.json_response({"ref": ref, "object": {"sha": body["sha"]}}, status=201)

    # ------------------------------------------------------------------
    # Contents / Commits API
    # ------------------------------------------------------------------

    async def get_contents(self, request: web.Request) -> web.Response:
        path = request.match_info["path"]
        branch = request.query.get("ref", BRANCH)
        if branch not in self.refs:
            return _error(404, f"No commit found for the ref {branch}")
        sha = self.tree_at(branch).get(path)
        if sha is None:
            return _error(404, "Not Found")
        encoded = base64.b64encode(self.blobs[sha]).decode()
        wrapped = "\n".join(encoded[i : i + 60] for i in range(0, len(encoded), 60)) + "\n"
        return web.json_response(
            {
                "type": "file",
                "encoding": "base64",
                "path": path,
                "name": path.rsplit("/", 1)[-1],
                "sha": sha,
                "content": wrapped,
            }
        )

    async def delete_contents(self, request: web.Request) -> web.Response:
        path = request.match_info["path"]
        body = await request.json()
        branch = body.get("branch", BRANCH)
        if branch not in self.refs:
            return _error(404, "Branch not found")
        entries = dict(self.tree_at(branch))
        if path not in entries:
            return _error(404, "Not Found")
        if entries[path] != body.get("sha"):
            return _error(409, f"{path} does not match {body.get('sha')}")
        del entries[path]
        commit = self.store_commit(self.store_tree(entries), [self.refs[branch]], body["message"])
        self.refs[branch] = commit
        return web.json_response({"content": None, "commit": {"sha": commit}})

    async def list_commits(self, request: web.Request) -> web.Response:
        path = request.query.get("path")
        branch = request.query.get("sha", BRANCH)
        per_page = int(request.query.get("per_page", "30"))
        if branch not in self.refs:
            return _error(404, "Not Found")

        results: list[dict[str, Any]] = []
        sha: str | None = self.refs[branch]
        while sha is not None and len(results) < per_page:
            commit = self.commits[sha]
            parent = commit["parents"][0] if commit["parents"] else None
            current = self.trees[commit["tree"]].get(path)
            previous = self.trees[self.commits[parent]["tree"]].get(path) if parent else None
            if path is None or current != previous:
                results.append(self._commit_summary(sha, commit))
            sha = parent
        return web.json_response(results)

    def _commit_summary(self, sha: str, commit: dict[str, Any]) -> dict[str, Any]:
        account = None
        if self.author_login:
            account = {
                "login": self.author_login,
                "avatar_url": f"https://avatars.example.com/{self.author_login}",
            }
        return {
            "sha": sha,
            "commit": {"message": commit["message"], "author": {"name": self.author_name}},
            "author": account,
        }


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"message": message}, status=status)


@pytest.fixture
def remote() -> FakeGitRemote:
    """Fresh in-memory remote with no branches."""
    return FakeGitRemote()


@pytest.fixture
async def api_base(remote: FakeGitRemote):
    """Serve the fake remote over HTTP and yield its base URL."""
    server = TestServer(remote.app)
    await server.start_server()
    logger.debug(f"Fake Git API listening on {server.host}:{server.port}")
    yield f"http://{server.host}:{server.port}"
    await server.close()


@pytest.fixture
async def client(api_base: str):
    client = ObjectClient(api_base=api_base)
    yield client
    await client.close()


@pytest.fixture
def repo() -> RepositoryRef:
    return RepositoryRef(owner=OWNER, repository_name=REPO, branch_name=BRANCH, credential=TOKEN)


@pytest.fixture
def anonymous_repo() -> RepositoryRef:
    return RepositoryRef(owner=OWNER, repository_name=REPO, branch_name=BRANCH)


@pytest.fixture
def config(api_base: str) -> StoreConfig:
    return StoreConfig(owner=OWNER, repo=REPO, branch=BRANCH, token=TOKEN, api_base=api_base)


@pytest.fixture
async def store(config: StoreConfig):
    async with ContentStore(config) as store:
        yield store
