"""
Repository configuration.

`StoreConfig` is what a user edits in the settings screen (owner, repo,
branch, token). It can be built directly, from environment variables or from
a YAML settings file. Every core call receives an explicit `RepositoryRef`
derived from it; nothing in the core reads ambient configuration.

Settings file (~/.zenblog/settings.yaml):

```yaml
github:
  owner: "alice"
  repo: "blog"
  branch: "data"
  token: "ghp_..."
```
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .exceptions import ValidationError

DEFAULT_BRANCH = "data"
DEFAULT_API_BASE = "https://api.github.com"
DEFAULT_RAW_BASE = "https://raw.githubusercontent.com"
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_CONCURRENT_BLOBS = 4
DEFAULT_SETTINGS_PATH = Path.home() / ".zenblog" / "settings.yaml"


def _number(field_name: str, value: Any, kind: type[float] | type[int]) -> Any:
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(field_name, f"must be a number: {e}", str(value)) from e


@dataclass(frozen=True)
class RepositoryRef:
    """Identifies one remote store instance for the duration of an operation.

    Attributes:
        owner: Repository owner (user or organization)
        repository_name: Repository name
        branch_name: Branch used as the document store
        credential: API token; None for anonymous reads
    """

    owner: str
    repository_name: str
    branch_name: str = DEFAULT_BRANCH
    credential: str | None = field(default=None, repr=False)

    @property
    def has_credential(self) -> bool:
        return bool(self.credential)

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repository_name}"

    def with_branch(self, branch_name: str) -> RepositoryRef:
        """Return a copy pointing at another branch."""
        return RepositoryRef(
            owner=self.owner,
            repository_name=self.repository_name,
            branch_name=branch_name,
            credential=self.credential,
        )


@dataclass
class StoreConfig:
    """Configuration for the Git-backed content store.

    Attributes:
        owner: Repository owner
        repo: Repository name
        branch: Branch holding the blog data
        token: API token (required for writes)
        api_base: Base URL of the hosting REST API
        raw_base: Base URL for raw file downloads
        bootstrap_branch: Only this branch is auto-created when missing; None disables
        timeout: Total timeout per HTTP request (seconds)
        max_concurrent_blobs: Upper bound on parallel blob uploads
    """

    owner: str
    repo: str
    branch: str = DEFAULT_BRANCH
    token: str | None = field(default=None, repr=False)
    api_base: str = DEFAULT_API_BASE
    raw_base: str = DEFAULT_RAW_BASE
    bootstrap_branch: str | None = DEFAULT_BRANCH
    timeout: float = DEFAULT_TIMEOUT
    max_concurrent_blobs: int = DEFAULT_MAX_CONCURRENT_BLOBS

    def __post_init__(self) -> None:
        if not self.owner:
            raise ValidationError("owner", "repository owner is required")
        if not self.repo:
            raise ValidationError("repo", "repository name is required")
        if not self.branch:
            self.branch = DEFAULT_BRANCH
        if self.max_concurrent_blobs < 1:
            raise ValidationError(
                "max_concurrent_blobs", "must be at least 1", str(self.max_concurrent_blobs)
            )

    @classmethod
    def from_env(cls) -> StoreConfig:
        """Create config from environment variables.

        Required env vars:
            ZENBLOG_GITHUB_OWNER: Repository owner
            ZENBLOG_GITHUB_REPO: Repository name

        Optional env vars:
            ZENBLOG_GITHUB_BRANCH: Data branch (default: data)
            ZENBLOG_GITHUB_TOKEN: API token (needed for writes)
            ZENBLOG_API_BASE: API base URL
            ZENBLOG_RAW_BASE: Raw download base URL
            ZENBLOG_TIMEOUT: Request timeout in seconds

        Raises:
            ValidationError: If owner or repo is not set
        """
        timeout_str = os.environ.get("ZENBLOG_TIMEOUT")
        return cls(
            owner=os.environ.get("ZENBLOG_GITHUB_OWNER", ""),
            repo=os.environ.get("ZENBLOG_GITHUB_REPO", ""),
            branch=os.environ.get("ZENBLOG_GITHUB_BRANCH", DEFAULT_BRANCH),
            token=os.environ.get("ZENBLOG_GITHUB_TOKEN") or None,
            api_base=os.environ.get("ZENBLOG_API_BASE", DEFAULT_API_BASE),
            raw_base=os.environ.get("ZENBLOG_RAW_BASE", DEFAULT_RAW_BASE),
            timeout=_number("timeout", timeout_str, float) if timeout_str else DEFAULT_TIMEOUT,
        )

    @classmethod
    def from_file(cls, path: Path | None = None) -> StoreConfig:
        """Create config from the `github:` section of a YAML settings file.

        Raises:
            ValidationError: If the file is missing, unreadable, or lacks owner/repo
        """
        path = path or DEFAULT_SETTINGS_PATH
        if not path.exists():
            raise ValidationError("settings", "settings file not found", str(path))

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ValidationError("settings", f"invalid YAML: {e}", str(path)) from e

        if not isinstance(data, dict):
            raise ValidationError("settings", "top level must be a mapping", str(path))
        section = data.get("github") or {}
        if not isinstance(section, dict):
            raise ValidationError("settings", "github section must be a mapping", str(path))
        kwargs: dict[str, Any] = {
            "owner": section.get("owner", ""),
            "repo": section.get("repo", ""),
            "branch": section.get("branch", DEFAULT_BRANCH),
            "token": section.get("token") or None,
        }
        for key in ("api_base", "raw_base", "bootstrap_branch"):
            if section.get(key):
                kwargs[key] = section[key]
        if section.get("timeout") is not None:
            kwargs["timeout"] = _number("timeout", section["timeout"], float)
        if section.get("max_concurrent_blobs") is not None:
            kwargs["max_concurrent_blobs"] = _number(
                "max_concurrent_blobs", section["max_concurrent_blobs"], int
            )
        return cls(**kwargs)

    def save_to_file(self, path: Path | None = None) -> Path:
        """Write this config into the `github:` section of a settings file.

        Other top-level sections of an existing file are preserved.
        """
        path = path or DEFAULT_SETTINGS_PATH
        data: dict[str, Any] = {}
        if path.exists():
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            if not isinstance(data, dict):
                raise ValidationError("settings", "top level must be a mapping", str(path))

        section: dict[str, Any] = {
            "owner": self.owner,
            "repo": self.repo,
            "branch": self.branch,
        }
        if self.token:
            section["token"] = self.token
        if self.api_base != DEFAULT_API_BASE:
            section["api_base"] = self.api_base
        if self.raw_base != DEFAULT_RAW_BASE:
            section["raw_base"] = self.raw_base
        data["github"] = section

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(data, default_flow_style=False), encoding="utf-8")
        return path

    def repository_ref(self) -> RepositoryRef:
        return RepositoryRef(
            owner=self.owner,
            repository_name=self.repo,
            branch_name=self.branch,
            credential=self.token,
        )

    def public_config(self) -> dict[str, str]:
        """Token-free settings published to data/config.json."""
        return {"owner": self.owner, "repo": self.repo, "branch": self.branch}
