"""
Blog data models stored in the data branch.

`data/posts.json` holds the post index in the camelCase JSON shape the web
front end reads; post bodies live at `posts/<id>.md`.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

EXCERPT_LENGTH = 150
POST_ID_LENGTH = 9


def new_post_id() -> str:
    """Short random post id."""
    return uuid.uuid4().hex[:POST_ID_LENGTH]


def default_excerpt(content: str) -> str:
    """Excerpt used when the author leaves it empty."""
    return content[:EXCERPT_LENGTH] + "..."


def content_path_for(post_id: str) -> str:
    return f"posts/{post_id}.md"


@dataclass
class FileAuthor:
    """Last writer of a path."""

    name: str
    avatar: str
    username: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "avatar": self.avatar, "username": self.username}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileAuthor:
        return cls(name=data["name"], avatar=data["avatar"], username=data["username"])


@dataclass
class Post:
    """One entry of the post index.

    Attributes:
        id: Stable post id
        title: Post title
        excerpt: Short summary shown in listings
        category: Free-form category label
        date: ISO 8601 creation timestamp
        content_path: Path of the markdown body in the data branch
        image: Optional cover image URL
        author: Optional author shown on the post
    """

    id: str
    title: str
    excerpt: str = ""
    category: str = ""
    date: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    content_path: str = ""
    image: str | None = None
    author: FileAuthor | None = None

    def __post_init__(self) -> None:
        if not self.content_path:
            self.content_path = content_path_for(self.id)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the posts.json shape."""
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "excerpt": self.excerpt,
            "date": self.date,
            "category": self.category,
            "contentPath": self.content_path,
        }
        if self.image is not None:
            data["image"] = self.image
        if self.author is not None:
            data["author"] = self.author.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Post:
        author = data.get("author")
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            excerpt=data.get("excerpt", ""),
            category=data.get("category", ""),
            date=data.get("date") or datetime.now(UTC).isoformat(),
            content_path=data.get("contentPath") or content_path_for(data["id"]),
            image=data.get("image"),
            author=FileAuthor.from_dict(author) if author else None,
        )


@dataclass
class StoredFile:
    """A single file read through the contents API."""

    path: str
    sha: str
    raw: bytes = field(repr=False)

    @property
    def content(self) -> str:
        return self.raw.decode("utf-8")
