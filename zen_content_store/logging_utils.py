"""
Structured JSON logging for store operations.

Every record is one JSON object. Records always carry the repository
context fields (owner, repo, branch); they are null for records logged
outside a repository operation. Credentials never reach the output.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

from .config import RepositoryRef

PACKAGE_LOGGER = "zen_content_store"

CONTEXT_FIELDS = ("owner", "repo", "branch")
REDACTED_FIELDS = frozenset({"token", "credential", "authorization"})

# Attributes every LogRecord has; anything else came in through `extra`.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
}


class StructuredJsonFormatter(logging.Formatter):
    """Formats records as single-line JSON with repository context."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in CONTEXT_FIELDS:
            entry[name] = getattr(record, name, None)

        for key, value in vars(record).items():
            if key in entry or key in _RECORD_ATTRS or key.startswith("_"):
                continue
            entry[key] = "***" if key.lower() in REDACTED_FIELDS else value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_structured_logging(
    level: int = logging.INFO,
    stream: TextIO | None = None,
    logger_name: str = PACKAGE_LOGGER,
) -> logging.Logger:
    """
    Send the package's logs to `stream` (default: stdout) as JSON lines.

    Calling it again replaces the handler instead of adding a second one.
    """
    logger = logging.getLogger(logger_name)
    logger.handlers = [
        h for h in logger.handlers if not isinstance(h.formatter, StructuredJsonFormatter)
    ]

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredJsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


class StoreLoggerAdapter(logging.LoggerAdapter):
    """Stamps the owner, repository and branch of one operation onto its records.

    Only the repository coordinates are copied from `repo`, never its credential.
    """

    def __init__(self, logger: logging.Logger, repo: RepositoryRef, branch: str | None = None):
        super().__init__(
            logger,
            {
                "owner": repo.owner,
                "repo": repo.repository_name,
                "branch": branch or repo.branch_name,
            },
        )

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs
