"""
Custom exceptions for the content store.

Every layer (object client, commit chain, content store) raises these
exceptions so callers can handle remote failures uniformly.
"""


class ContentStoreError(Exception):
    """Base exception for all content store errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class AuthenticationError(ContentStoreError):
    """Raised when the credential is missing or rejected by the remote."""

    def __init__(self, endpoint: str, reason: str | None = None):
        details = {"endpoint": endpoint}
        if reason:
            details["reason"] = reason
        message = f"Authentication failed for {endpoint}"
        if reason:
            message += f": {reason}"
        super().__init__(message, details)
        self.endpoint = endpoint
        self.reason = reason


class NotFoundError(ContentStoreError):
    """Raised when a branch, object or path does not exist on the remote."""

    def __init__(self, endpoint: str, remote_message: str | None = None):
        details = {"endpoint": endpoint}
        if remote_message:
            details["remote_message"] = remote_message
        super().__init__(f"Not found: {endpoint}", details)
        self.endpoint = endpoint
        self.remote_message = remote_message


class ConflictError(ContentStoreError):
    """Raised when a branch ref update is rejected because the branch moved."""

    def __init__(
        self,
        branch: str,
        expected_parent: str | None = None,
        attempted_commit: str | None = None,
        remote_message: str | None = None,
    ):
        details = {"branch": branch}
        if expected_parent:
            details["expected_parent"] = expected_parent
        if attempted_commit:
            details["attempted_commit"] = attempted_commit
        if remote_message:
            details["remote_message"] = remote_message
        super().__init__(f"Write to branch {branch} rejected: branch moved concurrently", details)
        self.branch = branch
        self.expected_parent = expected_parent
        self.attempted_commit = attempted_commit
        self.remote_message = remote_message


class RemoteError(ContentStoreError):
    """Raised for any other non-2xx response, carrying the remote message."""

    def __init__(self, endpoint: str, status: int, remote_message: str):
        super().__init__(
            remote_message,
            {"endpoint": endpoint, "status": status},
        )
        self.endpoint = endpoint
        self.status = status
        self.remote_message = remote_message


class StorageConnectionError(ContentStoreError):
    """Raised when the remote API cannot be reached at all.

    Note: Named StorageConnectionError to avoid shadowing the builtin ConnectionError.
    """

    def __init__(self, endpoint: str, cause: Exception | None = None):
        details = {"endpoint": endpoint}
        if cause:
            details["cause"] = str(cause)
        super().__init__(f"Connection failed to {endpoint}", details)
        self.endpoint = endpoint
        self.cause = cause


class ValidationError(ContentStoreError):
    """Raised when local input is rejected before any remote call."""

    def __init__(self, field: str, reason: str, value: str | None = None):
        details = {"field": field, "reason": reason}
        if value is not None:
            details["value"] = value
        super().__init__(f"Validation failed for {field}: {reason}", details)
        self.field = field
        self.reason = reason
        self.value = value


class WriteCancelledError(ContentStoreError):
    """Raised when a commit chain is cancelled between sub-calls."""

    def __init__(self, branch: str, completed_calls: int, planned_calls: int):
        details = {
            "branch": branch,
            "completed_calls": completed_calls,
            "planned_calls": planned_calls,
        }
        super().__init__(
            f"Write to branch {branch} cancelled after {completed_calls}/{planned_calls} calls",
            details,
        )
        self.branch = branch
        self.completed_calls = completed_calls
        self.planned_calls = planned_calls
