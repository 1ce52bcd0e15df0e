"""Custom exception classes for ReviewHub."""


class ReviewHubError(Exception):
    """Base exception for ReviewHub."""

    def __init__(self, code: str, message: str, details=None, status_code: int = 500):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        super().__init__(message)


class ValidationError(ReviewHubError):
    """Request validation failure."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=400)


class NotFoundError(ReviewHubError):
    """Referenced nomination, assessment or reviewer does not exist."""

    def __init__(self, resource: str, resource_id: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )


class InvalidTransitionError(ReviewHubError):
    """A request or review state machine rule was violated.

    Also raised for the losing writer of two concurrent transitions.
    """

    def __init__(self, message: str, current: str | None = None, requested: str | None = None):
        details = {}
        if current is not None:
            details["current"] = current
        if requested is not None:
            details["requested"] = requested
        super().__init__("INVALID_TRANSITION", message, details or None, status_code=409)


class AmbiguousReviewerIdentityError(ReviewHubError):
    """An email matched several reviewer records where exactly one was expected."""

    def __init__(self, email: str, matches: list[str]):
        self.matches = matches
        super().__init__(
            "AMBIGUOUS_REVIEWER_IDENTITY",
            f"Email '{email}' matches {len(matches)} reviewer records",
            {"email": email, "matches": matches},
            status_code=409,
        )


class StorageUnavailableError(ReviewHubError):
    """Both the joined fetch and the per-entity fallback failed."""

    def __init__(self, operation: str, reason: str | None = None):
        self.operation = operation
        super().__init__(
            "STORAGE_UNAVAILABLE",
            f"Storage unavailable during {operation}",
            {"operation": operation, "reason": reason} if reason else {"operation": operation},
            status_code=503,
        )


class AuthenticationError(ReviewHubError):
    """Authentication required or token invalid."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__("AUTHENTICATION_ERROR", message, status_code=401)
