"""Custom exception classes for the moderation service."""

from typing import Optional, Any


class ModerationError(Exception):
    """Base exception for the moderation service."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str = "An error occurred", details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ModerationError):
    """Raised when input validation fails."""
    code = "VALIDATION_ERROR"
    status_code = 400


class AuthenticationError(ModerationError):
    """Raised when the caller has no valid actor identity."""
    code = "UNAUTHORIZED"
    status_code = 401


class AuthorizationError(ModerationError):
    """Raised when the actor lacks a required capability."""
    code = "INSUFFICIENT_PERMISSIONS"
    status_code = 403


class NotFoundError(ModerationError):
    """Raised when a requested resource is not found."""
    code = "NOT_FOUND"
    status_code = 404


class ConflictError(ModerationError):
    """Raised when a guarded state change loses to a concurrent or earlier change."""
    code = "CONFLICT"
    status_code = 409


class DuplicatePendingSubmissionError(ConflictError):
    """Raised when the actor already has a pending submission for the subject."""
    code = "DUPLICATE_PENDING_SUBMISSION"

    def __init__(self, existing_id: str, message: Optional[str] = None):
        self.existing_id = existing_id
        super().__init__(
            message or "A pending submission already exists for this record",
            details={"existing_submission_id": existing_id},
        )


class RateLimitedError(ModerationError):
    """Raised when a rate-limit counter is over its configured cap."""
    code = "RATE_LIMITED"
    status_code = 429

    def __init__(self, message: str, retry_after: int, limit: int, reset_hint: str):
        self.retry_after = retry_after
        self.limit = limit
        self.reset_hint = reset_hint
        super().__init__(
            message,
            details={"retry_after": retry_after, "max": limit, "reset": reset_hint},
        )


class DependencyError(ModerationError):
    """Raised when storage or another backing dependency fails."""
    code = "DEPENDENCY_ERROR"
    status_code = 500


class NotImplementedFeatureError(ModerationError):
    """Raised for actions that are accepted by the API but not yet supported."""
    code = "NOT_IMPLEMENTED"
    status_code = 501
