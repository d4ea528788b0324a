"""Errors raised by the profile engagement feature."""


class ProfileEngagementError(Exception):
    """Base exception for engagement pipeline failures."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class EngagementValidationError(ProfileEngagementError, ValueError):
    """Malformed identifiers or unsupported enum values supplied by a caller."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, operation="validate", recoverable=False)
        self.field = field


class ProfileNotFoundError(ProfileEngagementError):
    """The referenced profile does not exist."""

    def __init__(self, profile_id: int):
        super().__init__(f"Profile {profile_id} not found", operation="load_profile")
        self.profile_id = profile_id
