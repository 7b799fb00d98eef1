from typing import Optional


class InvalidUserError(Exception):
    """The provider returned no profile for an authenticated session."""

    def __init__(self, user_key: str) -> None:
        super().__init__(f"No user profile returned for {user_key}")
        self.user_key = user_key


class ProviderCallError(Exception):
    """An auth, pagination or mutation call to an external service failed."""

    def __init__(self, operation: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
        self.status = status


class MetricsPublishError(ProviderCallError):
    """The metrics sink rejected a data point."""

    def __init__(self, message: str) -> None:
        super().__init__("put_metric", message)


class UserRotationError(Exception):
    """Rotation for one user failed. ``cause`` holds the underlying error."""

    def __init__(self, user_key: str, cause: Exception) -> None:
        super().__init__(f"Rotation failed for {user_key}: {cause}")
        self.user_key = user_key
        self.cause = cause
