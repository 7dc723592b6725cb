"""Error taxonomy shared by the HTTP client, the stores and the views."""

from __future__ import annotations


class FinanceClientError(Exception):
    """Base class for every error the client surfaces to a view."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidCredentials(FinanceClientError):
    """The server rejected the email/password pair."""

    def __init__(self, message: str = "Invalid email or password.") -> None:
        super().__init__(message)


class ValidationError(FinanceClientError):
    """Input rejected on the client before anything was sent."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class AuthorizationExpired(FinanceClientError):
    """A request came back 401; the session has already been cleared."""

    def __init__(self, message: str = "Your session has expired. Please sign in again.") -> None:
        super().__init__(message)


class NetworkOrServerError(FinanceClientError):
    """Transport failure (``status is None``) or any other non-2xx response."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.message} (HTTP {self.status})"
