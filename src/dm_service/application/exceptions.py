from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class ValidationError(AppError):
    pass


class AuthenticationError(AppError):
    """Connection attempt rejected; no session state is created."""


class Unauthenticated(AuthenticationError):
    pass


class InvalidCredential(AuthenticationError):
    pass


class UnknownIdentity(AuthenticationError):
    pass


class InvalidMessage(ValidationError):
    pass


class PersistenceFailure(AppError):
    """The message log could not durably commit a write."""

    def __init__(self, detail: str = "", client_msg_id: str | None = None) -> None:
        super().__init__(detail)
        self.client_msg_id = client_msg_id


class BroadcastFailure(AppError):
    """A real-time push did not reach every target connection."""

    def __init__(self, detail: str = "", failed: int = 0) -> None:
        super().__init__(detail)
        self.failed = failed
