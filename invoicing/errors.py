# invoicing/errors.py
from __future__ import annotations


class DomainError(Exception):
    """
    Business error carrying the HTTP status it should surface with.

    Raised by services and passed through unchanged to the blueprint error
    handler, which renders ``{"success": false, "message": ...}``.
    """

    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.status_code} {self.message!r}>"


class NotFoundError(DomainError):
    status_code = 404


class BusinessRuleError(DomainError):
    """Status-machine guard or ledger rule violated."""

    status_code = 400


class ValidationError(DomainError):
    status_code = 400


class UpstreamError(DomainError):
    """A sibling service (PDF, email, payment provider) failed."""

    status_code = 500
