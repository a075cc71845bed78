"""Error taxonomy of the todo API.

Each error knows the HTTP status it maps to; ``app.main`` turns them into
``{"success": false, ...}`` responses.
"""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError


class TodoAPIError(Exception):
    """Base class for errors reported to the client"""

    status_code = 500

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error = error

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.error is not None:
            body["error"] = self.error
        return body


class TodoValidationError(TodoAPIError):
    """Client input is missing or malformed; raised before touching the store"""

    status_code = 400


class TodoNotFoundError(TodoAPIError):
    status_code = 404

    def __init__(self, message: str = "Todo not found"):
        super().__init__(message)


class StoreError(TodoAPIError):
    """The store rejected or failed a statement.

    ``error`` carries the underlying failure text, e.g. a CHECK constraint
    violation for an unknown priority.
    """

    status_code = 500

    def __init__(self, message: str, original_error: Exception):
        super().__init__(message, error=describe_error(original_error))
        self.original_error = original_error


def describe_error(exc: Exception) -> str:
    """Human readable text of a failure, without SQLAlchemy's statement dump"""
    if isinstance(exc, SQLAlchemyError) and getattr(exc, "orig", None) is not None:
        return str(exc.orig)
    return str(exc)
