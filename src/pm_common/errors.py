"""Unified error codes and custom exceptions.

Error code ranges:
  2xxx: Participant funds
  3xxx: Competitor
  4xxx: Trade request
  9xxx: System

Business-rule errors (2xxx-4xxx) are raised before any ledger mutation,
so catching one never requires a rollback.
"""

from decimal import Decimal


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 2xxx: Participant funds ---

class InsufficientFundsError(AppError):
    def __init__(self, required: Decimal, available: Decimal) -> None:
        super().__init__(
            2001,
            f"Insufficient funds: required {required}, available {available}",
            422,
        )


# --- 3xxx: Competitor ---

class CompetitorNotFoundError(AppError):
    def __init__(self, name: str) -> None:
        super().__init__(3001, f"Competitor not found: {name}", 404)


# --- 4xxx: Trade request ---

class InvalidSideError(AppError):
    def __init__(self, side: str) -> None:
        super().__init__(4001, f"Invalid side: {side!r} (expected YES or NO)", 422)


class MalformedRequestError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4002, f"Malformed request: {detail}", 400)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self) -> None:
        super().__init__(9001, "Rate limit exceeded", 429)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class PersistenceUnavailableError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(9003, f"Persistence unavailable: {detail}", 503)
