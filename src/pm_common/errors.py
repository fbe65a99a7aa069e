"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: PIN lockout
  3xxx: Query
  9xxx: System

Only caller mistakes and programmer errors live here. Cache failures are never
raised (they are logged and swallowed), and store failures propagate as the
driver's own exceptions.
"""


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


# --- 1xxx: Auth/User ---

class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already exists", 409)


class UserNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(1006, f"User not found: {user_id}", 404)


# --- 2xxx: PIN lockout ---

class UserLockedError(AppError):
    def __init__(self) -> None:
        super().__init__(2001, "You have been locked", 403)


class PinNotSetError(AppError):
    def __init__(self) -> None:
        super().__init__(2002, "User has not yet set up a PIN", 422)


class InvalidPinError(AppError):
    def __init__(self, attempts_left: int) -> None:
        self.attempts_left = attempts_left
        super().__init__(2003, f"Invalid PIN, {attempts_left} attempts left", 403)


class PinAlreadySetError(AppError):
    def __init__(self) -> None:
        super().__init__(2004, "PIN already set", 409)


class InvalidPinFormatError(AppError):
    def __init__(self) -> None:
        super().__init__(2005, "PIN must be 6-10 digits", 422)


# --- 3xxx: Query ---

class InvalidQueryError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3001, f"Invalid query: {detail}", 422)


# --- 9xxx: System ---

class ConfigurationError(AppError):
    """Raised at construction/registration time for a miswired component."""

    def __init__(self, detail: str) -> None:
        super().__init__(9003, f"Configuration error: {detail}", 500)
