"""PIN hashing utilities using bcrypt.

Uses the ``bcrypt`` library directly (>=4.0).  passlib[bcrypt] is intentionally
avoided because passlib is unmaintained and incompatible with bcrypt >=4.
``bcrypt.checkpw`` compares digests in constant time.
"""

import bcrypt

from src.pm_common.errors import InvalidPinFormatError


def hash_pin(plain: str) -> str:
    """Hash a plain-text PIN with bcrypt. Returns a utf-8 hash string."""
    hashed_bytes: bytes = bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt())
    return hashed_bytes.decode("utf-8")


def verify_pin(plain: str, hashed: str) -> bool:
    """Verify a plain-text PIN against a bcrypt hash."""
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


_PIN_MIN_LENGTH = 6
_PIN_MAX_LENGTH = 10


def check_pin_format(plain: str) -> None:
    """A PIN is 6-10 ASCII digits."""
    if not (_PIN_MIN_LENGTH <= len(plain) <= _PIN_MAX_LENGTH) or not (
        plain.isascii() and plain.isdigit()
    ):
        raise InvalidPinFormatError()
