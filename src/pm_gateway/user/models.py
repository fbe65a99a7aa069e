"""Domain model for users — pure dataclass, no business logic.

Field names match the ``users`` table columns one to one.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    id: str
    username: str
    email: str | None
    wallet_address: str | None
    twitter_screen_name: str | None
    pin_secret: str | None
    status: str
    shared: int
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None
