import secrets
import string
from datetime import datetime, timezone
from typing import Optional

ID_ALPHABET = string.ascii_lowercase + string.digits
ID_LENGTH = 13


def generate_id(length: int = ID_LENGTH) -> str:
    """Random lowercase base-36 identifier."""
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))


def truncate(text: str, limit: int, marker: str = "...") -> str:
    """Cut text to `limit` characters and append `marker` if anything was dropped."""
    if len(text) > limit:
        return text[:limit] + marker
    return text


class MonotonicClock:
    """
    Wall clock that never goes backwards.

    Message timestamps within a node must be non-decreasing even if the
    system clock is adjusted between two appends.
    """

    def __init__(self):
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        current = datetime.now(timezone.utc)
        if self._last is not None and current < self._last:
            current = self._last
        self._last = current
        return current
