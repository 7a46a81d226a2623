"""Pure helpers shared by the Questrade client"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone

RATE_LIMIT_REMAINING_HEADER = "X-RateLimit-Remaining"
RATE_LIMIT_RESET_HEADER = "X-RateLimit-Reset"

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def build_id_string(ids: Iterable[int]) -> str:
    """Join identifiers into the comma separated form used by batch endpoints

    Args:
        ids: Ordered identifiers (symbol ids, order ids)

    Returns:
        e.g. "8049,9292"; empty string for no ids
    """
    return ",".join(str(int(i)) for i in ids)


def _parse_int(value: str | None) -> int:
    if value is None:
        return 0
    try:
        return int(value.strip())
    except ValueError:
        return 0


@dataclass(frozen=True)
class RateLimit:
    """Rate-limit snapshot mirrored from the last response headers"""

    remaining: int = 0
    reset_at: datetime = field(default=EPOCH)

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "RateLimit":
        """Parse X-RateLimit-* headers; absent or invalid values become zero"""
        reset = _parse_int(headers.get(RATE_LIMIT_RESET_HEADER))
        try:
            reset_at = datetime.fromtimestamp(reset, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            reset_at = EPOCH
        return cls(
            remaining=_parse_int(headers.get(RATE_LIMIT_REMAINING_HEADER)),
            reset_at=reset_at,
        )
