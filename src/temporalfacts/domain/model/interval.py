"""Half-open validity intervals ``[valid_at, invalid_at)``.

``invalid_at=None`` means the interval is still open. These predicates are the
single source of truth for temporal containment and overlap; the SQL filters
in the persistence adapter express exactly the same conditions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from temporalfacts.domain.errors import ValidationError

if TYPE_CHECKING:
    from datetime import datetime


def validate_interval(valid_at: datetime, invalid_at: datetime | None) -> None:
    if invalid_at is not None and invalid_at <= valid_at:
        raise ValidationError(
            f"invalid_at ({invalid_at.isoformat()}) must be after valid_at "
            f"({valid_at.isoformat()})"
        )


def contains(valid_at: datetime, invalid_at: datetime | None, at: datetime) -> bool:
    return valid_at <= at and (invalid_at is None or invalid_at > at)


def overlaps(
    valid_at: datetime,
    invalid_at: datetime | None,
    start: datetime | None,
    end: datetime | None,
) -> bool:
    """Whether the interval intersects the closed query window ``[start, end]``.

    A missing bound leaves that side of the window unbounded.
    """

    if end is not None and valid_at > end:
        return False
    return start is None or invalid_at is None or invalid_at > start


def intervals_overlap(
    first: tuple[datetime, datetime | None],
    second: tuple[datetime, datetime | None],
) -> bool:
    a_start, a_end = first
    b_start, b_end = second
    return (a_end is None or a_end > b_start) and (b_end is None or b_end > a_start)


def starts_between(valid_at: datetime, start: datetime, end: datetime) -> bool:
    return start <= valid_at <= end


def ends_between(invalid_at: datetime | None, start: datetime, end: datetime) -> bool:
    return invalid_at is not None and start <= invalid_at <= end
