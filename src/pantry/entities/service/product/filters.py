"""Expiry-date filters and ordering shared by the API and the offline cache."""

import calendar
from collections.abc import Callable, Iterable
from datetime import date, timedelta
from enum import Enum
from typing import TypeVar

T = TypeVar("T")

EXPIRING_SOON_DAYS = 7


class ExpiryFilter(str, Enum):
    WITH_DATE = "withDate"
    WITHOUT_DATE = "withoutDate"
    EXPIRED = "expired"
    EXPIRING_SOON = "expiringSoon"
    EXPIRING_THIS_MONTH = "expiringThisMonth"
    VALID = "valid"

    @classmethod
    def parse(cls, value: str | None) -> "ExpiryFilter | None":
        """Case-insensitive lookup; unknown or empty values mean no filtering."""
        if not value:
            return None
        lowered = value.lower()
        for member in cls:
            if member.value.lower() == lowered:
                return member
        return None


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: str | None) -> "SortOrder":
        if value and value.lower() == "desc":
            return cls.DESC
        return cls.ASC


def end_of_month(today: date) -> date:
    return today.replace(day=calendar.monthrange(today.year, today.month)[1])


def matches_filter(expiry: date | None, expiry_filter: ExpiryFilter | None, today: date) -> bool:
    """Whether a record with the given expiry date passes ``expiry_filter``."""
    if expiry_filter is None:
        return True
    if expiry_filter is ExpiryFilter.WITH_DATE:
        return expiry is not None
    if expiry_filter is ExpiryFilter.WITHOUT_DATE:
        return expiry is None
    if expiry_filter is ExpiryFilter.VALID:
        return expiry is None or expiry >= today
    if expiry is None:
        return False
    if expiry_filter is ExpiryFilter.EXPIRED:
        return expiry < today
    if expiry_filter is ExpiryFilter.EXPIRING_SOON:
        return today <= expiry <= today + timedelta(days=EXPIRING_SOON_DAYS)
    return today <= expiry <= end_of_month(today)


def sort_by_expiry(
    items: Iterable[T],
    expiry_of: Callable[[T], date | None],
    id_of: Callable[[T], int],
    order: SortOrder = SortOrder.ASC,
) -> list[T]:
    """Order by expiry; undated records go last ascending and first descending."""
    items = sorted(items, key=id_of)
    dated = [item for item in items if expiry_of(item) is not None]
    undated = [item for item in items if expiry_of(item) is None]
    if order is SortOrder.DESC:
        # reverse=True is stable: equal dates stay in id order.
        dated.sort(key=lambda item: expiry_of(item), reverse=True)
        return undated + dated
    dated.sort(key=lambda item: expiry_of(item))
    return dated + undated
