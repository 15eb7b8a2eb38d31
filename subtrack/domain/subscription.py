"""
Subscription domain entity and query contracts

Subscription - billing record of one user's access to one named service
over a range of months. A subscription without end_date is active for
every month starting from start_date.
"""
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Generic, TypeVar

from subtrack.application.errors import SubscriptionValidationError

T = TypeVar("T")

# Column limits of the subscriptions table
MAX_PRICE = 2**31 - 1  # INTEGER
MAX_SERVICE_NAME_LENGTH = 255  # VARCHAR(255)


@dataclass(frozen=True)
class Subscription:
    id: uuid.UUID
    service_name: str
    price: int
    owner_id: uuid.UUID
    start_date: date  # 1st day of the month
    end_date: date | None
    created_at: datetime


def normalize_service_name(service_name: str) -> str:
    """Strip and check a service name against the column limits"""
    service_name = service_name.strip()
    if not service_name:
        raise SubscriptionValidationError("service_name must not be empty")
    if len(service_name) > MAX_SERVICE_NAME_LENGTH:
        raise SubscriptionValidationError(
            f"service_name must be at most {MAX_SERVICE_NAME_LENGTH} characters"
        )
    return service_name


def ensure_price_in_range(price: int, minimum: int) -> None:
    if price < minimum or price > MAX_PRICE:
        raise SubscriptionValidationError(f"price must be between {minimum} and {MAX_PRICE}")


def ensure_valid_period(start_date: date, end_date: date | None) -> None:
    """Reject an end month earlier than the start month"""
    if end_date is not None and end_date < start_date:
        raise SubscriptionValidationError("end_date must not be earlier than start_date")


# ============================================================================
# Filters
# ============================================================================


@dataclass(frozen=True)
class FieldFilter(Generic[T]):
    """
    Optional equality filter: either unset (matches everything) or equals(value).

    Kept explicit instead of a nullable value so that "no filter" never has
    to be encoded as a sentinel like an empty string or a nil UUID.
    """
    value: T | None = None
    is_set: bool = False

    @classmethod
    def unset(cls) -> "FieldFilter[Any]":
        return cls()

    @classmethod
    def equals(cls, value: T) -> "FieldFilter[T]":
        return cls(value=value, is_set=True)

    @classmethod
    def from_optional(cls, value: T | None) -> "FieldFilter[T]":
        return cls.unset() if value is None else cls.equals(value)

    def matches(self, candidate: Any) -> bool:
        return not self.is_set or candidate == self.value


@dataclass(frozen=True)
class CostWindow:
    """
    Month range [start, end] for cost aggregation, either bound optional.

    A subscription overlaps the window when it has not ended before the
    window starts and has started no later than the window ends.
    """
    start: date | None = None
    end: date | None = None

    def overlaps(self, start_date: date, end_date: date | None) -> bool:
        not_ended_before = self.start is None or end_date is None or end_date >= self.start
        started_before_end = self.end is None or start_date <= self.end
        return not_ended_before and started_before_end


@dataclass(frozen=True)
class SubscriptionFilter:
    owner: FieldFilter[uuid.UUID] = field(default_factory=FieldFilter.unset)
    service_name: FieldFilter[str] = field(default_factory=FieldFilter.unset)
    window: CostWindow = field(default_factory=CostWindow)

    def matches(self, sub: Subscription) -> bool:
        return (
            self.owner.matches(sub.owner_id)
            and self.service_name.matches(sub.service_name)
            and self.window.overlaps(sub.start_date, sub.end_date)
        )


# ============================================================================
# Partial update
# ============================================================================

END_DATE_KEEP = "keep"
END_DATE_CLEAR = "clear"
END_DATE_SET = "set"


@dataclass(frozen=True)
class EndDateUpdate:
    """
    What a partial update does with end_date:
    - keep: field omitted, leave unchanged
    - clear: field sent as "", subscription becomes open-ended
    - set: field sent as a month
    """
    action: str = END_DATE_KEEP
    value: date | None = None

    @classmethod
    def keep(cls) -> "EndDateUpdate":
        return cls()

    @classmethod
    def clear(cls) -> "EndDateUpdate":
        return cls(action=END_DATE_CLEAR)

    @classmethod
    def set(cls, value: date) -> "EndDateUpdate":
        return cls(action=END_DATE_SET, value=value)


@dataclass(frozen=True)
class SubscriptionPatch:
    """Fields left as None are not changed"""
    service_name: str | None = None
    price: int | None = None
    start_date: date | None = None
    end_date: EndDateUpdate = field(default_factory=EndDateUpdate.keep)


def apply_patch(sub: Subscription, patch: SubscriptionPatch) -> Subscription:
    """
    Merge a partial update onto a full record.

    id, owner_id and created_at are never touched.
    """
    changes: dict[str, Any] = {}
    if patch.service_name is not None:
        changes["service_name"] = patch.service_name
    if patch.price is not None:
        changes["price"] = patch.price
    if patch.start_date is not None:
        changes["start_date"] = patch.start_date

    if patch.end_date.action == END_DATE_CLEAR:
        changes["end_date"] = None
    elif patch.end_date.action == END_DATE_SET:
        changes["end_date"] = patch.end_date.value

    return replace(sub, **changes)
