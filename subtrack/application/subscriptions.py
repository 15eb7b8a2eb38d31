"""
Subscription use cases - CRUD and total cost aggregation.

List and TotalCost share one filter contract (SubscriptionFilter); the
filtering itself is pushed down to the database by the repository.
"""
import logging
import uuid
from dataclasses import replace
from datetime import date, datetime, timezone
from sqlalchemy.orm import Session

from subtrack.application.errors import StorageError
from subtrack.domain.subscription import (
    CostWindow, FieldFilter, Subscription, SubscriptionFilter, SubscriptionPatch,
    apply_patch, ensure_price_in_range, ensure_valid_period, normalize_service_name,
)
from subtrack.infrastructure.db.subscriptions import SubscriptionRepository

logger = logging.getLogger(__name__)


# ============================================================================
# CRUD
# ============================================================================


class CreateSubscriptionUseCase:
    def __init__(self, db: Session):
        self.repo = SubscriptionRepository(db)

    def execute(
        self,
        service_name: str,
        price: int,
        owner_id: uuid.UUID,
        start_date: date,
        end_date: date | None = None,
        now: datetime | None = None,
    ) -> Subscription:
        service_name = normalize_service_name(service_name)
        ensure_price_in_range(price, minimum=1)
        ensure_valid_period(start_date, end_date)

        sub = Subscription(
            id=uuid.uuid4(),
            service_name=service_name,
            price=price,
            owner_id=owner_id,
            start_date=start_date,
            end_date=end_date,
            created_at=now or datetime.now(timezone.utc),
        )
        try:
            self.repo.insert(sub)
        except StorageError:
            logger.exception("Failed to create subscription for user_id=%s", owner_id)
            raise

        logger.info("Subscription %s created for user_id=%s", sub.id, owner_id)
        return sub


class GetSubscriptionUseCase:
    def __init__(self, db: Session):
        self.repo = SubscriptionRepository(db)

    def execute(self, sub_id: uuid.UUID) -> Subscription:
        return self.repo.get(sub_id)


class UpdateSubscriptionUseCase:
    """
    Partial update: read the stored record, merge the patch, overwrite.

    Concurrent updates of the same row are last-writer-wins.
    """

    def __init__(self, db: Session):
        self.repo = SubscriptionRepository(db)

    def execute(self, sub_id: uuid.UUID, patch: SubscriptionPatch) -> Subscription:
        if patch.service_name is not None:
            patch = replace(patch, service_name=normalize_service_name(patch.service_name))
        if patch.price is not None:
            ensure_price_in_range(patch.price, minimum=0)

        existing = self.repo.get(sub_id)
        merged = apply_patch(existing, patch)
        ensure_valid_period(merged.start_date, merged.end_date)

        try:
            self.repo.update(merged)
        except StorageError:
            logger.exception("Failed to update subscription %s", sub_id)
            raise

        logger.info("Subscription %s updated", sub_id)
        return merged


class DeleteSubscriptionUseCase:
    def __init__(self, db: Session):
        self.repo = SubscriptionRepository(db)

    def execute(self, sub_id: uuid.UUID) -> None:
        try:
            self.repo.delete(sub_id)
        except StorageError:
            logger.exception("Failed to delete subscription %s", sub_id)
            raise
        logger.info("Subscription %s deleted", sub_id)


# ============================================================================
# Aggregation
# ============================================================================


class ListSubscriptionsUseCase:
    """Subscriptions filtered by owner and/or service name, newest first"""

    def __init__(self, db: Session):
        self.repo = SubscriptionRepository(db)

    def execute(
        self,
        owner_id: uuid.UUID | None = None,
        service_name: str | None = None,
    ) -> list[Subscription]:
        flt = SubscriptionFilter(
            owner=FieldFilter.from_optional(owner_id),
            service_name=FieldFilter.from_optional(service_name),
        )
        try:
            return self.repo.list_filtered(flt)
        except StorageError:
            logger.exception("Failed to get subscriptions")
            raise


class TotalCostUseCase:
    """
    Sum of price over subscriptions matching owner/service filters and
    overlapping the [window_start, window_end] month range.

    Open-ended subscriptions never count as "ended before the window".
    With no bounds at all there is no date filtering. The result is 0 when
    nothing matches.
    """

    def __init__(self, db: Session):
        self.repo = SubscriptionRepository(db)

    def execute(
        self,
        owner_id: uuid.UUID | None = None,
        service_name: str | None = None,
        window_start: date | None = None,
        window_end: date | None = None,
    ) -> int:
        flt = SubscriptionFilter(
            owner=FieldFilter.from_optional(owner_id),
            service_name=FieldFilter.from_optional(service_name),
            window=CostWindow(start=window_start, end=window_end),
        )
        try:
            return self.repo.total_cost(flt)
        except StorageError:
            logger.exception("Failed to calculate total cost")
            raise
