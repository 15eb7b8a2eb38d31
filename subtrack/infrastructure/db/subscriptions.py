"""
Subscription repository - parameterized queries against the subscriptions table

No business logic here: filters arrive already parsed, merges happen in the
application layer. Every SQLAlchemy failure is rolled back and surfaced as
StorageError.
"""
import uuid

from sqlalchemy import and_, func, or_, true
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from subtrack.application.errors import (
    DuplicateSubscriptionError, StorageError, SubscriptionNotFoundError,
)
from subtrack.domain.subscription import Subscription, SubscriptionFilter
from subtrack.infrastructure.db.models import SubscriptionModel


def _to_entity(row: SubscriptionModel) -> Subscription:
    return Subscription(
        id=row.id,
        service_name=row.service_name,
        price=row.price,
        owner_id=row.owner_id,
        start_date=row.start_date,
        end_date=row.end_date,
        created_at=row.created_at,
    )


def filter_predicates(flt: SubscriptionFilter) -> list:
    """
    Compile a filter into exactly four SQL predicates.

    An absent filter becomes TRUE, so the statement shape does not depend on
    which filters were supplied.
    """
    m = SubscriptionModel
    owner = m.owner_id == flt.owner.value if flt.owner.is_set else true()
    service = m.service_name == flt.service_name.value if flt.service_name.is_set else true()

    window = flt.window
    if window.start is not None:
        not_ended_before = or_(m.end_date.is_(None), m.end_date >= window.start)
    else:
        not_ended_before = true()
    started_before_end = m.start_date <= window.end if window.end is not None else true()

    return [owner, service, not_ended_before, started_before_end]


class SubscriptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def insert(self, sub: Subscription) -> None:
        """
        Persist a new subscription

        Raises:
            DuplicateSubscriptionError: a row with the same id already exists
            StorageError: any other database failure
        """
        row = SubscriptionModel(
            id=sub.id,
            service_name=sub.service_name,
            price=sub.price,
            owner_id=sub.owner_id,
            start_date=sub.start_date,
            end_date=sub.end_date,
            created_at=sub.created_at,
        )
        try:
            self.db.add(row)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise DuplicateSubscriptionError(f"Subscription {sub.id} already exists") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("Failed to create subscription") from exc

    def get(self, sub_id: uuid.UUID) -> Subscription:
        try:
            row = self.db.query(SubscriptionModel).filter(
                SubscriptionModel.id == sub_id,
            ).first()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("Failed to get subscription") from exc
        if row is None:
            raise SubscriptionNotFoundError(f"Subscription {sub_id} not found")
        return _to_entity(row)

    def update(self, sub: Subscription) -> None:
        """Overwrite the mutable columns of an existing row"""
        try:
            count = self.db.query(SubscriptionModel).filter(
                SubscriptionModel.id == sub.id,
            ).update(
                {
                    SubscriptionModel.service_name: sub.service_name,
                    SubscriptionModel.price: sub.price,
                    SubscriptionModel.start_date: sub.start_date,
                    SubscriptionModel.end_date: sub.end_date,
                },
                synchronize_session=False,
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("Failed to update subscription") from exc
        if count == 0:
            raise SubscriptionNotFoundError(f"Subscription {sub.id} not found")

    def delete(self, sub_id: uuid.UUID) -> None:
        try:
            count = self.db.query(SubscriptionModel).filter(
                SubscriptionModel.id == sub_id,
            ).delete(synchronize_session=False)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("Failed to delete subscription") from exc
        if count == 0:
            raise SubscriptionNotFoundError(f"Subscription {sub_id} not found")

    def list_filtered(self, flt: SubscriptionFilter) -> list[Subscription]:
        """Matching subscriptions, newest first"""
        try:
            rows = (
                self.db.query(SubscriptionModel)
                .filter(and_(*filter_predicates(flt)))
                .order_by(SubscriptionModel.created_at.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("Failed to get subscriptions") from exc
        return [_to_entity(r) for r in rows]

    def total_cost(self, flt: SubscriptionFilter) -> int:
        """SUM(price) over matching subscriptions, 0 when nothing matches"""
        try:
            total = (
                self.db.query(func.coalesce(func.sum(SubscriptionModel.price), 0))
                .filter(and_(*filter_predicates(flt)))
                .scalar()
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("Failed to calculate total cost") from exc
        return int(total or 0)
