"""
SQLAlchemy ORM models
"""
import uuid
from datetime import date as date_type, datetime
from sqlalchemy import String, Integer, Date, TIMESTAMP, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from subtrack.infrastructure.db.session import Base


class SubscriptionModel(Base):
    """User subscription to an online service, billed monthly"""
    __tablename__ = "subscriptions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    service_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    # Months are stored as the 1st day of the month
    start_date: Mapped[date_type] = mapped_column(Date, nullable=False)
    end_date: Mapped[date_type | None] = mapped_column(Date, nullable=True)  # NULL = still active

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
