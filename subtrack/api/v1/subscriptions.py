"""
Subscription API endpoints
"""
import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from subtrack.api.deps import get_db
from subtrack.application.errors import SubscriptionValidationError
from subtrack.application.subscriptions import (
    CreateSubscriptionUseCase, GetSubscriptionUseCase, UpdateSubscriptionUseCase,
    DeleteSubscriptionUseCase, ListSubscriptionsUseCase, TotalCostUseCase,
)
from subtrack.domain.subscription import (
    MAX_PRICE, MAX_SERVICE_NAME_LENGTH, EndDateUpdate, Subscription, SubscriptionPatch,
)
from subtrack.utils.validation import format_month, parse_month, parse_uuid

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/subscriptions", tags=["subscriptions"])


# === Request/Response models ===

class CreateSubscriptionRequest(BaseModel):
    service_name: str = Field(min_length=1, max_length=MAX_SERVICE_NAME_LENGTH)
    price: int = Field(ge=1, le=MAX_PRICE)
    user_id: uuid.UUID
    start_date: str  # MM-YYYY
    end_date: str | None = None  # MM-YYYY, absent = still active


class UpdateSubscriptionRequest(BaseModel):
    service_name: str = Field(default="", max_length=MAX_SERVICE_NAME_LENGTH)  # "" = do not change
    price: int = Field(default=0, ge=0, le=MAX_PRICE)  # 0 = do not change
    start_date: str = ""  # "" = do not change
    end_date: str | None = None  # absent = do not change, "" = clear


class SubscriptionOut(BaseModel):
    id: uuid.UUID
    service_name: str
    price: int
    user_id: uuid.UUID
    start_date: str
    end_date: str | None = None
    created_at: datetime


class SubscriptionResponse(BaseModel):
    subscription: SubscriptionOut


class SubscriptionListResponse(BaseModel):
    subscriptions: list[SubscriptionOut]


class TotalCostResponse(BaseModel):
    total_cost: int


# === Helper functions ===

def _to_out(sub: Subscription) -> SubscriptionOut:
    return SubscriptionOut(
        id=sub.id,
        service_name=sub.service_name,
        price=sub.price,
        user_id=sub.owner_id,
        start_date=format_month(sub.start_date),
        end_date=format_month(sub.end_date) if sub.end_date else None,
        created_at=sub.created_at,
    )


def _parse_id(raw: str, field: str) -> uuid.UUID:
    try:
        return parse_uuid(raw, field)
    except SubscriptionValidationError:
        logger.warning("Invalid %s format: %r", field, raw)
        raise


def _parse_month(raw: str, field: str):
    try:
        return parse_month(raw, field)
    except SubscriptionValidationError:
        logger.warning("Invalid %s format: %r", field, raw)
        raise


def _optional_user_id(raw: str | None) -> uuid.UUID | None:
    return _parse_id(raw, "user ID") if raw else None


def _end_date_update(req: UpdateSubscriptionRequest) -> EndDateUpdate:
    """absent / null -> keep, "" -> clear, "MM-YYYY" -> set"""
    if "end_date" not in req.model_fields_set or req.end_date is None:
        return EndDateUpdate.keep()
    if req.end_date.strip() == "":
        return EndDateUpdate.clear()
    return EndDateUpdate.set(_parse_month(req.end_date, "end date"))


# === Endpoints ===

@router.get("", response_model=SubscriptionListResponse)
def list_subscriptions(
    user_id: str | None = None,
    service_name: str | None = None,
    db: Session = Depends(get_db),
):
    """Подписки с фильтрацией по пользователю и названию сервиса (новые первыми)"""
    subs = ListSubscriptionsUseCase(db).execute(
        owner_id=_optional_user_id(user_id),
        service_name=service_name or None,
    )
    return SubscriptionListResponse(subscriptions=[_to_out(s) for s in subs])


@router.post("", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
def create_subscription(
    req: CreateSubscriptionRequest,
    db: Session = Depends(get_db),
):
    """Создать подписку"""
    start_date = _parse_month(req.start_date, "start date")
    end_date = _parse_month(req.end_date, "end date") if req.end_date else None

    sub = CreateSubscriptionUseCase(db).execute(
        service_name=req.service_name,
        price=req.price,
        owner_id=req.user_id,
        start_date=start_date,
        end_date=end_date,
    )
    return SubscriptionResponse(subscription=_to_out(sub))


@router.get("/total", response_model=TotalCostResponse)
def total_cost(
    user_id: str | None = None,
    service_name: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    db: Session = Depends(get_db),
):
    """Суммарная стоимость подписок за период (MM-YYYY) с фильтрами"""
    total = TotalCostUseCase(db).execute(
        owner_id=_optional_user_id(user_id),
        service_name=service_name or None,
        window_start=_parse_month(start_date, "start date") if start_date else None,
        window_end=_parse_month(end_date, "end date") if end_date else None,
    )
    return TotalCostResponse(total_cost=total)


@router.get("/{sub_id}", response_model=SubscriptionResponse)
def get_subscription(sub_id: str, db: Session = Depends(get_db)):
    """Одна подписка по ID"""
    sub = GetSubscriptionUseCase(db).execute(_parse_id(sub_id, "subscription ID"))
    return SubscriptionResponse(subscription=_to_out(sub))


@router.put("/{sub_id}", response_model=SubscriptionResponse)
def update_subscription(
    sub_id: str,
    req: UpdateSubscriptionRequest,
    db: Session = Depends(get_db),
):
    """Частичное обновление подписки"""
    parsed_id = _parse_id(sub_id, "subscription ID")
    patch = SubscriptionPatch(
        service_name=req.service_name or None,
        price=req.price or None,
        start_date=_parse_month(req.start_date, "start date") if req.start_date else None,
        end_date=_end_date_update(req),
    )
    sub = UpdateSubscriptionUseCase(db).execute(parsed_id, patch)
    return SubscriptionResponse(subscription=_to_out(sub))


@router.delete("/{sub_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_subscription(sub_id: str, db: Session = Depends(get_db)):
    """Удалить подписку"""
    DeleteSubscriptionUseCase(db).execute(_parse_id(sub_id, "subscription ID"))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
