"""Tests for Subscriptions module — CRUD, partial update, list filters, total cost."""
import uuid
from datetime import date, datetime, timedelta
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError

from subtrack.application.errors import (
    DuplicateSubscriptionError, StorageError,
    SubscriptionNotFoundError, SubscriptionValidationError,
)
from subtrack.application.subscriptions import (
    CreateSubscriptionUseCase, GetSubscriptionUseCase, UpdateSubscriptionUseCase,
    DeleteSubscriptionUseCase, ListSubscriptionsUseCase, TotalCostUseCase,
)
from subtrack.domain.subscription import (
    CostWindow, EndDateUpdate, FieldFilter, SubscriptionFilter, SubscriptionPatch,
)
from subtrack.infrastructure.db.models import SubscriptionModel
from subtrack.infrastructure.db.subscriptions import SubscriptionRepository

OWNER = uuid.UUID("60601fee-2bf1-4721-ae6f-7636e79a0cba")
OTHER_OWNER = uuid.UUID("0b6c1c56-5a2b-4a4e-9d1b-1f3f3a7f9e11")
_NOW = datetime(2025, 9, 1, 12, 0, 0)


def _create(db, service_name="Yoga", price=400, owner_id=OWNER,
            start_date=date(2025, 7, 1), end_date=None, now=None):
    return CreateSubscriptionUseCase(db).execute(
        service_name=service_name,
        price=price,
        owner_id=owner_id,
        start_date=start_date,
        end_date=end_date,
        now=now or _NOW,
    )


def _row_count(db) -> int:
    return db.query(SubscriptionModel).count()


# ======================================================================
# 1. Create / get
# ======================================================================

class TestCreateSubscription:
    def test_create_assigns_id_and_created_at(self, db_session):
        sub = _create(db_session)

        assert isinstance(sub.id, uuid.UUID)
        assert sub.created_at == _NOW

        stored = GetSubscriptionUseCase(db_session).execute(sub.id)
        assert stored.service_name == "Yoga"
        assert stored.price == 400
        assert stored.owner_id == OWNER
        assert stored.start_date == date(2025, 7, 1)
        assert stored.end_date is None

    def test_ids_are_unique(self, db_session):
        a = _create(db_session)
        b = _create(db_session)
        assert a.id != b.id

    def test_service_name_is_stripped(self, db_session):
        sub = _create(db_session, service_name="  Netflix  ")
        assert sub.service_name == "Netflix"

    def test_empty_service_name_rejected(self, db_session):
        with pytest.raises(SubscriptionValidationError):
            _create(db_session, service_name="   ")
        assert _row_count(db_session) == 0

    def test_price_below_one_rejected(self, db_session):
        with pytest.raises(SubscriptionValidationError):
            _create(db_session, price=0)

    def test_price_beyond_integer_column_rejected(self, db_session):
        with pytest.raises(SubscriptionValidationError):
            _create(db_session, price=2**31)
        assert _row_count(db_session) == 0

    def test_service_name_beyond_column_length_rejected(self, db_session):
        with pytest.raises(SubscriptionValidationError):
            _create(db_session, service_name="x" * 256)
        assert _row_count(db_session) == 0

    def test_end_before_start_rejected(self, db_session):
        with pytest.raises(SubscriptionValidationError):
            _create(db_session, start_date=date(2025, 5, 1), end_date=date(2025, 4, 1))

    def test_get_missing_raises_not_found(self, db_session):
        with pytest.raises(SubscriptionNotFoundError):
            GetSubscriptionUseCase(db_session).execute(uuid.uuid4())


# ======================================================================
# 2. Partial update
# ======================================================================

class TestUpdateSubscription:
    def test_price_only_keeps_other_fields(self, db_session):
        sub = _create(db_session, end_date=date(2025, 12, 1))

        updated = UpdateSubscriptionUseCase(db_session).execute(
            sub.id, SubscriptionPatch(price=990),
        )

        assert updated.price == 990
        stored = GetSubscriptionUseCase(db_session).execute(sub.id)
        assert stored.price == 990
        assert stored.service_name == "Yoga"
        assert stored.start_date == date(2025, 7, 1)
        assert stored.end_date == date(2025, 12, 1)

    def test_service_name_is_stripped(self, db_session):
        sub = _create(db_session)

        updated = UpdateSubscriptionUseCase(db_session).execute(
            sub.id, SubscriptionPatch(service_name="  Pilates  "),
        )

        assert updated.service_name == "Pilates"
        assert GetSubscriptionUseCase(db_session).execute(sub.id).service_name == "Pilates"

    def test_oversized_values_rejected(self, db_session):
        sub = _create(db_session)
        use_case = UpdateSubscriptionUseCase(db_session)

        with pytest.raises(SubscriptionValidationError):
            use_case.execute(sub.id, SubscriptionPatch(price=2**31))
        with pytest.raises(SubscriptionValidationError):
            use_case.execute(sub.id, SubscriptionPatch(service_name="x" * 256))

        stored = GetSubscriptionUseCase(db_session).execute(sub.id)
        assert stored.price == 400
        assert stored.service_name == "Yoga"

    def test_clear_end_date(self, db_session):
        sub = _create(db_session, end_date=date(2025, 12, 1))

        UpdateSubscriptionUseCase(db_session).execute(
            sub.id, SubscriptionPatch(end_date=EndDateUpdate.clear()),
        )

        assert GetSubscriptionUseCase(db_session).execute(sub.id).end_date is None

    def test_omitted_end_date_unchanged(self, db_session):
        sub = _create(db_session, end_date=date(2025, 12, 1))

        UpdateSubscriptionUseCase(db_session).execute(
            sub.id, SubscriptionPatch(service_name="Pilates"),
        )

        stored = GetSubscriptionUseCase(db_session).execute(sub.id)
        assert stored.service_name == "Pilates"
        assert stored.end_date == date(2025, 12, 1)

    def test_owner_and_created_at_immutable(self, db_session):
        sub = _create(db_session)
        updated = UpdateSubscriptionUseCase(db_session).execute(
            sub.id, SubscriptionPatch(start_date=date(2025, 1, 1)),
        )
        assert updated.owner_id == OWNER
        assert updated.created_at == sub.created_at

    def test_merged_period_validated(self, db_session):
        sub = _create(db_session, start_date=date(2025, 7, 1))
        with pytest.raises(SubscriptionValidationError):
            UpdateSubscriptionUseCase(db_session).execute(
                sub.id, SubscriptionPatch(end_date=EndDateUpdate.set(date(2025, 1, 1))),
            )
        assert GetSubscriptionUseCase(db_session).execute(sub.id).end_date is None

    def test_update_missing_raises_not_found(self, db_session):
        with pytest.raises(SubscriptionNotFoundError):
            UpdateSubscriptionUseCase(db_session).execute(uuid.uuid4(), SubscriptionPatch(price=1))


# ======================================================================
# 3. Delete
# ======================================================================

class TestDeleteSubscription:
    def test_delete(self, db_session):
        sub = _create(db_session)
        DeleteSubscriptionUseCase(db_session).execute(sub.id)
        with pytest.raises(SubscriptionNotFoundError):
            GetSubscriptionUseCase(db_session).execute(sub.id)

    def test_delete_missing_leaves_table_unchanged(self, db_session):
        _create(db_session)
        _create(db_session, service_name="Netflix")

        with pytest.raises(SubscriptionNotFoundError):
            DeleteSubscriptionUseCase(db_session).execute(uuid.uuid4())

        assert _row_count(db_session) == 2


# ======================================================================
# 4. List
# ======================================================================

class TestListSubscriptions:
    def test_newest_first(self, db_session):
        first = _create(db_session, now=_NOW)
        second = _create(db_session, now=_NOW + timedelta(minutes=1))
        third = _create(db_session, now=_NOW + timedelta(minutes=2))

        subs = ListSubscriptionsUseCase(db_session).execute()

        assert [s.id for s in subs] == [third.id, second.id, first.id]

    def test_owner_filter_never_leaks_other_owner(self, db_session):
        _create(db_session, owner_id=OWNER)
        _create(db_session, owner_id=OTHER_OWNER)
        _create(db_session, owner_id=OWNER, service_name="Netflix")

        subs = ListSubscriptionsUseCase(db_session).execute(owner_id=OWNER)

        assert len(subs) == 2
        assert all(s.owner_id == OWNER for s in subs)

    def test_service_filter(self, db_session):
        _create(db_session, service_name="Yoga")
        _create(db_session, service_name="Netflix")

        subs = ListSubscriptionsUseCase(db_session).execute(service_name="Netflix")

        assert [s.service_name for s in subs] == ["Netflix"]

    def test_both_filters(self, db_session):
        _create(db_session, owner_id=OWNER, service_name="Netflix")
        _create(db_session, owner_id=OTHER_OWNER, service_name="Netflix")
        _create(db_session, owner_id=OWNER, service_name="Yoga")

        subs = ListSubscriptionsUseCase(db_session).execute(owner_id=OWNER, service_name="Netflix")

        assert len(subs) == 1

    def test_empty(self, db_session):
        assert ListSubscriptionsUseCase(db_session).execute() == []


# ======================================================================
# 5. Total cost
# ======================================================================

class TestTotalCost:
    def test_yoga_scenario(self, db_session):
        # A: open-ended from 07-2025, B: 01-2025..03-2025
        _create(db_session, service_name="Yoga", price=400, start_date=date(2025, 7, 1))
        _create(db_session, service_name="Yoga", price=400,
                start_date=date(2025, 1, 1), end_date=date(2025, 3, 1))
        use_case = TotalCostUseCase(db_session)

        assert use_case.execute(
            service_name="Yoga", window_start=date(2025, 6, 1), window_end=date(2025, 12, 1),
        ) == 400
        assert use_case.execute(
            service_name="Yoga", window_start=date(2025, 1, 1), window_end=date(2025, 2, 1),
        ) == 400

    def test_no_filters_sums_everything(self, db_session):
        _create(db_session, price=100)
        _create(db_session, price=250, owner_id=OTHER_OWNER, end_date=date(2025, 8, 1))
        _create(db_session, price=650, service_name="Netflix", start_date=date(2020, 1, 1))

        assert TotalCostUseCase(db_session).execute() == 1000

    def test_zero_when_nothing_matches(self, db_session):
        _create(db_session, price=100)
        assert TotalCostUseCase(db_session).execute(service_name="Nothing") == 0

    def test_zero_on_empty_table(self, db_session):
        assert TotalCostUseCase(db_session).execute() == 0

    def test_open_ended_included_for_any_later_window_start(self, db_session):
        _create(db_session, price=300, start_date=date(2024, 1, 1))
        assert TotalCostUseCase(db_session).execute(window_start=date(2026, 10, 1)) == 300

    def test_owner_filter(self, db_session):
        _create(db_session, price=100, owner_id=OWNER)
        _create(db_session, price=200, owner_id=OTHER_OWNER)
        assert TotalCostUseCase(db_session).execute(owner_id=OTHER_OWNER) == 200

    def test_only_window_end(self, db_session):
        _create(db_session, price=100, start_date=date(2025, 1, 1))
        _create(db_session, price=200, start_date=date(2025, 9, 1))
        assert TotalCostUseCase(db_session).execute(window_end=date(2025, 6, 1)) == 100

    def test_matches_in_memory_filter(self, db_session):
        _create(db_session, price=100, start_date=date(2025, 1, 1), end_date=date(2025, 2, 1))
        _create(db_session, price=200, start_date=date(2025, 3, 1), end_date=date(2025, 5, 1))
        _create(db_session, price=400, start_date=date(2025, 6, 1))
        _create(db_session, price=800, owner_id=OTHER_OWNER, start_date=date(2025, 4, 1))

        repo = SubscriptionRepository(db_session)
        everything = repo.list_filtered(SubscriptionFilter())
        windows = [
            CostWindow(),
            CostWindow(start=date(2025, 2, 1)),
            CostWindow(end=date(2025, 3, 1)),
            CostWindow(start=date(2025, 4, 1), end=date(2025, 6, 1)),
            CostWindow(start=date(2025, 7, 1), end=date(2025, 8, 1)),
        ]
        for window in windows:
            for owner in (FieldFilter.unset(), FieldFilter.equals(OWNER)):
                flt = SubscriptionFilter(owner=owner, window=window)
                expected = sum(s.price for s in everything if flt.matches(s))
                assert repo.total_cost(flt) == expected, window


# ======================================================================
# 6. Storage failures
# ======================================================================

class TestStorageErrors:
    def test_duplicate_id_rejected(self, db_session, session_factory):
        sub = _create(db_session)
        other = session_factory()
        try:
            with pytest.raises(DuplicateSubscriptionError):
                SubscriptionRepository(other).insert(sub)
        finally:
            other.close()
        assert _row_count(db_session) == 1

    def test_query_failure_becomes_storage_error(self):
        session = Mock()
        session.query.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))

        with pytest.raises(StorageError):
            TotalCostUseCase(session).execute()
        session.rollback.assert_called_once()
