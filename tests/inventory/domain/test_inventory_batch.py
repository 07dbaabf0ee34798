"""Tests for the InventoryBatch aggregate."""

from datetime import date

import pytest
from inventory.batch.batch import BatchStatus, InventoryBatch
from inventory.batch.events import BatchCreated, BatchDepleted, BatchExpired
from protean.exceptions import ValidationError


def _make_batch(**overrides):
    defaults = {
        "batch_number": "BAT-2026-00001",
        "product_id": "prod-001",
        "warehouse_id": "wh-001",
        "quantity": 50,
        "unit_cost": 2.5,
        "production_date": date(2026, 1, 10),
        "expiry_date": date(2026, 7, 10),
        "created_by": "prod-lead",
    }
    defaults.update(overrides)
    return InventoryBatch.create(**defaults)


class TestCreateBatch:
    def test_starts_full_and_active(self):
        batch = _make_batch()
        assert batch.initial_quantity == 50.0
        assert batch.current_quantity == 50.0
        assert batch.status == BatchStatus.ACTIVE.value
        assert batch.has_stock
        assert [e for e in batch._events if isinstance(e, BatchCreated)]

    def test_total_value(self):
        batch = _make_batch(quantity=3, unit_cost=0.335)
        assert batch.total_value == 1.01

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            _make_batch(quantity=0)

    def test_expiry_cannot_precede_production(self):
        with pytest.raises(ValidationError) as exc_info:
            _make_batch(production_date=date(2026, 5, 1), expiry_date=date(2026, 4, 1))
        assert "expiry_date" in exc_info.value.messages


class TestDeductQuantity:
    def test_partial_deduction(self):
        batch = _make_batch()
        uncovered = batch.deduct_quantity(20)
        assert uncovered == 0.0
        assert batch.current_quantity == 30.0
        assert batch.status == BatchStatus.ACTIVE.value

    def test_reaching_zero_depletes(self):
        batch = _make_batch()
        batch.deduct_quantity(50)
        assert batch.current_quantity == 0.0
        assert batch.status == BatchStatus.DEPLETED.value
        assert not batch.has_stock
        assert [e for e in batch._events if isinstance(e, BatchDepleted)]

    def test_over_deduction_clamps_at_zero(self):
        batch = _make_batch()
        uncovered = batch.deduct_quantity(65)
        assert uncovered == 15.0
        assert batch.current_quantity == 0.0
        assert batch.status == BatchStatus.DEPLETED.value

    def test_current_quantity_cannot_exceed_initial(self):
        batch = _make_batch()
        with pytest.raises(ValidationError):
            batch.current_quantity = 60.0


class TestExpiry:
    def test_is_expired(self):
        batch = _make_batch(expiry_date=date(2026, 7, 10))
        assert not batch.is_expired(date(2026, 7, 10))
        assert batch.is_expired(date(2026, 7, 11))

    def test_without_expiry_never_expires(self):
        batch = _make_batch(expiry_date=None)
        assert not batch.is_expired(date(2099, 1, 1))
        assert not batch.expires_within(30, date(2099, 1, 1))

    def test_expires_within_window(self):
        batch = _make_batch(expiry_date=date(2026, 7, 10))
        assert batch.expires_within(30, date(2026, 6, 15))
        assert not batch.expires_within(30, date(2026, 5, 1))

    def test_mark_expired(self):
        batch = _make_batch()
        batch.deduct_quantity(10)
        batch.mark_expired()
        assert batch.status == BatchStatus.EXPIRED.value
        event = [e for e in batch._events if isinstance(e, BatchExpired)][0]
        assert event.remaining_quantity == 40.0

    def test_only_active_batches_expire(self):
        batch = _make_batch()
        batch.deduct_quantity(50)
        with pytest.raises(ValidationError):
            batch.mark_expired()
