"""Tests for the InventoryRecord aggregate."""

import pytest
from inventory.stock.events import LowStockDetected, ReservationReleased, StockReserved
from inventory.stock.record import InventoryRecord, record_id_for
from protean import current_domain
from protean.exceptions import ValidationError


def _make_record(quantity=100.0, reserved=0.0):
    record = InventoryRecord.open("prod-001", "wh-001")
    if quantity:
        record.increase(quantity, adjusted_by="clerk-01")
    if reserved:
        record.reserve(reserved)
    return record


class TestOpenRecord:
    def test_new_record_starts_empty(self):
        record = InventoryRecord.open("prod-001", "wh-001")
        assert record.quantity == 0.0
        assert record.reserved_quantity == 0.0
        assert record.available_quantity == 0.0

    def test_available_is_derived(self):
        record = _make_record(quantity=100, reserved=30)
        assert record.available_quantity == 70.0

    def test_id_is_derived_from_the_pair(self):
        first = InventoryRecord.open("prod-001", "wh-001")
        again = InventoryRecord.open("prod-001", "wh-001")
        elsewhere = InventoryRecord.open("prod-001", "wh-002")
        assert first.id == again.id == record_id_for("prod-001", "wh-001")
        assert elsewhere.id != first.id


class TestOneRecordPerPair:
    def test_second_record_for_pair_is_refused(self):
        repo = current_domain.repository_for(InventoryRecord)
        repo.add(InventoryRecord.open("prod-001", "wh-001"))

        with pytest.raises(ValidationError):
            repo.add(InventoryRecord(product_id="prod-001", warehouse_id="wh-001"))

        assert len(repo.for_product("prod-001")) == 1

    def test_same_product_in_another_warehouse_is_allowed(self):
        repo = current_domain.repository_for(InventoryRecord)
        repo.add(InventoryRecord.open("prod-001", "wh-001"))
        repo.add(InventoryRecord.open("prod-001", "wh-002"))
        assert len(repo.for_product("prod-001")) == 2


class TestIncreaseAndDecrease:
    def test_increase_stamps_provenance(self):
        record = _make_record(quantity=0)
        record.increase(12.5, adjusted_by="clerk-07")
        assert record.quantity == 12.5
        assert record.last_adjusted_by == "clerk-07"
        assert record.last_stock_take is not None

    def test_quantities_are_rounded_to_three_places(self):
        record = _make_record(quantity=0)
        record.increase(0.1)
        record.increase(0.2)
        assert record.quantity == 0.3

    def test_decrease_within_available(self):
        record = _make_record(quantity=100, reserved=30)
        record.decrease(70)
        assert record.quantity == 30.0
        assert record.reserved_quantity == 30.0
        assert record.available_quantity == 0.0

    def test_decrease_beyond_available_is_rejected(self):
        record = _make_record(quantity=100, reserved=30)
        with pytest.raises(ValidationError) as exc_info:
            record.decrease(80)
        assert "quantity" in exc_info.value.messages
        assert record.quantity == 100.0

    def test_forced_decrease_trims_reservation(self):
        record = _make_record(quantity=100, reserved=30)
        record.decrease(90, allow_negative=True)
        assert record.quantity == 10.0
        assert record.reserved_quantity == 10.0

    def test_forced_decrease_can_go_negative(self):
        record = _make_record(quantity=5, reserved=5)
        record.decrease(8, allow_negative=True)
        assert record.quantity == -3.0
        assert record.reserved_quantity == 0.0

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantities_are_rejected(self, quantity):
        record = _make_record()
        with pytest.raises(ValidationError):
            record.increase(quantity)
        with pytest.raises(ValidationError):
            record.decrease(quantity)


class TestReservations:
    def test_reserve_raises_event(self):
        record = _make_record(quantity=100)
        record.reserve(30, reserved_by="order-svc")

        assert record.reserved_quantity == 30.0
        events = [e for e in record._events if isinstance(e, StockReserved)]
        assert len(events) == 1
        assert events[0].new_available == 70.0
        assert events[0].reserved_by == "order-svc"

    def test_cannot_reserve_more_than_available(self):
        record = _make_record(quantity=100, reserved=80)
        with pytest.raises(ValidationError):
            record.reserve(21)
        assert record.reserved_quantity == 80.0

    def test_release_returns_stock_to_available(self):
        record = _make_record(quantity=100, reserved=30)
        over = record.release(10)
        assert over == 0.0
        assert record.reserved_quantity == 20.0
        assert record.available_quantity == 80.0

    def test_over_release_floors_at_zero(self):
        record = _make_record(quantity=100, reserved=10)
        over = record.release(25)

        assert over == 15.0
        assert record.reserved_quantity == 0.0
        released = [e for e in record._events if isinstance(e, ReservationReleased)][-1]
        assert released.over_released == 15.0

    def test_reserved_never_exceeds_on_hand(self):
        record = _make_record(quantity=10)
        with pytest.raises(ValidationError):
            record.reserved_quantity = 11.0


class TestLowStock:
    def test_low_stock_detected_at_reorder_level(self, product):
        record = _make_record(quantity=20)
        record.check_low_stock(product)

        events = [e for e in record._events if isinstance(e, LowStockDetected)]
        assert len(events) == 1
        assert events[0].reorder_level == 20.0
        assert events[0].is_critical is False

    def test_no_signal_above_reorder_level(self, product):
        record = _make_record(quantity=21)
        record.check_low_stock(product)
        assert not [e for e in record._events if isinstance(e, LowStockDetected)]

    def test_critical_flag(self, product):
        record = _make_record(quantity=4)
        record.check_low_stock(product)
        event = [e for e in record._events if isinstance(e, LowStockDetected)][0]
        assert event.is_critical is True
