"""Application tests for the adjustment approval workflow."""

import pytest
from inventory.adjustment.adjustment import AdjustmentStatus, InventoryAdjustment
from inventory.ledger.movement import StockMovement
from inventory.shared.errors import InsufficientStockError, InvalidAdjustmentStateError, RoleSeparationError
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


def _adjustment_movements(product_id):
    return (
        current_domain.repository_for(StockMovement)
        ._dao.query.filter(product_id=str(product_id), movement_type__in=["adjustment_in", "adjustment_out"])
        .all()
        .items
    )


@pytest.fixture()
def adjust(service, product, warehouse):
    def _adjust(adjustment_type, quantity_change, user_id="clerk-01", reason="Cycle count"):
        return service.create_adjustment(
            product_id=product.id,
            warehouse_id=warehouse.id,
            adjustment_type=adjustment_type,
            quantity_change=quantity_change,
            reason=reason,
            user_id=user_id,
        )

    return _adjust


class TestSmallAdjustments:
    def test_found_stock_is_applied_immediately(self, service, product, warehouse, stocked, adjust):
        stocked(100)
        adjustment = adjust("found", 5, reason="Pallet behind racking")

        assert adjustment.status == AdjustmentStatus.APPROVED.value
        assert adjustment.approved_by == "clerk-01"
        assert adjustment.quantity_before == 100.0
        assert adjustment.quantity_after == 105.0
        assert service.get_stock_level(product.id, warehouse.id).quantity == 105.0

        movements = _adjustment_movements(product.id)
        assert len(movements) == 1
        assert movements[0].movement_type == "adjustment_in"
        assert movements[0].reason == "Found Stock: Pallet behind racking"
        assert movements[0].reference.document_id == adjustment.id

    def test_small_loss_is_applied_immediately(self, service, product, warehouse, stocked, adjust):
        stocked(100)
        adjust("drying", -2.5)
        assert service.get_stock_level(product.id, warehouse.id).quantity == 97.5
        assert _adjustment_movements(product.id)[0].movement_type == "adjustment_out"
        assert service.ledger_balance(product.id, warehouse.id) == 97.5

    def test_decrease_beyond_on_hand_rejected(self, service, product, warehouse, stocked, adjust):
        stocked(3)
        with pytest.raises(InsufficientStockError):
            adjust("damage", -4)
        assert service.get_adjustments() == []
        assert service.get_stock_level(product.id, warehouse.id).quantity == 3.0

    def test_requires_existing_record(self, service, product, warehouse, adjust):
        with pytest.raises(ObjectNotFoundError):
            adjust("found", 5)

    def test_sign_rule_enforced(self, stocked, adjust):
        stocked(100)
        with pytest.raises(ValidationError):
            adjust("theft", 5)


class TestLargeAdjustments:
    def test_large_change_waits_for_approval(self, service, product, warehouse, stocked, adjust):
        stocked(800)
        adjustment = adjust("theft", -500, reason="Break-in over the weekend")

        assert adjustment.status == AdjustmentStatus.PENDING_APPROVAL.value
        assert adjustment.approved_by is None
        assert service.get_stock_level(product.id, warehouse.id).quantity == 800.0
        assert _adjustment_movements(product.id) == []
        assert [a.id for a in service.get_pending_adjustments()] == [adjustment.id]

    def test_threshold_is_inclusive(self, stocked, adjust):
        stocked(800)
        assert adjust("count_correction", 100).status == AdjustmentStatus.PENDING_APPROVAL.value

    def test_creator_cannot_approve(self, service, product, warehouse, stocked, adjust):
        stocked(800)
        adjustment = adjust("theft", -500)

        with pytest.raises(RoleSeparationError) as exc_info:
            service.approve_adjustment(adjustment.id, "clerk-01")

        assert str(exc_info.value) == "You cannot approve your own adjustment."
        assert service.get_stock_level(product.id, warehouse.id).quantity == 800.0
        stored = current_domain.repository_for(InventoryAdjustment).get(adjustment.id)
        assert stored.status == AdjustmentStatus.PENDING_APPROVAL.value

    def test_another_user_approves_and_stock_changes(self, service, product, warehouse, stocked, adjust):
        stocked(800)
        adjustment = adjust("theft", -500)

        approved = service.approve_adjustment(adjustment.id, "manager-01", notes="Police report filed")

        assert approved.status == AdjustmentStatus.APPROVED.value
        assert approved.approved_by == "manager-01"
        assert approved.approval_notes == "Police report filed"
        assert service.get_stock_level(product.id, warehouse.id).quantity == 300.0

        movements = _adjustment_movements(product.id)
        assert len(movements) == 1
        assert movements[0].quantity == 500.0
        assert movements[0].created_by == "manager-01"

    def test_reject_leaves_stock_alone(self, service, product, warehouse, stocked, adjust):
        stocked(800)
        adjustment = adjust("theft", -500)

        rejected = service.reject_adjustment(adjustment.id, "manager-01", notes="Stock found in bay 4")

        assert rejected.status == AdjustmentStatus.REJECTED.value
        assert rejected.approved_by == "manager-01"
        assert service.get_stock_level(product.id, warehouse.id).quantity == 800.0
        assert _adjustment_movements(product.id) == []
        assert service.get_pending_adjustments() == []

    def test_decided_adjustment_cannot_be_approved_again(self, service, stocked, adjust):
        stocked(800)
        adjustment = adjust("theft", -500)
        service.reject_adjustment(adjustment.id, "manager-01")

        with pytest.raises(InvalidAdjustmentStateError):
            service.approve_adjustment(adjustment.id, "manager-02")

    def test_auto_approved_adjustment_cannot_be_approved(self, service, stocked, adjust):
        stocked(100)
        adjustment = adjust("found", 5)
        with pytest.raises(InvalidAdjustmentStateError):
            service.approve_adjustment(adjustment.id, "manager-01")

    def test_unknown_adjustment(self, service):
        with pytest.raises(ObjectNotFoundError):
            service.approve_adjustment("missing", "manager-01")


class TestAdjustmentHistory:
    def test_filters(self, service, product, warehouse, stocked, adjust):
        stocked(800)
        adjust("found", 5)
        adjust("theft", -500)
        adjust("loss", -1)

        assert len(service.get_adjustments(product_id=product.id)) == 3
        assert len(service.get_adjustments(status="approved")) == 2
        losses = service.get_adjustments(adjustment_type="loss")
        assert [a.quantity_change for a in losses] == [-1.0]

    def test_newest_first(self, service, stocked, adjust):
        stocked(100)
        first = adjust("found", 1)
        second = adjust("found", 2)
        assert [a.id for a in service.get_adjustments()] == [second.id, first.id]
