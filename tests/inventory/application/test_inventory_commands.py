"""Application tests for inventory commands processed through the domain."""

from datetime import date

import pytest
from inventory.adjustment.adjustment import AdjustmentStatus, InventoryAdjustment
from inventory.adjustment.workflow import ApproveAdjustment, CreateAdjustment, RejectAdjustment
from inventory.batch.batch import InventoryBatch
from inventory.batch.management import CreateBatch, ExpireBatches
from inventory.ledger.movement import StockMovement
from inventory.product.management import RegisterProduct, UpdateStockLevels
from inventory.product.product import Product
from inventory.services.inventory_service import InventoryService
from inventory.shared.errors import RoleSeparationError
from inventory.stock.issuing import DeductStock
from inventory.stock.receiving import AddStock
from inventory.stock.reservation import ReleaseReservation, ReserveStock
from inventory.stock.transfer import TransferStock
from inventory.warehouse.management import CreateWarehouse, DeactivateWarehouse
from inventory.warehouse.warehouse import Warehouse
from protean import current_domain


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _register_product(**overrides):
    defaults = {
        "name": "Robusta Green Beans",
        "sku": "BEAN-ROB-001",
        "unit": "kg",
        "cost_price": 3.1,
        "reorder_level": 10,
        "critical_level": 2,
    }
    defaults.update(overrides)
    return _process(RegisterProduct(**defaults))


def _create_warehouse(code="MAIN"):
    return _process(CreateWarehouse(name=f"{code.title()} Store", code=code))


def _receive(product_id, warehouse_id, quantity=100):
    return _process(
        AddStock(
            product_id=product_id,
            warehouse_id=warehouse_id,
            quantity=quantity,
            unit_cost=3.1,
            movement_type="purchase_in",
            reference_kind="purchase_order",
            reference_id="po-001",
            user_id="receiver-01",
        )
    )


def _level(product_id, warehouse_id):
    return InventoryService().get_stock_level(product_id, warehouse_id)


class TestReferenceDataCommands:
    def test_register_product(self):
        product_id = _register_product()
        product = current_domain.repository_for(Product).get(product_id)
        assert product.sku == "BEAN-ROB-001"
        assert product.unit == "kg"

    def test_update_stock_levels(self):
        product_id = _register_product()
        _process(UpdateStockLevels(product_id=product_id, reorder_level=40, critical_level=8))
        product = current_domain.repository_for(Product).get(product_id)
        assert product.reorder_level == 40.0
        assert product.critical_level == 8.0

    def test_create_and_deactivate_warehouse(self):
        warehouse_id = _create_warehouse("east")
        _process(DeactivateWarehouse(warehouse_id=warehouse_id))
        warehouse = current_domain.repository_for(Warehouse).get(warehouse_id)
        assert warehouse.code == "EAST"
        assert warehouse.is_active is False


class TestStockCommands:
    def test_add_stock_returns_movement(self):
        product_id = _register_product()
        warehouse_id = _create_warehouse()
        movement_id = _receive(product_id, warehouse_id)

        movement = current_domain.repository_for(StockMovement).get(movement_id)
        assert movement.quantity_after == 100.0
        assert str(movement.reference) == "purchase_order:po-001"

    def test_deduct_stock(self):
        product_id = _register_product()
        warehouse_id = _create_warehouse()
        _receive(product_id, warehouse_id)
        _process(
            DeductStock(
                product_id=product_id,
                warehouse_id=warehouse_id,
                quantity=30,
                movement_type="sale_out",
                reference_kind="sales_order",
                reference_id="so-001",
                user_id="cashier-01",
            )
        )
        assert _level(product_id, warehouse_id).quantity == 70.0

    def test_transfer_stock(self):
        product_id = _register_product()
        main = _create_warehouse("MAIN")
        depot = _create_warehouse("DEPOT")
        _receive(product_id, main)

        result = _process(
            TransferStock(
                product_id=product_id,
                from_warehouse_id=main,
                to_warehouse_id=depot,
                quantity=25,
                user_id="clerk-01",
            )
        )

        assert set(result) == {"out", "in"}
        assert _level(product_id, main).quantity == 75.0
        assert _level(product_id, depot).quantity == 25.0

    def test_reserve_and_release(self):
        product_id = _register_product()
        warehouse_id = _create_warehouse()
        _receive(product_id, warehouse_id)

        _process(ReserveStock(product_id=product_id, warehouse_id=warehouse_id, quantity=40, user_id="sales-01"))
        assert _level(product_id, warehouse_id).available_quantity == 60.0

        _process(ReleaseReservation(product_id=product_id, warehouse_id=warehouse_id, quantity=40))
        assert _level(product_id, warehouse_id).available_quantity == 100.0


class TestBatchCommands:
    def test_create_and_expire(self):
        product_id = _register_product()
        warehouse_id = _create_warehouse()
        batch_id = _process(
            CreateBatch(
                product_id=product_id,
                warehouse_id=warehouse_id,
                quantity=20,
                unit_cost=3.1,
                production_date=date(2026, 1, 1),
                expiry_date=date(2026, 2, 1),
                user_id="prod-lead",
            )
        )

        expired = _process(ExpireBatches(as_of=date(2026, 3, 1), user_id="scheduler"))

        batch = current_domain.repository_for(InventoryBatch).get(batch_id)
        assert expired == [batch.batch_number]
        assert batch.status == "expired"


class TestAdjustmentCommands:
    def _pending(self):
        product_id = _register_product()
        warehouse_id = _create_warehouse()
        _receive(product_id, warehouse_id, quantity=500)
        adjustment_id = _process(
            CreateAdjustment(
                product_id=product_id,
                warehouse_id=warehouse_id,
                adjustment_type="loss",
                quantity_change=-200,
                reason="Water damage",
                user_id="clerk-01",
            )
        )
        return product_id, warehouse_id, adjustment_id

    def test_approve(self):
        product_id, warehouse_id, adjustment_id = self._pending()
        _process(ApproveAdjustment(adjustment_id=adjustment_id, user_id="manager-01"))

        adjustment = current_domain.repository_for(InventoryAdjustment).get(adjustment_id)
        assert adjustment.status == AdjustmentStatus.APPROVED.value
        assert _level(product_id, warehouse_id).quantity == 300.0

    def test_self_approval_rejected(self):
        product_id, warehouse_id, adjustment_id = self._pending()
        with pytest.raises(RoleSeparationError):
            _process(ApproveAdjustment(adjustment_id=adjustment_id, user_id="clerk-01"))
        assert _level(product_id, warehouse_id).quantity == 500.0

    def test_reject(self):
        product_id, warehouse_id, adjustment_id = self._pending()
        _process(RejectAdjustment(adjustment_id=adjustment_id, user_id="manager-01", notes="Recount"))

        adjustment = current_domain.repository_for(InventoryAdjustment).get(adjustment_id)
        assert adjustment.status == AdjustmentStatus.REJECTED.value
        assert _level(product_id, warehouse_id).quantity == 500.0
