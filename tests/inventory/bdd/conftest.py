"""Shared BDD fixtures and step definitions for the Inventory domain."""

import pytest
from inventory.ledger.movement import StockMovement
from inventory.product.product import Product
from inventory.warehouse.warehouse import Warehouse
from protean import current_domain
from protean.exceptions import InvalidOperationError, ValidationError
from pytest_bdd import given, parsers, then


@pytest.fixture()
def scenario_state():
    """Mutable state shared by the steps of one scenario."""
    return {"warehouses": {}, "error": None}


def _add_warehouse(scenario_state, name):
    code = "".join(word[0] for word in name.split()).upper() + str(len(scenario_state["warehouses"]) + 1)
    warehouse = Warehouse.create(name=name, code=code)
    current_domain.repository_for(Warehouse).add(warehouse)
    scenario_state["warehouses"][name] = warehouse
    return warehouse


@pytest.fixture()
def attempt(scenario_state):
    """Run an operation, keeping a domain refusal for a later Then step."""

    def _attempt(operation):
        try:
            return operation()
        except (ValidationError, InvalidOperationError) as exc:
            scenario_state["error"] = exc
            return None

    return _attempt


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{name}" with {qty:d} units in "{warehouse_name}"'))
def _(scenario_state, service, name, qty, warehouse_name):
    product = Product.register(name=name, sku="SKU-001", cost_price=4.25, unit="kg", reorder_level=20, critical_level=5)
    current_domain.repository_for(Product).add(product)
    scenario_state["product"] = product

    warehouse = _add_warehouse(scenario_state, warehouse_name)
    scenario_state["warehouse"] = warehouse
    service.add_stock(product.id, warehouse.id, qty, 4.25, "purchase_in", "receiver-01")


@given(parsers.cfparse('a warehouse "{name}"'))
def _(scenario_state, name):
    _add_warehouse(scenario_state, name)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the on-hand quantity is {qty:d}"))
def _(scenario_state, service, qty):
    record = service.get_stock_level(scenario_state["product"].id, scenario_state["warehouse"].id)
    assert record.quantity == qty


@then(parsers.cfparse('the request is refused with "{message}"'))
def _(scenario_state, message):
    assert scenario_state["error"] is not None
    assert str(scenario_state["error"]) == message


@then("the ledger balance matches the on-hand quantity")
def _(scenario_state, service):
    product, warehouse = scenario_state["product"], scenario_state["warehouse"]
    record = service.get_stock_level(product.id, warehouse.id)
    assert service.ledger_balance(product.id, warehouse.id) == record.quantity


@then(parsers.cfparse("the adjustment ledger count is {count:d}"))
def _(scenario_state, count):
    movements = (
        current_domain.repository_for(StockMovement)
        ._dao.query.filter(
            product_id=str(scenario_state["product"].id),
            movement_type__in=["adjustment_in", "adjustment_out"],
        )
        .all()
    )
    assert movements.total == count
