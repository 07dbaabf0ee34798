import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def inventory_bed():
    from inventory.domain import inventory

    bed = DomainFixture(inventory)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(inventory_bed):
    with inventory_bed.domain_context():
        yield

        from protean import current_domain

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------
@pytest.fixture()
def product():
    from inventory.product.product import Product
    from protean import current_domain

    product = Product.register(
        name="Arabica Green Beans",
        sku="BEAN-ARA-001",
        cost_price=4.25,
        unit="kg",
        reorder_level=20,
        critical_level=5,
    )
    current_domain.repository_for(Product).add(product)
    return product


@pytest.fixture()
def warehouse():
    from inventory.warehouse.warehouse import Warehouse
    from protean import current_domain

    warehouse = Warehouse.create(name="Main Warehouse", code="MAIN", location="Nairobi")
    current_domain.repository_for(Warehouse).add(warehouse)
    return warehouse


@pytest.fixture()
def other_warehouse():
    from inventory.warehouse.warehouse import Warehouse
    from protean import current_domain

    warehouse = Warehouse.create(name="Coast Depot", code="COAST", location="Mombasa")
    current_domain.repository_for(Warehouse).add(warehouse)
    return warehouse


@pytest.fixture()
def service():
    from inventory.services.inventory_service import InventoryService

    return InventoryService(approval_threshold=100)


@pytest.fixture()
def stocked(service, product, warehouse):
    """Factory that receives stock into a warehouse and returns its record."""

    def _stock(quantity=100, target=None, unit_cost=4.25):
        target = target or warehouse
        service.add_stock(
            product_id=product.id,
            warehouse_id=target.id,
            quantity=quantity,
            unit_cost=unit_cost,
            movement_type="purchase_in",
            user_id="receiver-01",
        )
        return service.get_stock_level(product.id, target.id)

    return _stock
