"""Product registration: commands and handler."""

from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from inventory.domain import inventory
from inventory.product.product import Product


@inventory.command(part_of="Product")
class RegisterProduct:
    """Make a product known to inventory."""

    name = String(required=True, max_length=255)
    sku = String(required=True, max_length=100)
    unit = String(max_length=20)
    cost_price = Float(default=0.0)
    reorder_level = Float(default=0.0)
    critical_level = Float(default=0.0)


@inventory.command(part_of="Product")
class UpdateStockLevels:
    """Change a product's reorder and critical levels."""

    product_id = Identifier(required=True)
    reorder_level = Float()
    critical_level = Float()


@inventory.command_handler(part_of=Product)
class ProductManagementHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        product = Product.register(
            name=command.name,
            sku=command.sku,
            unit=command.unit or "pcs",
            cost_price=command.cost_price or 0.0,
            reorder_level=command.reorder_level or 0.0,
            critical_level=command.critical_level or 0.0,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    @handle(UpdateStockLevels)
    def update_stock_levels(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.update_stock_levels(
            reorder_level=command.reorder_level,
            critical_level=command.critical_level,
        )
        repo.add(product)
