"""Inventory bounded context: stock ledger and adjustment workflow.

Tracks on-hand and reserved stock per product and warehouse (CQRS), records
every quantity change in an append-only movement ledger, layers optional lot
tracking on top, and gates manual corrections behind an approval workflow.
"""

from protean.domain import Domain

from inventory.utils.logging import configure_logging

# Configure logging for the application
configure_logging()

inventory = Domain(name="inventory")
