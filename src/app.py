"""StockLedger FastAPI application.

Serves the Inventory domain over HTTP, processing commands synchronously.
Every request runs inside the inventory domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from src/inventory/domain.toml:
#   - unset/"test" → in-memory providers
#   - "production" → PostgreSQL
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from inventory.domain import inventory
from inventory.utils.logging import clear_context

inventory.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="StockLedger API",
    description="Inventory ledger, batches and stock adjustments",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the inventory domain context for each request."""
    clear_context()
    with inventory.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers and error mapping
# ---------------------------------------------------------------------------
from inventory.api import (  # noqa: E402
    inventory_router,
    product_router,
    register_inventory_exception_handlers,
    warehouse_router,
)

app.include_router(product_router)
app.include_router(warehouse_router)
app.include_router(inventory_router)

register_exception_handlers(app)
register_inventory_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": inventory.name})
