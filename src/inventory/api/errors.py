"""HTTP mapping for inventory-specific domain errors.

Protean's generic handlers cover ValidationError, ObjectNotFoundError and
friends; the narrower kinds registered here take precedence so clients can
tell "not enough stock" and "you cannot approve your own adjustment" apart
from ordinary validation failures.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError

from inventory.shared.errors import InsufficientStockError, InvalidAdjustmentStateError, RoleSeparationError


async def _insufficient_stock(request: Request, exc: InsufficientStockError) -> JSONResponse:
    return JSONResponse(status_code=422, content=exc.to_dict())


async def _role_separation(request: Request, exc: RoleSeparationError) -> JSONResponse:
    return JSONResponse(status_code=403, content=exc.to_dict())


async def _invalid_state(request: Request, exc: InvalidAdjustmentStateError) -> JSONResponse:
    return JSONResponse(status_code=409, content=exc.to_dict())


async def _version_conflict(request: Request, exc: ExpectedVersionError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": "The record was changed by another request, try again"})


def register_inventory_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(InsufficientStockError, _insufficient_stock)
    app.add_exception_handler(RoleSeparationError, _role_separation)
    app.add_exception_handler(InvalidAdjustmentStateError, _invalid_state)
    app.add_exception_handler(ExpectedVersionError, _version_conflict)
