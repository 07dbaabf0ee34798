"""Unit-of-work scoping for service operations.

A service call opens its own UnitOfWork, unless one is already in progress
(a command handler, or an outer service call such as a transfer), in which
case it joins it so the whole request commits or rolls back together.
"""

from contextlib import contextmanager

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ExpectedVersionError, TransactionError
from protean.utils.globals import current_uow

logger = structlog.get_logger(__name__)


@contextmanager
def atomic():
    if current_uow:
        yield current_uow
        return

    with UnitOfWork() as uow:
        yield uow


def is_conflict(exc) -> bool:
    """Whether ``exc`` means another writer got there first.

    A stale aggregate version is one. So is a commit refused by the database
    for a duplicate key, which is how two concurrent first receipts for the
    same (product, warehouse) pair collide on the record's derived id.
    """
    if isinstance(exc, ExpectedVersionError):
        return True
    if isinstance(exc, TransactionError):
        return (exc.extra_info or {}).get("original_exception") == "IntegrityError"
    return False


def retry_on_conflict(operation, attempts=3):
    """Run ``operation`` again when it loses a race with a concurrent writer.

    Only conflicts are retried; every other error propagates on the first
    attempt. The operation must open its own unit of work so each retry
    reads fresh state.
    """
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except (ExpectedVersionError, TransactionError) as exc:
            if attempt == attempts or not is_conflict(exc):
                raise
            logger.warning("Write conflict, retrying", attempt=attempt, attempts=attempts, error=str(exc))
