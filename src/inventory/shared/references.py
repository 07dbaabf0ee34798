"""Sequential document numbers, e.g. ``SM-2026-00042``.

The next number is derived from the highest one already persisted for the
current year, and the generator also remembers what it has handed out in this
process so two numbers issued before either is committed never collide.
"""

import threading
from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from inventory.shared.queries import fetch_all

logger = structlog.get_logger(__name__)

SEQUENCE_WIDTH = 5


class ReferenceGenerator:
    def __init__(self, clock=None):
        self._clock = clock or (lambda: datetime.now(UTC))
        self._issued: dict[str, int] = {}
        self._lock = threading.Lock()

    def generate(self, prefix: str, aggregate_cls, field_name: str) -> str:
        """Return a new ``PREFIX-YEAR-NNNNN`` value for ``aggregate_cls.field_name``."""
        stem = f"{prefix}-{self._clock().year}-"

        with self._lock:
            persisted = self._highest_persisted(stem, aggregate_cls, field_name)
            sequence = max(persisted, self._issued.get(stem, 0)) + 1
            self._issued[stem] = sequence

        return f"{stem}{sequence:0{SEQUENCE_WIDTH}d}"

    def _highest_persisted(self, stem, aggregate_cls, field_name) -> int:
        """Largest sequence already stored under ``stem``, compared as a number.

        Sequences grow past the padded width (``99999`` then ``100000``), so
        string order stops matching numeric order and cannot pick the latest.
        """
        repo = current_domain.repository_for(aggregate_cls)
        query = repo._dao.query.filter(**{f"{field_name}__startswith": stem}).order_by("id")

        highest = 0
        for item in fetch_all(query):
            value = getattr(item, field_name)
            try:
                highest = max(highest, int(value[len(stem) :]))
            except ValueError:
                logger.warning("Unparseable document number", field=field_name, value=value)
        return highest


# Shared default so every service instance in the process draws from one sequence
reference_generator = ReferenceGenerator()
