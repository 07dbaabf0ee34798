"""Runtime settings for the Inventory domain.

Values come from the environment (``INVENTORY_`` prefix) or a local ``.env``
file. Business thresholds are read once and injected into the service layer.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class InventorySettings(BaseSettings):
    """Inventory settings"""

    model_config = SettingsConfigDict(
        env_prefix="INVENTORY_",
        env_file=".env",
        extra="ignore",
    )

    # Adjustments whose absolute quantity change reaches this value wait for approval
    adjustment_approval_threshold: float = Field(default=100.0, ge=0)

    # Look-ahead window for the expiring-batches report
    batch_expiry_warning_days: int = Field(default=30, ge=0)

    # Attempts made by the HTTP layer when a write loses an optimistic version race
    conflict_retry_attempts: int = Field(default=3, ge=1)

    # Logging
    log_level: str | None = None
    log_dir: str | None = None
    log_json: bool = False


@lru_cache
def get_settings() -> InventorySettings:
    return InventorySettings()
