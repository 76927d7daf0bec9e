"""
Allocator configuration using pydantic-settings.

One place for the tunables shared by the clusterer, the assigner and the
ledger. Defaults match the planner screen of the wedding app; every field
can be overridden with a TRANSPORT_* environment variable
(e.g. TRANSPORT_SLACK_THRESHOLD=1).
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TransportConfig(BaseSettings):
    """Tunables for one allocator instance."""

    model_config = SettingsConfigDict(
        env_prefix="TRANSPORT_",
        extra="ignore",
        frozen=True,
    )

    # Vehicle is sealed once fewer than this many seats remain
    slack_threshold: int = Field(default=2, ge=0)

    default_pickup_location: str = Field(default="Airport", min_length=1)
    default_dropoff_location: str = Field(default="Venue", min_length=1)

    # Cluster keys compare case-folded, whitespace-collapsed locations
    normalize_locations: bool = True

    max_conflict_retries: int = Field(default=3, ge=1)


@lru_cache
def get_config() -> TransportConfig:
    """
    Config loaded from the environment once and cached for the process.
    """
    return TransportConfig()


DEFAULT_CONFIG = get_config()
