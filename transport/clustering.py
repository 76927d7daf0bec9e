"""
Time Window Clustering.

Buckets unassigned family groups into transport waves keyed by
(arrival date, arrival hour, pickup location).
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date as date_type, time as time_type
from typing import Dict, Iterable, List, NamedTuple, Optional

from models import FamilyGroup
from .config import DEFAULT_CONFIG, TransportConfig

logger = logging.getLogger(__name__)


class ClusterKey(NamedTuple):
    date: date_type
    hour_bucket: str  # "00".."23"
    location: str     # normalized


@dataclass
class TransportWave:
    """Unassigned groups sharing a date, hour bucket and pickup location."""
    key: ClusterKey
    pickup_location: str  # first-seen spelling, used on assignments
    groups: List[FamilyGroup] = field(default_factory=list)

    @property
    def pickup_date(self) -> date_type:
        return self.key.date

    @property
    def pickup_time(self) -> time_type:
        return time_type(int(self.key.hour_bucket), 0)

    @property
    def pickup_time_label(self) -> str:
        return f"{self.key.hour_bucket}:00"

    @property
    def passenger_count(self) -> int:
        return sum(g.size for g in self.groups)


@dataclass
class ClusteringResult:
    waves: Dict[ClusterKey, TransportWave] = field(default_factory=dict)
    excluded: List[FamilyGroup] = field(default_factory=list)

    def ordered(self) -> List[TransportWave]:
        """Waves in ascending key order; later waves see fewer free vehicles."""
        return [self.waves[k] for k in sorted(self.waves)]


class TimeWindowClusterer:
    """
    Groups arrivals into hourly pickup waves.
    """

    def __init__(self, config: TransportConfig = DEFAULT_CONFIG):
        self.config = config

    @staticmethod
    def hour_bucket(arrival_time: time_type) -> str:
        """'14:37' -> '14'"""
        return f"{arrival_time.hour:02d}"

    def location_key(self, location: Optional[str]) -> str:
        location = (location or "").strip() or self.config.default_pickup_location
        if self.config.normalize_locations:
            return re.sub(r"\s+", " ", location).casefold()
        return location

    def key_for(self, group: FamilyGroup) -> Optional[ClusterKey]:
        if not group.has_arrival_window:
            return None
        return ClusterKey(
            date=group.arrival_date,
            hour_bucket=self.hour_bucket(group.arrival_time),
            location=self.location_key(group.arrival_location),
        )

    def cluster(self, unassigned_groups: Iterable[FamilyGroup]) -> ClusteringResult:
        result = ClusteringResult()
        for group in unassigned_groups:
            key = self.key_for(group)
            if key is None:
                result.excluded.append(group)
                continue

            wave = result.waves.get(key)
            if wave is None:
                label = (group.arrival_location or "").strip() or self.config.default_pickup_location
                wave = result.waves[key] = TransportWave(key=key, pickup_location=label)
            wave.groups.append(group)

        logger.debug(
            f"Clustered into {len(result.waves)} waves, {len(result.excluded)} groups lack arrival date/time"
        )
        return result
