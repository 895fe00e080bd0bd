from __future__ import annotations

from dataclasses import dataclass, field
from fractions import Fraction
from typing import Dict, Optional, Tuple

from rightprops.common.probe.ffprobe_helpers import round_half_away, ticks_to_seconds
from rightprops.domain.entities.property_spec import PropertySpec


@dataclass(frozen=True)
class QueryPlan:
    """
    What to ask ffprobe for one file.
    `pending` holds PROPERTY_TABLE indexes in table order; `lookup` maps each of
    them back to its row so the merger never correlates by list position.
    """
    entries_arg: str = ""
    pending: Tuple[int, ...] = ()
    lookup: Dict[int, PropertySpec] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.pending


@dataclass
class FallbackAccumulator:
    """Running totals for one stream kind during a fallback pass."""
    sum_bytes: int = 0
    sum_duration_ticks: int = 0
    packet_count: int = 0
    time_base: Optional[Fraction] = None
    declared_duration: Optional[Fraction] = None

    def add_packet(self, size: Optional[int], duration: Optional[int]) -> None:
        self.packet_count += 1
        if size is not None:
            self.sum_bytes += size
        if duration is not None:
            self.sum_duration_ticks += duration

    def summed_duration(self) -> Optional[Fraction]:
        """Duration from summed packet ticks; None without a usable time base."""
        if self.time_base is None:
            return None
        return ticks_to_seconds(self.sum_duration_ticks, self.time_base)

    def resolve_duration(self) -> Optional[Fraction]:
        """Declared duration if ffprobe reported one, else the summed packet duration."""
        if self.declared_duration is not None:
            return self.declared_duration
        return self.summed_duration()

    def bitrate(self, duration: Fraction) -> int:
        """bits per second ~= 8 * bytes / seconds. Caller guards duration > 0."""
        return round_half_away(Fraction(8 * self.sum_bytes) / duration)
