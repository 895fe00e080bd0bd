# rightprops/services/probe/framerate_fallback.py
from __future__ import annotations

from fractions import Fraction
from pathlib import Path
from typing import Dict, List, Optional

from rightprops.common.logging import get_logger
from rightprops.common.probe.ffprobe_helpers import (
    format_seconds,
    parse_int,
    parse_seconds,
    parse_time_base,
    ticks_to_seconds,
)
from rightprops.common.strings.splitters import csv_columns
from rightprops.domain.dataclasses.reports import ScanReport
from rightprops.domain.entities.property_spec import FRAME_RATE_CALCULATED_KEY
from rightprops.domain.ports.probe import ProberPort

logger = get_logger(__name__)

# -count_frames decodes every frame; -count_packets only demuxes and is far faster.
COUNT_ARGS: List[str] = [
    "-select_streams", "v",
    "-count_packets",
    "-show_entries", "stream=time_base,duration,nb_read_packets",
    "-print_format", "csv=print_section=0",
]

PACKET_DURATION_ARGS: List[str] = [
    "-select_streams", "v",
    "-show_entries", "packet=duration",
    "-print_format", "default=nokey=1:noprint_wrappers=1",
]


class FrameRateFallback:
    """Average video frame rate as "<packets>/<seconds>", left undivided."""

    def __init__(self, prober: ProberPort, report: Optional[ScanReport] = None) -> None:
        self.prober = prober
        self.report = report

    def compute(self, path: Path) -> Dict[str, str]:
        logger.info("Try to calculate average frame rate of video from `%s`.", path)

        cols: List[str] = []
        for line in self.prober.iter_lines(path, COUNT_ARGS):
            parsed = csv_columns(line)
            if len(parsed) >= 3:
                cols = parsed
        if not cols:
            return self._give_up(path, "ffprobe reported no video stream")

        time_base, declared, count = cols[0], cols[1], cols[2]
        duration = parse_seconds(declared)
        if duration is None:
            logger.warning("ffprobe failed to parse duration of video stream from `%s`, got `%s`.", path, declared)
            duration = self._summed_duration(path, time_base)

        if not duration or duration <= 0:
            return self._give_up(path, f"video duration resolved to {duration}")

        if self.report is not None:
            self.report.bump("frame_rate_fallbacks")
        return {FRAME_RATE_CALCULATED_KEY: f"{count}/{format_seconds(duration)}"}

    def _summed_duration(self, path: Path, time_base: str) -> Optional[Fraction]:
        tb = parse_time_base(time_base)
        if tb is None:
            return None
        ticks = 0
        for line in self.prober.iter_lines(path, PACKET_DURATION_ARGS):
            d = parse_int(line)
            if d is not None:
                ticks += d
        return ticks_to_seconds(ticks, tb)

    def _give_up(self, path: Path, reason: str) -> Dict[str, str]:
        msg = f"cannot calculate frame rate: {reason}"
        logger.warning("%s (File: %s)", msg, path)
        if self.report is not None:
            self.report.warn(str(path), msg)
        return {}
