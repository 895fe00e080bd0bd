# rightprops/services/probe/bitrate_fallback.py
from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Sequence

from rightprops.common.logging import get_logger
from rightprops.common.probe.ffprobe_helpers import parse_int, parse_seconds, parse_time_base
from rightprops.common.strings.splitters import csv_columns
from rightprops.domain.dataclasses.probe import FallbackAccumulator
from rightprops.domain.dataclasses.reports import ScanReport
from rightprops.domain.entities.property_spec import bitrate_calculated_key
from rightprops.domain.enums import StreamKind
from rightprops.domain.ports.probe import ProberPort

logger = get_logger(__name__)


class BitrateFallback:
    """
    Approximates a stream's encoding bitrate when ffprobe can't read it from the
    container: bytes of every packet over the stream duration. One extra ffprobe
    pass covers both stream kinds; packet lines then carry their codec type.
    """

    def __init__(self, prober: ProberPort, report: Optional[ScanReport] = None) -> None:
        self.prober = prober
        self.report = report

    @staticmethod
    def build_args(kinds: Sequence[StreamKind]) -> List[str]:
        both = len(kinds) > 1
        packet = ("codec_type," if both else "") + "duration,size"
        args = [
            "-show_entries", f"packet={packet}:stream=codec_type,time_base,duration",
            "-print_format", "csv",
        ]
        if not both:
            args = ["-select_streams", kinds[0].selector, *args]
        return args

    def aggregate(self, path: Path, kinds: Sequence[StreamKind]) -> Dict[StreamKind, FallbackAccumulator]:
        """Stream the packet pass and fold it into one accumulator per kind."""
        both = len(kinds) > 1
        accs: Dict[StreamKind, FallbackAccumulator] = {k: FallbackAccumulator() for k in kinds}

        for line in self.prober.iter_lines(path, self.build_args(kinds)):
            cols = csv_columns(line)
            if not cols:
                continue
            if cols[0] == "packet":
                if both:
                    if len(cols) < 4 or cols[1] not in accs:
                        continue
                    acc = accs[StreamKind(cols[1])]
                    duration, size = cols[2], cols[3]
                else:
                    if len(cols) < 3:
                        continue
                    acc = accs[kinds[0]]
                    duration, size = cols[1], cols[2]
                acc.add_packet(parse_int(size), parse_int(duration))
            elif cols[0] == "stream":
                if len(cols) < 4 or cols[1] not in accs:
                    continue
                acc = accs[StreamKind(cols[1])]
                acc.time_base = parse_time_base(cols[2])
                acc.declared_duration = parse_seconds(cols[3])
                if acc.declared_duration is None:
                    logger.warning(
                        "ffprobe failed to parse duration of stream(%s) from `%s`, got `%s`.",
                        cols[1], path, cols[3],
                    )
        return accs

    def compute(self, path: Path, kinds: Sequence[StreamKind]) -> Dict[str, str]:
        """Return derived bitrate keys -> bits per second (as text)."""
        logger.info(
            "Try to calculate bitrate of stream(s), %s, from `%s`.",
            " and ".join(k.value for k in kinds), path,
        )
        out: Dict[str, str] = {}
        for kind, acc in self.aggregate(path, kinds).items():
            duration = acc.resolve_duration()
            if not duration or duration <= 0:
                msg = f"cannot calculate {kind.value} bitrate: stream duration resolved to {duration}"
                logger.warning("%s (File: %s)", msg, path)
                if self.report is not None:
                    self.report.warn(str(path), msg)
                continue

            bps = acc.bitrate(duration)
            logger.debug(
                "%s stream info of `%s`:\n  Size: %s bytes\n  Duration: %s seconds\n  Bitrate: %s bit per second",
                kind.group, path, acc.sum_bytes, float(duration), bps,
            )
            out[bitrate_calculated_key(kind.group)] = str(bps)
        if self.report is not None:
            self.report.bump("bitrate_fallbacks")
        return out
