# rightprops/common/probe/ffprobe_helpers.py
from __future__ import annotations
from fractions import Fraction
from pathlib import Path
from typing import Iterable, List, Optional

NOT_AVAILABLE = "N/A"


def build_ffprobe_cmd(
    ffprobe_bin: str,
    input_path: str | Path,
    args: Iterable[str],
    *,
    log_level: str = "warning",
) -> List[str]:
    """
    Build an ffprobe command for exactly one input. Banner is hidden and ffprobe's
    own logging (stderr) is limited to `log_level`.
    """
    return [
        ffprobe_bin,
        *args,
        "-hide_banner",
        "-loglevel", log_level,
        "--",  # Stop option parsing in case of weird filenames
        str(input_path),
    ]


def parse_seconds(x: object) -> Optional[Fraction]:
    """
    Exact seconds from an ffprobe duration ("10.010000"), or None for N/A,
    empty or otherwise non-numeric values.
    """
    if x is None:
        return None
    s = str(x).strip()
    if not s or s == NOT_AVAILABLE:
        return None
    try:
        return Fraction(s)
    except (ValueError, ZeroDivisionError):
        return None


def parse_int(x: object) -> Optional[int]:
    try:
        return int(str(x).strip())
    except (TypeError, ValueError):
        return None


def parse_time_base(tb: Optional[str]) -> Optional[Fraction]:
    """"1/90000" -> Fraction(1, 90000); None if missing or degenerate."""
    if not tb or "/" not in tb:
        return None
    n, d = tb.split("/", 1)
    try:
        num, den = int(n), int(d)
    except ValueError:
        return None
    if den == 0:
        return None
    return Fraction(num, den)


def ticks_to_seconds(ticks: int, time_base: Fraction) -> Fraction:
    """Duration in seconds of `ticks` units of `time_base`."""
    return ticks * time_base


def round_half_away(x: Fraction) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3)."""
    mag = int(abs(x) + Fraction(1, 2))
    return mag if x >= 0 else -mag


def format_seconds(x: Fraction) -> str:
    """Plain decimal text for a duration: 8 -> "8", 10.01 -> "10.01"."""
    if x.denominator == 1:
        return str(x.numerator)
    return repr(float(x))
