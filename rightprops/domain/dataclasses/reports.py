# rightprops/domain/dataclasses/reports.py
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass
class BaseReport:
    """Common report base:
    - timing: started_at / finished_at
    - error capture: error_details
    - helpers: start(), stop(), add_error()
    """
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    # Each tuple is (path, message)
    error_details: List[Tuple[str, str]] = field(default_factory=list)

    def start(self) -> None:
        if self.started_at is None:
            self.started_at = datetime.now()

    def stop(self) -> None:
        self.finished_at = datetime.now()

    def add_error(self, subject: str, message: str) -> None:
        self.error_details.append((subject, message))

    @property
    def elapsed_sec(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at or datetime.now()
        return (end - self.started_at).total_seconds()


@dataclass
class ScanReport(BaseReport):
    """Counters for one traversal run; safe to bump from worker threads."""
    files: int = 0
    directories: int = 0
    probed: int = 0
    skipped_non_video: int = 0
    bitrate_fallbacks: int = 0
    frame_rate_fallbacks: int = 0
    warnings: int = 0

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def bump(self, key: str, inc: int = 1) -> None:
        with self._lock:
            setattr(self, key, getattr(self, key) + inc)

    def warn(self, subject: str, message: str) -> None:
        """Record a per-file soft failure (run continues)."""
        with self._lock:
            self.warnings += 1
            self.error_details.append((subject, message))

    def add_error(self, subject: str, message: str) -> None:
        with self._lock:
            self.error_details.append((subject, message))

    def summary(self) -> str:
        return (
            f"{self.files} file(s) in {self.directories} folder(s); "
            f"probed {self.probed}, skipped {self.skipped_non_video} non-video; "
            f"fallbacks: {self.bitrate_fallbacks} bitrate, {self.frame_rate_fallbacks} frame rate; "
            f"{self.warnings} warning(s)"
        )
