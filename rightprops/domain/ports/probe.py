from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Iterator, Protocol, Sequence


class ProberPort(Protocol):
    """Runs the external prober against one file."""

    def run_json(self, path: Path, args: Sequence[str]) -> Dict[str, Any]:
        """Run with a structured (JSON) print format and return the parsed document."""
        ...

    def iter_lines(self, path: Path, args: Sequence[str]) -> Iterator[str]:
        """Run with a line-oriented print format and stream stdout line by line."""
        ...
