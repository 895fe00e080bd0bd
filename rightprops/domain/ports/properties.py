from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Protocol


class PropertySourcePort(Protocol):
    """Platform file-property retrieval; returns a fresh, mutable property map."""

    def retrieve(self, path: Path) -> Dict[str, Any]: ...

    def is_video(self, path: Path, props: Dict[str, Any]) -> bool: ...
