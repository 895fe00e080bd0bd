from __future__ import annotations

import json
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from rightprops.common.logging import get_logger

logger = get_logger(__name__)


def output_filename(prefix: str = "props", now: Optional[datetime] = None) -> str:
    """`props.<ISO-8601 local time>.json`, with ':' replaced so it's valid on every file system."""
    stamp = (now or datetime.now()).isoformat().replace(":", "_")
    return f"{prefix}.{stamp}.json"


def write_json(path: Path, value: Any) -> Path:
    t0 = time.perf_counter()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(value, indent=2, ensure_ascii=False, default=str), encoding="utf-8")
    logger.info("Took %.3f seconds to write json.", time.perf_counter() - t0)
    return path


def write_results(output_dir: Path, prefix: str, results: Any, now: Optional[datetime] = None) -> Path:
    return write_json(Path(output_dir) / output_filename(prefix, now), results)
