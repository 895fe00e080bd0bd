from typing import List


def csv_to_list(v: str | List[str] | None) -> List[str]:
    if v is None:
        return []
    if isinstance(v, list):
        return [s.strip() for s in v if s and str(s).strip()]
    return [s.strip() for s in str(v).split(",") if s.strip()]


def csv_columns(line: str | None) -> List[str]:
    """Split one line of ffprobe csv output, keeping empty columns in place."""
    if not line:
        return []
    return [c.strip() for c in line.rstrip("\r\n").split(",")]
