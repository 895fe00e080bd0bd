# rightprops/services/properties/stat_source.py
from __future__ import annotations

import mimetypes
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from rightprops.domain.entities.property_map import PropertyMap
from rightprops.domain.ports.properties import PropertySourcePort

# Windows PERCEIVED enum (shtypes.h); only the values we can infer from a MIME type.
PERCEIVED_TYPE_UNKNOWN = 0
PERCEIVED_TYPE_TEXT = 1
PERCEIVED_TYPE_IMAGE = 2
PERCEIVED_TYPE_AUDIO = 3
PERCEIVED_TYPE_VIDEO = 4

_PERCEIVED_BY_MAJOR = {
    "text": PERCEIVED_TYPE_TEXT,
    "image": PERCEIVED_TYPE_IMAGE,
    "audio": PERCEIVED_TYPE_AUDIO,
    "video": PERCEIVED_TYPE_VIDEO,
}

# Containers the stdlib mimetypes table doesn't know on every platform.
_EXTRA_TYPES = {
    ".mkv": "video/x-matroska",
    ".mk3d": "video/x-matroska",
    ".mka": "audio/x-matroska",
    ".webm": "video/webm",
    ".flv": "video/x-flv",
    ".f4v": "video/mp4",
    ".m4v": "video/x-m4v",
    ".wmv": "video/x-ms-wmv",
    ".asf": "video/x-ms-asf",
    ".ogv": "video/ogg",
    ".3gp": "video/3gpp",
    ".3g2": "video/3gpp2",
    ".ts": "video/mp2t",
    ".m2ts": "video/mp2t",
}

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(path: Path) -> str:
    ext = path.suffix.lower()
    if ext in _EXTRA_TYPES:
        return _EXTRA_TYPES[ext]
    ctype, _ = mimetypes.guess_type(path.name, strict=False)
    return ctype or DEFAULT_CONTENT_TYPE


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


class StatPropertySource(PropertySourcePort):
    """
    Portable stand-in for the platform property system: file-system facts under
    Windows canonical names. It never supplies media properties, so every video
    file is left for ffprobe to fill.
    """

    def retrieve(self, path: Path) -> PropertyMap:
        st = path.stat()
        ctype = guess_content_type(path)
        major = ctype.split("/", 1)[0]
        props: Dict[str, Any] = {
            "System.ItemPathDisplay": str(path),
            "System.FileName": path.name,
            "System.FileExtension": path.suffix,
            "System.Size": st.st_size,
            "System.DateModified": _iso(st.st_mtime),
            "System.DateCreated": _iso(st.st_ctime),
            "System.ContentType": ctype,
            "System.PerceivedType": _PERCEIVED_BY_MAJOR.get(major, PERCEIVED_TYPE_UNKNOWN),
        }
        return props

    def is_video(self, path: Path, props: Dict[str, Any]) -> bool:
        ctype = str(props.get("System.ContentType") or "")
        return ctype.startswith("video") or props.get("System.PerceivedType") == PERCEIVED_TYPE_VIDEO
