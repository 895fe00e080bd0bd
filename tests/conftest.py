# tests/conftest.py
from __future__ import annotations

import copy
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, Iterator, List, Optional, Sequence

import pytest

from rightprops.common.settings import Settings


class FakeProber:
    """
    In-memory ProberPort.
    - run_json() returns `docs[path.name]`, else `doc` (deep-copied); exceptions are raised.
    - iter_lines() yields the lines whose key prefixes the `-show_entries` value.
    Every call is recorded in `calls` as (mode, path, args).
    """

    def __init__(
        self,
        doc: Optional[Dict[str, Any]] = None,
        *,
        docs: Optional[Dict[str, Any]] = None,
        lines: Optional[Dict[str, List[str]]] = None,
    ) -> None:
        self.doc = doc
        self.docs = docs or {}
        self.lines = lines or {}
        self.calls: List[tuple] = []

    def run_json(self, path: Path, args: Sequence[str]) -> Dict[str, Any]:
        self.calls.append(("json", Path(path), list(args)))
        doc = self.docs.get(Path(path).name, self.doc)
        if isinstance(doc, BaseException):
            raise doc
        return copy.deepcopy(doc)

    def iter_lines(self, path: Path, args: Sequence[str]) -> Iterator[str]:
        self.calls.append(("lines", Path(path), list(args)))
        entries = args[list(args).index("-show_entries") + 1]
        for key, lines in self.lines.items():
            if entries.startswith(key):
                yield from lines
                return

    def line_calls(self) -> List[List[str]]:
        return [args for mode, _, args in self.calls if mode == "lines"]


def video_stream(**overrides) -> Dict[str, Any]:
    s = {
        "codec_type": "video",
        "width": 1920,
        "height": 1080,
        "bit_rate": "5000000",
        "avg_frame_rate": "30000/1001",
    }
    s.update(overrides)
    return {k: v for k, v in s.items() if v is not None}


def audio_stream(**overrides) -> Dict[str, Any]:
    s = {
        "codec_type": "audio",
        "bit_rate": "128000",
        "channels": 2,
        "sample_rate": "48000",
    }
    s.update(overrides)
    return {k: v for k, v in s.items() if v is not None}


def probe_doc(streams: Optional[List[Dict[str, Any]]] = None, **fmt_overrides) -> Dict[str, Any]:
    fmt = {
        "format_name": "mov,mp4,m4a,3gp,3g2,mj2",
        "probe_score": 100,
        "duration": "10.010000",
        "bit_rate": "5128000",
        "tags": {"title": "Clip", "artist": "Someone"},
    }
    fmt.update(fmt_overrides)
    fmt = {k: v for k, v in fmt.items() if v is not None}
    return {
        "streams": streams if streams is not None else [video_stream(), audio_stream()],
        "format": fmt,
    }


@pytest.fixture()
def media() -> SimpleNamespace:
    """ffprobe fakes: media.FakeProber, media.video(), media.audio(), media.doc()."""
    return SimpleNamespace(FakeProber=FakeProber, video=video_stream, audio=audio_stream, doc=probe_doc)


@pytest.fixture()
def settings() -> Settings:
    return Settings()


@pytest.fixture()
def touch():
    def _touch(p: Path, data: bytes = b"dummy") -> Path:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)
        return p
    return _touch
