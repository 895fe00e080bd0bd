from __future__ import annotations
from enum import StrEnum


class StreamKind(StrEnum):
    video = "video"
    audio = "audio"

    @property
    def group(self) -> str:
        """Property group name used in keys, e.g. "Video"."""
        return self.value.capitalize()

    @property
    def selector(self) -> str:
        """ffprobe -select_streams specifier."""
        return self.value[0]
