# rightprops/common/settings.py
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rightprops.common.logging import LEVELS


def _to_bool(v: str | bool | int | None, default: bool = False) -> bool:
    if isinstance(v, bool):
        return v
    if v is None:
        return default
    s = str(v).strip().lower()
    return s in {"1", "true", "yes", "y", "on"}


class FFProbeConfig(BaseModel):
    bin: str = "ffprobe"
    # Passed to every invocation; ffprobe logs to stderr which we treat as a side channel.
    log_level: str = "warning"  # quiet|panic|fatal|error|warning|info|verbose|debug|trace
    # Probe video files for properties the platform source could not supply.
    probe_missing_props: bool = True

    @field_validator("probe_missing_props", mode="before")
    @classmethod
    def _boolify(cls, v):
        return _to_bool(v, default=True)


class TraversalConfig(BaseModel):
    recursive: bool = True
    max_workers: Optional[int] = None  # None -> ThreadManager default

    @field_validator("recursive", mode="before")
    @classmethod
    def _boolify(cls, v):
        return _to_bool(v, default=True)


class Settings(BaseSettings):
    # -------- App --------
    log_level: str = "info"  # debug|info|warn|error|silent

    # -------- Output --------
    output_dir: Path = Path(".")
    output_prefix: str = "props"

    # -------- Sub-configs --------
    ffprobe: FFProbeConfig = FFProbeConfig()
    traversal: TraversalConfig = TraversalConfig()

    model_config = SettingsConfigDict(
        env_prefix="RIGHTPROPS_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _known_level(cls, v):
        s = str(v or "info").strip().lower()
        if s not in LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LEVELS)}")
        return s

    def with_overrides(self, **changes) -> "Settings":
        """
        Return a copy with top-level fields and dotted sub-config fields replaced,
        e.g. with_overrides(log_level="debug", **{"ffprobe.bin": "/opt/ffprobe"}).
        """
        top: dict = {}
        nested: dict[str, dict] = {}
        for key, value in changes.items():
            if "." in key:
                section, field = key.split(".", 1)
                nested.setdefault(section, {})[field] = value
            else:
                top[key] = value
        for section, fields in nested.items():
            top[section] = getattr(self, section).model_copy(update=fields)
        return self.model_copy(update=top)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Global settings accessor (cached), read from the environment and `.env`.
    Callers that need run-specific values derive a copy with `with_overrides()`
    and pass it down explicitly instead of mutating this one.
    """
    return Settings()
