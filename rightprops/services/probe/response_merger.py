# rightprops/services/probe/response_merger.py
from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from rightprops.common.logging import get_logger
from rightprops.common.path.safe import extension_of
from rightprops.common.strings.splitters import csv_to_list
from rightprops.domain.dataclasses.probe import QueryPlan
from rightprops.domain.dataclasses.reports import ScanReport
from rightprops.domain.entities.property_map import PropertyMap, add_property
from rightprops.domain.entities.property_spec import (
    ARTIST_KEY,
    ARTIST_TAGS,
    FORMAT_EXT_ALIASES,
    MAX_PROBE_SCORE,
    TAGS_KEY,
    VIDEO_FRAME_RATE_KEY,
    is_video_row,
)
from rightprops.domain.enums import StreamKind
from rightprops.domain.ports.probe import ProberPort
from rightprops.services.probe.bitrate_fallback import BitrateFallback
from rightprops.services.probe.framerate_fallback import FrameRateFallback

logger = get_logger(__name__)

DEGENERATE_FRAME_RATE = "0/0"
EXPECTED_STREAMS = 2


class StructuralAnomalyError(RuntimeError):
    """ffprobe described something other than one video plus one audio stream."""

    def __init__(self, message: str, path: Path | str) -> None:
        super().__init__(f"{message} (File: {path})")
        self.path = str(path)


class ResponseMerger:
    """
    Runs the planned ffprobe query for one file and folds the answer into a copy
    of its property map under the `FFProbe.*` namespace.

    Streams are consumed in the order ffprobe reports them. The first stream
    claims the pending rows of its own kind; rows of the other kind wait for the
    second stream; format rows wait for the format section. A stream that lacks
    `bit_rate`, or a video frame rate of "0/0", schedules a fallback pass, and
    those passes finish before merge() returns.
    """

    def __init__(
        self,
        prober: ProberPort,
        *,
        bitrate: Optional[BitrateFallback] = None,
        frame_rate: Optional[FrameRateFallback] = None,
        report: Optional[ScanReport] = None,
    ) -> None:
        self.prober = prober
        self.report = report
        self.bitrate = bitrate or BitrateFallback(prober, report)
        self.frame_rate = frame_rate or FrameRateFallback(prober, report)

    @staticmethod
    def build_args(plan: QueryPlan) -> List[str]:
        return ["-show_entries", plan.entries_arg, "-print_format", "json=compact=1"]

    def merge(self, path: Path, plan: QueryPlan, props: Mapping[str, Any]) -> PropertyMap:
        out: PropertyMap = dict(props)
        if plan.is_empty:
            return out

        doc = self.prober.run_json(path, self.build_args(plan))
        if "error" in doc:
            logger.warning("ffprobe error section for `%s`:\n  %s", path, doc["error"])

        def _anomaly(message: str) -> StructuralAnomalyError:
            logger.debug("ffprobe output of %s:\n%s", path, json.dumps(doc, ensure_ascii=False))
            return StructuralAnomalyError(message, path)

        streams = doc.get("streams")
        if not isinstance(streams, list):
            raise _anomaly("ffprobe reported no streams section.")

        no_bitrate: List[StreamKind] = []

        def _collect(entry: Mapping[str, Any], index: int, kind: Optional[StreamKind]) -> None:
            row = plan.lookup[index]
            if row.field not in entry:
                if row.field == "bit_rate" and kind is not None:
                    # Container doesn't carry the stream bitrate; calculate it ourselves.
                    no_bitrate.append(kind)
                    return
                logger.warning("ffprobe didn't report `%s.%s` for `%s`.", row.section, row.field, path)
                return
            add_property(out, row.probed_key, _coerce(entry[row.field]))

        deferred: List[int] = []
        format_rows: List[int] = []
        first_kind: Optional[StreamKind] = None

        for position, stream in enumerate(streams, start=1):
            if position > EXPECTED_STREAMS:
                raise _anomaly(f"#stream of a video > {EXPECTED_STREAMS}.")
            kind = _classify(stream)
            if kind is None:
                raise _anomaly('The codec is neither "video" nor "audio".')

            if first_kind is None:
                first_kind = kind
                for index in plan.pending:
                    if not plan.lookup[index].is_stream:
                        format_rows.append(index)
                    elif (kind is StreamKind.video) == is_video_row(index):
                        _collect(stream, index, kind)
                    else:
                        deferred.append(index)
            else:
                if kind is first_kind:
                    raise _anomaly(f"Expected one video and one audio stream, got two {kind.value} streams.")
                for index in deferred:
                    _collect(stream, index, kind)

        if len(streams) != EXPECTED_STREAMS:
            raise _anomaly(f"#stream of a video != {EXPECTED_STREAMS}.")

        pending_fallbacks: List[Callable[[], Dict[str, str]]] = []
        if no_bitrate:
            kinds = list(no_bitrate)
            pending_fallbacks.append(lambda: self.bitrate.compute(path, kinds))

        # Rare case.
        if out.get(VIDEO_FRAME_RATE_KEY) == DEGENERATE_FRAME_RATE:
            del out[VIDEO_FRAME_RATE_KEY]
            pending_fallbacks.append(lambda: self.frame_rate.compute(path))

        fmt = doc.get("format")
        if not isinstance(fmt, dict):
            raise _anomaly("ffprobe reported no format section.")
        self._validate_format(path, fmt)

        for index in format_rows:
            _collect(fmt, index, None)

        tags = fmt.get("tags")
        if isinstance(tags, dict):
            add_property(out, TAGS_KEY, dict(tags))
            logger.debug("Tags of `%s`:\n  %s", path, tags)
            for artist_key in ARTIST_TAGS:
                if artist_key in tags:
                    add_property(out, ARTIST_KEY, str(tags[artist_key]))
                    break

        for derived in _run_all(pending_fallbacks):
            for key, value in derived.items():
                add_property(out, key, value)

        return out

    def _validate_format(self, path: Path, fmt: Mapping[str, Any]) -> None:
        # probe_score is 100 when the demuxer is certain about the container.
        score = fmt.get("probe_score")
        if score != MAX_PROBE_SCORE:
            logger.debug("`probe_score` of %s is %s, not %s.", path, score, MAX_PROBE_SCORE)

        format_name = str(fmt.get("format_name") or "")
        ext = extension_of(path)
        if ext in csv_to_list(format_name) or ext in FORMAT_EXT_ALIASES.get(format_name, ()):
            return
        msg = f"`.{ext}` isn't listed on ffprobe format `{format_name}`'s extensions."
        logger.warning("%s (File: %s)", msg, path)
        if self.report is not None:
            self.report.warn(str(path), msg)


def _classify(stream: Any) -> Optional[StreamKind]:
    if not isinstance(stream, dict):
        return None
    try:
        return StreamKind(stream.get("codec_type"))
    except ValueError:
        return None


def _coerce(value: Any) -> Any:
    """Whole JSON numbers become ints; everything else (ffprobe quotes most values) is text."""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else str(value)
    return str(value)


def _run_all(jobs: List[Callable[[], Dict[str, str]]]) -> List[Dict[str, str]]:
    """Run fallback passes concurrently and wait for all of them; errors propagate."""
    if not jobs:
        return []
    if len(jobs) == 1:
        return [jobs[0]()]
    with ThreadPoolExecutor(max_workers=len(jobs), thread_name_prefix="fallback") as pool:
        futures = [pool.submit(job) for job in jobs]
        return [f.result() for f in futures]
