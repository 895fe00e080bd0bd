# rightprops/services/scan/coordinator.py
from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from rightprops.common.concurrency.cancel import CancelToken
from rightprops.common.concurrency.thread_manager import ThreadManager
from rightprops.common.logging import get_logger
from rightprops.common.settings import Settings
from rightprops.domain.dataclasses.reports import ScanReport
from rightprops.domain.entities.property_map import PropertyMap
from rightprops.domain.policies.query_planner import QueryPlanner
from rightprops.domain.ports.probe import ProberPort
from rightprops.domain.ports.properties import PropertySourcePort
from rightprops.services.probe.ffprobe_adapter import FFprobeRunner
from rightprops.services.probe.response_merger import ResponseMerger
from rightprops.services.properties.stat_source import StatPropertySource
from rightprops.services.scan.result_set import ResultSet

logger = get_logger(__name__)


class TraversalCoordinator:
    """
    Walks a directory tree and reconciles the properties of every file on a
    shared ThreadManager: one unit per file, one per subdirectory.

    Fail-fast: the first unit that raises cancels the shared token, in-flight
    ffprobe processes are killed, the other units unwind at their next check,
    and collect() re-raises that first error. Results gathered before the
    failure are discarded; a failed run produces no output.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        source: Optional[PropertySourcePort] = None,
        prober: Optional[ProberPort] = None,
        planner: Optional[QueryPlanner] = None,
        token: Optional[CancelToken] = None,
        report: Optional[ScanReport] = None,
    ) -> None:
        self.settings = settings
        self.token = token or CancelToken()
        self.report = report or ScanReport()
        self.source: PropertySourcePort = source or StatPropertySource()
        self.prober: ProberPort = prober or FFprobeRunner(
            settings.ffprobe.bin,
            log_level=settings.ffprobe.log_level,
            token=self.token,
        )
        self.planner = planner or QueryPlanner()
        self.merger = ResponseMerger(self.prober, report=self.report)

    @property
    def probe_enabled(self) -> bool:
        return self.settings.ffprobe.probe_missing_props

    def check_prober(self) -> bool:
        """Startup check; a missing binary is only logged; per-file probes will then fail."""
        if not self.probe_enabled:
            return True
        check = getattr(self.prober, "check_binary", None)
        return check() if check is not None else True

    # ---- public ---------------------------------------------------------------
    def collect(self, root: Path) -> List[PropertyMap]:
        """
        Retrieve all files' properties under `root` (recursively unless disabled).
        Video files missing any property of the table are completed with ffprobe.
        """
        self.report.start()
        results = ResultSet()
        with ThreadManager(
            "rightprops",
            max_workers=self.settings.traversal.max_workers,
            token=self.token,
        ) as pool:
            pool.submit(self._discover, pool, Path(root), results)
            try:
                pool.join()
            except BaseException:
                dropped = results.discard()
                if dropped:
                    logger.info("Discarded %s collected result(s) of the failed run.", dropped)
                raise
            finally:
                self.report.stop()
            stats = pool.stats()
            logger.debug(
                "Pool ran %s task(s) (%s failed, %s cancelled) in %.3f seconds.",
                stats.tasks_submitted, stats.tasks_failed, stats.tasks_cancelled, stats.uptime_sec,
            )

        logger.info("Total files: %s", len(results))
        logger.info("Took %.3f seconds to retrieve all files' props.", self.report.elapsed_sec)
        self._log_summary()
        return results.snapshot()

    def process_file(self, path: Path) -> PropertyMap:
        """Properties of one file, reconciled with ffprobe when it's a video."""
        self.token.raise_if_cancelled()
        props = self.source.retrieve(path)
        self.token.raise_if_cancelled()

        if not self.probe_enabled:
            return props
        if not self.source.is_video(path, props):
            logger.info(
                "Skip trying to retrieve props via ffprobe from non-video file `%s`(%s).",
                path, props.get("System.ContentType"),
            )
            self.report.bump("skipped_non_video")
            return props

        plan = self.planner.plan(props)
        # Found everything we want, skip ffprobe.
        if plan.is_empty:
            return props
        merged = self.merger.merge(path, plan, props)
        self.report.bump("probed")
        return merged

    def inspect_file(self, path: Path) -> PropertyMap:
        """Reconcile a single file outside any traversal (debugging aid)."""
        self.report.start()
        try:
            return self.process_file(Path(path))
        finally:
            self.report.stop()
            logger.info("Took %.3f seconds to retrieve all props.", self.report.elapsed_sec)

    def _log_summary(self) -> None:
        logger.info("Summary: %s", self.report.summary())
        if self.report.warnings:
            details = "\n".join(f"  {subject}: {message}" for subject, message in self.report.error_details)
            logger.warning("%s warning(s) during the run:\n%s", self.report.warnings, details)

    # ---- units ----------------------------------------------------------------
    def _discover(self, pool: ThreadManager, folder: Path, results: ResultSet) -> None:
        self.token.raise_if_cancelled()
        self.report.bump("directories")
        with os.scandir(folder) as it:
            entries = list(it)

        for entry in entries:
            self.token.raise_if_cancelled()
            if entry.is_file():
                pool.submit(self._process_unit, Path(entry.path), results)
            elif self.settings.traversal.recursive and entry.is_dir(follow_symlinks=False):
                pool.submit(self._discover, pool, Path(entry.path), results)

    def _process_unit(self, path: Path, results: ResultSet) -> None:
        try:
            props = self.process_file(path)
        except Exception as e:
            if not self.token.cancelled:
                self.report.add_error(str(path), str(e))
                logger.error("Failed to retrieve props of `%s`: %s", path, e)
            raise
        results.add(props)
        self.report.bump("files")
