# rightprops/services/cli/main.py
from __future__ import annotations

import argparse
import json
import os
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional, Sequence

from rightprops.common.concurrency.cancel import CancelToken, RunCancelled
from rightprops.common.logging import LEVELS, get_logger, set_log_level
from rightprops.common.path.safe import ensure_directory, resolve_root
from rightprops.common.settings import Settings, get_settings
from rightprops.services.output.json_writer import write_results
from rightprops.services.probe.response_merger import StructuralAnomalyError
from rightprops.services.scan.coordinator import TraversalCoordinator

logger = get_logger("rightprops.cli")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


class ConfigurationError(ValueError):
    """Bad command line; reported before any traversal starts."""


class _Parser(argparse.ArgumentParser):
    def error(self, message: str):  # type: ignore[override]
        raise ConfigurationError(message)


def build_parser() -> argparse.ArgumentParser:
    p = _Parser(
        prog="rightprops",
        description="Collect file properties of a folder, completing video metadata with ffprobe.",
    )
    p.add_argument("lookup_dir", nargs="?", help="Folder to look up (relative paths are resolved from the cwd).")
    p.add_argument("--log-level", choices=list(LEVELS), default=None)
    p.add_argument("--ffprobe-bin", metavar="PATH", default=None, help="ffprobe executable to use.")
    p.add_argument(
        "--no-video-missing-props-probe",
        dest="probe",
        action="store_false",
        help="Never call ffprobe; keep platform properties only.",
    )
    p.add_argument("--no-recursive", dest="recursive", action="store_false", help="Only look at the top-level folder.")
    p.add_argument("--output-dir", metavar="DIR", default=None, help="Where to write props.<timestamp>.json.")
    p.add_argument("--inspect", metavar="FILE", default=None, help="Print the reconciled props of one file and exit.")
    return p


def parse_args(argv: Optional[Sequence[str]], base: Optional[Settings] = None) -> tuple[Settings, Optional[Path], Optional[Path]]:
    """
    Validate the command line and fold it into a Settings copy.
    Returns (settings, lookup_dir, inspect_file); raises ConfigurationError.
    """
    ns = build_parser().parse_args(argv)
    base = base or get_settings()

    # Flags only ever switch features off; features disabled in the environment stay off.
    overrides: dict = {
        "traversal.recursive": base.traversal.recursive and ns.recursive,
        "ffprobe.probe_missing_props": base.ffprobe.probe_missing_props and ns.probe,
    }
    if ns.log_level:
        overrides["log_level"] = ns.log_level
    if ns.ffprobe_bin:
        # bare names are left for PATH lookup
        has_sep = os.sep in ns.ffprobe_bin or (os.altsep and os.altsep in ns.ffprobe_bin)
        overrides["ffprobe.bin"] = str(resolve_root(ns.ffprobe_bin)) if has_sep else ns.ffprobe_bin
    if ns.output_dir:
        overrides["output_dir"] = resolve_root(ns.output_dir)
    settings = base.with_overrides(**overrides)

    if ns.inspect:
        target = resolve_root(ns.inspect)
        if not target.is_file():
            raise ConfigurationError(f"The file you provided, `{target}`, doesn't exist.")
        return settings, None, target

    if not ns.lookup_dir:
        raise ConfigurationError("You must provide one lookup folder.")
    try:
        root = ensure_directory(ns.lookup_dir)
    except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
        raise ConfigurationError(str(e)) from e
    return settings, root, None


def _install_sigint(token: CancelToken):
    if threading.current_thread() is not threading.main_thread():
        return None

    def _handler(signum, frame):
        logger.info("Interrupted, cancelling run.")
        token.cancel(KeyboardInterrupt("interrupted"))

    return signal.signal(signal.SIGINT, _handler)


def main(argv: Optional[List[str]] = None) -> int:
    try:
        settings, root, inspect = parse_args(argv)
    except ConfigurationError as e:
        logger.error("%s", e)
        return EXIT_CONFIG
    set_log_level(settings.log_level)

    token = CancelToken()
    coordinator = TraversalCoordinator(settings, token=token)
    coordinator.check_prober()

    previous = _install_sigint(token)
    try:
        if inspect is not None:
            props = coordinator.inspect_file(inspect)
            print(json.dumps(props, indent=2, ensure_ascii=False, default=str))
            return EXIT_OK

        assert root is not None
        results = coordinator.collect(root)
    except KeyboardInterrupt:
        logger.error("Run interrupted; no output written.")
        return EXIT_INTERRUPTED
    except RunCancelled:
        if isinstance(token.error, KeyboardInterrupt):
            logger.error("Run interrupted; no output written.")
            return EXIT_INTERRUPTED
        logger.exception("Run failed; no output written.")
        return EXIT_FAILED
    except StructuralAnomalyError as e:
        logger.error("Structural anomaly, run aborted: %s", e)
        return EXIT_FAILED
    except Exception:
        logger.exception("Run failed; no output written.")
        return EXIT_FAILED
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)

    out = write_results(settings.output_dir, settings.output_prefix, results)
    logger.info("Wrote %s entries to %s", len(results), out)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
