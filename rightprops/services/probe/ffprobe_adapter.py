# rightprops/services/probe/ffprobe_adapter.py
from __future__ import annotations

import json
import shlex
import shutil
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from rightprops.common.concurrency.cancel import CancelToken
from rightprops.common.logging import get_logger
from rightprops.common.probe.ffprobe_helpers import build_ffprobe_cmd
from rightprops.domain.ports.probe import ProberPort

logger = get_logger(__name__)


@dataclass(eq=False)
class FFprobeError(RuntimeError):
    """Adapter-level error for probe failures."""
    message: str
    stderr: Optional[str] = None
    rc: Optional[int] = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class FFprobeRunner(ProberPort):
    """
    Infrastructure adapter implementing ProberPort by spawning `ffprobe`.
    Safe for use from ThreadManager (I/O-bound). Every process is registered with
    the run's CancelToken and killed when the run is cancelled. ffprobe logs to
    stderr; that output is collected and reported as a warning, never parsed.
    """

    def __init__(
        self,
        ffprobe_bin: str = "ffprobe",
        *,
        log_level: str = "warning",
        token: Optional[CancelToken] = None,
    ) -> None:
        self.ffprobe_bin = ffprobe_bin
        self.log_level = log_level
        self.token = token or CancelToken()

    # ---- Startup check --------------------------------------------------------
    def check_binary(self) -> bool:
        """Run `ffprobe -version`; log an error and return False if it can't run."""
        resolved = shutil.which(self.ffprobe_bin)
        if not resolved:
            logger.error("Unable to find ffprobe (`%s`), do you have it installed?", self.ffprobe_bin)
            return False
        try:
            subprocess.run([resolved, "-version"], capture_output=True, check=True)
        except (OSError, subprocess.CalledProcessError) as e:
            logger.error("Unable to execute ffprobe (`%s`): %s", resolved, e)
            return False
        return True

    # ---- Port API -------------------------------------------------------------
    def run_json(self, path: Path, args: Sequence[str]) -> Dict[str, Any]:
        proc, stderr_lines, reader, unregister = self._spawn(path, args)
        try:
            assert proc.stdout is not None
            stdout = proc.stdout.read()
            proc.wait()
        finally:
            self._finish(proc, path, stderr_lines, reader, unregister)
        self.token.raise_if_cancelled()

        if not (stdout or "").strip():
            raise FFprobeError(
                f"ffprobe produced no output for {path}",
                stderr="".join(stderr_lines),
                rc=proc.returncode,
            )
        try:
            data = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise FFprobeError(f"ffprobe produced invalid JSON for {path}", stderr=stdout) from e
        if not isinstance(data, dict):
            raise FFprobeError(f"ffprobe produced unexpected JSON for {path}", stderr=stdout)
        return data

    def iter_lines(self, path: Path, args: Sequence[str]) -> Iterator[str]:
        proc, stderr_lines, reader, unregister = self._spawn(path, args)
        try:
            assert proc.stdout is not None
            for line in proc.stdout:
                self.token.raise_if_cancelled()
                line = line.rstrip("\r\n")
                if line:
                    yield line
            proc.wait()
        finally:
            self._finish(proc, path, stderr_lines, reader, unregister)
        self.token.raise_if_cancelled()
        if proc.returncode:
            logger.warning("ffprobe exited with %s for `%s`.", proc.returncode, path)

    # ---- Process plumbing -----------------------------------------------------
    def _spawn(self, path: Path, args: Sequence[str]):
        self.token.raise_if_cancelled()
        cmd = build_ffprobe_cmd(self.ffprobe_bin, path, args, log_level=self.log_level)
        logger.debug("ffprobe cmd: %s", " ".join(shlex.quote(p) for p in cmd))
        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as e:
            raise FFprobeError(f"Failed to execute ffprobe (`{self.ffprobe_bin}`).", stderr=str(e)) from e

        stderr_lines: List[str] = []

        def _drain() -> None:
            assert proc.stderr is not None
            for line in proc.stderr:
                stderr_lines.append(line)

        reader = threading.Thread(target=_drain, name="ffprobe-stderr", daemon=True)
        reader.start()
        unregister = self.token.on_cancel(lambda: _kill(proc))
        return proc, stderr_lines, reader, unregister

    @staticmethod
    def _finish(proc: subprocess.Popen, path: Path, stderr_lines: List[str], reader: threading.Thread, unregister) -> None:
        unregister()
        if proc.poll() is None:
            _kill(proc)
        proc.wait()
        reader.join()
        if proc.stdout is not None:
            proc.stdout.close()
        if proc.stderr is not None:
            proc.stderr.close()
        text = "".join(f"  {line}" for line in stderr_lines).rstrip()
        if text:
            logger.warning("ffprobe stderr from `%s`:\n%s", path, text)


def _kill(proc: subprocess.Popen) -> None:
    try:
        if proc.poll() is None:
            proc.kill()
    except ProcessLookupError:
        pass
    except OSError as e:
        logger.error("Kill ffprobe process failed: %s", e)
