# tests/services/cli/test_cli_main.py
from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from rightprops.services.cli import main as cli
from rightprops.services.cli.main import ConfigurationError, main, parse_args
from rightprops.services.probe.response_merger import StructuralAnomalyError
from rightprops.services.scan.coordinator import TraversalCoordinator


@pytest.fixture(autouse=True)
def _restore_log_level():
    logger = logging.getLogger("rightprops")
    level = logger.level
    yield
    logger.setLevel(level)


def _outputs(d):
    return sorted(d.glob("props.*.json"))


def test_parse_args_builds_settings(tmp_path):
    settings, root, inspect = parse_args(
        [str(tmp_path), "--log-level", "debug", "--no-recursive", "--no-video-missing-props-probe", "--ffprobe-bin", "ffprobe7"]
    )
    assert root == tmp_path
    assert inspect is None
    assert settings.log_level == "debug"
    assert settings.traversal.recursive is False
    assert settings.ffprobe.probe_missing_props is False
    assert settings.ffprobe.bin == "ffprobe7"


def test_relative_ffprobe_path_is_made_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    settings, _, _ = parse_args([str(tmp_path), "--ffprobe-bin", "bin/ffprobe"])
    assert settings.ffprobe.bin == str(tmp_path / "bin" / "ffprobe")


@pytest.mark.parametrize(
    "argv",
    [
        pytest.param(["--bogus"], id="unknown-flag"),
        pytest.param(["a", "b"], id="two-positionals"),
        pytest.param([], id="no-folder"),
        pytest.param(["--log-level", "loud", "."], id="bad-level"),
    ],
)
def test_configuration_errors(argv):
    with pytest.raises(ConfigurationError):
        parse_args(argv)


def test_missing_folder_exits_non_zero_without_output(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    rc = main([str(tmp_path / "nope"), "--output-dir", str(tmp_path)])
    assert rc == cli.EXIT_CONFIG
    assert _outputs(tmp_path) == []


def test_file_instead_of_folder(tmp_path):
    f = tmp_path / "a.txt"
    f.write_text("x")
    assert main([str(f), "--output-dir", str(tmp_path)]) == cli.EXIT_CONFIG


def test_end_to_end_without_probe(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "notes.txt").write_text("hello")
    (src / "clip.mp4").write_bytes(b"\x00" * 16)
    out_dir = tmp_path / "out"

    rc = main([str(src), "--no-video-missing-props-probe", "--output-dir", str(out_dir), "--log-level", "silent"])

    assert rc == cli.EXIT_OK
    (out,) = _outputs(out_dir)
    assert ":" not in out.name
    data = json.loads(out.read_text(encoding="utf-8"))
    assert sorted(d["System.FileName"] for d in data) == ["clip.mp4", "notes.txt"]
    assert not any(k.endswith(".Calculated") for d in data for k in d)


def test_structural_anomaly_writes_nothing(tmp_path, monkeypatch):
    def _boom(self, root):
        raise StructuralAnomalyError("#stream of a video > 2.", root / "x.mp4")

    monkeypatch.setattr(TraversalCoordinator, "collect", _boom)
    rc = main([str(tmp_path), "--no-video-missing-props-probe", "--output-dir", str(tmp_path), "--log-level", "silent"])
    assert rc == cli.EXIT_FAILED
    assert _outputs(tmp_path) == []


def test_inspect_prints_json(tmp_path, capsys):
    f = tmp_path / "notes.txt"
    f.write_text("x")
    rc = main(["--inspect", str(f), "--no-video-missing-props-probe", "--log-level", "silent"])
    assert rc == cli.EXIT_OK
    printed = json.loads(capsys.readouterr().out)
    assert printed["System.FileName"] == "notes.txt"


def test_unreadable_folder_is_a_configuration_error(tmp_path, monkeypatch):
    import os

    root = tmp_path / "locked"
    root.mkdir()
    real_scandir = os.scandir

    def _scandir(p="."):
        if Path(p) == root:
            raise PermissionError(13, "Permission denied", str(p))
        return real_scandir(p)

    monkeypatch.setattr(os, "scandir", _scandir)
    rc = main([str(root), "--output-dir", str(tmp_path), "--log-level", "silent"])
    assert rc == cli.EXIT_CONFIG
    assert _outputs(tmp_path) == []


def test_interrupted_inspect_exits_130(tmp_path, monkeypatch):
    f = tmp_path / "clip.mp4"
    f.write_bytes(b"\x00")

    def _interrupted(self, path):
        self.token.cancel(KeyboardInterrupt("interrupted"))
        self.token.raise_if_cancelled()

    monkeypatch.setattr(TraversalCoordinator, "inspect_file", _interrupted)
    rc = main(["--inspect", str(f), "--no-video-missing-props-probe", "--log-level", "silent"])
    assert rc == cli.EXIT_INTERRUPTED


def test_cancelled_without_interrupt_is_a_failure(tmp_path, monkeypatch):
    def _cancelled(self, root):
        self.token.cancel(RuntimeError("boom"))
        self.token.raise_if_cancelled()

    monkeypatch.setattr(TraversalCoordinator, "collect", _cancelled)
    rc = main([str(tmp_path), "--no-video-missing-props-probe", "--output-dir", str(tmp_path), "--log-level", "silent"])
    assert rc == cli.EXIT_FAILED
    assert _outputs(tmp_path) == []
