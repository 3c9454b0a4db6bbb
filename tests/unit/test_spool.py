"""Tests for the on-disk spool of undelivered batches."""

from __future__ import annotations

import tempfile
from pathlib import Path

from tracewire.writer import LogSpool
from tracewire.writer.spool import default_spool_root


def test_default_root_in_temp_dir() -> None:
    """The default spool lives under the system temp directory."""
    assert default_spool_root() == Path(tempfile.gettempdir()) / "tracewire-sdk"


def test_directory_layout(tmp_path: Path) -> None:
    """Spool files go to <root>/<repo>/logs."""
    spool = LogSpool("repo-1", tmp_path)

    assert spool.directory == tmp_path / "repo-1" / "logs"


def test_write_read_remove(tmp_path: Path) -> None:
    """A written batch can be read back and removed."""
    spool = LogSpool("repo-1", tmp_path)

    path = spool.write(["line-1", "line-2"])

    assert path.suffix == ".log"
    assert spool.files() == [path]
    assert spool.read(path) == "line-1\nline-2"
    spool.remove(path)
    assert spool.files() == []


def test_files_sorted_oldest_first(tmp_path: Path) -> None:
    """Files are listed in write order."""
    spool = LogSpool("repo-1", tmp_path)

    first = spool.write(["a"])
    second = spool.write(["b"])

    assert spool.files() == [first, second]


def test_files_ignores_other_suffixes(tmp_path: Path) -> None:
    """Only *.log files count."""
    spool = LogSpool("repo-1", tmp_path)
    spool.directory.mkdir(parents=True)
    (spool.directory / "notes.txt").write_text("x", encoding="utf-8")

    assert spool.files() == []


def test_files_when_directory_missing(tmp_path: Path) -> None:
    """A spool that was never written is empty."""
    assert LogSpool("repo-1", tmp_path / "nowhere").files() == []


def test_remove_missing_file_is_quiet(tmp_path: Path) -> None:
    """Removing an already deleted file does not raise."""
    LogSpool("repo-1", tmp_path).remove(tmp_path / "gone.log")


def test_is_writable(tmp_path: Path) -> None:
    """A normal directory is writable and the probe leaves nothing behind."""
    spool = LogSpool("repo-1", tmp_path)

    assert spool.is_writable()
    assert list(spool.directory.iterdir()) == []


def test_not_writable_when_root_is_a_file(tmp_path: Path) -> None:
    """A root that cannot hold directories is reported as unwritable."""
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")

    assert not LogSpool("repo-1", blocker).is_writable()
