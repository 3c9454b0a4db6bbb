"""On-disk spool for batches that could not be delivered.

Each failed batch becomes one ``*.log`` file of newline-separated serialized
entries. The writer re-sends spooled files at the start of its next flush and
deletes each file once the backend accepts it.
"""

from __future__ import annotations

import tempfile
import time
import uuid
from pathlib import Path

from tracewire.diagnostics import get_logger

log = get_logger(__name__)

SPOOL_ROOT_NAME = "tracewire-sdk"


def default_spool_root() -> Path:
    return Path(tempfile.gettempdir()) / SPOOL_ROOT_NAME


class LogSpool:
    """Spool directory for one log repository: ``<root>/<repo>/logs``."""

    def __init__(self, repository_id: str, root: Path | str | None = None) -> None:
        self.repository_id = repository_id
        self.root = Path(root) if root is not None else default_spool_root()
        self.directory = self.root / repository_id / "logs"

    def is_writable(self) -> bool:
        """Whether the spool directory exists (or can be created) and accepts files."""
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            probe = self.directory / f".probe-{uuid.uuid4().hex}"
            probe.write_text("", encoding="utf-8")
            probe.unlink()
        except OSError as e:
            log.debug("spool_not_writable", directory=str(self.directory), error=str(e))
            return False
        return True

    def write(self, lines: list[str]) -> Path:
        """Persist ``lines`` as one spool file.

        Raises:
            OSError: If the file cannot be written.
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"{time.time_ns()}-{uuid.uuid4().hex[:8]}.log"
        path.write_text("\n".join(lines), encoding="utf-8")
        log.info("spool_written", path=str(path), entries=len(lines))
        return path

    def files(self) -> list[Path]:
        """Spooled files, oldest first."""
        if not self.directory.is_dir():
            return []
        return sorted(self.directory.glob("*.log"))

    def read(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    def remove(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            log.warning("spool_remove_failed", path=str(path), error=str(e))
