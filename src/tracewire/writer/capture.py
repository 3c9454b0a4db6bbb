"""In-memory writer that records commits instead of sending them."""

from __future__ import annotations

from tracewire.components.types import CommitLog
from tracewire.diagnostics import get_logger
from tracewire.utils import is_valid_id

log = get_logger(__name__)


class CaptureWriter:
    """Collects commit entries in order.

    Used by :class:`tracewire.LogLine` and handy in tests::

        writer = CaptureWriter()
        Trace({"id": "t1"}, writer).end()
        assert [e.action for e in writer.logs] == ["create", "end"]
    """

    def __init__(self, *, raise_exceptions: bool = False) -> None:
        self._raise_exceptions = raise_exceptions
        self._logs: list[CommitLog] = []

    @property
    def raise_exceptions(self) -> bool:
        return self._raise_exceptions

    @property
    def logs(self) -> list[CommitLog]:
        return list(self._logs)

    def __len__(self) -> int:
        return len(self._logs)

    def commit(self, entry: CommitLog) -> None:
        if not is_valid_id(entry.entity_id):
            log.error("invalid_entity_id", entity=entry.entity.value, id=repr(entry.entity_id), action=entry.action)
            return
        self._logs.append(entry)

    def drain(self) -> list[CommitLog]:
        """Return captured entries and forget them."""
        logs, self._logs = self._logs, []
        return logs

    def clear(self) -> None:
        self._logs.clear()
