"""Buffered, asynchronous delivery of commit log entries.

``LogWriter.commit`` is synchronous and never raises: it only validates and
enqueues. Delivery happens in :meth:`LogWriter.flush`, triggered by a
periodic task on the running event loop, by the queue growing past
``max_in_memory_logs``, or explicitly. Batches that cannot be delivered are
spooled to disk and re-sent on the next flush.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from pathlib import Path

import httpx
from pydantic import ValidationError

from tracewire.components.attachment import (
    DEFAULT_MIME_TYPE,
    UrlAttachment,
    coerce_attachment,
    populate_attachment_fields,
    read_attachment_bytes,
)
from tracewire.components.types import CommitLog
from tracewire.diagnostics import get_logger
from tracewire.errors import TracewireAPIError
from tracewire.utils import generate_unique_id, is_on_aws_lambda, is_valid_id
from tracewire.writer.apis import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_TIMEOUT,
    AttachmentAPI,
    LogsAPI,
)
from tracewire.writer.queue import DEFAULT_MAX_QUEUE_SIZE, CommitQueue
from tracewire.writer.spool import LogSpool

log = get_logger(__name__)

MAX_CHUNK_BYTES = 5 * 1024 * 1024
MAX_ATTACHMENT_RETRIES = 3
FLUSH_LOCK_TIMEOUT = 30.0

_DELIVERY_ERRORS = (TracewireAPIError, httpx.HTTPError)


@dataclass
class LogWriterConfig:
    """Settings for one :class:`LogWriter` (one log repository)."""

    base_url: str
    api_key: str
    repository_id: str
    auto_flush: bool = True
    flush_interval: float = 10.0
    is_debug: bool = False
    max_in_memory_logs: int = 100
    raise_exceptions: bool = False
    max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE
    spool_dir: str | Path | None = None
    max_retries: int = DEFAULT_MAX_RETRIES
    timeout: float = DEFAULT_TIMEOUT
    retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY


def chunk_lines(lines: list[str], max_bytes: int = MAX_CHUNK_BYTES) -> list[list[str]]:
    """Group lines so each newline-joined group stays within ``max_bytes``.

    A single line larger than ``max_bytes`` gets a chunk of its own.
    """
    chunks: list[list[str]] = []
    current: list[str] = []
    current_size = 0
    for line in lines:
        size = len(line.encode("utf-8")) + 1
        if current and current_size + size > max_bytes:
            chunks.append(current)
            current, current_size = [], 0
        current.append(line)
        current_size += size
    if current:
        chunks.append(current)
    return chunks


class LogWriter:
    """Queues commit entries and ships them to the backend in batches.

    Args:
        config: Writer settings.
        logs_api: Override for the log transport (tests).
        attachment_api: Override for the attachment transport (tests).
        transport: httpx transport shared by the default API clients.
    """

    def __init__(
        self,
        config: LogWriterConfig,
        *,
        logs_api: LogsAPI | None = None,
        attachment_api: AttachmentAPI | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.id = generate_unique_id()
        self._queue: CommitQueue[CommitLog] = CommitQueue(config.max_queue_size)
        self._attachment_queue: CommitQueue[CommitLog] = CommitQueue(config.max_queue_size)
        self._spool = LogSpool(config.repository_id, config.spool_dir)
        api_kwargs = {
            "max_retries": config.max_retries,
            "timeout": config.timeout,
            "retry_base_delay": config.retry_base_delay,
            "transport": transport,
        }
        self._logs_api = logs_api or LogsAPI(config.base_url, config.api_key, **api_kwargs)
        self._attachment_api = attachment_api or AttachmentAPI(config.base_url, config.api_key, **api_kwargs)
        self._lock: asyncio.Lock | None = None
        self._lock_loop: asyncio.AbstractEventLoop | None = None
        self._periodic_task: asyncio.Task[None] | None = None
        self._pending_flush: asyncio.Task[None] | None = None
        self._inflight_flush: asyncio.Future[None] | None = None
        self._closed = False

    @property
    def raise_exceptions(self) -> bool:
        return self.config.raise_exceptions

    @property
    def repository_id(self) -> str:
        return self.config.repository_id

    @property
    def spool(self) -> LogSpool:
        return self._spool

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    @property
    def pending_attachments(self) -> int:
        return len(self._attachment_queue)

    def attachment_key(self, entry: CommitLog) -> str:
        """Storage key for an ``upload-attachment`` entry."""
        return (
            f"{self.config.repository_id}/{entry.entity.value}/{entry.entity_id}"
            f"/files/original/{entry.data.get('id')}"
        )

    def commit(self, entry: CommitLog) -> None:
        """Enqueue ``entry`` for delivery. Never raises."""
        try:
            if not is_valid_id(entry.entity_id):
                log.error(
                    "invalid_entity_id",
                    entity=entry.entity.value,
                    id=repr(entry.entity_id),
                    action=entry.action,
                )
                return
            if self.config.is_debug:
                log.debug("commit", entry=entry.serialize())
            if entry.action == "upload-attachment":
                self._attachment_queue.enqueue(entry.with_data({**entry.data, "key": self.attachment_key(entry)}))
            else:
                self._queue.enqueue(entry)

            self._ensure_periodic_flush()
            if len(self._queue) + len(self._attachment_queue) > self.config.max_in_memory_logs:
                self._schedule_flush()
        except Exception as e:
            log.error("commit_failed", error=str(e), action=getattr(entry, "action", None))

    # -- background scheduling ------------------------------------------------

    @staticmethod
    def _running_loop() -> asyncio.AbstractEventLoop | None:
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def _ensure_periodic_flush(self) -> None:
        if not self.config.auto_flush or self._closed:
            return
        loop = self._running_loop()
        if loop is None:
            return
        task = self._periodic_task
        if task is not None and not task.done() and task.get_loop() is loop:
            return
        self._periodic_task = loop.create_task(self._periodic_flush())

    async def _periodic_flush(self) -> None:
        while not self._closed:
            await asyncio.sleep(self.config.flush_interval)
            # Shielded so cancelling this loop never interrupts a delivery.
            self._inflight_flush = asyncio.ensure_future(self.flush())
            await asyncio.shield(self._inflight_flush)

    def _schedule_flush(self) -> None:
        loop = self._running_loop()
        if loop is None:
            return
        task = self._pending_flush
        if task is not None and not task.done() and task.get_loop() is loop:
            return
        self._pending_flush = loop.create_task(self.flush())

    def _get_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    # -- flushing ---------------------------------------------------------------

    async def flush(self) -> None:
        """Upload pending attachments, then deliver every queued entry.

        Resolves once delivery succeeds or the undelivered entries have been
        spooled or requeued. Never raises for delivery failures.
        """
        lock = self._get_lock()
        try:
            await asyncio.wait_for(lock.acquire(), timeout=FLUSH_LOCK_TIMEOUT)
        except TimeoutError:
            log.warning("flush_lock_timeout", timeout=FLUSH_LOCK_TIMEOUT)
            return
        try:
            await self._flush_attachments()
            entries = self._queue.dequeue_all()
            if not entries:
                await self._push_spooled()
                return
            await self._flush_entries(entries)
        except Exception as e:
            log.error("flush_failed", error=str(e))
        finally:
            lock.release()

    async def flush_spool(self) -> int:
        """Re-send spooled batches now. Returns how many files were delivered."""
        lock = self._get_lock()
        async with lock:
            return await self._push_spooled()

    def _serialize_entries(self, entries: list[CommitLog]) -> tuple[list[CommitLog], list[str]]:
        """Serialize each entry on its own; entries that fail are dropped and logged."""
        kept: list[CommitLog] = []
        lines: list[str] = []
        for entry in entries:
            try:
                line = entry.serialize()
            except Exception as e:
                log.error(
                    "entry_serialization_failed",
                    entity=entry.entity.value,
                    id=entry.entity_id,
                    action=entry.action,
                    error=str(e),
                )
                continue
            kept.append(entry)
            lines.append(line)
        return kept, lines

    async def _flush_entries(self, entries: list[CommitLog]) -> None:
        sent = 0
        try:
            await self._push_spooled()

            entries, lines = self._serialize_entries(entries)
            if self.config.is_debug:
                for line in lines:
                    log.debug("flush_entry", entry=line)

            for chunk in chunk_lines(lines):
                try:
                    await self._logs_api.push_logs(self.config.repository_id, "\n".join(chunk))
                except _DELIVERY_ERRORS as e:
                    log.error(
                        "push_logs_failed",
                        error=str(e),
                        undelivered=len(lines) - sent,
                    )
                    self._handle_undelivered(entries[sent:], lines[sent:])
                    return
                sent += len(chunk)
                if self.config.is_debug:
                    log.debug("chunk_flushed", entries=len(chunk))
        except asyncio.CancelledError:
            # The batch is already off the queue; an in-flight chunk may be sent twice.
            self._queue.requeue(entries[sent:])
            log.warning("flush_cancelled", requeued=len(entries) - sent)
            raise

    def _handle_undelivered(self, entries: list[CommitLog], lines: list[str]) -> None:
        if is_on_aws_lambda() or not self._spool.is_writable():
            self._queue.requeue(entries)
            log.warning("entries_requeued", count=len(entries))
            return
        try:
            self._spool.write(lines)
        except OSError as e:
            log.error("spool_write_failed", error=str(e))
            self._queue.requeue(entries)

    async def _push_spooled(self) -> int:
        if is_on_aws_lambda():
            return 0
        delivered = 0
        for path in self._spool.files():
            try:
                content = self._spool.read(path)
            except OSError as e:
                log.warning("spool_read_failed", path=str(path), error=str(e))
                continue
            try:
                await self._logs_api.push_logs(self.config.repository_id, content)
            except _DELIVERY_ERRORS as e:
                log.warning("spool_push_failed", path=str(path), error=str(e))
                break
            self._spool.remove(path)
            delivered += 1
        if delivered:
            log.info("spool_flushed", files=delivered)
        return delivered

    async def _flush_attachments(self) -> None:
        pending = self._attachment_queue.dequeue_all()
        if pending:
            await asyncio.gather(*(self._upload_attachment(entry) for entry in pending))

    async def _upload_attachment(self, entry: CommitLog) -> None:
        data = dict(entry.data)
        key = data.pop("key", None) or self.attachment_key(entry)
        retry = data.pop("retry", 0)
        try:
            attachment = populate_attachment_fields(coerce_attachment(data))
        except ValidationError as e:
            log.error("attachment_invalid", entity_id=entry.entity_id, error=str(e))
            return

        if isinstance(attachment, UrlAttachment):
            self._queue.enqueue(
                CommitLog(entry.entity, entry.entity_id, "add-attachment", {**attachment.to_payload(), "key": key})
            )
            return

        try:
            payload = read_attachment_bytes(attachment)
            mime_type = attachment.mime_type or DEFAULT_MIME_TYPE
            url = await self._attachment_api.get_upload_url(key, mime_type, len(payload))
            await self._attachment_api.upload_to_signed_url(url, payload, mime_type)
        except (OSError, *_DELIVERY_ERRORS) as e:
            if retry < MAX_ATTACHMENT_RETRIES:
                log.warning("attachment_upload_retry", key=key, attempt=retry + 1, error=str(e))
                self._attachment_queue.enqueue(entry.with_data({**entry.data, "retry": retry + 1}))
            else:
                log.error("attachment_upload_failed", key=key, error=str(e))
            return

        metadata = attachment.to_payload()
        metadata.pop("data", None)
        metadata.pop("path", None)
        metadata.update(key=key, size=len(payload))
        self._queue.enqueue(CommitLog(entry.entity, entry.entity_id, "add-attachment", metadata))
        if self.config.is_debug:
            log.debug("attachment_uploaded", key=key, mime_type=mime_type, size=len(payload))

    # -- shutdown ---------------------------------------------------------------

    async def cleanup(self) -> None:
        """Stop background flushing, deliver what is queued, close HTTP clients."""
        self._closed = True
        task, self._periodic_task = self._periodic_task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        loop = asyncio.get_running_loop()
        for pending in (self._inflight_flush, self._pending_flush):
            if pending is not None and not pending.done() and pending.get_loop() is loop:
                await pending
        self._inflight_flush = self._pending_flush = None
        await self.flush()
        await self._logs_api.aclose()
        await self._attachment_api.aclose()
