"""Commit log delivery: buffered HTTP writer, capture writer, transport."""

from tracewire.writer.apis import AttachmentAPI, LogsAPI, TracewireAPI
from tracewire.writer.capture import CaptureWriter
from tracewire.writer.queue import CommitQueue
from tracewire.writer.spool import LogSpool
from tracewire.writer.writer import LogWriter, LogWriterConfig

__all__ = [
    "AttachmentAPI",
    "CaptureWriter",
    "CommitQueue",
    "LogSpool",
    "LogWriter",
    "LogWriterConfig",
    "LogsAPI",
    "TracewireAPI",
]
