"""Diagnostic logging for the SDK itself (not the traced application)."""

from tracewire.diagnostics.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
    get_logs_dir,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
    "get_logs_dir",
]
