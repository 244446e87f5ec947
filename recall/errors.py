"""
Error types and error logging for recall.

Library code raises the typed exceptions below; the CLI catches them at the
command boundary, logs the full traceback to a file and shows a clean message.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path


class RecallError(Exception):
    """Base class for all recall errors."""


class ProviderInitError(RecallError):
    """
    An embedding provider could not be initialized.

    Model artifact missing, optional dependency not installed, or credential
    absent. Non-fatal: the engine stays unbound and the caller may retry.
    """


class EmbedError(RecallError):
    """
    A single text could not be embedded.

    Skipped during backfill; fatal only for the search that needed the
    query embedded.
    """


class DimensionMismatch(RecallError):
    """
    Stored vectors do not match the active provider's dimension.

    Internal signal: search handles it by regenerating and retrying once.
    Never surfaced to callers.
    """

    def __init__(self, expected: int, found: int):
        super().__init__(f"Embedding dimension mismatch: expected {expected}, found {found}")
        self.expected = expected
        self.found = found


class StoreError(RecallError):
    """The note store failed. Propagated to the caller; the operation aborts."""


def _error_log_path() -> Path:
    """Resolve error log path, respecting RECALL_STORE_PATH."""
    store = os.environ.get("RECALL_STORE_PATH")
    if store:
        return Path(store) / "recall-errors.log"
    return Path.home() / ".recall" / "recall-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # Can't write error log; don't crash over it
    return log_path
