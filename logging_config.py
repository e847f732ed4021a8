"""Centralized logging configuration with optional Supabase sink.

This module provides:
- PlainFormatter for stderr output
- JSONFormatter for structured records
- SupabaseHandler for batched remote log collection
"""

import atexit
import logging
import re
import sys
import threading
from queue import Empty, Queue

TAG_PATTERN = re.compile(r"\[([A-Z_]+)\]\s*(.*)", re.DOTALL)


class JSONFormatter(logging.Formatter):
    """Turns a record into a dict row for the ``logs`` table."""

    def __init__(self, service_name: str = None):
        super().__init__()
        self.service_name = service_name or "mcp-oauth-server"

    def format(self, record: logging.LogRecord) -> dict:
        # Extract tag from message if present: [TAG] message
        tag = None
        message = record.getMessage()
        tag_match = TAG_PATTERN.match(message)
        if tag_match:
            tag = tag_match.group(1)
            message = tag_match.group(2)

        log_entry = {
            "service": self.service_name,
            "level": record.levelname,
            "tag": tag,
            "message": message,
            "module": record.module,
            "extra": {
                "function": record.funcName,
                "line": record.lineno,
            },
        }

        if record.exc_info:
            log_entry["extra"]["exception"] = self.formatException(record.exc_info)

        return log_entry


class PlainFormatter(logging.Formatter):
    """Plain text formatter for stderr output."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


class SupabaseHandler(logging.Handler):
    """Logging handler that batches logs and inserts them into Supabase.

    Flush occurs every flush_interval seconds or when batch_size is reached.
    """

    def __init__(
        self,
        supabase_client,
        table: str = "logs",
        batch_size: int = 20,
        flush_interval: float = 10.0,
    ):
        super().__init__()
        self.supabase = supabase_client
        self.table = table
        self.batch_size = batch_size
        self.flush_interval = flush_interval

        self._queue: Queue = Queue()
        self._shutdown = threading.Event()
        self._flush_thread = threading.Thread(target=self._flush_worker, daemon=True)
        self._flush_thread.start()

        atexit.register(self.close)

    def emit(self, record: logging.LogRecord):
        """Queue a log record for batched sending."""
        try:
            if isinstance(self.formatter, JSONFormatter):
                log_entry = self.formatter.format(record)
            else:
                log_entry = {
                    "service": None,
                    "level": record.levelname,
                    "tag": None,
                    "message": record.getMessage(),
                    "module": record.module,
                    "extra": {},
                }

            self._queue.put(log_entry)

            if self._queue.qsize() >= self.batch_size:
                self.flush()

        except Exception:
            self.handleError(record)

    def _flush_worker(self):
        """Background thread that flushes logs periodically."""
        while not self._shutdown.wait(self.flush_interval):
            if not self._queue.empty():
                self.flush()

    def flush(self):
        """Send queued logs to Supabase."""
        logs = []
        while len(logs) < self.batch_size * 2:  # Don't flush too many at once
            try:
                logs.append(self._queue.get_nowait())
            except Empty:
                break

        if not logs:
            return

        try:
            self.supabase.table(self.table).insert(logs).execute()
        except Exception as e:
            # Can't log through logging here without recursing
            print(f"[WARNING] Failed to send logs to Supabase: {e}", file=sys.stderr)

    def close(self):
        """Flush remaining logs and stop the background thread."""
        self._shutdown.set()
        self.flush()
        super().close()


def setup_logging(
    level: str = "INFO",
    service_name: str = None,
    supabase_client=None,
) -> logging.Logger:
    """Configure the root logger.

    Always logs to stderr. When a Supabase client is given, records are also
    batched into its ``logs`` table; if that setup fails, stderr-only logging
    continues.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(PlainFormatter())
    root_logger.addHandler(stderr_handler)

    supabase_enabled = False
    if supabase_client:
        try:
            supabase_handler = SupabaseHandler(supabase_client)
            supabase_handler.setLevel(logging.INFO)
            supabase_handler.setFormatter(JSONFormatter(service_name))
            root_logger.addHandler(supabase_handler)
            supabase_enabled = True
        except Exception as e:
            print(f"[WARNING] Supabase logging setup failed: {e}", file=sys.stderr)

    # Suppress noisy HTTP client logs (supabase and Google calls use httpx)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    if supabase_enabled:
        logger.info("[STARTUP] Supabase logging enabled")
    else:
        logger.info("[STARTUP] Supabase logging disabled")

    return root_logger
