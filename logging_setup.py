#!/usr/bin/env python3
"""
logging_setup.py
================
Configures the root logger with a console handler and a rotating file
handler per rank (``highway_rank<N>.log``, 1 MB, 2 backups).  Every
record carries the rank so interleaved console output stays readable.

Call :func:`setup_logging` once per rank process at startup.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

FORMAT = "%(asctime)s | %(levelname)s | rank %(rank)s | %(name)s | %(message)s"


class RankFilter(logging.Filter):
    """Stamps ``record.rank`` on records that do not already carry one."""

    def __init__(self, rank: Optional[int]) -> None:
        super().__init__()
        self.rank = "-" if rank is None else str(rank)

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "rank"):
            # threaded runs name each rank thread "rank-<N>"
            thread = record.threadName or ""
            record.rank = thread[5:] if thread.startswith("rank-") else self.rank
        return True


def setup_logging(level: int = logging.INFO, rank: Optional[int] = None, log_dir: str = ".") -> None:
    """Apply a unified log format to both console and file output.

    Parameters
    ----------
    level : int
        Minimum severity level (e.g. ``logging.DEBUG``, ``logging.INFO``).
    rank : int or None
        Rank of the calling process; ``None`` for the launcher.
    log_dir : str
        Directory for the log files.
    """
    root = logging.getLogger()
    root.setLevel(level)

    fmt = logging.Formatter(FORMAT)
    rank_filter = RankFilter(rank)
    suffix = "launcher" if rank is None else f"rank{rank}"
    os.makedirs(log_dir, exist_ok=True)

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(fmt)
    ch.addFilter(rank_filter)

    fh = RotatingFileHandler(os.path.join(log_dir, f"highway_{suffix}.log"),
                             maxBytes=1_000_000, backupCount=2)
    fh.setLevel(level)
    fh.setFormatter(fmt)
    fh.addFilter(rank_filter)

    root.handlers.clear()
    root.addHandler(ch)
    root.addHandler(fh)

    # ── Dedicated debug file for the synchronization barrier ──────────
    sync_logger = logging.getLogger("sync_manager")
    sync_logger.setLevel(logging.DEBUG)
    for handler in list(sync_logger.handlers):
        sync_logger.removeHandler(handler)
        handler.close()
    dfh = RotatingFileHandler(
        os.path.join(log_dir, f"sync_debug_{suffix}.log"), maxBytes=5_000_000, backupCount=2
    )
    dfh.setLevel(logging.DEBUG)
    dfh.setFormatter(fmt)
    dfh.addFilter(rank_filter)
    sync_logger.addHandler(dfh)
