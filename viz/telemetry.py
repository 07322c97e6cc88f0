#!/usr/bin/env python3
"""
viz/telemetry.py
================
Records one row per agent per frame and writes a CSV on close.

Rows are buffered as dicts and turned into a :class:`pandas.DataFrame`
only once, when the sink closes.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

import pandas as pd

from .sinks import Frame, VisualizationSink

log = logging.getLogger("viz")


class TelemetrySink(VisualizationSink):
    """Per-rank telemetry recorder.

    Parameters
    ----------
    path : str
        CSV file to write; parent directories are created.
    include_peers : bool
        Record every peer's state too, not only the rank's own agent.
    """

    name = "telemetry"

    def __init__(self, path: str, include_peers: bool = False) -> None:
        self.path = path
        self.include_peers = include_peers
        self.rows: List[Dict[str, Any]] = []
        self._written = False

    def render(self, frame: Frame) -> None:
        steering, throttle, braking = frame.inputs
        row = {"observer": frame.rank, "frame_tick": frame.tick, "frame_time": frame.time,
               **frame.ego.as_dict(),
               "steering": steering, "throttle": throttle, "braking": braking}
        self.rows.append(row)
        if self.include_peers:
            for state in frame.peers.values():
                self.rows.append({"observer": frame.rank, "frame_tick": frame.tick,
                                  "frame_time": frame.time, **state.as_dict()})

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows)

    def close(self) -> Optional[str]:
        if self._written:
            return self.path
        self._written = True
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        df = self.to_frame()
        df.to_csv(self.path, index=False)
        log.info("telemetry: %d row(s) -> %s", len(df), self.path)
        return self.path
