#!/usr/bin/env python3
"""
viz/sinks.py
============
Output-only fan-out used by the agents.

A :class:`VisualizationManager` owns zero or more sinks and hands each
of them a :class:`Frame` once per tick.  Sinks never feed data back into
the control loop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from syncbus.message import AgentState

log = logging.getLogger("viz")


@dataclass(frozen=True)
class Frame:
    """Everything a sink may draw or record for one tick.

    Attributes
    ----------
    rank : int
        Rank producing the frame.
    tick : int
        Tick index (0 is the state after the join handshake).
    time : float
        Simulated time in seconds.
    ego : AgentState
        The local agent's state.
    peers : dict
        ``rank → AgentState`` for every other rank.
    path : tuple
        Active path waypoints ``(x, y)``, empty for environment agents.
    target : tuple or None
        Current steering target point ``(x, y)``.
    inputs : tuple
        ``(steering, throttle, braking)`` applied during the tick.
    """

    rank: int
    tick: int
    time: float
    ego: AgentState
    peers: Dict[int, AgentState] = field(default_factory=dict)
    path: Tuple[Tuple[float, float], ...] = ()
    target: Optional[Tuple[float, float]] = None
    inputs: Tuple[float, float, float] = (0.0, 0.0, 0.0)


class VisualizationSink:
    """Base class of every sink; subclasses override :meth:`render`.

    A sink that wants the run to end (the user closed its window) sets
    ``stop_reason``; the owning agent forwards it to the manager.
    """

    name = "sink"
    stop_reason: Optional[str] = None

    def render(self, frame: Frame) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class VisualizationManager:
    """Fan-out of frames to the attached sinks."""

    def __init__(self, sinks: Sequence[VisualizationSink] = ()) -> None:
        self.sinks: List[VisualizationSink] = list(sinks)
        self.frames = 0

    def add_visualization(self, sink: VisualizationSink) -> None:
        self.sinks.append(sink)

    def render(self, frame: Frame) -> None:
        self.frames += 1
        for sink in self.sinks:
            sink.render(frame)

    @property
    def stop_reason(self) -> Optional[str]:
        """First stop request raised by a sink, or None."""
        for sink in self.sinks:
            if sink.stop_reason:
                return f"{sink.name}: {sink.stop_reason}"
        return None

    def close(self) -> None:
        for sink in self.sinks:
            sink.close()
        log.debug("closed %d sink(s) after %d frame(s)", len(self.sinks), self.frames)
