#!/usr/bin/env python3
"""
highway/brain.py
================
Decision unit of a vehicle agent.

:class:`ACCBrain` wraps one driver, turns the simulation time into
driver inputs every tick and fires declarative path-switch triggers at
tick boundaries.  Degenerate control states never leave the brain: they
become the hold command.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from highway.driver import ControlDegenerate, DriverInputs, DriverKind
from highway.path import InvalidPathIndex

log = logging.getLogger("brain")

# Clock values are multiples of the step; absorb the rounding of ``tick * step``
_TIME_EPS = 1e-9


@dataclass
class PathSwitchTrigger:
    """Switch the active path to ``path_index`` once the clock reaches ``at_time``.

    Attributes
    ----------
    at_time : float
        First simulated time (s) at which the trigger fires.
    path_index : int
        Path-set index passed to ``change_path``.
    every : float or None
        ``None`` for a one-shot trigger; otherwise the trigger re-arms at
        ``at_time + k * every``.
    """

    at_time: float
    path_index: int
    every: Optional[float] = None
    fired: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        if not math.isfinite(self.at_time):
            raise ValueError(f"trigger time must be finite, got {self.at_time!r}")
        if self.every is not None and not self.every > 0.0:
            raise ValueError(f"trigger period must be > 0, got {self.every!r}")

    @property
    def next_time(self) -> Optional[float]:
        if self.every is None:
            return self.at_time if self.fired == 0 else None
        return self.at_time + self.fired * self.every

    def due(self, time: float) -> bool:
        nxt = self.next_time
        return nxt is not None and time >= nxt - _TIME_EPS

    def consume(self, time: float) -> None:
        """Mark the trigger fired; a periodic trigger skips missed periods."""
        self.fired += 1
        if self.every is not None:
            while self.next_time <= time - _TIME_EPS:
                self.fired += 1


class ACCBrain:
    """Adaptive-cruise brain driving one vehicle.

    Parameters
    ----------
    rank : int
        Owning rank, used in log lines.
    driver : PathFollowerDriver
        Single- or multi-path driver; its ``kind`` decides whether path
        switches are possible.
    triggers : iterable of PathSwitchTrigger
        Path switches to apply at tick boundaries.
    """

    def __init__(self, rank: int, driver: Any, triggers: Iterable[PathSwitchTrigger] = ()) -> None:
        self.rank = rank
        self.driver = driver
        self.triggers: List[PathSwitchTrigger] = list(triggers)
        self.multipath = False
        self.inputs = DriverInputs.hold()
        self._degenerate = False
        self._ignored_logged = False

    def set_multipath(self, enabled: bool) -> None:
        """Latch whether path-switch triggers are honoured."""
        self.multipath = bool(enabled)

    def add_trigger(self, trigger: PathSwitchTrigger) -> None:
        self.triggers.append(trigger)

    def problems(self) -> List[str]:
        """Configuration problems that must abort the run before the first tick."""
        out: List[str] = []
        if self.driver is None:
            return [f"rank {self.rank}: brain has no driver"]
        if not self.triggers:
            return out
        if self.driver.kind is not DriverKind.MULTI_PATH:
            if self.multipath:
                out.append(
                    f"rank {self.rank}: path-switch triggers need a multi-path driver, "
                    f"got {self.driver.kind.value}"
                )
            return out
        for trig in self.triggers:
            try:
                self.driver.path_set.validate_index(trig.path_index)
            except InvalidPathIndex as exc:
                out.append(f"rank {self.rank}: trigger at t={trig.at_time:g}s: {exc}")
        return out

    # ── per tick ──────────────────────────────────────────────────────────

    def observe(self, peers: Iterable[Any]) -> None:
        """Refresh the lead vehicle from the peers' latest states."""
        vehicles = [p for p in peers if getattr(p, "kind", "vehicle") == "vehicle"]
        self.driver.set_lead(self.driver.detect_lead(vehicles))

    def synchronize(self, time: float, dt: float) -> DriverInputs:
        """Fire due triggers, then compute this tick's inputs."""
        self._fire_triggers(time)
        try:
            self.inputs = self.driver.advance(time, dt)
        except ControlDegenerate as exc:
            if not self._degenerate:
                log.warning("rank %d holding at t=%.3f: %s", self.rank, time, exc)
            self._degenerate = True
            self.inputs = DriverInputs.hold()
            return self.inputs
        if self._degenerate:
            log.info("rank %d control recovered at t=%.3f", self.rank, time)
            self._degenerate = False
        return self.inputs

    def _fire_triggers(self, time: float) -> None:
        due = [t for t in self.triggers if t.due(time)]
        if not due:
            return
        honoured = self.multipath and self.driver.kind is DriverKind.MULTI_PATH
        for trig in due:
            trig.consume(time)
            if not honoured:
                if not self._ignored_logged:
                    log.info("rank %d ignoring path switch at t=%.3f (multipath=%s, driver=%s)",
                             self.rank, time, self.multipath, self.driver.kind.value)
                    self._ignored_logged = True
                continue
            self.driver.change_path(trig.path_index)
            log.info("rank %d switched to path %d at t=%.3f", self.rank, trig.path_index, time)
