#!/usr/bin/env python3
"""
highway/agent.py
================
Simulated participants owned by a rank.

* :class:`VehicleAgent` — vehicle handle + terrain + brain + sinks.
* :class:`EnvironmentAgent` — no vehicle; broadcasts signals such as a
  traffic-light phase to every peer.

Both are tagged with an :class:`AgentKind` and share the small
capability interface used by :class:`~highway.sync_manager.SyncManager`:
``advance(dt)``, ``observe(peers, tick)``, ``state(tick, time, stop)``.

The :class:`SimulationClock` is written only by the manager; agents and
sinks see it through a read-only :class:`ClockView`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from highway.geometry import Pose
from highway.terrain import RigidTerrain
from syncbus.message import AgentState
from viz.sinks import Frame, VisualizationManager

log = logging.getLogger("agent")


class AgentKind(Enum):
    VEHICLE = "vehicle"
    ENVIRONMENT = "environment"


class AgentBindingError(RuntimeError):
    """A component was bound twice, or after the agent was locked."""


# ── Clock ─────────────────────────────────────────────────────────────────────

class SimulationClock:
    """Fixed-step simulated time.  ``time`` is always ``tick * step``."""

    def __init__(self, step: float) -> None:
        if not step > 0.0:
            raise ValueError(f"step size must be > 0, got {step!r}")
        self.step = float(step)
        self.tick = 0

    @property
    def time(self) -> float:
        return self.tick * self.step

    def advance(self) -> None:
        self.tick += 1

    def view(self) -> "ClockView":
        return ClockView(self)


class ClockView:
    """Read-only window on a :class:`SimulationClock`."""

    __slots__ = ("_clock",)

    def __init__(self, clock: SimulationClock) -> None:
        self._clock = clock

    @property
    def time(self) -> float:
        return self._clock.time

    @property
    def tick(self) -> int:
        return self._clock.tick

    @property
    def step(self) -> float:
        return self._clock.step


class VehicleView:
    """Read-only window on a vehicle handle for sinks and sensors."""

    __slots__ = ("_vehicle",)

    def __init__(self, vehicle: Any) -> None:
        self._vehicle = vehicle

    @property
    def pose(self) -> Pose:
        return self._vehicle.pose

    @property
    def speed(self) -> float:
        return self._vehicle.speed

    @property
    def spec(self) -> Any:
        return self._vehicle.spec

    @property
    def driveshaft_speed(self) -> float:
        return self._vehicle.driveshaft_speed


# ── Agents ────────────────────────────────────────────────────────────────────

class _BaseAgent:
    kind = AgentKind.VEHICLE

    def __init__(self, rank: int) -> None:
        self.rank = rank
        self._system: Optional[ClockView] = None
        self._vis: Optional[VisualizationManager] = None
        self._locked = False
        self.peers: Dict[int, AgentState] = {}

    def _check_unbound(self, current: Any, what: str) -> None:
        if self._locked:
            raise AgentBindingError(f"rank {self.rank}: cannot bind {what} after initialization")
        if current is not None:
            raise AgentBindingError(f"rank {self.rank}: {what} already bound")

    def bind_clock(self, clock: ClockView) -> None:
        """Called by the manager that owns this agent."""
        self._check_unbound(self._system, "clock")
        self._system = clock

    def attach_visualization_manager(self, manager: VisualizationManager) -> None:
        self._check_unbound(self._vis, "visualization manager")
        self._vis = manager

    def get_system(self) -> Optional[ClockView]:
        return self._system

    def lock(self) -> None:
        self._locked = True

    @property
    def locked(self) -> bool:
        return self._locked

    def problems(self) -> List[str]:
        return [] if self._system is not None else [f"rank {self.rank}: agent has no clock"]

    @property
    def stop_reason(self) -> Optional[str]:
        """Stop requested by one of the attached sinks, if any."""
        return None if self._vis is None else self._vis.stop_reason

    def close(self) -> None:
        if self._vis is not None:
            self._vis.close()

    def _render(self, frame: Frame) -> None:
        if self._vis is not None:
            self._vis.render(frame)


class VehicleAgent(_BaseAgent):
    """One vehicle driven by a brain.

    Every binding (:meth:`set_vehicle`, :meth:`set_terrain`,
    :meth:`set_brain`, :meth:`attach_visualization_manager`) may happen
    once, before the manager locks the agent during initialization.
    """

    kind = AgentKind.VEHICLE

    def __init__(self, rank: int) -> None:
        super().__init__(rank)
        self._vehicle: Any = None
        self._terrain: Optional[RigidTerrain] = None
        self._brain: Any = None

    def set_vehicle(self, vehicle: Any) -> None:
        self._check_unbound(self._vehicle, "vehicle")
        self._vehicle = vehicle

    def set_terrain(self, terrain: RigidTerrain) -> None:
        self._check_unbound(self._terrain, "terrain")
        self._terrain = terrain

    def set_brain(self, brain: Any) -> None:
        self._check_unbound(self._brain, "brain")
        self._brain = brain

    def get_vehicle(self) -> Optional[VehicleView]:
        return None if self._vehicle is None else VehicleView(self._vehicle)

    @property
    def brain(self) -> Any:
        return self._brain

    def problems(self) -> List[str]:
        out = super().problems()
        for value, what in ((self._vehicle, "vehicle"), (self._terrain, "terrain"), (self._brain, "brain")):
            if value is None:
                out.append(f"rank {self.rank}: no {what} bound")
        if self._brain is not None:
            out.extend(self._brain.problems())
        return out

    def advance(self, dt: float) -> None:
        """Brain → vehicle inputs → one vehicle step of *dt* seconds."""
        time = self._system.time
        inputs = self._brain.synchronize(time, dt)
        self._vehicle.synchronize(time, inputs.steering, inputs.braking, inputs.throttle, self._terrain)
        self._vehicle.advance(dt)

    def observe(self, peers: Mapping[int, AgentState], tick: int) -> None:
        """Hand peer states to the brain and render one frame."""
        self.peers = dict(peers)
        self._brain.observe(self.peers.values())
        if self._vis is not None:
            self._render(self._frame(tick))

    def state(self, tick: int, time: float, stop: bool = False) -> AgentState:
        pose = self._vehicle.pose
        return AgentState(
            rank=self.rank,
            tick=tick,
            time=time,
            kind=self.kind.value,
            position=tuple(float(v) for v in pose.position),
            orientation=tuple(float(v) for v in pose.orientation),
            speed=float(self._vehicle.speed),
            stop=stop,
        )

    def _frame(self, tick: int) -> Frame:
        driver = self._brain.driver
        path: Tuple[Tuple[float, float], ...] = ()
        if driver.path is not None:
            path = tuple((float(x), float(y)) for x, y, _ in driver.path.waypoints)
        target = driver.steering_controller.target
        inputs = self._brain.inputs
        return Frame(
            rank=self.rank,
            tick=tick,
            time=self._system.time,
            ego=self.state(tick, self._system.time),
            peers=self.peers,
            path=path,
            target=None if target is None else (float(target[0]), float(target[1])),
            inputs=(inputs.steering, inputs.throttle, inputs.braking),
        )


# ── Environment ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SignalCycle:
    """Repeating sequence of ``(phase, duration_s)`` pairs."""

    phases: Tuple[Tuple[str, float], ...] = (("GREEN", 8.0), ("YELLOW", 2.0), ("RED", 10.0))

    def __post_init__(self) -> None:
        if not self.phases or any(d <= 0.0 for _, d in self.phases):
            raise ValueError("a signal cycle needs phases with positive durations")

    @property
    def period(self) -> float:
        return sum(d for _, d in self.phases)

    def phase_at(self, t: float) -> str:
        t = t % self.period
        for name, duration in self.phases:
            if t < duration:
                return name
            t -= duration
        return self.phases[-1][0]


class EnvironmentAgent(_BaseAgent):
    """A traffic-light style agent broadcasting ``signals`` to every peer.

    Parameters
    ----------
    rank : int
        Owning rank.
    position : tuple
        Where the signal stands; included in the broadcast state.
    cycle : SignalCycle
        Phase sequence of the ``light`` signal.
    """

    kind = AgentKind.ENVIRONMENT

    def __init__(
        self,
        rank: int,
        position: Sequence[float] = (0.0, 0.0, 0.0),
        cycle: Optional[SignalCycle] = None,
    ) -> None:
        super().__init__(rank)
        self.position = tuple(float(v) for v in position)
        self.cycle = cycle or SignalCycle()
        self.signals: Dict[str, Any] = {"light": self.cycle.phase_at(0.0)}

    def advance(self, dt: float) -> None:
        self.signals = {"light": self.cycle.phase_at(self._system.time + dt)}

    def observe(self, peers: Mapping[int, AgentState], tick: int) -> None:
        self.peers = dict(peers)
        if self._vis is not None:
            time = self._system.time
            self._render(Frame(rank=self.rank, tick=tick, time=time,
                               ego=self.state(tick, time), peers=self.peers))

    def state(self, tick: int, time: float, stop: bool = False) -> AgentState:
        return AgentState(
            rank=self.rank,
            tick=tick,
            time=time,
            kind=self.kind.value,
            position=self.position,
            signals=dict(self.signals),
            stop=stop,
        )
