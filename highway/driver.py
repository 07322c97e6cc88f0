#!/usr/bin/env python3
"""
highway/driver.py
=================
Guidance controllers ("drivers") turning the vehicle pose and a target
path into steering / throttle / braking.

Two variants, distinguished by :class:`DriverKind` rather than by
runtime type checks:

* :class:`PathFollowerDriver` — one path, adaptive cruise.
* :class:`MultiPathFollowerDriver` — a :class:`~highway.path.PathSet`
  with an active index that :meth:`~MultiPathFollowerDriver.change_path`
  switches between ticks.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

import numpy as np

from highway.controllers import AdaptiveSpeedController, LeadVehicle, SteeringController
from highway.path import Path, PathSet, PathTracker
from highway.policy import ControllerPolicy

log = logging.getLogger("driver")


class DriverKind(Enum):
    SINGLE_PATH = "single_path"
    MULTI_PATH = "multi_path"


class ControlDegenerate(RuntimeError):
    """The driver cannot produce a meaningful command this tick."""


class NoPathError(ControlDegenerate):
    """No active path to follow (empty path set)."""


class UnreachablePathError(ControlDegenerate):
    """The vehicle state makes the path unreachable (non-finite pose or speed)."""


@dataclass(frozen=True)
class DriverInputs:
    """Normalised driver commands.

    ``steering`` in ``[-1, 1]`` (positive = left), ``throttle`` and
    ``braking`` in ``[0, 1]``; at most one of the pedals is non-zero.
    """

    steering: float = 0.0
    throttle: float = 0.0
    braking: float = 0.0

    @classmethod
    def hold(cls) -> "DriverInputs":
        """Safe stand-still command: neutral steering, no throttle, full brake."""
        return cls(steering=0.0, throttle=0.0, braking=1.0)


class PathFollowerDriver:
    """Adaptive-cruise path follower on a single path.

    Parameters
    ----------
    vehicle : object
        Anything exposing ``pose`` (:class:`~highway.geometry.Pose`) and
        ``speed`` (m/s).  Read only.
    path : Path or None
        Path to follow; ``None`` leaves the driver without a path.
    name : str
        Label for log lines.
    target_speed : float
        Cruise speed (m/s).
    target_following_time, target_min_distance, current_distance : float or None
        Adaptive-cruise headway (s), standstill gap (m) and sensing range (m);
        ``None`` takes the value from *policy*.
    is_path_closed : bool
        Overrides the path's own ``closed`` flag.
    policy : ControllerPolicy or None
        Gains, look-ahead and perception constants.
    """

    kind = DriverKind.SINGLE_PATH

    def __init__(
        self,
        vehicle: Any,
        path: Optional[Path],
        name: str = "",
        target_speed: float = 10.0,
        target_following_time: Optional[float] = None,
        target_min_distance: Optional[float] = None,
        current_distance: Optional[float] = None,
        is_path_closed: bool = False,
        policy: Optional[ControllerPolicy] = None,
    ) -> None:
        policy = policy or ControllerPolicy()
        self.policy = policy
        self.name = name
        self.target_speed = float(target_speed)
        self._vehicle = vehicle

        self.steering_controller = SteeringController(policy.steering_gains, policy.look_ahead_m)
        self.speed_controller = AdaptiveSpeedController(
            policy.speed_gains,
            following_time=_pick(target_following_time, policy.target_following_time_s),
            min_distance=_pick(target_min_distance, policy.target_min_distance_m),
            sensing_range=_pick(current_distance, policy.current_distance_m),
        )

        self.lead: Optional[LeadVehicle] = None
        self.inputs = DriverInputs.hold()
        self._computing = False
        self._set_paths(PathSet([] if path is None else [(path, is_path_closed)]))

    def _set_paths(self, paths: PathSet) -> None:
        self._paths = paths
        active = paths.active
        self._tracker: Optional[PathTracker] = PathTracker(active) if active is not None else None

    # ── accessors ─────────────────────────────────────────────────────────

    @property
    def path(self) -> Optional[Path]:
        """The path currently tracked."""
        return self._paths.active

    @property
    def path_set(self) -> PathSet:
        return self._paths

    @property
    def tracker(self) -> Optional[PathTracker]:
        return self._tracker

    def set_target_speed(self, speed: float) -> None:
        self.target_speed = float(speed)

    # ── perception ────────────────────────────────────────────────────────

    def set_lead(self, lead: Optional[LeadVehicle]) -> None:
        self.lead = lead

    def detect_lead(self, peers: Iterable[Any]) -> Optional[LeadVehicle]:
        """Closest peer ahead of the vehicle on the active path.

        *peers* are objects with ``rank``, ``position`` and ``speed``
        (e.g. :class:`~syncbus.message.AgentState`).  A peer counts when
        it is within ``lane_half_width_m`` of the path, ahead of the ego
        vehicle, and inside the sensing range.
        """
        path = self.path
        if path is None:
            return None
        pose = self._vehicle.pose
        if not pose.is_finite():
            return None
        s_ego, _ = path.project(pose.position)

        best: Optional[LeadVehicle] = None
        for peer in peers:
            s_peer, lateral = path.project(peer.position)
            if lateral > self.policy.lane_half_width_m:
                continue
            gap = s_peer - s_ego
            if path.closed:
                gap %= path.length
            if not (0.0 < gap <= self.speed_controller.sensing_range):
                continue
            if best is None or gap < best.gap:
                best = LeadVehicle(rank=peer.rank, gap=gap, speed=float(peer.speed))
        return best

    # ── control ───────────────────────────────────────────────────────────

    def advance(self, time: float, dt: float) -> DriverInputs:
        """Compute the commands for the step starting at *time*.

        Raises
        ------
        NoPathError
            No active path.
        UnreachablePathError
            The vehicle pose or speed is not finite.
        """
        if self._tracker is None:
            raise NoPathError(f"{self.name or 'driver'}: no path to follow")
        pose = self._vehicle.pose
        speed = self._vehicle.speed
        if not pose.is_finite() or not math.isfinite(speed):
            raise UnreachablePathError(
                f"{self.name or 'driver'}: non-finite vehicle state at t={time:.3f}"
            )

        self._computing = True
        try:
            steering = self.steering_controller.advance(self._tracker, pose, dt)
            out = self.speed_controller.advance(speed, self.target_speed, dt, self.lead)
        finally:
            self._computing = False

        out = float(np.clip(out, -1.0, 1.0))
        self.inputs = DriverInputs(
            steering=steering,
            throttle=out if out > 0.0 else 0.0,
            braking=-out if out < 0.0 else 0.0,
        )
        return self.inputs


class MultiPathFollowerDriver(PathFollowerDriver):
    """Adaptive-cruise path follower over a set of candidate paths.

    Parameters
    ----------
    path_pairs : iterable
        ``(Path, closed)`` pairs (or bare paths); the first is active.

    Other parameters are those of :class:`PathFollowerDriver`.
    """

    kind = DriverKind.MULTI_PATH

    def __init__(
        self,
        vehicle: Any,
        path_pairs: Iterable[Any],
        name: str = "",
        target_speed: float = 10.0,
        target_following_time: Optional[float] = None,
        target_min_distance: Optional[float] = None,
        current_distance: Optional[float] = None,
        policy: Optional[ControllerPolicy] = None,
    ) -> None:
        super().__init__(
            vehicle, None, name, target_speed,
            target_following_time, target_min_distance, current_distance,
            policy=policy,
        )
        self._set_paths(PathSet(path_pairs))

    @property
    def active_index(self) -> Optional[int]:
        return self._paths.active_index

    def change_path(self, index: int) -> None:
        """Make path *index* the one tracked by the next control computation.

        The closest-point cache and steering loop memory are discarded,
        so tracking restarts from the current pose on the new path.

        Raises
        ------
        InvalidPathIndex
            *index* is not a valid element of the path set; the active
            index is left unchanged.
        RuntimeError
            Called while a control computation is in progress.
        """
        if self._computing:
            raise RuntimeError("change_path called during a control computation")
        previous = self._paths.active_index
        path = self._paths.select(index)
        self._tracker = PathTracker(path)
        self.steering_controller.reset()
        log.info("%s: path %s -> %s (%s)", self.name or "driver", previous, index, path.name)


def _pick(value: Optional[float], default: float) -> float:
    return default if value is None else float(value)
