#!/usr/bin/env python3
"""
highway/controllers.py
======================
Feedback loops used by :mod:`highway.driver`.

* :class:`PIDController` — scalar PID with integral / derivative memory.
* :class:`SteeringController` — look-ahead heading tracking on a path.
* :class:`SpeedController` — speed error to a signed pedal command.
* :class:`AdaptiveSpeedController` — speed loop whose target is lowered
  to keep a time headway behind a detected lead vehicle.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from highway.geometry import Pose, wrap_angle
from highway.path import PathTracker
from highway.policy import PIDGains


@dataclass(frozen=True)
class LeadVehicle:
    """Closest vehicle ahead on the active path.

    Attributes
    ----------
    rank : int
        Rank owning the lead vehicle.
    gap : float
        Distance along the path from ego to lead (metres, > 0).
    speed : float
        Lead speed in m/s.
    """

    rank: int
    gap: float
    speed: float


class PIDController:
    """Textbook PID on a scalar error."""

    def __init__(self, gains: Optional[PIDGains] = None) -> None:
        self.gains = gains or PIDGains()
        self.reset()

    def set_gains(self, kp: float, ki: float, kd: float) -> None:
        self.gains = PIDGains(kp, ki, kd)

    def reset(self) -> None:
        self.integral = 0.0
        self.prev_error: Optional[float] = None

    def step(self, error: float, dt: float) -> float:
        derivative = 0.0
        if dt > 0.0:
            self.integral += error * dt
            if self.prev_error is not None:
                derivative = (error - self.prev_error) / dt
        self.prev_error = error
        g = self.gains
        return g.kp * error + g.ki * self.integral + g.kd * derivative


class SteeringController:
    """Drives the heading error to a look-ahead point through a PID.

    The closest path parameter to the vehicle is advanced by the
    look-ahead distance; the heading from the vehicle to that point,
    minus the vehicle yaw, is the error.  Output is clamped to
    ``[-1, 1]`` (positive steers left).
    """

    def __init__(self, gains: Optional[PIDGains] = None, look_ahead: float = 5.0) -> None:
        self.pid = PIDController(gains or PIDGains(0.4, 0.1, 0.2))
        self.set_look_ahead_distance(look_ahead)
        self.reset()

    @property
    def gains(self) -> PIDGains:
        return self.pid.gains

    def set_gains(self, kp: float, ki: float, kd: float) -> None:
        self.pid.set_gains(kp, ki, kd)

    def set_look_ahead_distance(self, distance: float) -> None:
        if not (math.isfinite(distance) and distance > 0.0):
            raise ValueError(f"look-ahead distance must be > 0, got {distance!r}")
        self.look_ahead = float(distance)

    def reset(self) -> None:
        """Forget loop memory and the last target."""
        self.pid.reset()
        self.closest_s: Optional[float] = None
        self.target_s: Optional[float] = None
        self.target: Optional[np.ndarray] = None
        self.target_heading = 0.0
        self.path_heading = 0.0
        self.heading_error = 0.0

    def look_ahead_point(self, tracker: PathTracker, position) -> Tuple[float, np.ndarray]:
        """Parameter and world point one look-ahead past the closest point."""
        s0 = tracker.closest(position)
        s1 = tracker.path.advance(s0, self.look_ahead)
        self.closest_s = s0
        return s1, tracker.path.point_at(s1)

    def advance(self, tracker: PathTracker, pose: Pose, dt: float) -> float:
        path = tracker.path
        s_target, target = self.look_ahead_point(tracker, pose.position)
        delta = target[:2] - pose.xy
        if np.hypot(delta[0], delta[1]) < 1e-6:
            # sitting on the terminal point of an open path
            desired = path.heading_at(s_target)
        else:
            desired = math.atan2(delta[1], delta[0])

        self.target_s = s_target
        self.target = target
        self.target_heading = desired
        self.path_heading = path.heading_at(self.closest_s)
        self.heading_error = wrap_angle(desired - pose.yaw)
        return float(np.clip(self.pid.step(self.heading_error, dt), -1.0, 1.0))


class SpeedController:
    """Speed error (target − current, m/s) through a PID."""

    def __init__(self, gains: Optional[PIDGains] = None) -> None:
        self.pid = PIDController(gains or PIDGains(0.4, 0.0, 0.0))
        self.target_speed = 0.0

    @property
    def gains(self) -> PIDGains:
        return self.pid.gains

    def set_gains(self, kp: float, ki: float, kd: float) -> None:
        self.pid.set_gains(kp, ki, kd)

    def reset(self) -> None:
        self.pid.reset()

    def advance(self, speed: float, target_speed: float, dt: float) -> float:
        self.target_speed = target_speed
        return self.pid.step(target_speed - speed, dt)


class AdaptiveSpeedController(SpeedController):
    """Speed loop with an adaptive-cruise cap on the target speed.

    Parameters
    ----------
    following_time : float
        Time headway (s) to keep behind a lead vehicle.
    min_distance : float
        Standstill gap (m).
    sensing_range : float
        Lead vehicles farther than this (m) are ignored.
    """

    def __init__(
        self,
        gains: Optional[PIDGains] = None,
        following_time: float = 1.2,
        min_distance: float = 10.0,
        sensing_range: float = 100.0,
    ) -> None:
        super().__init__(gains)
        if following_time <= 0.0:
            raise ValueError("following_time must be > 0")
        self.following_time = following_time
        self.min_distance = min_distance
        self.sensing_range = sensing_range

    def effective_target(self, speed: float, target_speed: float,
                         lead: Optional[LeadVehicle]) -> float:
        """Cruise target, lowered when a lead vehicle is inside the desired gap."""
        if lead is None or not (0.0 < lead.gap <= self.sensing_range):
            return target_speed
        desired_gap = self.min_distance + self.following_time * speed
        follow = lead.speed + (lead.gap - desired_gap) / self.following_time
        return max(0.0, min(target_speed, follow))

    def advance(self, speed: float, target_speed: float, dt: float,
                lead: Optional[LeadVehicle] = None) -> float:
        return super().advance(speed, self.effective_target(speed, target_speed, lead), dt)
