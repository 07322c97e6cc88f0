#!/usr/bin/env python3
"""
highway/policy.py
=================
Tunable controller and adaptive-cruise parameters for the highway
drivers.  Every constant lives in the frozen :class:`ControllerPolicy`
dataclass so that experiments can swap policies without touching code.

Also provides :class:`PIDGains`, the gain triple shared by the speed and
steering loops.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PIDGains:
    """Proportional, integral and derivative coefficients."""

    kp: float = 0.0
    ki: float = 0.0
    kd: float = 0.0


@dataclass(frozen=True)
class ControllerPolicy:
    """Immutable bag of every tunable driver parameter.

    Groups: steering loop, speed loop, adaptive cruise, perception.
    """

    # ── Steering loop ─────────────────────────────────────────────────────
    steering_gains: PIDGains = field(default_factory=lambda: PIDGains(0.4, 0.1, 0.2))
    """Gains on heading error (rad) to the look-ahead point."""

    look_ahead_m: float = 5.0
    """Distance along the path from the closest point to the target point."""

    # ── Speed loop ────────────────────────────────────────────────────────
    speed_gains: PIDGains = field(default_factory=lambda: PIDGains(0.4, 0.0, 0.0))
    """Gains on speed error (m/s); output is split into throttle / braking."""

    # ── Adaptive cruise ───────────────────────────────────────────────────
    target_following_time_s: float = 1.2
    """Time headway kept behind a lead vehicle."""

    target_min_distance_m: float = 10.0
    """Standstill gap kept behind a lead vehicle."""

    current_distance_m: float = 100.0
    """Sensing range; lead vehicles farther away are ignored."""

    # ── Perception ────────────────────────────────────────────────────────
    lane_half_width_m: float = 1.8
    """A peer counts as *on the path* when closer to it than this."""
