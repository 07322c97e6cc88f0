#!/usr/bin/env python3
"""
highway/geometry.py
===================
Pose container and low-level angle / quaternion helpers used by
:mod:`highway.path`, :mod:`highway.controllers` and :mod:`highway.vehicle`.

Quaternions are ``(w, x, y, z)`` tuples.  Control is planar, so only the
rotation about +Z (yaw) is ever produced or consumed.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

DEG_TO_RAD = math.pi / 180.0

Vector3 = Tuple[float, float, float]
Quaternion = Tuple[float, float, float, float]


def wrap_angle(angle: float) -> float:
    """Wrap *angle* (radians) into ``[-pi, pi)``."""
    return (angle + math.pi) % (2.0 * math.pi) - math.pi


def quat_from_yaw(yaw: float) -> Quaternion:
    """Unit quaternion for a rotation of *yaw* radians about +Z."""
    half = 0.5 * yaw
    return (math.cos(half), 0.0, 0.0, math.sin(half))


def yaw_from_quat(q: Quaternion) -> float:
    """Rotation about +Z encoded in the unit quaternion *q*."""
    w, x, y, z = q
    return math.atan2(2.0 * (w * z + x * y), 1.0 - 2.0 * (y * y + z * z))


@dataclass(frozen=True)
class Pose:
    """Position plus orientation of a body in world space.

    Parameters
    ----------
    position : tuple
        ``(x, y, z)`` in metres.
    orientation : tuple
        Unit quaternion ``(w, x, y, z)``.
    """

    position: Vector3
    orientation: Quaternion = (1.0, 0.0, 0.0, 0.0)

    @classmethod
    def from_yaw(cls, x: float, y: float, z: float, yaw: float) -> "Pose":
        return cls((float(x), float(y), float(z)), quat_from_yaw(yaw))

    @property
    def yaw(self) -> float:
        return yaw_from_quat(self.orientation)

    @property
    def xy(self) -> np.ndarray:
        return np.array(self.position[:2], dtype=float)

    def forward(self) -> np.ndarray:
        """Planar unit heading vector."""
        yaw = self.yaw
        return np.array([math.cos(yaw), math.sin(yaw)])

    def is_finite(self) -> bool:
        return all(math.isfinite(float(v)) for v in (*self.position, *self.orientation))
