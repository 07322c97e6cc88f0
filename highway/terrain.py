#!/usr/bin/env python3
"""
highway/terrain.py
==================
Rigid ground consumed read-only by the vehicle handle.

:class:`RigidTerrain` is a flat plane answering height, normal and
material queries; no collision mesh is loaded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class ContactMaterial:
    """Tire–ground contact properties."""

    friction: float = 0.9
    restitution: float = 0.01
    rolling_resistance: float = 0.015


@dataclass(frozen=True)
class RigidTerrain:
    """Flat rigid plane at a fixed height.

    Parameters
    ----------
    height : float
        Ground height (m) everywhere.
    material : ContactMaterial
        Contact material shared by every point of the plane.
    """

    height: float = 0.0
    material: ContactMaterial = field(default_factory=ContactMaterial)

    def get_height(self, x: float, y: float) -> float:
        return self.height

    def get_normal(self, x: float, y: float) -> Tuple[float, float, float]:
        return (0.0, 0.0, 1.0)
