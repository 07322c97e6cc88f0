#!/usr/bin/env python3
"""
highway/vehicle.py
==================
Vehicle presets and the vehicle dynamics handle driven by each agent.

No multibody chassis, powertrain or tire model is simulated.
:class:`KinematicVehicle` is a kinematic bicycle model exposing the same
contract, ``synchronize(time, steering, braking, throttle, terrain)``
then ``advance(dt)``, and producing pose, speed and drive-shaft speed.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, fields
from typing import Dict, Optional

from highway.geometry import Pose, quat_from_yaw
from highway.terrain import RigidTerrain

log = logging.getLogger("vehicle")

GRAVITY = 9.81          # m/s²
AIR_DENSITY = 1.2       # kg/m³


@dataclass(frozen=True)
class VehicleSpec:
    """Immutable vehicle parameters.

    Attributes
    ----------
    name : str
        Preset name (``Sedan``, ``CityBus``).
    wheelbase_m : float
        Front-to-rear axle distance.
    max_steer_rad : float
        Road-wheel angle at full steering input.
    max_accel_mps2 : float
        Acceleration at full throttle on a level road.
    max_brake_mps2 : float
        Deceleration at full braking, before the friction limit.
    """

    name: str
    wheelbase_m: float
    max_steer_rad: float
    mass_kg: float
    max_accel_mps2: float
    max_brake_mps2: float
    drag_coefficient: float
    frontal_area_m2: float
    length_m: float
    width_m: float
    wheel_radius_m: float
    final_drive: float
    ride_height_m: float = 0.2

    @classmethod
    def from_json(cls, path: str) -> "VehicleSpec":
        """Load a preset from a JSON object whose keys are field names."""
        with open(path, "r") as fh:
            data = json.load(fh)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"{path}: unknown vehicle fields {unknown}")
        return cls(**data)


SEDAN = VehicleSpec(
    name="Sedan",
    wheelbase_m=2.8,
    max_steer_rad=0.61,
    mass_kg=1500.0,
    max_accel_mps2=3.0,
    max_brake_mps2=8.0,
    drag_coefficient=0.30,
    frontal_area_m2=2.2,
    length_m=4.7,
    width_m=1.9,
    wheel_radius_m=0.33,
    final_drive=3.5,
)

CITY_BUS = VehicleSpec(
    name="CityBus",
    wheelbase_m=7.0,
    max_steer_rad=0.6,
    mass_kg=13000.0,
    max_accel_mps2=1.2,
    max_brake_mps2=6.0,
    drag_coefficient=0.65,
    frontal_area_m2=8.0,
    length_m=12.0,
    width_m=2.55,
    wheel_radius_m=0.52,
    final_drive=4.9,
)

VEHICLE_SPECS: Dict[str, VehicleSpec] = {s.name: s for s in (SEDAN, CITY_BUS)}


def vehicle_spec(name: str) -> VehicleSpec:
    """Look up a preset by name (``Sedan`` or ``CityBus``)."""
    try:
        return VEHICLE_SPECS[name]
    except KeyError:
        raise ValueError(
            f"unknown vehicle type {name!r}; expected one of {sorted(VEHICLE_SPECS)}"
        ) from None


class KinematicVehicle:
    """Kinematic bicycle model standing in for the full vehicle.

    Parameters
    ----------
    spec : VehicleSpec
        Vehicle preset.
    pose : Pose
        Initial chassis pose; only the yaw of the orientation is kept.
    speed : float
        Initial forward speed (m/s).
    """

    def __init__(self, spec: VehicleSpec, pose: Pose, speed: float = 0.0) -> None:
        self.spec = spec
        self.x, self.y, self.z = (float(v) for v in pose.position)
        self.yaw = pose.yaw
        self.speed = max(0.0, float(speed))
        self.time = 0.0
        self.steering = 0.0
        self.throttle = 0.0
        self.braking = 0.0
        self._terrain: Optional[RigidTerrain] = None
        log.debug("%s spawned at (%.1f, %.1f) yaw=%.2f", spec.name, self.x, self.y, self.yaw)

    # ── vehicle handle contract ───────────────────────────────────────────

    def synchronize(self, time: float, steering: float, braking: float,
                    throttle: float, terrain: Optional[RigidTerrain]) -> None:
        """Latch driver inputs (clamped) and the terrain for the next advance."""
        self.time = time
        self.steering = min(1.0, max(-1.0, steering))
        self.braking = min(1.0, max(0.0, braking))
        self.throttle = min(1.0, max(0.0, throttle))
        self._terrain = terrain

    def advance(self, dt: float) -> None:
        spec = self.spec
        v = self.speed
        if self._terrain is not None:
            material = self._terrain.material
            brake_limit = min(spec.max_brake_mps2, material.friction * GRAVITY)
            rolling = material.rolling_resistance * GRAVITY if v > 0.0 else 0.0
        else:
            brake_limit = spec.max_brake_mps2
            rolling = 0.0
        drag = 0.5 * AIR_DENSITY * spec.drag_coefficient * spec.frontal_area_m2 * v * v / spec.mass_kg

        accel = self.throttle * spec.max_accel_mps2 - self.braking * brake_limit - drag - rolling
        v_new = max(0.0, v + accel * dt)
        v_mid = 0.5 * (v + v_new)

        delta = self.steering * spec.max_steer_rad
        self.yaw += v_mid * math.tan(delta) / spec.wheelbase_m * dt
        self.x += v_mid * math.cos(self.yaw) * dt
        self.y += v_mid * math.sin(self.yaw) * dt
        if self._terrain is not None:
            self.z = self._terrain.get_height(self.x, self.y) + spec.ride_height_m
        self.speed = v_new
        self.time += dt

    # ── outputs ───────────────────────────────────────────────────────────

    @property
    def pose(self) -> Pose:
        return Pose((self.x, self.y, self.z), quat_from_yaw(self.yaw))

    @property
    def driveshaft_speed(self) -> float:
        """Drive-shaft angular speed (rad/s) implied by the wheel speed."""
        return self.speed / self.spec.wheel_radius_m * self.spec.final_drive
