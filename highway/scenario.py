#!/usr/bin/env python3
"""
highway/scenario.py
===================
The highway demo: per-rank spawn point, vehicle type, target speed,
guidance paths and path-switch triggers.

Ranks 0–2 drive north (+y) in the east lanes; higher ranks alternate
Sedan / CityBus in the west lanes driving south.
Ranks listed in ``HighwaySettings.env_ranks`` own a traffic light
instead of a vehicle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

from highway.agent import EnvironmentAgent, VehicleAgent
from highway.brain import ACCBrain, PathSwitchTrigger
from highway.driver import MultiPathFollowerDriver, PathFollowerDriver
from highway.geometry import DEG_TO_RAD, Pose
from highway.path import Path
from highway.policy import ControllerPolicy, PIDGains
from highway.terrain import RigidTerrain
from highway.vehicle import CITY_BUS, SEDAN, KinematicVehicle, VehicleSpec
from viz.sinks import VisualizationManager

log = logging.getLogger("scenario")

PATH_LENGTH_M = 140.0
SPAWN_HEIGHT_M = 0.2
NORTH = 90.0 * DEG_TO_RAD
SOUTH = -90.0 * DEG_TO_RAD

HIGHWAY_POLICY = ControllerPolicy(
    steering_gains=PIDGains(0.4, 0.1, 0.2),
    look_ahead_m=5.0,
    speed_gains=PIDGains(0.4, 0.0, 0.0),
    target_following_time_s=1.2,
    target_min_distance_m=10.0,
    current_distance_m=100.0,
)


@dataclass(frozen=True)
class HighwaySettings:
    """Scenario knobs exposed on the command line.

    Attributes
    ----------
    switch_rank : int or None
        Rank given a multi-path driver and a path-switch trigger.
    switch_time : float
        Simulated time (s) of the switch.
    switch_index : int
        Path-set index switched to.
    switch_every : float or None
        Re-arm period of the trigger; ``None`` for one shot.
    multipath_ranks : tuple
        Ranks whose brain honours path-switch triggers.
    lane_x : float
        x of the alternative lane offered to ``switch_rank``.
    env_ranks : tuple
        Ranks that own a roadside traffic light instead of a vehicle.
    signal_position : tuple
        Where those lights stand, on the median.
    """

    switch_rank: Optional[int] = 0
    switch_time: float = 6.0
    switch_index: int = 1
    switch_every: Optional[float] = None
    multipath_ranks: Tuple[int, ...] = (0, 1)
    lane_x: float = 6.4
    env_ranks: Tuple[int, ...] = ()
    signal_position: Tuple[float, float, float] = (0.0, 30.0, 5.0)


def spawn(rank: int) -> Tuple[VehicleSpec, Pose]:
    """Vehicle preset and initial pose for *rank*."""
    if rank < 0:
        raise ValueError(f"rank must be >= 0, got {rank}")
    if rank in (0, 1):
        return SEDAN, Pose.from_yaw(2.8, -70.0 + 30.0 * rank, SPAWN_HEIGHT_M, NORTH)
    if rank == 2:
        return CITY_BUS, Pose.from_yaw(6.4, 0.0, SPAWN_HEIGHT_M, NORTH)
    y = 70.0 - (rank - 4) * 30.0
    if rank % 2 == 0:
        return SEDAN, Pose.from_yaw(-2.8, y, SPAWN_HEIGHT_M, SOUTH)
    return CITY_BUS, Pose.from_yaw(-6.4, y, SPAWN_HEIGHT_M, SOUTH)


def default_path(rank: int, pose: Pose) -> Path:
    """Straight path from the spawn point, 140 m along the spawn heading."""
    x, y, z = pose.position
    dy = PATH_LENGTH_M if rank < 3 else -PATH_LENGTH_M
    return Path([(x, y, z), (x, y + dy, z)], name=f"lane-{rank}")


def lane_path(x: float) -> Path:
    """Northbound lane at constant *x* over the highway section."""
    return Path([(x, -70.0, SPAWN_HEIGHT_M), (x, 70.0, SPAWN_HEIGHT_M)], name=f"x={x:g}")


def target_speed(rank: int) -> float:
    return 6.0 if rank == 2 else 10.0


def build_vehicle_agent(
    rank: int,
    settings: Optional[HighwaySettings] = None,
    vis: Optional[VisualizationManager] = None,
    path_pairs: Optional[Sequence[Tuple[Path, bool]]] = None,
    triggers: Optional[Sequence[PathSwitchTrigger]] = None,
    terrain: Optional[RigidTerrain] = None,
) -> VehicleAgent:
    """Assemble the agent of *rank*.

    *path_pairs* and *triggers* override the defaults; passing
    *path_pairs* always yields a multi-path driver.
    """
    settings = settings or HighwaySettings()
    spec, pose = spawn(rank)
    vehicle = KinematicVehicle(spec, pose)
    path = default_path(rank, pose)

    if path_pairs is None and rank == settings.switch_rank:
        path_pairs = [(path, False), (lane_path(settings.lane_x), False)]
    if triggers is None:
        triggers = []
        if rank == settings.switch_rank:
            triggers.append(PathSwitchTrigger(settings.switch_time, settings.switch_index,
                                              settings.switch_every))

    driver: Any
    if path_pairs is not None:
        driver = MultiPathFollowerDriver(vehicle, path_pairs, name="Highway",
                                         target_speed=target_speed(rank), policy=HIGHWAY_POLICY)
    else:
        driver = PathFollowerDriver(vehicle, path, name="Highway",
                                    target_speed=target_speed(rank), is_path_closed=False,
                                    policy=HIGHWAY_POLICY)

    brain = ACCBrain(rank, driver, triggers)
    if rank in settings.multipath_ranks:
        brain.set_multipath(True)

    agent = VehicleAgent(rank)
    agent.set_vehicle(vehicle)
    agent.set_terrain(terrain or RigidTerrain())
    agent.set_brain(brain)
    if vis is not None:
        agent.attach_visualization_manager(vis)
    log.debug("rank %d: %s, %s driver, %d trigger(s)", rank, spec.name,
              driver.kind.value, len(triggers))
    return agent



def build_environment_agent(
    rank: int,
    settings: Optional[HighwaySettings] = None,
    vis: Optional[VisualizationManager] = None,
) -> EnvironmentAgent:
    """A traffic light on the median broadcasting the default signal cycle."""
    settings = settings or HighwaySettings()
    agent = EnvironmentAgent(rank, settings.signal_position)
    if vis is not None:
        agent.attach_visualization_manager(vis)
    log.debug("rank %d: traffic light at %s", rank, agent.position)
    return agent


def build_agent(
    rank: int,
    settings: Optional[HighwaySettings] = None,
    vis: Optional[VisualizationManager] = None,
) -> Any:
    """Environment agent for ``settings.env_ranks``, vehicle otherwise."""
    settings = settings or HighwaySettings()
    if rank in settings.env_ranks:
        return build_environment_agent(rank, settings, vis)
    return build_vehicle_agent(rank, settings, vis)
