#!/usr/bin/env python3
"""
Agent tests: one-time bindings, read-only views, environment signals.
"""

from __future__ import annotations

import unittest

from highway.agent import (
    AgentBindingError,
    AgentKind,
    EnvironmentAgent,
    SignalCycle,
    SimulationClock,
    VehicleAgent,
)
from highway.scenario import build_vehicle_agent
from highway.terrain import RigidTerrain
from highway.geometry import Pose
from highway.vehicle import SEDAN, KinematicVehicle


class BindingTests(unittest.TestCase):
    def test_each_binding_happens_once(self) -> None:
        agent = VehicleAgent(0)
        agent.set_vehicle(KinematicVehicle(SEDAN, Pose.from_yaw(0.0, 0.0, 0.2, 0.0)))
        agent.set_terrain(RigidTerrain())
        with self.assertRaises(AgentBindingError):
            agent.set_vehicle(KinematicVehicle(SEDAN, Pose.from_yaw(1.0, 0.0, 0.2, 0.0)))
        with self.assertRaises(AgentBindingError):
            agent.set_terrain(RigidTerrain(height=1.0))

    def test_no_binding_after_lock(self) -> None:
        agent = VehicleAgent(0)
        agent.lock()
        with self.assertRaises(AgentBindingError):
            agent.set_brain(object())
        with self.assertRaises(AgentBindingError):
            agent.set_terrain(RigidTerrain())

    def test_missing_components_are_reported(self) -> None:
        agent = VehicleAgent(2)
        agent.set_terrain(RigidTerrain())
        problems = agent.problems()
        self.assertEqual(len(problems), 3)  # clock, vehicle, brain
        self.assertTrue(all(p.startswith("rank 2") for p in problems))

    def test_scenario_agent_is_complete(self) -> None:
        agent = build_vehicle_agent(1)
        agent.bind_clock(SimulationClock(0.01).view())
        self.assertEqual(agent.problems(), [])
        self.assertIs(agent.kind, AgentKind.VEHICLE)


class ViewTests(unittest.TestCase):
    def test_clock_view_is_read_only(self) -> None:
        clock = SimulationClock(0.5)
        view = clock.view()
        clock.advance()
        clock.advance()
        self.assertEqual(view.tick, 2)
        self.assertAlmostEqual(view.time, 1.0)
        with self.assertRaises(AttributeError):
            view.time = 3.0

    def test_vehicle_view_is_read_only(self) -> None:
        agent = build_vehicle_agent(0)
        view = agent.get_vehicle()
        self.assertAlmostEqual(view.pose.position[1], -70.0)
        self.assertEqual(view.spec.name, "Sedan")
        with self.assertRaises(AttributeError):
            view.speed = 99.0

    def test_advance_moves_vehicle(self) -> None:
        agent = build_vehicle_agent(0)
        clock = SimulationClock(0.05)
        agent.bind_clock(clock.view())
        for _ in range(20):
            agent.advance(clock.step)
            clock.advance()
        view = agent.get_vehicle()
        self.assertGreater(view.speed, 0.0)
        self.assertGreater(view.pose.position[1], -70.0)
        self.assertAlmostEqual(view.pose.position[2], 0.2)


class EnvironmentTests(unittest.TestCase):
    def test_signal_cycle_phases(self) -> None:
        cycle = SignalCycle()
        self.assertEqual(cycle.period, 20.0)
        self.assertEqual(cycle.phase_at(0.0), "GREEN")
        self.assertEqual(cycle.phase_at(9.0), "YELLOW")
        self.assertEqual(cycle.phase_at(15.0), "RED")
        self.assertEqual(cycle.phase_at(21.0), "GREEN")
        with self.assertRaises(ValueError):
            SignalCycle(phases=(("GREEN", 0.0),))

    def test_environment_state_carries_signals(self) -> None:
        agent = EnvironmentAgent(4, position=(0.0, 10.0, 0.0),
                                 cycle=SignalCycle((("GREEN", 1.0), ("RED", 1.0))))
        clock = SimulationClock(0.5)
        agent.bind_clock(clock.view())
        self.assertEqual(agent.problems(), [])
        with self.assertRaises(AgentBindingError):
            agent.bind_clock(clock.view())

        agent.advance(clock.step)
        self.assertEqual(agent.state(1, 0.5).signals, {"light": "GREEN"})
        clock.advance()
        agent.advance(clock.step)
        state = agent.state(2, 1.0)
        self.assertEqual(state.kind, "environment")
        self.assertEqual(state.signals, {"light": "RED"})


if __name__ == "__main__":
    unittest.main()
