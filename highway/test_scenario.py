#!/usr/bin/env python3
"""
Highway scenario tests: spawn table and the mid-run lane switch.
"""

from __future__ import annotations

import math
import threading
import unittest
from typing import List, Tuple

from highway.brain import PathSwitchTrigger
from highway.driver import DriverKind
from highway.path import Path
from highway.scenario import HighwaySettings, build_vehicle_agent, default_path, spawn
from highway.sync_manager import SyncManager
from syncbus.hub import SyncHub

STEP = 0.05


class SpawnTests(unittest.TestCase):
    def test_spawn_table(self) -> None:
        expected = {
            0: ("Sedan", (2.8, -70.0), 90.0),
            1: ("Sedan", (2.8, -40.0), 90.0),
            2: ("CityBus", (6.4, 0.0), 90.0),
            3: ("CityBus", (-6.4, 100.0), -90.0),
            4: ("Sedan", (-2.8, 70.0), -90.0),
            5: ("CityBus", (-6.4, 40.0), -90.0),
        }
        for rank, (name, xy, heading) in expected.items():
            spec, pose = spawn(rank)
            self.assertEqual(spec.name, name, msg=f"rank {rank}")
            self.assertAlmostEqual(pose.position[0], xy[0])
            self.assertAlmostEqual(pose.position[1], xy[1])
            self.assertAlmostEqual(pose.position[2], 0.2)
            self.assertAlmostEqual(math.degrees(pose.yaw), heading)

    def test_default_path_follows_heading(self) -> None:
        for rank in range(6):
            _, pose = spawn(rank)
            path = default_path(rank, pose)
            self.assertAlmostEqual(path.length, 140.0)
            self.assertAlmostEqual(path.heading_at(0.0), pose.yaw)

    def test_driver_selection(self) -> None:
        agents = [build_vehicle_agent(r) for r in range(3)]
        kinds = [a.brain.driver.kind for a in agents]
        self.assertEqual(kinds, [DriverKind.MULTI_PATH, DriverKind.SINGLE_PATH, DriverKind.SINGLE_PATH])
        self.assertEqual([a.brain.multipath for a in agents], [True, True, False])
        self.assertEqual(agents[0].brain.triggers[0].at_time, 6.0)
        self.assertEqual(agents[2].brain.driver.target_speed, 6.0)

    def test_switch_rank_can_be_disabled(self) -> None:
        agent = build_vehicle_agent(0, HighwaySettings(switch_rank=None))
        self.assertIs(agent.brain.driver.kind, DriverKind.SINGLE_PATH)
        self.assertEqual(agent.brain.triggers, [])


class LaneSwitchScenarioTests(unittest.TestCase):
    def test_rank0_switches_to_default_path_at_six_seconds(self) -> None:
        p1 = Path([(6.4, -70.0, 0.2), (6.4, 70.0, 0.2)], name="P1")
        _, pose = spawn(0)
        p2 = default_path(0, pose)

        hub, endpoints = SyncHub.local(2, timeout_s=2.0, join_timeout_s=5.0)
        hub.start()
        managers = [SyncManager(r, 2, endpoints[r], STEP, end_time=6.5) for r in range(2)]
        agent0 = build_vehicle_agent(0, path_pairs=[(p1, False), (p2, False)],
                                     triggers=[PathSwitchTrigger(at_time=6.0, path_index=1)])
        managers[0].add_agent(agent0, 0)
        managers[1].add_agent(build_vehicle_agent(1), 1)
        driver = agent0.brain.driver
        samples: List[Tuple[float, int, float]] = []

        def _loop(m: SyncManager) -> None:
            m.initialize()
            while m.is_ok():
                m.advance()
                if m.rank == 0:
                    samples.append((m.time, driver.active_index, float(driver.steering_controller.target[0])))
                m.synchronize()
                m.update()
            m.close()

        threads = [threading.Thread(target=_loop, args=(m,)) for m in managers]
        for t in threads:
            t.start()
        for t in threads:
            t.join(30.0)

        self.assertTrue(all(m.tick == 130 for m in managers))
        before = [s for s in samples if s[0] < 6.0 - 1e-9]
        after = [s for s in samples if s[0] >= 6.0 - 1e-9]
        self.assertEqual(len(after), 10)
        self.assertTrue(all(idx == 0 and abs(x - 6.4) < 1e-9 for _, idx, x in before))
        self.assertTrue(all(idx == 1 and abs(x - 2.8) < 1e-9 for _, idx, x in after))

        ctl = driver.steering_controller
        self.assertAlmostEqual(ctl.path_heading, p2.heading_at(ctl.closest_s))
        target_s, lateral = p2.project(ctl.target)
        self.assertAlmostEqual(lateral, 0.0)
        self.assertAlmostEqual(target_s, p2.advance(ctl.closest_s, 5.0))


if __name__ == "__main__":
    unittest.main()
