#!/usr/bin/env python3
"""
Launcher tests: threaded runs, sink selection and command-line mapping.
"""

from __future__ import annotations

import os
import tempfile
import unittest

import pandas as pd

from highway.runner import RunOptions, build_visualization, run_threaded
from highway.scenario import HighwaySettings
from main import build_parser, options_from_args

FAST = dict(step_size=0.05, sync_timeout_s=2.0, join_timeout_s=5.0)


class ThreadedRunTests(unittest.TestCase):
    def test_ranks_finish_on_the_same_tick(self) -> None:
        results = run_threaded(RunOptions(num_ranks=2, end_time=0.2, **FAST))

        self.assertEqual(sorted(results), [0, 1])
        for res in results.values():
            self.assertEqual(res.ticks, 4)
            self.assertEqual(res.advances, 4)
            self.assertAlmostEqual(res.time, 0.2)
            self.assertEqual((res.status, res.error), ("", ""))

    def test_environment_rank_writes_signals(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            options = RunOptions(num_ranks=2, end_time=0.2, telemetry_dir=tmp,
                                 highway=HighwaySettings(env_ranks=(1,)), **FAST)
            results = run_threaded(options)

            self.assertTrue(all(r.error == "" for r in results.values()))
            light = pd.read_csv(os.path.join(tmp, "rank1.csv"))
            self.assertEqual(set(light["kind"]), {"environment"})
            self.assertEqual(set(light["signal_light"]), {"GREEN"})
            car = pd.read_csv(os.path.join(tmp, "rank0.csv"))
            self.assertEqual(set(car["kind"]), {"vehicle"})

    def test_local_setup_error_is_reported_by_every_rank(self) -> None:
        options = RunOptions(num_ranks=2, end_time=0.2,
                             highway=HighwaySettings(switch_index=5), **FAST)
        with self.assertLogs("runner", level="ERROR") as logs:
            results = run_threaded(options)

        self.assertTrue(results[0].error.startswith("ConfigurationError"))
        self.assertIn("index 5", results[0].error)
        self.assertTrue(results[1].error.startswith("ConfigurationError"))
        self.assertIn("disconnected", results[1].error)
        self.assertEqual((results[0].ticks, results[1].ticks), (0, 0))
        self.assertEqual(len(logs.records), 2)


class VisualizationSelectionTests(unittest.TestCase):
    def test_sinks_follow_rank_lists(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            options = RunOptions(irr=(0,), sens=(1,), sens_save=True,
                                 sensor_dir=os.path.join(tmp, "SENSOR_OUTPUT"))

            chase = build_visualization(0, options)
            self.assertEqual([s.name for s in chase.sinks], ["chase"])

            camera = build_visualization(1, options).sinks[0]
            expected = os.path.join(tmp, "SENSOR_OUTPUT", "Highway1")
            self.assertEqual(camera.save_dir, expected)
            self.assertTrue(os.path.isdir(expected))

            self.assertIsNone(build_visualization(2, options))

    def test_camera_without_saving_has_no_directory(self) -> None:
        camera = build_visualization(0, RunOptions(sens=(0,))).sinks[0]
        self.assertIsNone(camera.save_dir)


class CommandLineTests(unittest.TestCase):
    def _options(self, *argv: str) -> RunOptions:
        return options_from_args(build_parser().parse_args(list(argv)))

    def test_defaults(self) -> None:
        opts = self._options()
        self.assertEqual(opts.highway.switch_rank, 0)
        self.assertEqual(opts.highway.multipath_ranks, (0, 1))
        self.assertEqual(opts.highway.env_ranks, ())
        self.assertIsNone(opts.highway.switch_every)

    def test_negative_switch_rank_disables_switch(self) -> None:
        opts = self._options("--switch-rank", "-1")
        self.assertIsNone(opts.highway.switch_rank)
        self.assertEqual(opts.highway.multipath_ranks, (1,))

    def test_switch_and_rank_lists(self) -> None:
        opts = self._options(
            "--num-ranks", "4", "--switch-rank", "2", "--switch-time", "3",
            "--switch-index", "0", "--switch-every", "1.5",
            "--irr", "0", "--sens", "1", "2", "--sens-save", "--env-rank", "3",
            "--log-level", "DEBUG",
        )
        self.assertEqual(opts.num_ranks, 4)
        self.assertEqual(opts.highway.multipath_ranks, (1, 2))
        self.assertEqual((opts.highway.switch_rank, opts.highway.switch_time,
                          opts.highway.switch_index, opts.highway.switch_every), (2, 3.0, 0, 1.5))
        self.assertEqual((opts.irr, opts.sens, opts.sens_save), ((0,), (1, 2), True))
        self.assertEqual(opts.highway.env_ranks, (3,))
        self.assertEqual(opts.log_level, 10)


if __name__ == "__main__":
    unittest.main()
