#!/usr/bin/env python3
"""
Geometry tests for paths, path sets and the look-ahead target.
"""

from __future__ import annotations

import math
import unittest

import numpy as np

from highway.controllers import SteeringController
from highway.path import InvalidPathIndex, Path, PathSet, PathTracker
from highway.policy import PIDGains

_SQUARE = [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]


def _look_ahead(path: Path, position, distance: float = 5.0) -> np.ndarray:
    ctl = SteeringController(PIDGains(0.4, 0.1, 0.2), look_ahead=distance)
    _, point = ctl.look_ahead_point(PathTracker(path), position)
    return point


class PathGeometryTests(unittest.TestCase):
    def test_length_and_points(self) -> None:
        path = Path([(0.0, 0.0, 0.2), (0.0, 140.0, 0.2)])
        self.assertAlmostEqual(path.length, 140.0)
        np.testing.assert_allclose(path.point_at(70.0), [0.0, 70.0, 0.2])
        self.assertAlmostEqual(path.heading_at(10.0), math.pi / 2)

    def test_duplicate_points_are_dropped(self) -> None:
        path = Path([(0.0, 0.0), (0.0, 0.0), (3.0, 4.0)])
        self.assertEqual(len(path), 2)
        self.assertAlmostEqual(path.length, 5.0)
        with self.assertRaises(ValueError):
            Path([(1.0, 1.0), (1.0, 1.0)])

    def test_closed_path_appends_start(self) -> None:
        path = Path(_SQUARE, closed=True)
        self.assertAlmostEqual(path.length, 40.0)
        np.testing.assert_allclose(path.waypoints[-1][:2], [0.0, 0.0])

    def test_project_reports_lateral_distance(self) -> None:
        path = Path([(0.0, 0.0), (100.0, 0.0)])
        s, dist = path.project((42.0, -3.0, 0.0))
        self.assertAlmostEqual(s, 42.0)
        self.assertAlmostEqual(dist, 3.0)


class LookAheadTests(unittest.TestCase):
    def test_look_ahead_distance_on_path(self) -> None:
        path = Path([(0.0, 0.0), (100.0, 0.0)])
        for x in (0.0, 17.5, 60.0, 95.0):
            point = _look_ahead(path, (x, 0.0, 0.0))
            self.assertAlmostEqual(float(np.hypot(*(point[:2] - [x, 0.0]))), 5.0, msg=f"x={x}")

    def test_look_ahead_clamps_at_open_end(self) -> None:
        path = Path([(0.0, 0.0), (100.0, 0.0)])
        point = _look_ahead(path, (98.0, 0.0, 0.0))
        np.testing.assert_allclose(point[:2], [100.0, 0.0])
        point = _look_ahead(path, (130.0, 0.0, 0.0))
        np.testing.assert_allclose(point[:2], [100.0, 0.0])

    def test_look_ahead_wraps_on_closed_path(self) -> None:
        path = Path(_SQUARE, closed=True)
        point = _look_ahead(path, (0.0, 2.0, 0.0))
        np.testing.assert_allclose(point[:2], [3.0, 0.0], atol=1e-9)

    def test_look_ahead_turns_corner(self) -> None:
        path = Path(_SQUARE, closed=False)
        point = _look_ahead(path, (8.0, 0.0, 0.0))
        np.testing.assert_allclose(point[:2], [10.0, 3.0], atol=1e-9)

    def test_look_ahead_distance_must_be_positive(self) -> None:
        ctl = SteeringController()
        for bad in (0.0, -1.0, float("nan"), float("inf")):
            with self.assertRaises(ValueError):
                ctl.set_look_ahead_distance(bad)
        self.assertEqual(ctl.look_ahead, 5.0)


class PathSetTests(unittest.TestCase):
    def setUp(self) -> None:
        self.a = Path([(0.0, 0.0), (0.0, 10.0)], name="a")
        self.b = Path([(5.0, 0.0), (5.0, 10.0)], name="b")

    def test_empty_set_has_no_active_path(self) -> None:
        paths = PathSet([])
        self.assertIsNone(paths.active_index)
        self.assertIsNone(paths.active)
        with self.assertRaises(InvalidPathIndex):
            paths.select(0)

    def test_pair_flag_overrides_path(self) -> None:
        paths = PathSet([(self.a, True), self.b])
        self.assertTrue(paths[0].closed)
        self.assertFalse(paths[1].closed)
        self.assertEqual(paths.active_index, 0)

    def test_invalid_indices_leave_selection(self) -> None:
        paths = PathSet([(self.a, False), (self.b, False)])
        paths.select(1)
        for bad in (-1, 2, True, 1.0, "0", None):
            with self.assertRaises(InvalidPathIndex, msg=repr(bad)):
                paths.select(bad)
            self.assertEqual(paths.active_index, 1)
        self.assertIs(paths.active, self.b)

    def test_invalid_index_is_an_index_error(self) -> None:
        self.assertTrue(issubclass(InvalidPathIndex, IndexError))


if __name__ == "__main__":
    unittest.main()
