#!/usr/bin/env python3
"""
highway/path.py
===============
Guidance geometry for the path-following drivers.

Defines :class:`Path` (an arc-length parameterised polyline that may be
closed), :class:`PathTracker` (closest-point search with a cached
parameter), and :class:`PathSet` (ordered candidate paths with one
active selection).
"""

from __future__ import annotations

import numbers
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

_EPS = 1e-9


class InvalidPathIndex(IndexError):
    """Raised when a path index does not name an element of the path set."""


# ── Path ──────────────────────────────────────────────────────────────────────

class Path:
    """Ordered waypoints joined by straight segments.

    Parameters
    ----------
    waypoints : array-like
        ``N x 3`` (or ``N x 2``, z = 0) points.  Consecutive duplicates
        are dropped; at least two distinct points must remain.
    closed : bool
        When *True* the last waypoint connects back to the first and
        path parameters wrap around; otherwise they clamp to the ends.
    name : str
        Label used in log lines and the UI.
    """

    def __init__(
        self,
        waypoints: Union[Sequence[Sequence[float]], np.ndarray],
        closed: bool = False,
        name: str = "",
    ) -> None:
        pts = np.asarray(waypoints, dtype=float)
        if pts.ndim != 2 or pts.shape[1] not in (2, 3):
            raise ValueError(f"waypoints must be N x 2 or N x 3, got shape {pts.shape}")
        if pts.shape[1] == 2:
            pts = np.column_stack([pts, np.zeros(len(pts))])
        if not np.all(np.isfinite(pts)):
            raise ValueError("waypoints must be finite")

        keep = [0] + [
            i for i in range(1, len(pts))
            if np.hypot(*(pts[i, :2] - pts[i - 1, :2])) > _EPS
        ] if len(pts) else []
        pts = pts[keep]
        if len(pts) < 2:
            raise ValueError("a path needs at least two distinct waypoints")

        self._source = pts.copy()
        self.closed = bool(closed)
        self.name = name
        if self.closed and np.hypot(*(pts[0, :2] - pts[-1, :2])) > _EPS:
            pts = np.vstack([pts, pts[0]])

        self._points = pts
        self._seg = np.diff(pts[:, :2], axis=0)
        self._seg_len = np.hypot(self._seg[:, 0], self._seg[:, 1])
        self._cum = np.concatenate([[0.0], np.cumsum(self._seg_len)])
        self.length = float(self._cum[-1])

    def __len__(self) -> int:
        return len(self._points)

    def __repr__(self) -> str:
        return (f"Path(name={self.name!r}, points={len(self)}, "
                f"length={self.length:.2f}, closed={self.closed})")

    @property
    def waypoints(self) -> np.ndarray:
        """Copy of the waypoints, including the closing point of a closed path."""
        return self._points.copy()

    def with_closed(self, closed: bool) -> "Path":
        """Same waypoints with a different ``closed`` flag."""
        return Path(self._source, closed=closed, name=self.name)

    # ── parameter helpers ─────────────────────────────────────────────────

    def normalize(self, s: float) -> float:
        """Wrap *s* on closed paths, clamp it to ``[0, length]`` otherwise."""
        if self.closed:
            return float(s % self.length)
        return float(min(max(s, 0.0), self.length))

    def advance(self, s: float, distance: float) -> float:
        """Parameter *distance* metres further along the path from *s*."""
        return self.normalize(s + distance)

    def param_gap(self, s_a: float, s_b: float) -> float:
        """Unsigned distance between two parameters (shortest way round if closed)."""
        gap = abs(s_a - s_b)
        if self.closed:
            gap = min(gap, self.length - gap)
        return gap

    def _segment(self, s: float) -> Tuple[int, float]:
        s = self.normalize(s)
        i = int(np.searchsorted(self._cum, s, side="right")) - 1
        i = min(max(i, 0), len(self._seg_len) - 1)
        return i, (s - self._cum[i]) / self._seg_len[i]

    # ── queries ───────────────────────────────────────────────────────────

    def point_at(self, s: float) -> np.ndarray:
        """World point ``(x, y, z)`` at parameter *s*."""
        i, t = self._segment(s)
        return self._points[i] + t * (self._points[i + 1] - self._points[i])

    def tangent_at(self, s: float) -> np.ndarray:
        """Planar unit tangent at parameter *s*."""
        i, _ = self._segment(s)
        return self._seg[i] / self._seg_len[i]

    def heading_at(self, s: float) -> float:
        tx, ty = self.tangent_at(s)
        return float(np.arctan2(ty, tx))

    def project(self, position: Sequence[float], hint: Optional[float] = None) -> Tuple[float, float]:
        """Closest point of the path to *position* in the XY plane.

        Parameters
        ----------
        position : sequence
            ``(x, y[, z])`` query point.
        hint : float or None
            Previously found parameter; breaks ties between equally close
            segments in favour of the one nearest the hint.

        Returns
        -------
        tuple
            ``(s, distance)``: parameter of the closest point and its
            planar distance from *position*.
        """
        p = np.asarray(position, dtype=float)[:2]
        a = self._points[:-1, :2]
        t = np.clip(((p - a) * self._seg).sum(axis=1) / self._seg_len ** 2, 0.0, 1.0)
        q = a + t[:, None] * self._seg
        dist = np.hypot(q[:, 0] - p[0], q[:, 1] - p[1])
        s_all = self._cum[:-1] + t * self._seg_len

        candidates = np.flatnonzero(dist <= dist.min() + _EPS)
        idx = int(candidates[0])
        if hint is not None and len(candidates) > 1:
            idx = int(min(candidates, key=lambda c: self.param_gap(s_all[c], hint)))
        return self.normalize(s_all[idx]), float(dist[idx])


# ── Closest-point tracker ─────────────────────────────────────────────────────

class PathTracker:
    """Closest-point search against one path, caching the last parameter."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.last_s: Optional[float] = None

    def closest(self, position: Sequence[float]) -> float:
        s, _ = self.path.project(position, hint=self.last_s)
        self.last_s = s
        return s

    def reset(self) -> None:
        self.last_s = None


# ── Path set ──────────────────────────────────────────────────────────────────

PathEntry = Union[Path, Tuple[Union[Path, Sequence[Sequence[float]]], bool]]


class PathSet:
    """Ordered candidate paths with exactly one active selection.

    Entries are :class:`Path` objects or ``(path, closed)`` pairs; a
    pair whose flag disagrees with the path's own ``closed`` wins.
    The active index starts at 0, or is ``None`` for an empty set.
    """

    def __init__(self, entries: Iterable[PathEntry] = ()) -> None:
        self._paths: List[Path] = []
        for entry in entries:
            if isinstance(entry, Path):
                path = entry
            else:
                path, closed = entry
                if not isinstance(path, Path):
                    path = Path(path, closed=closed)
                elif path.closed != bool(closed):
                    path = path.with_closed(closed)
            self._paths.append(path)
        self._active: Optional[int] = 0 if self._paths else None

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[Path]:
        return iter(self._paths)

    def __getitem__(self, index: int) -> Path:
        return self._paths[self.validate_index(index)]

    @property
    def active_index(self) -> Optional[int]:
        return self._active

    @property
    def active(self) -> Optional[Path]:
        return None if self._active is None else self._paths[self._active]

    def validate_index(self, index: int) -> int:
        """Return *index* as an int, or raise :class:`InvalidPathIndex`.

        Negative and out-of-range indices are rejected, never wrapped.
        """
        if isinstance(index, bool) or not isinstance(index, numbers.Integral):
            raise InvalidPathIndex(f"path index must be an int, got {index!r}")
        if not 0 <= index < len(self._paths):
            raise InvalidPathIndex(
                f"path index {index} out of range for {len(self._paths)} path(s)"
            )
        return int(index)

    def select(self, index: int) -> Path:
        """Make *index* the active path; the set is unchanged on error."""
        self._active = self.validate_index(index)
        return self._paths[self._active]
