#!/usr/bin/env python3
"""
config.py
=========
Application-wide configuration constants.

Every value can be overridden with a ``HIGHWAY_<NAME>`` environment
variable (e.g. ``HIGHWAY_STEP_SIZE=0.005``); command-line flags in
:mod:`main` override both.  This module is a thin, import-safe leaf — it
never imports from other project packages.
"""

import os


def _env(name: str, default, cast=float):
    raw = os.environ.get(f"HIGHWAY_{name}")
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"HIGHWAY_{name}={raw!r} is not a valid {cast.__name__}") from None


# ── Simulation defaults ──────────────────────────────────────────────────────
DEFAULT_NUM_RANKS: int = _env("NUM_RANKS", 3, int)
STEP_SIZE: float = _env("STEP_SIZE", 0.01)
END_TIME: float = _env("END_TIME", 20.0)

# ── Coordinator defaults ─────────────────────────────────────────────────────
SYNC_TIMEOUT_S: float = _env("SYNC_TIMEOUT_S", 5.0)
JOIN_TIMEOUT_S: float = _env("JOIN_TIMEOUT_S", 30.0)
DEFAULT_DROP_RATE: float = _env("DROP_RATE", 0.0)
DEFAULT_LATENCY_MS: int = _env("LATENCY_MS", 0, int)

# ── Path switch (highway demo) ───────────────────────────────────────────────
SWITCH_RANK: int = _env("SWITCH_RANK", 0, int)
SWITCH_TIME_S: float = _env("SWITCH_TIME_S", 6.0)
SWITCH_INDEX: int = _env("SWITCH_INDEX", 1, int)

# ── Output ───────────────────────────────────────────────────────────────────
SENSOR_OUTPUT_DIR: str = _env("SENSOR_OUTPUT_DIR", "SENSOR_OUTPUT", str)
LOG_DIR: str = _env("LOG_DIR", ".", str)
CAMERA_WIDTH: int = _env("CAMERA_WIDTH", 1280, int)
CAMERA_HEIGHT: int = _env("CAMERA_HEIGHT", 720, int)

# ── UI defaults ──────────────────────────────────────────────────────────────
WINDOW_WIDTH: int = _env("WINDOW_WIDTH", 1000, int)
WINDOW_HEIGHT: int = _env("WINDOW_HEIGHT", 700, int)
TARGET_FPS: int = _env("TARGET_FPS", 60, int)
