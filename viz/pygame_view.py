#!/usr/bin/env python3
"""
Pygame sinks for the highway ranks.

Module layout
─────────────
    viz/
    ├── sinks.py           – Frame, VisualizationSink, VisualizationManager
    ├── pygame_view.py     – TopDownRenderer, ChaseView, CameraSink (this file)
    └── telemetry.py       – TelemetrySink (pandas CSV)

:class:`ChaseView` is an interactive window centred on the rank's own
vehicle.  :class:`CameraSink` is an overhead camera sliding along the
highway; it renders off-screen, optionally shows the image in a window
and saves frames to disk.
"""

from __future__ import annotations

import logging
import math
import os
from typing import Optional, Sequence, Tuple

import pygame

from syncbus.message import AgentState

from .sinks import Frame, VisualizationSink

log = logging.getLogger("viz")

ColorRGB = Tuple[int, int, int]


class TopDownRenderer:
    """Draws road, path and vehicles seen from above onto a surface.

    World metres map to pixels with ``pixels_per_meter``; +y points up
    on screen.
    """

    BG_COLOR: ColorRGB = (15, 15, 15)
    ROAD_COLOR: ColorRGB = (30, 30, 30)
    LANE_DASH_COLOR: ColorRGB = (58, 58, 58)
    LANE_EDGE_COLOR: ColorRGB = (90, 90, 90)
    PATH_COLOR: ColorRGB = (0, 255, 127)
    TARGET_COLOR: ColorRGB = (255, 136, 0)
    SIGNAL_COLORS = {"GREEN": (0, 255, 127), "YELLOW": (246, 191, 90), "RED": (255, 60, 60)}

    VEHICLE_COLORS: Sequence[ColorRGB] = (
        (86, 168, 255),
        (255, 88, 88),
        (100, 226, 170),
        (246, 191, 90),
        (180, 120, 255),
        (255, 160, 100),
    )

    ROAD_HALF_WIDTH_M = 9.0
    LANE_XS_M = (-4.6, 0.0, 4.6)
    VEHICLE_SIZE_M = (4.7, 1.9)

    def __init__(self, pixels_per_meter: float = 4.0) -> None:
        self.pixels_per_meter = pixels_per_meter

    def to_screen(self, surface: pygame.Surface, center: Tuple[float, float],
                  x: float, y: float) -> Tuple[int, int]:
        w, h = surface.get_size()
        ppm = self.pixels_per_meter
        return (int(round(w * 0.5 + (x - center[0]) * ppm)),
                int(round(h * 0.5 - (y - center[1]) * ppm)))

    def draw(self, surface: pygame.Surface, frame: Frame, center: Tuple[float, float]) -> None:
        surface.fill(self.BG_COLOR)
        self._draw_road(surface, center)
        if len(frame.path) >= 2:
            pts = [self.to_screen(surface, center, x, y) for x, y in frame.path]
            pygame.draw.lines(surface, self.PATH_COLOR, False, pts, 2)
        if frame.target is not None:
            pygame.draw.circle(surface, self.TARGET_COLOR,
                               self.to_screen(surface, center, *frame.target), 4)
        for state in list(frame.peers.values()) + [frame.ego]:
            if state.kind == "environment":
                self._draw_signal(surface, center, state)
            else:
                self._draw_vehicle(surface, center, state)

    def _draw_road(self, surface: pygame.Surface, center: Tuple[float, float]) -> None:
        _, h = surface.get_size()
        left = self.to_screen(surface, center, -self.ROAD_HALF_WIDTH_M, 0.0)[0]
        right = self.to_screen(surface, center, self.ROAD_HALF_WIDTH_M, 0.0)[0]
        pygame.draw.rect(surface, self.ROAD_COLOR, pygame.Rect(left, 0, right - left, h))
        pygame.draw.line(surface, self.LANE_EDGE_COLOR, (left, 0), (left, h), 2)
        pygame.draw.line(surface, self.LANE_EDGE_COLOR, (right, 0), (right, h), 2)
        dash = max(2, int(3.0 * self.pixels_per_meter))
        for lane_x in self.LANE_XS_M:
            sx = self.to_screen(surface, center, lane_x, 0.0)[0]
            width = 2 if lane_x == 0.0 else 1
            for y0 in range(0, h, 2 * dash):
                pygame.draw.line(surface, self.LANE_DASH_COLOR, (sx, y0), (sx, y0 + dash), width)

    def _draw_vehicle(self, surface: pygame.Surface, center: Tuple[float, float],
                      state: AgentState) -> None:
        qw, _, _, qz = state.orientation
        yaw = 2.0 * math.atan2(qz, qw)
        half_l = 0.5 * self.VEHICLE_SIZE_M[0]
        half_w = 0.5 * self.VEHICLE_SIZE_M[1]
        c, s = math.cos(yaw), math.sin(yaw)
        x, y = state.position[0], state.position[1]
        corners = [
            (x + dx * c - dy * s, y + dx * s + dy * c)
            for dx, dy in ((half_l, half_w), (half_l, -half_w), (-half_l, -half_w), (-half_l, half_w))
        ]
        color = self.VEHICLE_COLORS[state.rank % len(self.VEHICLE_COLORS)]
        pygame.draw.polygon(surface, color, [self.to_screen(surface, center, *p) for p in corners])
        nose = self.to_screen(surface, center, x + half_l * c, y + half_l * s)
        pygame.draw.circle(surface, (255, 255, 255), nose, 2)

    def _draw_signal(self, surface: pygame.Surface, center: Tuple[float, float],
                     state: AgentState) -> None:
        color = self.SIGNAL_COLORS.get(str(state.signals.get("light", "")), (128, 128, 128))
        pygame.draw.circle(surface, color,
                           self.to_screen(surface, center, state.position[0], state.position[1]), 6)


class ChaseView(VisualizationSink):
    """Window following the rank's own vehicle, with a one-line HUD."""

    name = "chase"

    def __init__(self, width: int = 1000, height: int = 700, fps: int = 60,
                 pixels_per_meter: float = 4.0) -> None:
        self.width = width
        self.height = height
        self.fps = fps
        self.renderer = TopDownRenderer(pixels_per_meter)
        self.screen: Optional[pygame.Surface] = None
        self.clock: Optional[pygame.time.Clock] = None
        self.font: Optional[pygame.font.Font] = None
        self.closed = False

    def _open(self, rank: int) -> None:
        pygame.init()
        pygame.display.set_caption(f"Highway rank {rank}")
        self.screen = pygame.display.set_mode((self.width, self.height), pygame.RESIZABLE)
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("consolas", 14)

    def render(self, frame: Frame) -> None:
        if self.closed:
            return
        if self.screen is None:
            self._open(frame.rank)
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                log.info("chase window closed by user (rank %d)", frame.rank)
                self.stop_reason = "window closed"
                self.close()
                return
            if event.type == pygame.VIDEORESIZE:
                self.width, self.height = max(400, event.w), max(300, event.h)
                self.screen = pygame.display.set_mode((self.width, self.height), pygame.RESIZABLE)

        center = (frame.ego.position[0], frame.ego.position[1])
        self.renderer.draw(self.screen, frame, center)
        steering, throttle, braking = frame.inputs
        hud = (f"rank {frame.rank}  t={frame.time:6.2f}s  v={frame.ego.speed * 3.6:5.1f} km/h  "
               f"steer={steering:+.2f} thr={throttle:.2f} brk={braking:.2f}")
        self.screen.blit(self.font.render(hud, True, (230, 230, 230)), (10, 10))
        pygame.display.flip()
        self.clock.tick(self.fps)

    def close(self) -> None:
        if self.screen is not None:
            pygame.display.quit()
        self.screen = None
        self.closed = True


class CameraSink(VisualizationSink):
    """Overhead camera moving along the highway at a fixed speed.

    Parameters
    ----------
    start : tuple
        Initial camera position ``(x, y, z)``; z sets the zoom.
    speed_mps : float
        Camera speed along +y.
    size : tuple
        Image size in pixels.
    update_rate_hz : float
        Simulated frames per second actually rendered.
    save_dir : str or None
        Directory frames are written to (``frame_000000.bmp`` ...).
    show : bool
        Also display the image in a window.
    """

    name = "camera"

    def __init__(
        self,
        start: Tuple[float, float, float] = (20.0, -85.0, 15.0),
        speed_mps: float = 7.0,
        size: Tuple[int, int] = (1280, 720),
        update_rate_hz: float = 30.0,
        save_dir: Optional[str] = None,
        show: bool = False,
    ) -> None:
        self.start = tuple(float(v) for v in start)
        self.speed_mps = speed_mps
        self.size = size
        self.period = 1.0 / update_rate_hz
        self.save_dir = save_dir
        self.show = show
        # a 15 m high camera with a 60° field of view covers ~17 m across
        ppm = size[0] / (2.0 * self.start[2] * math.tan(math.pi / 6.0))
        self.renderer = TopDownRenderer(ppm)
        self.surface = pygame.Surface(size)
        self.window: Optional[pygame.Surface] = None
        self.saved = 0
        self._next_time = 0.0
        if save_dir:
            os.makedirs(save_dir, exist_ok=True)

    def position(self, time: float) -> Tuple[float, float, float]:
        x, y, z = self.start
        return (x, y + self.speed_mps * time, z)

    def render(self, frame: Frame) -> None:
        if frame.time + 1e-9 < self._next_time:
            return
        self._next_time = frame.time + self.period
        x, y, _ = self.position(frame.time)
        self.renderer.draw(self.surface, frame, (x, y))

        if self.save_dir:
            path = os.path.join(self.save_dir, f"frame_{self.saved:06d}.bmp")
            pygame.image.save(self.surface, path)
            self.saved += 1
        if self.show:
            if self.window is None:
                pygame.display.init()
                pygame.display.set_caption(f"Highway camera rank {frame.rank}")
                self.window = pygame.display.set_mode(self.size)
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    log.info("camera window closed by user (rank %d)", frame.rank)
                    self.stop_reason = "window closed"
                    self.show = False
                    pygame.display.quit()
                    self.window = None
                    return
            self.window.blit(self.surface, (0, 0))
            pygame.display.flip()

    def close(self) -> None:
        if self.window is not None:
            pygame.display.quit()
            self.window = None
        if self.save_dir:
            log.info("camera saved %d frame(s) to %s", self.saved, self.save_dir)
