#!/usr/bin/env python3
"""
highway/runner.py
=================
Rank loop and the two launchers.

* :func:`run_rank` — build one rank's agent and sinks, run the lockstep
  loop, close everything.
* :func:`run_threaded` — every rank on a thread of this process
  (in-process queues).  Used by tests and ``--threads``.
* :func:`run_processes` — one OS process per rank (multiprocessing
  queues).  The coordinator always runs on a thread of the launcher.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
import os
import queue
import signal
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import config
from highway.scenario import HighwaySettings, build_agent
from highway.sync_manager import SyncManager
from syncbus.hub import SyncHub
from viz.sinks import VisualizationManager

log = logging.getLogger("runner")


@dataclass(frozen=True)
class RunOptions:
    """Everything a rank needs to build itself; picklable for ``spawn``."""

    num_ranks: int = config.DEFAULT_NUM_RANKS
    step_size: float = config.STEP_SIZE
    end_time: float = config.END_TIME
    sync_timeout_s: float = config.SYNC_TIMEOUT_S
    join_timeout_s: float = config.JOIN_TIMEOUT_S
    drop_rate: float = config.DEFAULT_DROP_RATE
    latency_ms: int = config.DEFAULT_LATENCY_MS
    irr: Tuple[int, ...] = ()
    sens: Tuple[int, ...] = ()
    sens_save: bool = False
    sens_vis: bool = False
    sensor_dir: str = config.SENSOR_OUTPUT_DIR
    telemetry_dir: Optional[str] = None
    highway: HighwaySettings = field(default_factory=HighwaySettings)
    log_level: int = logging.INFO
    log_dir: str = config.LOG_DIR


@dataclass
class RankResult:
    """What a rank reports back once its loop ended."""

    rank: int
    ticks: int
    time: float
    advances: int
    status: str
    error: str = ""


def build_visualization(rank: int, options: RunOptions) -> Optional[VisualizationManager]:
    """Sinks selected for *rank* on the command line, or None."""
    sinks: List[Any] = []
    if rank in options.irr or rank in options.sens:
        from viz.pygame_view import CameraSink, ChaseView

        if rank in options.irr:
            sinks.append(ChaseView(config.WINDOW_WIDTH, config.WINDOW_HEIGHT, config.TARGET_FPS))
        if rank in options.sens:
            save_dir = os.path.join(options.sensor_dir, f"Highway{rank}") if options.sens_save else None
            sinks.append(CameraSink(size=(config.CAMERA_WIDTH, config.CAMERA_HEIGHT),
                                    save_dir=save_dir, show=options.sens_vis))
    if options.telemetry_dir:
        from viz.telemetry import TelemetrySink

        sinks.append(TelemetrySink(os.path.join(options.telemetry_dir, f"rank{rank}.csv")))
    return VisualizationManager(sinks) if sinks else None


def run_rank(rank: int, endpoint: Any, options: RunOptions,
             managers: Optional[Dict[int, SyncManager]] = None) -> RankResult:
    """Build and run one rank until :meth:`SyncManager.is_ok` turns false.

    *managers*, when given, receives the rank's manager before the loop
    starts so a launcher can request a stop.
    """
    manager = SyncManager(rank, options.num_ranks, endpoint, options.step_size, options.end_time)
    if managers is not None:
        managers[rank] = manager
    try:
        agent = build_agent(rank, options.highway, build_visualization(rank, options))
        manager.add_agent(agent, rank)
        manager.initialize()
        while manager.is_ok():
            manager.advance()
            manager.synchronize()
            manager.update()
    except Exception as exc:
        log.exception("rank %d aborted", rank)
        return RankResult(rank, manager.tick, manager.time, manager.advances,
                          manager.status, error=f"{type(exc).__name__}: {exc}")
    finally:
        manager.close()
    return RankResult(rank, manager.tick, manager.time, manager.advances, manager.status)


# ── Threaded launcher ─────────────────────────────────────────────────────────

def run_threaded(options: RunOptions) -> Dict[int, RankResult]:
    """Run every rank on its own thread; returns ``rank → RankResult``."""
    hub, endpoints = SyncHub.local(
        options.num_ranks, options.sync_timeout_s, options.join_timeout_s,
        drop_rate=options.drop_rate, latency_ms=options.latency_ms,
    )
    hub.start()
    results: Dict[int, RankResult] = {}
    managers: Dict[int, SyncManager] = {}

    def _target(rank: int) -> None:
        results[rank] = run_rank(rank, endpoints[rank], options, managers)

    threads = [
        threading.Thread(target=_target, args=(r,), name=f"rank-{r}", daemon=True)
        for r in range(options.num_ranks)
    ]
    for t in threads:
        t.start()
    try:
        for t in threads:
            while t.is_alive():
                t.join(0.2)
    except KeyboardInterrupt:
        log.info("interrupted; asking every rank to stop")
        for manager in list(managers.values()):
            manager.request_stop("interrupted")
        for t in threads:
            t.join()

    last = hub.join(timeout=options.sync_timeout_s)
    log.info("run finished: %s | hub %s", last.reason if last else "no snapshot", hub.metrics.report())
    return results


# ── Multi-process launcher ────────────────────────────────────────────────────

def _process_main(rank: int, endpoint: Any, options: RunOptions, results: Any) -> None:
    from logging_setup import setup_logging

    setup_logging(options.log_level, rank=rank, log_dir=options.log_dir)
    managers: Dict[int, SyncManager] = {}

    def _on_sigint(signum, frame) -> None:
        manager = managers.get(rank)
        if manager is not None:
            manager.request_stop("SIGINT")

    signal.signal(signal.SIGINT, _on_sigint)
    result = run_rank(rank, endpoint, options, managers)
    results.put(result)


def run_processes(options: RunOptions) -> Dict[int, RankResult]:
    """Run every rank in its own process; returns ``rank → RankResult``."""
    ctx = mp.get_context("spawn")
    hub, endpoints = SyncHub.multiprocess(
        options.num_ranks, options.sync_timeout_s, options.join_timeout_s, ctx=ctx,
        drop_rate=options.drop_rate, latency_ms=options.latency_ms,
    )
    results_q = ctx.Queue()
    procs = [
        ctx.Process(target=_process_main, args=(r, endpoints[r], options, results_q),
                    name=f"rank-{r}")
        for r in range(options.num_ranks)
    ]
    hub.start()
    for p in procs:
        p.start()

    results: Dict[int, RankResult] = {}
    while len(results) < len(procs):
        if not any(p.is_alive() for p in procs) and results_q.empty():
            break
        try:
            result = results_q.get(timeout=0.5)
        except queue.Empty:
            continue
        except KeyboardInterrupt:
            # the children got the same SIGINT and stop at the next barrier
            log.info("interrupted; waiting for ranks to stop")
            continue
        results[result.rank] = result
    for p in procs:
        p.join()
        if p.exitcode:
            log.error("%s exited with code %s", p.name, p.exitcode)

    last = hub.join(timeout=options.sync_timeout_s)
    log.info("run finished: %s | hub %s", last.reason if last else "no snapshot", hub.metrics.report())
    return results
