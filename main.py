#!/usr/bin/env python3
"""
main.py
=======
Command-line entry point of the highway demo.

Examples
--------
Three ranks in separate processes, a chase window on rank 0::

    python main.py --num-ranks 3 --irr 0

Everything on threads, saving overhead-camera frames of rank 1::

    python main.py --threads --sens 1 --sens-save

Rank 2 as a traffic light instead of a bus::

    python main.py --threads --env-rank 2 --telemetry-dir out
"""

import argparse
import logging
import sys
from typing import List, Optional

import config
from highway.runner import RunOptions, run_processes, run_threaded
from highway.scenario import HighwaySettings
from logging_setup import setup_logging


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Lockstep multi-rank highway simulation.")
    p.add_argument("--num-ranks", type=int, default=config.DEFAULT_NUM_RANKS,
                   help="number of ranks, one vehicle each")
    p.add_argument("--step-size", type=float, default=config.STEP_SIZE,
                   help="fixed simulation step in seconds")
    p.add_argument("--end-time", type=float, default=config.END_TIME,
                   help="simulated seconds to run; <= 0 runs until interrupted")
    p.add_argument("--sync-timeout", type=float, default=config.SYNC_TIMEOUT_S,
                   help="seconds the coordinator waits for one barrier")
    p.add_argument("--join-timeout", type=float, default=config.JOIN_TIMEOUT_S,
                   help="seconds the coordinator waits for every rank to join")
    p.add_argument("--drop-rate", type=float, default=config.DEFAULT_DROP_RATE,
                   help="probability a rank drops its state message (fault injection)")
    p.add_argument("--latency-ms", type=int, default=config.DEFAULT_LATENCY_MS,
                   help="simulated latency before each state message")

    vis = p.add_argument_group("visualization")
    vis.add_argument("--irr", type=int, nargs="*", default=[], metavar="RANK",
                     help="ranks that open a chase-camera window")
    vis.add_argument("--sens", type=int, nargs="*", default=[], metavar="RANK",
                     help="ranks that run the overhead camera")
    vis.add_argument("--sens-save", action="store_true",
                     help=f"save camera frames to {config.SENSOR_OUTPUT_DIR}/Highway<rank>/")
    vis.add_argument("--sens-vis", action="store_true", help="show the camera image in a window")
    vis.add_argument("--telemetry-dir", default=None,
                     help="write rank<N>.csv telemetry files to this directory")

    sw = p.add_argument_group("path switch")
    sw.add_argument("--switch-rank", type=int, default=config.SWITCH_RANK,
                    help="rank given a second lane and a path-switch trigger (-1 disables)")
    sw.add_argument("--switch-time", type=float, default=config.SWITCH_TIME_S,
                    help="simulated time of the switch")
    sw.add_argument("--switch-index", type=int, default=config.SWITCH_INDEX,
                    help="path index switched to")
    sw.add_argument("--switch-every", type=float, default=None,
                    help="re-arm period of the trigger (default: one shot)")

    p.add_argument("--env-rank", type=int, nargs="*", default=[], metavar="RANK",
                   help="ranks that own a traffic light instead of a vehicle")

    p.add_argument("--threads", action="store_true",
                   help="run ranks as threads of one process instead of processes")
    p.add_argument("--log-level", default="INFO",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    p.add_argument("--log-dir", default=config.LOG_DIR)
    return p


def options_from_args(args: argparse.Namespace) -> RunOptions:
    switch_rank = args.switch_rank if args.switch_rank >= 0 else None
    multipath = tuple(sorted({1} | ({switch_rank} if switch_rank is not None else set())))
    return RunOptions(
        num_ranks=args.num_ranks,
        step_size=args.step_size,
        end_time=args.end_time,
        sync_timeout_s=args.sync_timeout,
        join_timeout_s=args.join_timeout,
        drop_rate=args.drop_rate,
        latency_ms=args.latency_ms,
        irr=tuple(args.irr),
        sens=tuple(args.sens),
        sens_save=args.sens_save,
        sens_vis=args.sens_vis,
        telemetry_dir=args.telemetry_dir,
        highway=HighwaySettings(
            switch_rank=switch_rank,
            switch_time=args.switch_time,
            switch_index=args.switch_index,
            switch_every=args.switch_every,
            multipath_ranks=multipath,
            env_ranks=tuple(args.env_rank),
        ),
        log_level=getattr(logging, args.log_level),
        log_dir=args.log_dir,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.num_ranks < 1:
        build_parser().error("--num-ranks must be at least 1")
    options = options_from_args(args)

    setup_logging(options.log_level, log_dir=options.log_dir)
    log = logging.getLogger("main")
    log.info("Starting %d rank(s) (%s), step=%.4fs, end=%.1fs", options.num_ranks,
             "threads" if args.threads else "processes", options.step_size, options.end_time)

    results = (run_threaded if args.threads else run_processes)(options)

    failed = False
    for rank in range(options.num_ranks):
        res = results.get(rank)
        if res is None:
            log.error("rank %d reported nothing", rank)
            failed = True
            continue
        log.info("rank %d: %d tick(s), t=%.2fs %s%s", rank, res.ticks, res.time,
                 res.status or "time limit reached", f" error={res.error}" if res.error else "")
        failed = failed or bool(res.error) or res.status.startswith("failed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
