#!/usr/bin/env python3
"""
highway/sync_manager.py
=======================
Per-rank synchronization manager: the lockstep loop guard.

Each rank owns one :class:`SyncManager` and one agent.  The loop is::

    manager.initialize()
    while manager.is_ok():
        manager.advance()       # local physics, no communication
        manager.synchronize()   # global barrier through the coordinator
        manager.update()        # peer states → perception, clock, sinks
    manager.close()

Peer failures and stop requests never raise across ranks; they show up
as ``is_ok() == False`` on every surviving rank.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from highway.agent import SimulationClock
from syncbus.message import AgentState, Hello, Snapshot

log = logging.getLogger("sync_manager")

_TIME_EPS = 1e-9


class ConfigurationError(RuntimeError):
    """Fatal setup problem detected before the first tick."""


class SyncManager:
    """Lockstep synchronization for the agent of one rank.

    Parameters
    ----------
    rank : int
        This process's rank.
    num_ranks : int
        Total ranks in the run; every rank must agree.
    endpoint : RankEndpoint
        Connection to the coordinator.
    step_size : float
        Fixed step in seconds; every rank must agree.
    end_time : float
        Simulated time limit in seconds; ``<= 0`` runs until stopped.
    """

    def __init__(
        self,
        rank: int,
        num_ranks: int,
        endpoint: Any,
        step_size: float,
        end_time: float = 0.0,
    ) -> None:
        if not 0 <= rank < num_ranks:
            raise ConfigurationError(f"rank {rank} outside 0..{num_ranks - 1}")
        self.rank = rank
        self.num_ranks = num_ranks
        self.end_time = float(end_time)
        self.clock = SimulationClock(step_size)
        self._endpoint = endpoint
        self._agent: Any = None
        self._peers: Dict[int, AgentState] = {}
        self._pending: Optional[Snapshot] = None
        self._initialized = False
        self._stop_requested = ""
        self._stopped = ""
        self._failure = ""
        self.advances = 0

    # ── setup ─────────────────────────────────────────────────────────────

    def add_agent(self, agent: Any, rank: int) -> None:
        """Register the agent owned by *rank* (which must be this rank)."""
        if self._initialized:
            raise ConfigurationError("add_agent called after initialize")
        if rank != self.rank:
            raise ConfigurationError(f"rank {self.rank} cannot own an agent for rank {rank}")
        if agent.rank != rank:
            raise ConfigurationError(f"agent for rank {agent.rank} registered as rank {rank}")
        if self._agent is not None:
            raise ConfigurationError(f"rank {rank} already has an agent")
        agent.bind_clock(self.clock.view())
        self._agent = agent

    @property
    def settings(self) -> Dict[str, Any]:
        """Global configuration every rank must share."""
        return {
            "num_ranks": self.num_ranks,
            "step_size": self.clock.step,
            "end_time": self.end_time,
        }

    def initialize(self) -> None:
        """Validate the local agent and join the coordinator.

        Raises
        ------
        ConfigurationError
            Called twice, no agent, unbound agent components, invalid
            trigger indices, or the coordinator rejected the join.
        """
        if self._initialized:
            raise ConfigurationError("initialize called twice")
        problems = self._agent.problems() if self._agent is not None else [
            f"rank {self.rank} has no agent"
        ]
        if problems:
            # peers waiting in the handshake see this rank as disconnected
            self._endpoint.leave()
            raise ConfigurationError("; ".join(problems))
        self._agent.lock()

        hello = Hello(rank=self.rank, settings=self.settings,
                      state=self._agent.state(0, self.clock.time))
        snap = self._endpoint.join(hello)
        if not snap.ok:
            self._endpoint.leave()
            raise ConfigurationError(f"rank {self.rank}: coordinator rejected join: {snap.reason}")
        missing = sorted(set(range(self.num_ranks)) - set(snap.states))
        if missing:
            self._endpoint.leave()
            raise ConfigurationError(f"rank {self.rank}: no agent for rank(s) {missing}")

        self._initialized = True
        self._peers = {r: s for r, s in snap.states.items() if r != self.rank}
        self._agent.observe(self._peers, self.clock.tick)
        log.info("rank %d initialized: %d rank(s), step=%.4fs, end=%.2fs",
                 self.rank, self.num_ranks, self.clock.step, self.end_time)

    # ── loop ──────────────────────────────────────────────────────────────

    def is_ok(self) -> bool:
        if not self._initialized or self._failure or self._stopped:
            return False
        return self.end_time <= 0.0 or self.clock.time < self.end_time - _TIME_EPS

    def advance(self) -> None:
        """Integrate the local agent by one step."""
        if not self._initialized:
            raise RuntimeError("advance called before initialize")
        self._agent.advance(self.clock.step)
        self.advances += 1

    def synchronize(self) -> bool:
        """Publish this tick's state and wait for every rank's.

        Returns True when the barrier closed; on failure nothing is kept
        and :meth:`is_ok` turns false.
        """
        tick = self.clock.tick + 1
        state = self._agent.state(tick, self.clock.time + self.clock.step,
                                  stop=bool(self._stop_requested))
        snap = self._endpoint.exchange(state)
        self._pending = None

        if snap.ok and snap.tick != tick:
            snap = Snapshot(tick=tick, ok=False,
                            reason=f"coordinator answered tick {snap.tick}, expected {tick}")
        elif snap.ok and set(snap.states) != set(range(self.num_ranks)):
            snap = Snapshot(tick=tick, ok=False,
                            reason=f"incomplete snapshot for tick {tick}: ranks {sorted(snap.states)}")
        if not snap.ok:
            self._failure = snap.reason or "synchronization failed"
            log.error("rank %d sync failed at tick %d: %s", self.rank, tick, self._failure)
            return False

        self._pending = snap
        return True

    def update(self) -> None:
        """Commit the last snapshot: peers, clock, perception, sinks."""
        snap = self._pending
        if snap is None:
            return
        self._pending = None
        self._peers = {r: s for r, s in snap.states.items() if r != self.rank}
        self.clock.advance()
        self._agent.observe(self._peers, self.clock.tick)
        if snap.stop:
            self._stopped = snap.reason or "stop requested"
            log.info("rank %d stopping at tick %d: %s", self.rank, self.clock.tick, self._stopped)
        elif not self._stop_requested and self._agent.stop_reason:
            self.request_stop(self._agent.stop_reason)

    def request_stop(self, reason: str = "stop requested") -> None:
        """Ask every rank to stop after the next barrier."""
        if not self._stop_requested:
            log.info("rank %d requesting stop: %s", self.rank, reason)
        self._stop_requested = reason or "stop requested"

    def close(self) -> None:
        """Leave the coordinator and close the agent's sinks."""
        self._endpoint.leave()
        if self._agent is not None:
            self._agent.close()
        log.info("rank %d closed at t=%.3fs after %d tick(s)%s", self.rank, self.clock.time,
                 self.clock.tick, f" ({self.status})" if self.status else "")

    # ── views ─────────────────────────────────────────────────────────────

    @property
    def peers(self) -> Mapping[int, AgentState]:
        return MappingProxyType(self._peers)

    @property
    def agent(self) -> Any:
        return self._agent

    @property
    def time(self) -> float:
        return self.clock.time

    @property
    def tick(self) -> int:
        return self.clock.tick

    @property
    def failure(self) -> str:
        return self._failure

    @property
    def status(self) -> str:
        """Why the loop ended ('' while it may continue or after the time limit)."""
        if self._failure:
            return f"failed: {self._failure}"
        if self._stopped:
            return f"stopped: {self._stopped}"
        return ""
