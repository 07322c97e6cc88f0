"""
SyncHub: the single coordinator every rank talks to.

Supports:
    - Join handshake with global-configuration agreement
    - Per-tick barrier: one state per rank in, one full table out
    - Bounded waits that degrade to a failure snapshot instead of hanging
    - Cooperative stop propagation
    - Optional message drop and latency simulation on the rank side

Intended usage:
    - ``SyncHub.local(n)`` for ranks running as threads of one process
    - ``SyncHub.multiprocess(n)`` for one OS process per rank
    - The hub runs :meth:`SyncHub.serve` on a background thread of the
      launching process; ranks only ever call their :class:`RankEndpoint`.
"""

import time
import queue
import random
import logging
import threading
import multiprocessing as mp
from typing import Any, Dict, List, Optional, Tuple

from .message import (
    TOPIC_HELLO,
    TOPIC_LEAVE,
    TOPIC_STATE,
    AgentState,
    Hello,
    Snapshot,
    SyncMessage,
)
from .metrics import SyncMetrics
from .utils import maybe_drop, new_msg_id, simulate_latency

log = logging.getLogger(__name__)


class SyncHub:
    """
    Coordinator closing one barrier per tick for ``num_ranks`` ranks.

    Attributes:
        num_ranks (int): Number of ranks expected to join.
        timeout_s (float): Maximum wait for all states of one tick.
        join_timeout_s (float): Maximum wait for every rank to join.
        metrics (SyncMetrics): Counters for barriers, timeouts and stops.
        last (Snapshot): Last snapshot broadcast, or None before the first.
    """

    def __init__(
        self,
        num_ranks: int,
        inbound: Any,
        outbound: Dict[int, Any],
        timeout_s: float = 5.0,
        join_timeout_s: float = 30.0,
    ):
        """
        Initialize a SyncHub.

        Args:
            num_ranks (int): Number of ranks; ranks are ``0 .. num_ranks - 1``.
            inbound: Queue every rank writes :class:`SyncMessage` to.
            outbound (dict): ``rank → queue`` the hub writes snapshots to.
            timeout_s (float): Barrier timeout in seconds.
            join_timeout_s (float): Join handshake timeout in seconds.
        """
        if num_ranks < 1:
            raise ValueError("num_ranks must be at least 1")
        self.num_ranks = num_ranks
        self.timeout_s = timeout_s
        self.join_timeout_s = join_timeout_s
        self.metrics = SyncMetrics()
        self.last: Optional[Snapshot] = None
        self._inbound = inbound
        self._outbound = outbound
        self._left: set = set()
        self._thread: Optional[threading.Thread] = None

    # ── Factories ─────────────────────────────────────────────────────────────

    @classmethod
    def local(
        cls,
        num_ranks: int,
        timeout_s: float = 5.0,
        join_timeout_s: float = 30.0,
        **endpoint_kwargs,
    ) -> Tuple["SyncHub", List["RankEndpoint"]]:
        """Hub and endpoints wired with thread-safe in-process queues."""
        inbound: queue.Queue = queue.Queue()
        outbound = {r: queue.Queue() for r in range(num_ranks)}
        hub = cls(num_ranks, inbound, outbound, timeout_s, join_timeout_s)
        return hub, hub._endpoints(**endpoint_kwargs)

    @classmethod
    def multiprocess(
        cls,
        num_ranks: int,
        timeout_s: float = 5.0,
        join_timeout_s: float = 30.0,
        ctx=None,
        **endpoint_kwargs,
    ) -> Tuple["SyncHub", List["RankEndpoint"]]:
        """Hub and endpoints wired with :mod:`multiprocessing` queues.

        Each endpoint is passed to its rank's process as an argument.
        """
        ctx = ctx or mp.get_context()
        inbound = ctx.Queue()
        outbound = {r: ctx.Queue() for r in range(num_ranks)}
        hub = cls(num_ranks, inbound, outbound, timeout_s, join_timeout_s)
        return hub, hub._endpoints(**endpoint_kwargs)

    def _endpoints(self, **kwargs) -> List["RankEndpoint"]:
        return [
            RankEndpoint(
                rank=r,
                inbound=self._inbound,
                outbound=self._outbound[r],
                timeout_s=self.timeout_s,
                join_timeout_s=self.join_timeout_s,
                **kwargs,
            )
            for r in range(self.num_ranks)
        ]

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def start(self) -> None:
        """Run :meth:`serve` on a daemon thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self.serve, daemon=True, name="SyncHub")
        self._thread.start()
        log.info("hub_started ranks=%d timeout=%.2fs", self.num_ranks, self.timeout_s)

    def join(self, timeout: Optional[float] = None) -> Optional[Snapshot]:
        """Wait for the serve thread to finish and return the last snapshot."""
        if self._thread is not None:
            self._thread.join(timeout)
        return self.last

    def serve(self) -> Snapshot:
        """
        Run the join handshake, then close barriers until the run ends.

        Returns:
            Snapshot: The final snapshot (failure, stop or clean shutdown).
        """
        verdict = self._handshake()
        self._broadcast(verdict)
        if not verdict.ok:
            return verdict

        tick = 1
        while True:
            snap = self._barrier(tick)
            if snap is None:
                log.info("hub_shutdown all ranks left after tick %d", tick - 1)
                self.last = Snapshot(tick=tick - 1, ok=True, stop=True, reason="all ranks left")
                return self.last
            self._broadcast(snap)
            if not snap.ok or snap.stop:
                return snap
            tick += 1

    # ── Barrier logic ─────────────────────────────────────────────────────────

    def _handshake(self) -> Snapshot:
        received, error = self._collect(TOPIC_HELLO, 0, self.join_timeout_s)
        if error:
            return self._failure(0, error)

        hellos: Dict[int, Hello] = {r: m.payload for r, m in received.items()}
        reference_rank = min(hellos)
        reference = hellos[reference_rank].settings
        for rank, hello in sorted(hellos.items()):
            if hello.settings != reference:
                keys = sorted(
                    k for k in set(reference) | set(hello.settings)
                    if reference.get(k) != hello.settings.get(k)
                )
                return self._failure(
                    0,
                    f"rank {rank} disagrees with rank {reference_rank} on {keys}",
                )
        declared = reference.get("num_ranks", self.num_ranks)
        if declared != self.num_ranks:
            return self._failure(
                0, f"ranks declare num_ranks={declared}, hub expects {self.num_ranks}",
            )

        log.info("hub_join_ok ranks=%s settings=%s", sorted(hellos), reference)
        return Snapshot(tick=0, ok=True, states={r: h.state for r, h in hellos.items()})

    def _barrier(self, tick: int) -> Optional[Snapshot]:
        received, error = self._collect(TOPIC_STATE, tick, self.timeout_s)
        if error:
            if not received and len(self._left) == self.num_ranks:
                return None
            return self._failure(tick, error)

        states: Dict[int, AgentState] = {r: m.payload for r, m in received.items()}
        stoppers = sorted(r for r, s in states.items() if s.stop)
        self.metrics.barriers += 1
        if stoppers:
            self.metrics.stops += 1
            log.info("hub_stop tick=%d requested_by=%s", tick, stoppers)
            return Snapshot(
                tick=tick, ok=True, states=states, stop=True,
                reason=f"stop requested by rank(s) {stoppers}",
            )
        return Snapshot(tick=tick, ok=True, states=states)

    def _collect(
        self, topic: str, tick: int, timeout_s: float,
    ) -> Tuple[Dict[int, SyncMessage], str]:
        """Gather one ``topic`` message per rank for ``tick``.

        Returns the messages received and an error string ('' on success).
        """
        deadline = time.monotonic() + timeout_s
        received: Dict[int, SyncMessage] = {}
        while len(set(received) | self._left) < self.num_ranks:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                msg = self._inbound.get(timeout=remaining)
            except queue.Empty:
                break

            if msg.topic == TOPIC_LEAVE:
                self._left.add(msg.sender)
                log.info("hub_leave rank=%s tick=%d", msg.sender, tick)
                continue
            if not 0 <= msg.sender < self.num_ranks:
                return received, f"message from unknown rank {msg.sender}"
            if msg.topic != topic:
                return received, f"rank {msg.sender} sent {msg.topic}, expected {topic}"
            if msg.sender in received:
                return received, f"rank {msg.sender} registered twice"
            if msg.tick != tick:
                return received, f"rank {msg.sender} sent tick {msg.tick}, expected tick {tick}"
            received[msg.sender] = msg

        if self._left:
            return received, f"rank(s) {sorted(self._left)} disconnected"
        missing = sorted(set(range(self.num_ranks)) - set(received))
        if missing:
            self.metrics.timeouts += 1
            log.warning("hub_timeout tick=%d missing=%s", tick, missing)
            return received, f"rank(s) {missing} timed out at tick {tick}"
        return received, ""

    def _failure(self, tick: int, reason: str) -> Snapshot:
        self.metrics.failures += 1
        log.error("hub_failure tick=%d reason=%s", tick, reason)
        return Snapshot(tick=tick, ok=False, reason=reason)

    def _broadcast(self, snap: Snapshot) -> None:
        self.last = snap
        for rank, out in self._outbound.items():
            if rank in self._left:
                continue
            out.put(snap)


class RankEndpoint:
    """
    A rank's only connection to the coordinator.

    Attributes:
        rank (int): Rank this endpoint belongs to.
        timeout_s (float): Hub barrier timeout; replies are awaited for twice as long.
        join_timeout_s (float): Hub join timeout.
        drop_rate (float): Probability of dropping an outgoing state message.
        latency_ms (int): Simulated latency before each state message.
        metrics (SyncMetrics): Rank-side counters (drops, reply timeouts).
    """

    def __init__(
        self,
        rank: int,
        inbound: Any,
        outbound: Any,
        timeout_s: float = 5.0,
        join_timeout_s: float = 30.0,
        drop_rate: float = 0.0,
        latency_ms: int = 0,
        seed: Optional[int] = None,
    ):
        self.rank = rank
        self.timeout_s = timeout_s
        self.join_timeout_s = join_timeout_s
        self.drop_rate = drop_rate
        self.latency_ms = latency_ms
        self.metrics = SyncMetrics()
        self._inbound = inbound
        self._outbound = outbound
        self._rng = random.Random(seed)
        self._left = False

    def join(self, hello: Hello) -> Snapshot:
        """
        Send the join request and wait for the coordinator's verdict.

        Args:
            hello (Hello): Rank settings and initial state.

        Returns:
            Snapshot: Tick-0 snapshot with every rank's initial state,
            or a failure snapshot.
        """
        self._send(TOPIC_HELLO, 0, hello)
        return self._wait(0, self.join_timeout_s + self.timeout_s)

    def exchange(self, state: AgentState) -> Snapshot:
        """
        Publish this rank's state for ``state.tick`` and block on the barrier.

        Args:
            state (AgentState): State for the current tick.

        Returns:
            Snapshot: Every rank's state for the same tick, or a failure
            snapshot if the barrier could not close in time.
        """
        if maybe_drop(self.drop_rate, self._rng):
            self.metrics.dropped += 1
            log.warning("state_dropped rank=%d tick=%d", self.rank, state.tick)
        else:
            simulate_latency(self.latency_ms)
            self._send(TOPIC_STATE, state.tick, state)
        return self._wait(state.tick, 2.0 * self.timeout_s)

    def leave(self) -> None:
        """Tell the coordinator this rank is gone. Safe to call twice."""
        if self._left:
            return
        self._left = True
        self._send(TOPIC_LEAVE, -1, None)

    def _send(self, topic: str, tick: int, payload: Any) -> None:
        self._inbound.put(SyncMessage(
            id=new_msg_id(self.rank, tick),
            topic=topic,
            sender=self.rank,
            tick=tick,
            payload=payload,
            ts=time.time(),
        ))

    def _wait(self, tick: int, timeout_s: float) -> Snapshot:
        deadline = time.monotonic() + timeout_s
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                snap = self._outbound.get(timeout=remaining)
            except queue.Empty:
                break
            if snap.ok and snap.tick < tick:
                # stale reply from an earlier barrier
                continue
            return snap
        self.metrics.timeouts += 1
        log.error("reply_timeout rank=%d tick=%d after %.2fs", self.rank, tick, timeout_s)
        return Snapshot(
            tick=tick, ok=False,
            reason=f"no reply from coordinator within {timeout_s:.2f}s",
        )
