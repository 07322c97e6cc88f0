"""
syncbus/message.py
==================
Data structures carried between ranks and the coordinator.

:class:`SyncMessage` is the envelope; its ``payload`` is one of
:class:`Hello`, :class:`AgentState` or ``None`` (for ``sync.leave``).
The coordinator answers with a :class:`Snapshot`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

# Topics understood by :class:`~syncbus.hub.SyncHub`
TOPIC_HELLO = "sync.hello"
TOPIC_STATE = "sync.state"
TOPIC_LEAVE = "sync.leave"


@dataclass
class AgentState:
    """Externally visible state of one agent at one tick.

    Attributes:
        rank (int): Owning rank.
        tick (int): Tick index the state belongs to.
        time (float): Simulated time at the end of the tick's advance.
        kind (str): ``"vehicle"`` or ``"environment"``.
        position (tuple): World position ``(x, y, z)`` in metres.
        orientation (tuple): Unit quaternion ``(w, x, y, z)``.
        speed (float): Longitudinal speed in m/s.
        signals (dict): Broadcast signals (e.g. traffic-light phase).
        stop (bool): True when the rank asks every peer to stop.
    """
    rank: int
    tick: int
    time: float
    kind: str = "vehicle"
    position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    orientation: Tuple[float, float, float, float] = (1.0, 0.0, 0.0, 0.0)
    speed: float = 0.0
    signals: Dict[str, Any] = field(default_factory=dict)
    stop: bool = False

    def as_dict(self) -> Dict[str, Any]:
        """Flat mapping used by telemetry and log lines."""
        x, y, z = self.position
        qw, qx, qy, qz = self.orientation
        return {
            "rank": self.rank,
            "tick": self.tick,
            "time": self.time,
            "kind": self.kind,
            "x": x, "y": y, "z": z,
            "qw": qw, "qx": qx, "qy": qy, "qz": qz,
            "speed": self.speed,
            **{f"signal_{k}": v for k, v in self.signals.items()},
        }


@dataclass
class Hello:
    """Join request sent once by every rank during initialisation.

    Attributes:
        rank (int): Joining rank.
        settings (dict): Global configuration the rank was started with.
            Every rank must report an identical mapping.
        state (AgentState): The agent's state at tick 0.
    """
    rank: int
    settings: Dict[str, Any]
    state: AgentState


@dataclass
class Snapshot:
    """Coordinator reply closing one barrier.

    Attributes:
        tick (int): Tick the snapshot belongs to (0 for the join reply).
        ok (bool): False when the barrier failed (timeout, disconnect,
            configuration mismatch).
        states (dict): ``rank → AgentState`` for every rank, all at ``tick``.
        stop (bool): True when any rank requested a stop.
        reason (str): Human-readable failure or stop reason.
    """
    tick: int
    ok: bool
    states: Dict[int, AgentState] = field(default_factory=dict)
    stop: bool = False
    reason: str = ""


@dataclass
class SyncMessage:
    """
    Envelope for anything a rank sends to the coordinator.

    Attributes:
        id (str): Unique identifier for the message.
        topic (str): One of ``sync.hello``, ``sync.state``, ``sync.leave``.
        sender (int): Rank of the sender.
        tick (int): Tick the payload refers to.
        payload: :class:`Hello`, :class:`AgentState` or ``None``.
        ts (float): Wall-clock timestamp (seconds) when the message was created.
    """
    id: str
    topic: str
    sender: int
    tick: int
    payload: Optional[Any]
    ts: float
