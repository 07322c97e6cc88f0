"""
syncbus — Coordinator transport for lockstep ranks
==================================================

Provides the single coordination point of a run: every rank joins,
then exchanges exactly one state per tick through a barrier that the
hub closes (or fails) within a bounded time.  Ranks never talk to
each other directly.

Modules
-------
message
    :class:`SyncMessage`, :class:`AgentState`, :class:`Hello`, :class:`Snapshot`.
hub
    :class:`SyncHub` coordinator and :class:`RankEndpoint` rank side.
metrics
    :class:`SyncMetrics` counter snapshot.
utils
    ID generation, latency sleep, fault injection.
"""

from .message import AgentState, Hello, Snapshot, SyncMessage
from .hub import RankEndpoint, SyncHub
from .metrics import SyncMetrics
from .utils import new_msg_id, simulate_latency, maybe_drop

__all__ = [
    "AgentState",
    "Hello",
    "Snapshot",
    "SyncMessage",
    "RankEndpoint",
    "SyncHub",
    "SyncMetrics",
    "new_msg_id",
    "simulate_latency",
    "maybe_drop",
]
