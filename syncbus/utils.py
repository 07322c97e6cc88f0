"""
Helpers shared by the coordinator and the rank endpoints:
    - message ids that name their sender and tick
    - injected send delay
    - injected message loss
"""

import uuid
import time
import random
import logging

log = logging.getLogger(__name__)

# ---------- Message IDs ----------
def new_msg_id(rank: int, tick: int) -> str:
    """
    Build an id of the form ``r<rank>-t<tick>-<hex>``.

    The prefix keeps log lines greppable per rank and tick; the random
    suffix tells a resend apart from the original.

    Args:
        rank (int): Sending rank.
        tick (int): Tick the message belongs to (-1 for leave).

    Returns:
        str: Message id.
    """
    return f"r{rank}-t{tick}-{uuid.uuid4().hex[:8]}"

# ---------- Fault Injection ----------
def simulate_latency(ms: int) -> float:
    """
    Hold the calling rank for *ms* milliseconds before it sends.

    Args:
        ms (int): Delay; zero or negative sends immediately.

    Returns:
        float: Seconds actually slept.
    """
    if ms <= 0:
        return 0.0
    start = time.monotonic()
    time.sleep(ms / 1000.0)
    return time.monotonic() - start


def maybe_drop(drop_rate: float, rng: random.Random = None) -> bool:
    """
    Decide whether a rank's state message is lost on the way.

    Args:
        drop_rate (float): Loss probability in [0, 1].
        rng (random.Random): Optional generator for reproducible faults.

    Returns:
        bool: True if the message should not be sent.
    """
    if drop_rate <= 0.0:
        return False
    return (rng or random).random() < drop_rate
