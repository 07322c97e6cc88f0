#!/usr/bin/env python3
"""
Coordinator tests: handshake checks, barriers, timeouts, stop and leave.
"""

import queue
import threading
import time
import unittest

from syncbus.hub import RankEndpoint, SyncHub
from syncbus.message import TOPIC_HELLO, AgentState, Hello, SyncMessage
from syncbus.utils import maybe_drop, new_msg_id, simulate_latency

SETTINGS = {"num_ranks": 2, "step_size": 0.01, "end_time": 1.0}


def _hello(rank, **overrides):
    settings = dict(SETTINGS, **overrides)
    return Hello(rank=rank, settings=settings, state=AgentState(rank=rank, tick=0, time=0.0))


def _state(rank, tick, stop=False):
    return AgentState(rank=rank, tick=tick, time=tick * 0.01, position=(float(rank), 0.0, 0.0), stop=stop)


def _parallel(*fns):
    results = [None] * len(fns)

    def _run(i, fn):
        results[i] = fn()

    threads = [threading.Thread(target=_run, args=(i, fn)) for i, fn in enumerate(fns)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10.0)
    return results


class HandshakeTests(unittest.TestCase):
    def test_join_returns_every_initial_state(self):
        hub, (e0, e1) = SyncHub.local(2, timeout_s=0.5, join_timeout_s=2.0)
        hub.start()
        s0, s1 = _parallel(lambda: e0.join(_hello(0)), lambda: e1.join(_hello(1)))
        self.assertTrue(s0.ok and s1.ok)
        self.assertEqual(sorted(s0.states), [0, 1])
        self.assertEqual(s0.tick, 0)

    def test_settings_mismatch_rejected(self):
        hub, (e0, e1) = SyncHub.local(2, timeout_s=0.5, join_timeout_s=2.0)
        hub.start()
        s0, s1 = _parallel(lambda: e0.join(_hello(0)), lambda: e1.join(_hello(1, step_size=0.02)))
        self.assertFalse(s0.ok)
        self.assertFalse(s1.ok)
        self.assertIn("step_size", s0.reason)
        self.assertEqual(hub.metrics.failures, 1)

    def test_rank_count_mismatch_rejected(self):
        hub, (e0,) = SyncHub.local(1, timeout_s=0.5, join_timeout_s=2.0)
        hub.start()
        snap = e0.join(_hello(0))
        self.assertFalse(snap.ok)
        self.assertIn("num_ranks=2", snap.reason)

    def test_duplicate_rank_rejected(self):
        inbound = queue.Queue()
        outbound = {0: queue.Queue(), 1: queue.Queue()}
        hub = SyncHub(2, inbound, outbound, timeout_s=0.5, join_timeout_s=1.0)
        for _ in range(2):
            inbound.put(SyncMessage(id="x", topic=TOPIC_HELLO, sender=0, tick=0,
                                    payload=_hello(0), ts=time.time()))
        verdict = hub.serve()
        self.assertFalse(verdict.ok)
        self.assertEqual(verdict.reason, "rank 0 registered twice")
        self.assertEqual(outbound[1].get_nowait().reason, "rank 0 registered twice")

    def test_missing_rank_times_out(self):
        hub, (e0, _) = SyncHub.local(2, timeout_s=0.2, join_timeout_s=0.3)
        hub.start()
        snap = e0.join(_hello(0))
        self.assertFalse(snap.ok)
        self.assertIn("rank(s) [1] timed out at tick 0", snap.reason)


class BarrierTests(unittest.TestCase):
    def setUp(self):
        self.hub, (self.e0, self.e1) = SyncHub.local(2, timeout_s=0.3, join_timeout_s=2.0)
        self.hub.start()
        _parallel(lambda: self.e0.join(_hello(0)), lambda: self.e1.join(_hello(1)))

    def test_every_rank_gets_same_tick(self):
        for tick in (1, 2, 3):
            s0, s1 = _parallel(lambda: self.e0.exchange(_state(0, tick)),
                               lambda: self.e1.exchange(_state(1, tick)))
            for snap in (s0, s1):
                self.assertTrue(snap.ok)
                self.assertEqual(snap.tick, tick)
                self.assertEqual({s.tick for s in snap.states.values()}, {tick})
                self.assertEqual(snap.states[1].position[0], 1.0)
        self.assertEqual(self.hub.metrics.barriers, 3)

    def test_dropped_message_fails_barrier(self):
        self.e1.drop_rate = 1.0
        s0, s1 = _parallel(lambda: self.e0.exchange(_state(0, 1)),
                           lambda: self.e1.exchange(_state(1, 1)))
        self.assertFalse(s0.ok)
        self.assertFalse(s1.ok)
        self.assertIn("timed out", s0.reason)
        self.assertEqual(self.hub.metrics.timeouts, 1)
        self.assertEqual(self.e1.metrics.dropped, 1)

    def test_wrong_tick_fails_barrier(self):
        s0, _ = _parallel(lambda: self.e0.exchange(_state(0, 1)),
                          lambda: self.e1.exchange(_state(1, 2)))
        self.assertFalse(s0.ok)
        self.assertIn("expected tick 1", s0.reason)

    def test_stop_flag_ends_run(self):
        s0, s1 = _parallel(lambda: self.e0.exchange(_state(0, 1, stop=True)),
                           lambda: self.e1.exchange(_state(1, 1)))
        for snap in (s0, s1):
            self.assertTrue(snap.ok)
            self.assertTrue(snap.stop)
            self.assertEqual(snap.reason, "stop requested by rank(s) [0]")
        self.hub.join(timeout=2.0)
        self.assertEqual(self.hub.metrics.stops, 1)

    def test_leave_before_barrier_reports_disconnect(self):
        self.e1.leave()
        self.e1.leave()
        snap = self.e0.exchange(_state(0, 1))
        self.assertFalse(snap.ok)
        self.assertIn("rank(s) [1] disconnected", snap.reason)

    def test_everyone_leaving_shuts_down_cleanly(self):
        self.e0.leave()
        self.e1.leave()
        last = self.hub.join(timeout=2.0)
        self.assertTrue(last.ok)
        self.assertEqual(last.reason, "all ranks left")
        self.assertEqual(self.hub.metrics.failures, 0)

    def test_dead_coordinator_does_not_hang(self):
        endpoint = RankEndpoint(0, queue.Queue(), queue.Queue(), timeout_s=0.05)
        snap = endpoint.exchange(_state(0, 1))
        self.assertFalse(snap.ok)
        self.assertIn("no reply from coordinator", snap.reason)
        self.assertEqual(endpoint.metrics.timeouts, 1)


class UtilsTests(unittest.TestCase):
    def test_message_id_names_sender_and_tick(self):
        a, b = new_msg_id(3, 17), new_msg_id(3, 17)
        self.assertTrue(a.startswith("r3-t17-"))
        self.assertNotEqual(a, b)

    def test_drop_and_latency_edges(self):
        self.assertFalse(maybe_drop(0.0))
        self.assertTrue(maybe_drop(1.0))
        self.assertEqual(simulate_latency(0), 0.0)
        self.assertGreaterEqual(simulate_latency(5), 0.004)


if __name__ == "__main__":
    unittest.main()
