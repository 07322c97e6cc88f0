"""
SyncMetrics: Tracks simple statistics for the coordinator barrier flow.
"""


class SyncMetrics:
    """
    Tracks metrics for barriers, dropped messages, timeouts and stops.

    Attributes:
        barriers (int): Number of barriers closed successfully.
        dropped (int): Number of state messages dropped by fault injection.
        timeouts (int): Number of barriers (or waits) that timed out.
        failures (int): Number of failure snapshots produced.
        stops (int): Number of stop requests observed.
    """

    def __init__(self):
        """Initialize all counters to zero."""
        self.barriers = 0
        self.dropped = 0
        self.timeouts = 0
        self.failures = 0
        self.stops = 0

    def report(self) -> dict:
        """
        Return a snapshot of current metrics.

        Returns:
            dict: Dictionary containing every counter.
        """
        return {
            "barriers": self.barriers,
            "dropped": self.dropped,
            "timeouts": self.timeouts,
            "failures": self.failures,
            "stops": self.stops,
        }
