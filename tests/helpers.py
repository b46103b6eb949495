"""Test doubles shared across the suite."""

from pqguard import ActionExecutor


class FakeClock:
    """Injectable clock; tests move ``now`` by hand."""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now


class RecordingExecutor(ActionExecutor):
    """Records delegated actions; optionally reports failure."""

    def __init__(self, succeed: bool = True):
        self.calls = []
        self.succeed = succeed

    def perform(self, destination, value, payload):
        self.calls.append((destination, value, payload))
        return self.succeed
