import sys
import threading
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from main import poll_loop
from spotify_poller import PollState


class StubSource:
    def __init__(self, stop, results):
        self.stop = stop
        self.results = list(results)
        self.calls = 0

    def refresh(self):
        self.calls += 1
        result = self.results.pop(0)
        if not self.results:
            self.stop.set()
        if isinstance(result, Exception):
            raise result
        return result


class TestPollLoop(unittest.TestCase):
    def test_logs_each_cycle(self):
        stop = threading.Event()
        source = StubSource(stop, [PollState.HAS_TRACK])

        with self.assertLogs("spotify-now-playing", level="DEBUG") as logs:
            poll_loop(source, 100, stop)

        self.assertEqual(source.calls, 1)
        self.assertIn("Poll cycle finished: has_track", logs.output[0])

    def test_broken_cycle_does_not_stop_driver(self):
        stop = threading.Event()
        source = StubSource(stop, [RuntimeError("boom"), PollState.IDLE])

        with self.assertLogs("spotify-now-playing", level="DEBUG") as logs:
            poll_loop(source, 100, stop)

        self.assertEqual(source.calls, 2)
        self.assertTrue(any("Spotify refresh failed: boom" in line for line in logs.output))


if __name__ == "__main__":
    unittest.main(verbosity=2)
