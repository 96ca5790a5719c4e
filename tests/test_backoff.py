import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from spotify_poller.backoff import BackoffController, extract_timeout
from tests.fakes import FakeClock


class TestExtractTimeout(unittest.TestCase):
    def test_reads_seconds_up_to_line_break(self):
        self.assertEqual(extract_timeout("Retry-After: 30\n"), 30)

    def test_crlf_and_surrounding_headers(self):
        header = "content-type: application/json\r\nRetry-After: 7\r\nvary: Authorization\r\n"
        self.assertEqual(extract_timeout(header), 7)

    def test_lowercase_header_name(self):
        self.assertEqual(extract_timeout("retry-after: 12\r\n"), 12)

    def test_missing_header_yields_zero(self):
        self.assertEqual(extract_timeout("content-type: application/json\r\n"), 0)
        self.assertEqual(extract_timeout(""), 0)

    def test_value_without_trailing_newline(self):
        self.assertEqual(extract_timeout("Retry-After: 5"), 5)

    def test_garbage_value_yields_zero(self):
        self.assertEqual(extract_timeout("Retry-After: soon\n"), 0)


class TestBackoffController(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock(100.0)
        self.backoff = BackoffController(clock=self.clock)

    def test_cooldown_grows_by_five_seconds_per_failure(self):
        for n in range(1, 5):
            delay = self.backoff.record_transport_failure()
            self.assertEqual(delay, 5 * n)
            self.assertEqual(self.backoff.transport.cooldown_length, 5 * n)
        self.assertEqual(self.backoff.transport.multiplier, 5)

    def test_success_resets_multiplier(self):
        self.backoff.record_transport_failure()
        self.backoff.record_transport_failure()
        self.backoff.record_success()
        self.assertEqual(self.backoff.transport.multiplier, 1)
        self.assertEqual(self.backoff.transport.cooldown_length, 0)
        self.assertEqual(self.backoff.record_transport_failure(), 5)

    def test_should_skip_until_window_elapses_then_clears(self):
        self.backoff.record_transport_failure()
        self.assertTrue(self.backoff.should_skip())
        self.clock.advance(4)
        self.assertTrue(self.backoff.should_skip())
        self.clock.advance(1)
        self.assertFalse(self.backoff.should_skip())
        self.assertFalse(self.backoff.transport.active)
        # Elapsing the window does not reset the multiplier.
        self.assertEqual(self.backoff.transport.multiplier, 2)

    def test_retry_after_window(self):
        self.assertFalse(self.backoff.should_skip())
        self.backoff.arm_retry_after(30)
        self.assertTrue(self.backoff.rate_limited())
        self.clock.advance(29)
        self.assertTrue(self.backoff.should_skip())
        self.clock.advance(1)
        self.assertFalse(self.backoff.should_skip())
        self.assertEqual(self.backoff.rate_limit.cooldown_length, 0)

    def test_retry_after_rejects_zero(self):
        with self.assertRaises(ValueError):
            self.backoff.arm_retry_after(0)
        self.assertFalse(self.backoff.should_skip())

    def test_windows_are_independent(self):
        self.backoff.arm_retry_after(60)
        self.backoff.record_success()
        self.assertTrue(self.backoff.rate_limited())
        self.assertFalse(self.backoff.transport_blocked())


if __name__ == "__main__":
    unittest.main(verbosity=2)
