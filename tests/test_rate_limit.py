import unittest
from unittest.mock import patch

from leaderboard.rate_limit import ACTION_LIMITS, RateLimiter, get_rate_limiter


class RateLimiterTest(unittest.TestCase):
    def test_action_limit_per_client(self):
        limiter = RateLimiter(max_per_minute=100, max_per_second=100)
        limiter.set_action_limit("start", 2)
        self.assertEqual(limiter.check_rate_limit("a", "start"), (True, ""))
        self.assertEqual(limiter.check_rate_limit("a", "start"), (True, ""))
        allowed, reason = limiter.check_rate_limit("a", "start")
        self.assertFalse(allowed)
        self.assertIn("start", reason)
        # Other clients and other actions are unaffected.
        self.assertTrue(limiter.check_rate_limit("b", "start")[0])
        self.assertTrue(limiter.check_rate_limit("a", "stop")[0])

    def test_per_second_burst_blocks_client(self):
        limiter = RateLimiter(max_per_minute=100, max_per_second=3, block_duration=60)
        for _ in range(3):
            self.assertTrue(limiter.check_rate_limit("a", "stop")[0])
        allowed, reason = limiter.check_rate_limit("a", "stop")
        self.assertFalse(allowed)
        self.assertIn("per second", reason)
        self.assertTrue(limiter.is_blocked("a"))
        self.assertFalse(limiter.check_rate_limit("a", "reset")[0])

    def test_cleanup_drops_stale_clients(self):
        limiter = RateLimiter()
        with patch("leaderboard.rate_limit.time.time", return_value=1000.0):
            limiter.check_rate_limit("old", "start")
        with patch("leaderboard.rate_limit.time.time", return_value=1100.0):
            limiter.check_rate_limit("recent", "stop")
        with patch("leaderboard.rate_limit.time.time", return_value=1350.0):
            limiter.cleanup_old_data(max_age_seconds=300)
        self.assertNotIn("old", limiter.clients)
        self.assertIn("recent", limiter.clients)

    def test_blocked_client_survives_cleanup_until_block_ends(self):
        limiter = RateLimiter(max_per_minute=100, max_per_second=1, block_duration=600)
        with patch("leaderboard.rate_limit.time.time", return_value=1000.0):
            limiter.check_rate_limit("a", "start")
            self.assertFalse(limiter.check_rate_limit("a", "start")[0])
        with patch("leaderboard.rate_limit.time.time", return_value=1400.0):
            limiter.cleanup_old_data(max_age_seconds=300)
            self.assertTrue(limiter.is_blocked("a"))
        with patch("leaderboard.rate_limit.time.time", return_value=1700.0):
            self.assertTrue(limiter.check_rate_limit("a", "start")[0])

    def test_action_window_frees_up_after_a_minute(self):
        limiter = RateLimiter()
        limiter.set_action_limit("reset", 1)
        with patch("leaderboard.rate_limit.time.time", return_value=1000.0):
            self.assertTrue(limiter.check_rate_limit("a", "reset")[0])
        with patch("leaderboard.rate_limit.time.time", return_value=1030.0):
            self.assertFalse(limiter.check_rate_limit("a", "reset")[0])
            # Rejected by the action cap only, not blocked.
            self.assertFalse(limiter.is_blocked("a"))
        with patch("leaderboard.rate_limit.time.time", return_value=1061.0):
            self.assertTrue(limiter.check_rate_limit("a", "reset")[0])

    def test_global_limiter_has_action_limits(self):
        limiter = get_rate_limiter()
        self.assertEqual(limiter.action_limits, ACTION_LIMITS)
        self.assertEqual(ACTION_LIMITS, {"start": 10, "reset": 10, "stop": 30})


if __name__ == "__main__":
    unittest.main()
