"""Tests for the fixed-window rate limiter and plan limits."""

from vaisu.api.dependencies.auth import AuthenticatedUser
from vaisu.api.dependencies.usage import LIMITS, get_limits, is_pro
from vaisu.api.rate_limit import FixedWindowRateLimiter, general_limiter


class TestFixedWindowRateLimiter:
    def test_allows_up_to_limit(self):
        limiter = FixedWindowRateLimiter(60, 3, "Too many requests")
        assert [limiter.hit("ip", now=0) for _ in range(3)] == [None, None, None]
        assert limiter.hit("ip", now=10) == 50

    def test_keys_are_independent(self):
        limiter = FixedWindowRateLimiter(60, 1, "Too many requests")
        assert limiter.hit("a", now=0) is None
        assert limiter.hit("b", now=0) is None
        assert limiter.hit("a", now=1) == 59

    def test_new_window_after_reset_time(self):
        limiter = FixedWindowRateLimiter(60, 1, "Too many requests")
        limiter.hit("ip", now=0)
        assert limiter.hit("ip", now=30) is not None
        assert limiter.hit("ip", now=61) is None

    def test_cleanup_evicts_expired_windows(self):
        limiter = FixedWindowRateLimiter(60, 5, "Too many requests")
        limiter.hit("old", now=0)
        limiter.hit("new", now=50)
        assert limiter.cleanup(now=70) == 1
        assert len(limiter) == 1

    def test_reset(self):
        limiter = FixedWindowRateLimiter(60, 1, "Too many requests")
        limiter.hit("ip", now=0)
        limiter.reset()
        assert len(limiter) == 0


def test_general_limit_returns_429(client):
    for _ in range(general_limiter.max_requests):
        general_limiter.hit("testclient")

    response = client.get("/api/auth/me")
    assert response.status_code == 429
    data = response.json()
    assert data["error"] == "Too many requests"
    assert data["retryAfter"] > 0


def test_health_is_not_rate_limited(client):
    for _ in range(general_limiter.max_requests):
        general_limiter.hit("testclient")

    assert client.get("/api/health").status_code == 200


class TestPlanLimits:
    def test_free_plan(self):
        user = AuthenticatedUser(user_id="u", email="u@example.com", role="free")
        assert not is_pro(user)
        assert get_limits(user) == LIMITS["FREE"]
        assert get_limits(user).daily_analysis == 5
        assert get_limits(user).total_documents == 10

    def test_active_subscription_is_pro(self):
        user = AuthenticatedUser(
            user_id="u", email="u@example.com", role="free", subscription_status="active"
        )
        assert is_pro(user)
        assert get_limits(user) == LIMITS["PRO"]

    def test_pro_and_admin_roles(self):
        for role in ("pro", "admin"):
            assert is_pro(AuthenticatedUser(user_id="u", email="u@example.com", role=role))
