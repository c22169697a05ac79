"""Tests for the bounded deduplication set."""

from sniper_bot.utils.seen_set import SeenSet


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestSeenSet:
    def test_add_if_absent(self):
        seen = SeenSet()
        assert seen.add_if_absent("sig") is True
        assert seen.add_if_absent("sig") is False
        assert "sig" in seen
        assert len(seen) == 1

    def test_entries_expire(self):
        clock = FakeClock()
        seen = SeenSet(maxsize=10, ttl=60, timer=clock)
        seen.add_if_absent("sig")

        clock.now = 61
        assert "sig" not in seen
        assert seen.add_if_absent("sig") is True

    def test_capacity_is_bounded(self):
        seen = SeenSet(maxsize=3, ttl=3600)
        for i in range(10):
            seen.add_if_absent(f"sig{i}")

        assert len(seen) == 3
        assert "sig9" in seen
        assert "sig0" not in seen
