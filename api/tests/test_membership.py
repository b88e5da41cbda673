"""Tests for the expert membership cache and the roster-backed authorizer."""

import pytest
from faqdesk.core.exceptions import RosterLookupError
from faqdesk.models.activity import ChannelAccount
from faqdesk.services.membership.membership_cache import SECONDS_PER_DAY, MembershipCache
from faqdesk.services.membership.sme_authorizer import SmeAuthorizer

from conftest import SERVICE_URL


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_cache(clock, **overrides) -> MembershipCache:
    options = {"ttl_days": 5, "negative_ttl_seconds": 300, "max_size": 100}
    options.update(overrides)
    return MembershipCache(clock=clock, **options)


class TestMembershipCache:
    @pytest.mark.unit
    def test_miss_then_hit(self):
        cache = _make_cache(FakeClock())

        assert cache.get("u1") is None
        cache.set("u1", True)

        assert cache.get("u1") is True
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1

    @pytest.mark.unit
    def test_positive_entry_slides_on_access(self):
        clock = FakeClock()
        cache = _make_cache(clock)
        cache.set("u1", True)

        # Touch the entry every four days; it never reaches the five day limit
        for _ in range(3):
            clock.advance(4 * SECONDS_PER_DAY)
            assert cache.get("u1") is True

    @pytest.mark.unit
    def test_positive_entry_expires_without_access(self):
        clock = FakeClock()
        cache = _make_cache(clock)
        cache.set("u1", True)

        clock.advance(5 * SECONDS_PER_DAY + 1)

        assert cache.get("u1") is None
        assert cache.get_stats()["size"] == 0

    @pytest.mark.unit
    def test_negative_entry_uses_short_absolute_ttl(self):
        clock = FakeClock()
        cache = _make_cache(clock)
        cache.set("u1", False)

        clock.advance(200)
        assert cache.get("u1") is False
        # Reading a negative entry does not extend it
        clock.advance(200)
        assert cache.get("u1") is None

    @pytest.mark.unit
    def test_negative_caching_disabled(self):
        cache = _make_cache(FakeClock(), negative_ttl_seconds=0)

        cache.set("u1", False)

        assert cache.get("u1") is None

    @pytest.mark.unit
    def test_oldest_entry_evicted_at_capacity(self):
        cache = _make_cache(FakeClock(), max_size=2)
        cache.set("u1", True)
        cache.set("u2", True)
        cache.get("u1")  # u2 is now the least recently used

        cache.set("u3", True)

        assert cache.get("u2") is None
        assert cache.get("u1") is True
        assert cache.get("u3") is True

    @pytest.mark.unit
    def test_invalidate_and_clear(self):
        cache = _make_cache(FakeClock())
        cache.set("u1", True)
        cache.set("u2", False)

        cache.invalidate("u1")
        assert cache.get("u1") is None

        cache.clear()
        assert cache.get_stats()["size"] == 0

    @pytest.mark.unit
    def test_rejects_non_positive_ttl(self):
        with pytest.raises(ValueError):
            MembershipCache(ttl_days=0)


class TestSmeAuthorizer:
    def _make_authorizer(self, transport, test_settings, **cache_overrides):
        cache = _make_cache(FakeClock(), **cache_overrides)
        return SmeAuthorizer(cache, transport, test_settings)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_member_is_fetched_once(self, transport, test_settings):
        transport.members = [ChannelAccount(id="29:expert")]
        authorizer = self._make_authorizer(transport, test_settings)

        assert await authorizer.is_authorized("29:expert", SERVICE_URL) is True
        assert await authorizer.is_authorized("29:expert", SERVICE_URL) is True

        assert transport.member_calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_member_cached_within_negative_ttl(self, transport, test_settings):
        transport.members = [ChannelAccount(id="29:expert")]
        authorizer = self._make_authorizer(transport, test_settings)

        assert await authorizer.is_authorized("29:outsider", SERVICE_URL) is False
        assert await authorizer.is_authorized("29:outsider", SERVICE_URL) is False

        assert transport.member_calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_member_refetched_when_negative_caching_disabled(
        self, transport, test_settings
    ):
        transport.members = [ChannelAccount(id="29:expert")]
        authorizer = self._make_authorizer(
            transport, test_settings, negative_ttl_seconds=0
        )

        await authorizer.is_authorized("29:outsider", SERVICE_URL)
        await authorizer.is_authorized("29:outsider", SERVICE_URL)

        assert transport.member_calls == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_roster_failure_raises_and_caches_nothing(
        self, transport, test_settings
    ):
        transport.fail_members = True
        authorizer = self._make_authorizer(transport, test_settings)

        with pytest.raises(RosterLookupError):
            await authorizer.is_authorized("29:expert", SERVICE_URL)

        assert authorizer.cache.get_stats()["size"] == 0
