"""Tests for fetch cycle orchestration."""

import asyncio

import pytest

from domains.openrouter.activity_cache import ActivityCache
from domains.openrouter.manager import CreditManager
from domains.openrouter.types import AccountBalance


class TestFetchCycle:
    """Test a full fetch cycle against the stub API."""

    @pytest.mark.asyncio
    async def test_full_cycle_publishes_everything(self, manager):
        snapshot = await manager.fetch_cycle()

        assert snapshot.remaining == 70.0
        assert [k.id for k in snapshot.keys] == ["hash-new", "hash-old"]
        assert len(snapshot.activity) == 2
        assert snapshot.error_message is None
        assert snapshot.is_loading is False
        assert snapshot.is_refreshing is False

    @pytest.mark.asyncio
    async def test_fetch_order(self, manager, fake_api):
        await manager.fetch_cycle()

        paths = [r.url.path for r in fake_api.requests]
        assert paths == ["/api/v1/credits", "/api/v1/keys", "/api/v1/activity"]

    @pytest.mark.asyncio
    async def test_empty_credential_skips_network(self, manager, settings, fake_api, logged_events):
        await manager.fetch_cycle()
        settings.api_key = ""

        snapshot = await manager.fetch_cycle()

        assert snapshot.balance is None
        assert snapshot.keys == ()
        assert snapshot.activity == ()
        assert snapshot.error_message is None
        assert fake_api.calls("/v1/credits") == 1
        assert logged_events()[-1] == "fetch_skipped"

    @pytest.mark.asyncio
    async def test_no_credential_logs_no_api_calls(self, manager, settings, logged_events):
        settings.api_key = ""

        await manager.fetch_cycle()

        assert "api_call_start" not in logged_events()

    @pytest.mark.asyncio
    async def test_disabled_skips_network(self, manager, settings, fake_api):
        settings.enabled = False

        snapshot = await manager.fetch_cycle()

        assert fake_api.requests == []
        assert snapshot.balance is None

    @pytest.mark.asyncio
    async def test_keys_fallback_to_single_key(self, manager, fake_api, logged_events):
        fake_api.respond("/v1/keys", status=403, json_body={"error": {"message": "forbidden"}})

        snapshot = await manager.fetch_cycle()

        assert [k.id for k in snapshot.keys] == ["hash-single"]
        assert "fetch_keys_fallback_success" in logged_events()
        assert snapshot.error_message is None

    @pytest.mark.asyncio
    async def test_both_key_resources_fail(self, manager, fake_api):
        fake_api.respond("/v1/keys", status=500)
        fake_api.respond("/v1/key", status=500)

        snapshot = await manager.fetch_cycle()

        assert snapshot.keys == ()
        assert snapshot.remaining == 70.0
        assert len(snapshot.activity) == 2

    @pytest.mark.asyncio
    async def test_balance_failure_does_not_stop_other_steps(self, manager, fake_api):
        fake_api.respond("/v1/credits", status=401, json_body={"error": {"message": "Invalid key"}})

        snapshot = await manager.fetch_cycle()

        assert snapshot.error_message == "[401] Invalid key"
        assert snapshot.balance is None
        assert len(snapshot.keys) == 2
        assert len(snapshot.activity) == 2

    @pytest.mark.asyncio
    async def test_balance_failure_keeps_previous_balance(self, manager, fake_api):
        await manager.fetch_cycle()
        fake_api.fail("/v1/credits")

        snapshot = await manager.fetch_cycle()

        assert snapshot.remaining == 70.0
        assert snapshot.error_message.startswith("Could not reach OpenRouter")

    @pytest.mark.asyncio
    async def test_activity_failure_clears_activity(self, manager, fake_api):
        manager._activity_cache = ActivityCache(manager._client, ttl_seconds=0)
        await manager.fetch_cycle()
        fake_api.respond("/v1/activity", status=500)

        snapshot = await manager.fetch_cycle()

        assert snapshot.activity == ()
        assert snapshot.error_message is None
        assert snapshot.remaining == 70.0

    @pytest.mark.asyncio
    async def test_next_cycle_clears_error(self, manager, fake_api):
        fake_api.respond("/v1/credits", status=500)
        await manager.fetch_cycle()
        fake_api.respond("/v1/credits", json_body={"data": {"total_credits": 10, "total_usage": 1}})

        snapshot = await manager.fetch_cycle()

        assert snapshot.error_message is None
        assert snapshot.remaining == 9.0

    @pytest.mark.asyncio
    async def test_low_balance_alert_from_cycle(self, manager, fake_api, sink):
        fake_api.respond("/v1/credits", json_body={"data": {"total_credits": 10, "total_usage": 5}})

        await manager.fetch_cycle()
        await manager.fetch_cycle()

        assert len(sink.sent) == 1
        assert sink.sent[0].identifier.startswith("low-credit-")

    @pytest.mark.asyncio
    async def test_spike_alert_from_cycle(self, manager, fake_api, sink):
        fake_api.respond("/v1/keys", json_body={"data": [
            {"hash": "spiky", "name": "Spiky", "usage_daily": 25.0, "usage_weekly": 70.0},
        ]})

        await manager.fetch_cycle()

        assert [a.entity_id for a in sink.sent] == ["spiky"]

    @pytest.mark.asyncio
    async def test_loading_flags_during_cycle(self, manager):
        published = []
        manager.subscribe(published.append)

        await manager.refresh()

        assert published[0].is_loading is True
        assert published[0].is_refreshing is True
        assert published[-1].is_loading is False
        assert published[-1].is_refreshing is False

    @pytest.mark.asyncio
    async def test_silent_cycle_does_not_show_loading(self, manager):
        published = []
        manager.subscribe(published.append)

        await manager.fetch_cycle()

        assert all(s.is_loading is False for s in published)
        assert published[0].is_refreshing is True

    @pytest.mark.asyncio
    async def test_disable_mid_cycle_still_publishes(self, client, detector, settings):
        gate = asyncio.Event()

        async def slow_credits(api_key):
            await gate.wait()
            return AccountBalance(10, 2)

        client.fetch_credits = slow_credits
        manager = CreditManager(client, ActivityCache(client), detector, settings)

        cycle = asyncio.create_task(manager.fetch_cycle())
        await asyncio.sleep(0)
        settings.enabled = False
        gate.set()
        snapshot = await cycle

        assert snapshot.remaining == 8.0
        assert snapshot.is_refreshing is False


class TestSubscriptions:
    """Test snapshot publication."""

    @pytest.mark.asyncio
    async def test_unsubscribe(self, manager):
        published = []
        unsubscribe = manager.subscribe(published.append)
        unsubscribe()

        await manager.fetch_cycle()

        assert published == []

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_break_cycle(self, manager):
        def broken(snapshot):
            raise ValueError("bad subscriber")

        manager.subscribe(broken)

        snapshot = await manager.fetch_cycle()

        assert snapshot.remaining == 70.0

    @pytest.mark.asyncio
    async def test_snapshots_are_immutable_copies(self, manager):
        before = manager.snapshot

        await manager.fetch_cycle()

        assert before.balance is None
        assert manager.snapshot is not before


class TestDerivedValues:
    """Test counters and the near-warning flag."""

    @pytest.mark.asyncio
    async def test_counters(self, manager):
        assert manager.enabled_key_count == 0
        assert manager.last_used_key_name == "-"

        await manager.fetch_cycle()

        assert manager.enabled_key_count == 2
        assert manager.last_used_key_name == "New key"

    @pytest.mark.asyncio
    async def test_near_warning_uses_most_recent_key_limit(self, manager):
        # Most recent key has 5.0 left against a 10.0 threshold
        await manager.fetch_cycle()

        assert manager.is_near_warning_point is True

    @pytest.mark.asyncio
    async def test_near_warning_falls_back_to_balance(self, manager, fake_api, settings):
        fake_api.respond("/v1/keys", json_body={"data": [{"hash": "nolimit"}]})

        await manager.fetch_cycle()
        assert manager.is_near_warning_point is False

        settings.warning_threshold = 80.0
        assert manager.is_near_warning_point is True

    def test_near_warning_without_data(self, manager):
        assert manager.is_near_warning_point is False


class TestConnectionTest:
    """Test the manual connection check."""

    @pytest.mark.asyncio
    async def test_success(self, manager, fake_api, logged_events):
        result = await manager.test_connection()

        assert result.ok is True
        assert result.message == "Connection successful"
        assert manager.snapshot.connection_test_ok is True
        assert manager.snapshot.is_testing_connection is False
        assert fake_api.calls("/v1/activity") == 0
        assert "test_connection_success" in logged_events()

    @pytest.mark.asyncio
    async def test_failure_sets_error(self, manager, fake_api):
        fake_api.respond("/v1/credits", status=401, json_body={"error": {"message": "Invalid key"}})

        result = await manager.test_connection()

        assert result.ok is False
        assert result.message == "[401] Invalid key"
        assert manager.snapshot.connection_test_message == "[401] Invalid key"
        assert manager.snapshot.error_message == "[401] Invalid key"

    @pytest.mark.asyncio
    async def test_empty_key(self, manager, settings, fake_api):
        settings.api_key = ""

        result = await manager.test_connection()

        assert result.ok is False
        assert result.message == "API key is empty"
        assert fake_api.requests == []

    @pytest.mark.asyncio
    async def test_does_not_fire_alerts(self, manager, fake_api, sink):
        fake_api.respond("/v1/credits", json_body={"data": {"total_credits": 1, "total_usage": 1}})

        await manager.test_connection()

        assert sink.sent == []
