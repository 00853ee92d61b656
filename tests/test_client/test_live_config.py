"""
Live Configuration Client Tests
-------------------------------
Value coercion, key precedence, change detection, stale-response handling and
the shared store, driven through ``httpx.MockTransport``.
"""

import asyncio

import httpx
import pytest

from app.client.live_config import (
    DEFAULT_CONFIG,
    GUARD_ALLOW,
    GUARD_MAINTENANCE,
    LIVE_CONFIG_PATH,
    PUBLIC_CONFIG_PATH,
    ConfigStore,
    LiveConfigPoller,
    coerce_value,
    structural_hash,
)


def envelope(config, updated_at="2026-01-01T00:00:00"):
    return httpx.Response(
        200, json={"success": True, "data": {"config": config, "updatedAt": updated_at}}
    )


class ConfigServer:
    """Mutable fake of the two configuration endpoints."""

    def __init__(self, config=None):
        self.config = dict(config or {})
        self.calls = {PUBLIC_CONFIG_PATH: 0, LIVE_CONFIG_PATH: 0}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls[request.url.path] += 1
        return envelope(self.config)


def make_poller(handler, store=None, **kwargs) -> LiveConfigPoller:
    return LiveConfigPoller(
        base_url="http://config.test",
        store=store,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestCoercion:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("true", True),
            ("false", False),
            ("30", 30),
            ("-4", -4),
            ("2.5", 2.5),
            ("True", "True"),
            ("12abc", "12abc"),
            ("", ""),
        ],
    )
    def test_coerce_value(self, raw, expected):
        assert coerce_value(raw) == expected
        assert type(coerce_value(raw)) is type(expected)

    def test_structural_hash_ignores_key_order(self):
        assert structural_hash({"a": "1", "b": "2"}) == structural_hash({"b": "2", "a": "1"})
        assert structural_hash({"a": "1"}) != structural_hash({"a": "2"})


class TestPrecedence:
    @pytest.mark.asyncio
    async def test_category_key_wins_over_bare_key(self):
        server = ConfigServer({"auth.session_timeout": "45", "session_timeout": "20"})
        poller = make_poller(server)

        await poller.poll_live()

        assert poller.get("session_timeout", "auth") == 45
        assert poller.get("auth.session_timeout") == 45
        assert poller.get("session_timeout") == 20
        await poller.stop()

    @pytest.mark.asyncio
    async def test_bare_key_wins_over_defaults(self):
        poller = make_poller(ConfigServer({"max_login_attempts": "9"}))

        await poller.poll_live()

        assert poller.get("max_login_attempts", "auth") == 9
        assert poller.get("lockout_duration", "auth") == DEFAULT_CONFIG["auth"]["lockout_duration"]
        assert poller.get("missing", "auth", default="x") == "x"
        await poller.stop()

    def test_defaults_cover_every_category(self):
        assert set(DEFAULT_CONFIG) == {
            "auth",
            "users",
            "notifications",
            "ticketing",
            "ui",
            "analytics",
            "features",
        }

    @pytest.mark.asyncio
    async def test_feature_flags(self):
        poller = make_poller(ConfigServer({"features.live_chat": "true"}))

        await poller.poll_live()

        assert poller.is_feature_enabled("live_chat") is True
        assert poller.is_feature_enabled("video_sessions") is False
        assert poller.is_feature_enabled("expert_applications") is True
        await poller.stop()


class TestChangeDetection:
    @pytest.mark.asyncio
    async def test_listener_fires_only_on_change(self):
        server = ConfigServer({"maintenance_mode": "false"})
        poller = make_poller(server)
        seen = []
        poller.add_listener(seen.append)

        assert await poller.poll_live() is True
        assert await poller.poll_live() is False
        server.config["maintenance_mode"] = "true"
        assert await poller.poll_live() is True

        assert [config["maintenance_mode"] for config in seen] == ["false", "true"]
        assert poller.is_maintenance_mode() is True
        await poller.stop()

    @pytest.mark.asyncio
    async def test_failed_poll_keeps_previous_values(self):
        responses = iter(
            [envelope({"maintenance_mode": "true"}), httpx.Response(503, json={"success": False})]
        )
        poller = make_poller(lambda request: next(responses))

        await poller.poll_live()
        assert await poller.poll_live() is False

        assert poller.is_maintenance_mode() is True
        await poller.stop()

    @pytest.mark.asyncio
    async def test_unreachable_server_falls_back_to_defaults(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        poller = make_poller(refuse)

        assert await poller.fetch_full() is False
        assert poller.get("default_theme", "ui") == "system"
        assert poller.is_maintenance_mode() is False
        await poller.stop()

    @pytest.mark.asyncio
    async def test_stale_response_is_dropped(self):
        slow_started = asyncio.Event()
        release_slow = asyncio.Event()
        calls = []

        async def handler(request):
            calls.append(request)
            if len(calls) == 1:
                slow_started.set()
                await release_slow.wait()
                return envelope({"maintenance_mode": "false"})
            return envelope({"maintenance_mode": "true"})

        poller = make_poller(handler)

        slow_poll = asyncio.create_task(poller.poll_live())
        await slow_started.wait()
        assert await poller.poll_live() is True
        release_slow.set()

        assert await slow_poll is False
        assert poller.is_maintenance_mode() is True
        await poller.stop()


class TestRouteGuard:
    @pytest.mark.asyncio
    async def test_maintenance_blocks_everyone_but_superadmin(self):
        poller = make_poller(ConfigServer({"maintenance_mode": "true"}))
        await poller.poll_live()

        assert poller.route_guard("SUPERADMIN") == GUARD_ALLOW
        assert poller.route_guard("superadmin") == GUARD_ALLOW
        for role in ("CUSTOMER", "EXPERT", "ANALYST", "ADMIN", None):
            assert poller.route_guard(role) == GUARD_MAINTENANCE
        await poller.stop()

    @pytest.mark.asyncio
    async def test_no_maintenance_allows_everyone(self):
        poller = make_poller(ConfigServer({"maintenance_mode": "false"}))
        await poller.poll_live()

        assert poller.route_guard("CUSTOMER") == GUARD_ALLOW
        await poller.stop()


class TestSharedStore:
    def test_version_marker_notifies_other_subscribers_only(self):
        store = ConfigStore()
        tab_a, tab_b = object(), object()
        received = []
        store.subscribe(tab_a, lambda marker: received.append(("a", marker)))
        store.subscribe(tab_b, lambda marker: received.append(("b", marker)))

        store.write_version("42", origin=tab_a)

        assert received == [("b", "42")]
        assert store.version == "42"

    @pytest.mark.asyncio
    async def test_full_fetch_caches_map_and_writes_version(self):
        store = ConfigStore()
        poller = make_poller(ConfigServer({"registration_open": "true"}), store=store)

        await poller.fetch_full()

        assert store.load() == {"registration_open": "true"}
        assert store.version is not None
        await poller.stop()

    @pytest.mark.asyncio
    async def test_cached_map_gives_instant_first_paint(self):
        store = ConfigStore()
        store.save({"ui.default_theme": "dark"})
        poller = make_poller(ConfigServer(), store=store)

        poller.load_cached()

        assert poller.get("default_theme", "ui") == "dark"
        await poller.stop()

    @pytest.mark.asyncio
    async def test_other_tab_refetches_on_version_change(self):
        store = ConfigStore()
        server_b = ConfigServer({"maintenance_mode": "false"})
        tab_a = make_poller(ConfigServer({"maintenance_mode": "true"}), store=store)
        tab_b = make_poller(server_b, store=store, live_interval=60, full_interval=60)

        tab_b.start()
        await asyncio.sleep(0.05)
        full_fetches = server_b.calls[PUBLIC_CONFIG_PATH]

        await tab_a.fetch_full()
        await asyncio.sleep(0.05)

        assert server_b.calls[PUBLIC_CONFIG_PATH] == full_fetches + 1
        await tab_a.stop()
        await tab_b.stop()

    @pytest.mark.asyncio
    async def test_refetch_does_not_echo_between_tabs(self):
        store = ConfigStore()
        server_a = ConfigServer({"maintenance_mode": "true"})
        server_b = ConfigServer({"maintenance_mode": "true"})
        tab_a = make_poller(server_a, store=store, live_interval=60, full_interval=60)
        tab_b = make_poller(server_b, store=store, live_interval=60, full_interval=60)
        tab_a.start()
        tab_b.start()
        await asyncio.sleep(0.05)
        before_a = server_a.calls[PUBLIC_CONFIG_PATH]
        before_b = server_b.calls[PUBLIC_CONFIG_PATH]
        marker = store.version

        await tab_a.fetch_full()
        await asyncio.sleep(0.3)

        assert server_a.calls[PUBLIC_CONFIG_PATH] == before_a + 1
        assert server_b.calls[PUBLIC_CONFIG_PATH] == before_b + 1
        assert store.version != marker
        await tab_a.stop()
        await tab_b.stop()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        server = ConfigServer({"maintenance_mode": "false"})
        poller = make_poller(server, live_interval=0.01, full_interval=60)
        first = asyncio.Event()
        poller.add_listener(lambda config: first.set())

        async with poller:
            await asyncio.wait_for(first.wait(), timeout=2)
            await asyncio.sleep(0.05)

        assert server.calls[PUBLIC_CONFIG_PATH] >= 1
        assert server.calls[LIVE_CONFIG_PATH] >= 2
        assert poller._tasks == []
        assert poller._client.is_closed

    @pytest.mark.asyncio
    async def test_request_sends_no_cache_header(self):
        seen = []

        def handler(request):
            seen.append(request.headers.get("cache-control"))
            return envelope({})

        poller = make_poller(handler)
        await poller.poll_live()

        assert seen == ["no-cache"]
        await poller.stop()
