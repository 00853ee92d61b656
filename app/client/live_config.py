"""
Live Configuration Client
-------------------------
Keeps a client's view of the global configuration converged with the server.

Two tiers run side by side:
    - full fetch of ``/api/config/public`` at start and every 5 minutes,
      cached in the shared ``ConfigStore`` for an instant first paint
    - live poll of ``/api/configuration`` every second for hot keys such as
      ``maintenance_mode``

Listeners fire only when the structural hash of the map changes. Every
request carries a monotonic sequence number per tier and responses older than
the last applied one are dropped, so out-of-order completions never roll the
view back.
"""

import asyncio
import hashlib
import json
import re
import time
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
from loguru import logger

from app.auth.permissions import Capability, has_capability
from app.models.request_models import UserRole

PUBLIC_CONFIG_PATH = "/api/config/public"
LIVE_CONFIG_PATH = "/api/configuration"

LIVE_POLL_INTERVAL_SECONDS = 1.0
FULL_FETCH_INTERVAL_SECONDS = 5 * 60.0

MAINTENANCE_KEY = "maintenance_mode"
GUARD_ALLOW = "allow"
GUARD_MAINTENANCE = "maintenance"

ConfigValue = Union[bool, int, float, str]
ConfigListener = Callable[[Dict[str, str]], None]

# Fallbacks used when neither the live nor the full map carries a key
DEFAULT_CONFIG: Dict[str, Dict[str, ConfigValue]] = {
    "auth": {
        "session_timeout": 30,
        "max_login_attempts": 5,
        "lockout_duration": 15,
        "password_min_length": 8,
        "require_mfa": False,
    },
    "users": {
        "default_user_role": "customer",
        "require_email_verification": True,
        "allow_self_registration": True,
    },
    "notifications": {
        "email_enabled": True,
        "sms_enabled": False,
        "in_app_enabled": True,
        "digest_frequency": "daily",
    },
    "ticketing": {
        "auto_assign": False,
        "default_priority": "medium",
        "escalation_hours": 24,
        "auto_close_days": 7,
    },
    "ui": {
        "default_theme": "system",
        "default_language": "en",
        "date_format": "MM/DD/YYYY",
        "time_format": "12h",
    },
    "analytics": {
        "data_retention_days": 90,
        "default_export_format": "csv",
    },
    "features": {
        "expert_applications": True,
        "connect_requests": True,
        "live_chat": False,
        "video_sessions": False,
    },
}

_INTEGER = re.compile(r"^-?\d+$")
_DECIMAL = re.compile(r"^-?\d+\.\d+$")


def coerce_value(raw: Any) -> ConfigValue:
    """``"true"``/``"false"`` become booleans, numeric strings numbers."""
    if not isinstance(raw, str):
        return raw
    if raw == "true":
        return True
    if raw == "false":
        return False
    if _INTEGER.match(raw):
        return int(raw)
    if _DECIMAL.match(raw):
        return float(raw)
    return raw


def structural_hash(config: Dict[str, Any]) -> str:
    """Order-independent digest of a configuration map."""
    canonical = json.dumps(config, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ConfigStore:
    """
    Client storage shared by every tab of one browser profile.

    Holds the cached full map and the version marker. Writing the marker
    notifies every subscriber except the writer, which is how other tabs learn
    that they should fetch again.
    """

    def __init__(self):
        self._cached: Optional[Dict[str, str]] = None
        self._cached_at: Optional[float] = None
        self.version: Optional[str] = None
        self._subscribers: List[tuple] = []

    def load(self) -> Optional[Dict[str, str]]:
        return dict(self._cached) if self._cached is not None else None

    def save(self, config: Dict[str, str]) -> None:
        self._cached = dict(config)
        self._cached_at = time.time()

    def subscribe(self, owner: Any, callback: Callable[[str], None]) -> None:
        self._subscribers.append((owner, callback))

    def unsubscribe(self, owner: Any) -> None:
        self._subscribers = [entry for entry in self._subscribers if entry[0] is not owner]

    def write_version(self, marker: str, origin: Any = None) -> None:
        self.version = marker
        for owner, callback in list(self._subscribers):
            if owner is origin:
                continue
            callback(marker)


class LiveConfigPoller:
    """
    Background poller holding one client's converged configuration.

    Args:
        base_url: Server origin, e.g. ``http://localhost:8000``
        store: Shared client storage; a private one is created when omitted
        client: Pre-built ``httpx.AsyncClient``; closed by the caller
        transport: Transport for the internally built client (tests)
        live_interval: Seconds between live polls
        full_interval: Seconds between full fetches
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        store: Optional[ConfigStore] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        live_interval: float = LIVE_POLL_INTERVAL_SECONDS,
        full_interval: float = FULL_FETCH_INTERVAL_SECONDS,
        timeout: float = 5.0,
    ):
        self.store = store or ConfigStore()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url, transport=transport, timeout=timeout
        )
        self.live_interval = live_interval
        self.full_interval = full_interval

        self._full: Dict[str, str] = {}
        self._live: Dict[str, str] = {}
        self._hash: Optional[str] = None
        self.updated_at: Optional[str] = None

        self._sequence = 0
        self._applied = {"full": 0, "live": 0}
        self._listeners: List[ConfigListener] = []
        self._tasks: List[asyncio.Task] = []

    # ========================================================================
    # READS
    # ========================================================================

    @property
    def config(self) -> Dict[str, str]:
        """Raw merged map; live values win over the full fetch."""
        merged = dict(self._full)
        merged.update(self._live)
        return merged

    def get(
        self, key: str, category: Optional[str] = None, default: Optional[ConfigValue] = None
    ) -> Optional[ConfigValue]:
        """
        Coerced value of a key.

        Resolution order: ``category.key``, then the bare ``key``, then the
        category defaults, then ``default``. ``get("auth.session_timeout")`` is
        the same as ``get("session_timeout", "auth")``.
        """
        if category is None and "." in key:
            category, key = key.split(".", 1)
        config = self.config
        if category is not None and f"{category}.{key}" in config:
            return coerce_value(config[f"{category}.{key}"])
        if key in config:
            return coerce_value(config[key])
        if category is not None and key in DEFAULT_CONFIG.get(category, {}):
            return DEFAULT_CONFIG[category][key]
        return default

    def is_maintenance_mode(self) -> bool:
        return self.get(MAINTENANCE_KEY, "system", False) is True

    def is_feature_enabled(self, feature: str) -> bool:
        return self.get(feature, "features", False) is True

    def route_guard(self, role: Union[UserRole, str, None]) -> str:
        """Maintenance blocks every role except SUPERADMIN."""
        if not self.is_maintenance_mode():
            return GUARD_ALLOW
        if role is not None and has_capability(role, Capability.BYPASS_MAINTENANCE):
            return GUARD_ALLOW
        return GUARD_MAINTENANCE

    def add_listener(self, listener: ConfigListener) -> None:
        """Call ``listener(config)`` whenever the merged map changes."""
        self._listeners.append(listener)

    # ========================================================================
    # FETCHING
    # ========================================================================

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    async def _request(self, path: str) -> Optional[Dict[str, Any]]:
        try:
            response = await self._client.get(path, headers={"Cache-Control": "no-cache"})
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Config request {path} failed, keeping current values: {e}")
            return None
        if not body.get("success") or not isinstance(body.get("data"), dict):
            logger.warning(f"Config request {path} returned no data")
            return None
        return body["data"]

    def _apply(self, tier: str, sequence: int, data: Dict[str, Any]) -> bool:
        if sequence <= self._applied[tier]:
            logger.debug(f"Dropping stale {tier} config response #{sequence}")
            return False
        self._applied[tier] = sequence
        values = {str(k): str(v) for k, v in (data.get("config") or {}).items()}
        if tier == "full":
            self._full = values
        else:
            self._live = values
        if data.get("updatedAt"):
            self.updated_at = data["updatedAt"]
        return self._publish_if_changed()

    def _publish_if_changed(self) -> bool:
        config = self.config
        digest = structural_hash(config)
        if digest == self._hash:
            return False
        self._hash = digest
        for listener in list(self._listeners):
            try:
                listener(config)
            except Exception as e:
                logger.exception(f"Config listener failed: {e}")
        return True

    async def fetch_full(self, broadcast: bool = True) -> bool:
        """
        Fetch the full map and cache it in shared storage.

        With ``broadcast`` the shared version marker is bumped so other clients
        refetch. Refetches triggered by another client's marker pass
        ``broadcast=False`` and never write one back.
        """
        sequence = self._next_sequence()
        data = await self._request(PUBLIC_CONFIG_PATH)
        if data is None:
            return False
        changed = self._apply("full", sequence, data)
        if self._applied["full"] == sequence:
            self.store.save(self._full)
            if broadcast:
                self.store.write_version(str(int(time.time() * 1000)), origin=self)
        return changed

    async def poll_live(self) -> bool:
        """One live poll. Returns True when the merged map changed."""
        sequence = self._next_sequence()
        data = await self._request(LIVE_CONFIG_PATH)
        if data is None:
            return False
        return self._apply("live", sequence, data)

    def load_cached(self) -> bool:
        """Seed the full tier from shared storage for the first paint."""
        cached = self.store.load()
        if cached is None:
            return False
        self._full = cached
        return self._publish_if_changed()

    # ========================================================================
    # BACKGROUND TASKS
    # ========================================================================

    def _on_version_change(self, marker: str) -> None:
        logger.debug(f"Config version {marker} written by another client; refetching")
        self._tasks = [task for task in self._tasks if not task.done()]
        refetch = asyncio.get_running_loop().create_task(self.fetch_full(broadcast=False))
        self._tasks.append(refetch)

    async def _full_loop(self) -> None:
        while True:
            await self.fetch_full()
            await asyncio.sleep(self.full_interval)

    async def _live_loop(self) -> None:
        while True:
            await self.poll_live()
            await asyncio.sleep(self.live_interval)

    def start(self) -> None:
        """Start both polling tiers on the running event loop."""
        if self._tasks:
            return
        self.load_cached()
        self.store.subscribe(self, self._on_version_change)
        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(self._full_loop()),
            loop.create_task(self._live_loop()),
        ]

    async def stop(self) -> None:
        """Cancel every polling task and release the HTTP client."""
        self.store.unsubscribe(self)
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "LiveConfigPoller":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
