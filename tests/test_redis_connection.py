import json

import pytest
from unittest.mock import patch, AsyncMock, MagicMock
from app.core.redis_connection import RedisManager
from app.core.config_manager import settings


class TestRedisConnection:
    @pytest.fixture(autouse=True)
    def setup_and_teardown(self, monkeypatch):
        """Set up and tear down for each test."""
        # Setup
        self.redis_manager = RedisManager()
        monkeypatch.setattr(settings, "redis_enabled", True)
        self.logger_patcher = patch("app.core.redis_connection.logger")
        self.logger_mock = self.logger_patcher.start()

        yield  # This is where the test runs

        # Teardown
        self.logger_patcher.stop()
        self.redis_manager._client = None
        self.redis_manager._pool = None

    @patch("app.core.redis_connection.aioredis.Redis")
    @patch("app.core.redis_connection.ConnectionPool")
    def test_initialize_success(self, mock_connection_pool, mock_redis):
        """Test successful initialization of RedisManager."""
        # Arrange
        mock_pool_instance = MagicMock()
        mock_connection_pool.return_value = mock_pool_instance
        mock_redis.return_value = AsyncMock()

        # Act
        self.redis_manager.initialize()

        # Assert
        mock_connection_pool.assert_called_once_with(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=settings.redis_password,
            max_connections=settings.redis_max_connections,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30,
        )
        mock_redis.assert_called_once_with(connection_pool=mock_pool_instance)
        assert self.redis_manager.is_available
        self.logger_mock.info.assert_any_call("Redis connection initialized successfully")

    @patch("app.core.redis_connection.ConnectionPool")
    def test_initialize_disabled(self, mock_connection_pool, monkeypatch):
        """Test Redis stays off when disabled by configuration."""
        monkeypatch.setattr(settings, "redis_enabled", False)

        self.redis_manager.initialize()

        mock_connection_pool.assert_not_called()
        assert not self.redis_manager.is_available
        self.logger_mock.info.assert_called_once_with(
            "Redis disabled by configuration; caching is off"
        )

    @patch("app.core.redis_connection.ConnectionPool")
    def test_initialize_already_initialized(self, mock_connection_pool):
        """Test initialization when already initialized."""
        self.redis_manager._pool = MagicMock()

        self.redis_manager.initialize()

        mock_connection_pool.assert_not_called()
        self.logger_mock.warning.assert_called_once_with(
            "Redis connection pool already initialized"
        )

    @pytest.mark.asyncio
    async def test_close_success(self):
        """Test successful closing of Redis connections."""
        # Arrange
        mock_client = AsyncMock()
        mock_pool = AsyncMock()
        self.redis_manager._client = mock_client
        self.redis_manager._pool = mock_pool

        # Act
        await self.redis_manager.close()

        # Assert
        mock_client.aclose.assert_awaited_once()
        mock_pool.disconnect.assert_awaited_once()
        assert self.redis_manager._client is None
        assert self.redis_manager._pool is None

    @pytest.mark.asyncio
    async def test_close_not_initialized(self):
        await self.redis_manager.close()

        self.logger_mock.info.assert_not_called()

    @pytest.mark.asyncio
    async def test_ping_success(self):
        mock_client = AsyncMock()
        mock_client.ping.return_value = True
        self.redis_manager._client = mock_client

        assert await self.redis_manager.ping() is True

    @pytest.mark.asyncio
    async def test_ping_failure(self):
        """Test ping failure is logged and reported as False."""
        mock_client = AsyncMock()
        mock_client.ping.side_effect = ConnectionError("Connection refused")
        self.redis_manager._client = mock_client

        result = await self.redis_manager.ping()

        assert result is False
        self.logger_mock.error.assert_called_once_with(
            "Redis ping failed: Connection refused"
        )

    @pytest.mark.asyncio
    async def test_ping_not_initialized(self):
        assert await self.redis_manager.ping() is False

    def test_client_not_initialized(self):
        with pytest.raises(RuntimeError, match="Redis not initialized"):
            _ = self.redis_manager.client

    # ========================================================================
    # JSON CACHE HELPERS
    # ========================================================================

    @pytest.mark.asyncio
    async def test_get_json_hit(self):
        mock_client = AsyncMock()
        mock_client.get.return_value = json.dumps({"config": {"maintenance_mode": "false"}})
        self.redis_manager._client = mock_client

        value = await self.redis_manager.get_json("system_config:live")

        assert value == {"config": {"maintenance_mode": "false"}}
        mock_client.get.assert_awaited_once_with("system_config:live")

    @pytest.mark.asyncio
    async def test_get_json_miss(self):
        mock_client = AsyncMock()
        mock_client.get.return_value = None
        self.redis_manager._client = mock_client

        assert await self.redis_manager.get_json("missing") is None

    @pytest.mark.asyncio
    async def test_get_json_error_is_a_miss(self):
        mock_client = AsyncMock()
        mock_client.get.side_effect = ConnectionError("down")
        self.redis_manager._client = mock_client

        assert await self.redis_manager.get_json("system_config:live") is None
        self.logger_mock.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_set_json_with_ttl(self):
        mock_client = AsyncMock()
        self.redis_manager._client = mock_client

        await self.redis_manager.set_json("k", {"a": 1}, 30)

        mock_client.set.assert_awaited_once_with("k", '{"a": 1}', ex=30)

    @pytest.mark.asyncio
    async def test_helpers_noop_when_disabled(self):
        assert await self.redis_manager.get_json("k") is None
        await self.redis_manager.set_json("k", {"a": 1}, 30)
        await self.redis_manager.delete("k")

    @pytest.mark.asyncio
    async def test_delete_error_is_logged(self):
        mock_client = AsyncMock()
        mock_client.delete.side_effect = ConnectionError("down")
        self.redis_manager._client = mock_client

        await self.redis_manager.delete("k")

        self.logger_mock.warning.assert_called_once_with("Redis DEL k failed: down")
