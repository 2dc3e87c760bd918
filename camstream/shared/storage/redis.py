"""
Simple Redis client manager that creates and tracks clients.
"""

import threading
from typing import Dict

from redis.asyncio import Redis
from loguru import logger

from ..config import config


class RedisManager:
    """
    Simple Redis client manager.

    Features:
    - Creates and tracks Redis clients per label
    - Loads connection strings from environment variables and env files
    - Supports both standalone and cluster modes
    - Thread-safe singleton pattern
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        """Singleton pattern: only one instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if hasattr(self, '_initialized'):
            return

        self._clients: Dict[str, Redis] = {}
        self._connection_strings: Dict[str, str] = {}
        self._connection_modes: Dict[str, str] = {}
        self._lock = threading.Lock()

        self._load_connection_strings()

        self._initialized = True

    def _get_label_from_env_var(self, env_var: str) -> str | None:
        if env_var.startswith('REDIS_URL_'):
            return env_var[10:].lower()
        return None

    def _load_connection_strings(self):
        """Load Redis connection strings from centralized configuration."""
        for key, value in config.items():
            label = self._get_label_from_env_var(key)
            if label is None or not value:
                continue

            self._connection_strings[label] = value
            mode = self._extract_mode_from_url(value)
            self._connection_modes[label] = mode

            logger.info(
                "Loaded Redis connection string for label '{}' (mode: {}): {}",
                label, mode, self._hide_password_in_connection_string(value)
            )

        if 'default' not in self._connection_strings:
            default_url = config.get_redis_url('default')
            self._connection_strings['default'] = default_url
            mode = self._extract_mode_from_url(default_url)
            self._connection_modes['default'] = mode
            logger.info(
                "Using default Redis connection string (mode: {}): {}",
                mode, self._hide_password_in_connection_string(default_url)
            )

    def _extract_mode_from_url(self, connection_string: str) -> str:
        """Extract mode (cluster|standalone) from the `mode=` query parameter."""
        query_start = connection_string.find('?')
        if query_start != -1:
            for param in connection_string[query_start + 1:].split('&'):
                if param.startswith('mode='):
                    mode = param.split('=', 1)[1]
                    if mode in ('cluster', 'standalone'):
                        return mode
        return 'standalone'

    def _clean_connection_string(self, connection_string: str) -> str:
        """Remove mode parameter from connection string for actual connection."""
        query_start = connection_string.find('?')
        if query_start == -1 or 'mode=' not in connection_string:
            return connection_string

        base_url = connection_string[:query_start]
        params = [
            param for param in connection_string[query_start + 1:].split('&')
            if not param.startswith('mode=')
        ]
        return f"{base_url}?{'&'.join(params)}" if params else base_url

    def _hide_password_in_connection_string(self, connection_string: str) -> str:
        if '@' not in connection_string or '://' not in connection_string:
            return connection_string

        protocol_part, rest = connection_string.split('://', 1)
        last_at_index = rest.rfind('@')
        auth_part, host_part = rest[:last_at_index], rest[last_at_index + 1:]
        if ':' not in auth_part:
            return connection_string

        username, _password = auth_part.split(':', 1)
        return f"{protocol_part}://{username}:***@{host_part}"

    def get_client(self, label: str = None) -> Redis:
        """
        Get Redis client by label.

        Args:
            label: Client label (defaults to 'default')

        Returns:
            Redis instance

        Raises:
            ValueError: If label not found
        """
        if label is None:
            label = 'default'

        with self._lock:
            if label not in self._clients:
                if label not in self._connection_strings:
                    raise ValueError(f"No Redis connection string found for label '{label}'")

                mode = self._connection_modes.get(label, 'standalone')
                clean_url = self._clean_connection_string(self._connection_strings[label])

                logger.info("Open Redis client for label '{}' (mode: {})", label, mode)

                if mode == 'cluster':
                    from redis.asyncio.cluster import RedisCluster
                    self._clients[label] = RedisCluster.from_url(clean_url)
                else:
                    self._clients[label] = Redis.from_url(clean_url)

            return self._clients[label]

    async def close_client(self, label: str):
        with self._lock:
            client = self._clients.pop(label, None)

        if client is None:
            return

        try:
            await client.aclose()
            logger.info("Closed Redis client for label '{}'", label)
        except Exception as e:
            logger.error("Error closing Redis client for label '{}': {}", label, e)

    async def close_all(self):
        with self._lock:
            labels = list(self._clients.keys())

        for label in labels:
            await self.close_client(label)


def get_redis_manager() -> RedisManager:
    """Get global RedisManager instance."""
    return RedisManager()
