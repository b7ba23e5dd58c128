"""
Broker configuration: built-in defaults, overridden by an optional JSON file
and then by DB_* environment variables.
"""
import os
import copy
import json
import logging
from typing import Any, Dict, Optional


class Config:
    """Configuration manager with defaults and environment variable support"""

    # Default configuration values
    DEFAULTS = {
        # Visibility window settings
        'visibility': {
            'window_seconds': 300,      # 5 minutes before a message is eligible
            'grace_seconds': 300,       # extra age before the sweep purges it
        },

        # Durable backend (Redis Streams)
        'redis': {
            'host': 'localhost',
            'port': 6379,
            'db': 0,
            'password': None,
            'socket_timeout': 5,        # seconds
            'consumed_suffix': ':consumed',
        },

        # Broker settings
        'broker': {
            'reconcile_interval': 30,   # seconds
        },

        # Logging
        'logging': {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        }
    }

    # Environment variable -> (key path, parser)
    ENV_OVERRIDES = {
        'DB_VISIBILITY_WINDOW': ('visibility.window_seconds', float),
        'DB_GRACE_PERIOD': ('visibility.grace_seconds', float),
        'DB_REDIS_HOST': ('redis.host', str),
        'DB_REDIS_PORT': ('redis.port', int),
        'DB_REDIS_DB': ('redis.db', int),
        'DB_REDIS_PASSWORD': ('redis.password', str),
        'DB_RECONCILE_INTERVAL': ('broker.reconcile_interval', float),
        'DB_LOG_LEVEL': ('logging.level', str.upper),
    }

    def __init__(self, config_file: Optional[str] = None):
        self._config = copy.deepcopy(self.DEFAULTS)

        if config_file and os.path.exists(config_file):
            self._load_from_file(config_file)

        # Environment wins over the file
        self._load_from_env()

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Look up a value by dotted path, e.g. 'visibility.window_seconds'.
        Missing sections or keys return default.
        """
        section, _, key = key_path.rpartition('.')
        node = self._section(section) if section else self._config
        if not isinstance(node, dict):
            return default
        return node.get(key, default)

    def set(self, key_path: str, value: Any) -> None:
        """Store a value by dotted path, creating sections as needed"""
        section, _, key = key_path.rpartition('.')
        node = self._config
        for name in filter(None, section.split('.')):
            node = node.setdefault(name, {})
        node[key] = value

    @property
    def visibility_window(self) -> float:
        return float(self.get('visibility.window_seconds'))

    @property
    def grace_period(self) -> float:
        return float(self.get('visibility.grace_seconds'))

    def _section(self, path: str) -> Any:
        node = self._config
        for name in path.split('.'):
            if not isinstance(node, dict) or name not in node:
                return None
            node = node[name]
        return node

    def _load_from_file(self, config_file: str) -> None:
        try:
            with open(config_file, 'r') as f:
                overrides = json.load(f)
        except (OSError, ValueError) as e:
            logging.warning(f"Failed to load config file {config_file}: {e}")
            return
        self._merge(self._config, overrides)

    def _load_from_env(self) -> None:
        for env_var, (key_path, parse) in self.ENV_OVERRIDES.items():
            raw = os.getenv(env_var)
            if raw is None:
                continue
            try:
                self.set(key_path, parse(raw))
            except ValueError:
                logging.warning(f"Ignoring {env_var}={raw!r}: not a valid value for {key_path}")

    @classmethod
    def _merge(cls, base: Dict, overrides: Dict) -> None:
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                cls._merge(base[key], value)
            else:
                base[key] = value


# Process-wide instance
_config_instance: Optional[Config] = None

def get_config() -> Config:
    """Return the shared Config, loading it from DB_CONFIG_FILE on first use"""
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(os.getenv('DB_CONFIG_FILE', 'config/broker.json'))
    return _config_instance

def initialize_config(config_file: Optional[str] = None) -> Config:
    """Replace the shared Config with one loaded from config_file"""
    global _config_instance
    _config_instance = Config(config_file)
    return _config_instance
