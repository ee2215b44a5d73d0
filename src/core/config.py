#!/usr/bin/env python3
"""
Central configuration module for the arc gateway core.
Provides consistent configuration values across all components.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


# Mapping used when the request log index has to be created.
REQUEST_LOGS_INDEX_CONFIG = json.dumps(
    {
        "settings": {
            "number_of_shards": 1,
            "number_of_replicas": 0,
        },
        "mappings": {
            "dynamic": True,
            "properties": {
                "timestamp": {"type": "date"},
                "indices": {"type": "keyword"},
                "category": {"type": "keyword"},
                "request": {
                    "properties": {
                        "uri": {"type": "keyword"},
                        "method": {"type": "keyword"},
                        "headers": {"type": "object", "enabled": False},
                    }
                },
                "response": {
                    "properties": {
                        "code": {"type": "integer"},
                        "status": {"type": "keyword"},
                        "headers": {"type": "object", "enabled": False},
                    }
                },
            },
        },
    }
)


class Config:
    """Central configuration management for the gateway core."""

    # Elasticsearch connection
    ELASTICSEARCH_URL = os.getenv("ELASTICSEARCH_URL", "http://localhost:9200")
    ELASTICSEARCH_TIMEOUT = os.getenv("ELASTICSEARCH_TIMEOUT", "10")

    # Request log store
    REQUEST_LOGS_INDEX = os.getenv("REQUEST_LOGS_INDEX", ".logs")
    REQUEST_LOGS_DEFAULT_SIZE = 100

    # Logging configuration
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def load_from_file(cls, config_path: Optional[str] = None) -> Dict[str, Any]:
        """Load configuration from YAML file.

        Args:
            config_path: Path to configuration file. Defaults to .arcrc.yaml

        Returns:
            Configuration dictionary
        """
        if config_path is None:
            config_path = os.getenv("ARC_CONFIG", ".arcrc.yaml")

        config_file = Path(config_path)
        if not config_file.exists():
            defaults = cls.get_defaults()
            cls.validate_configuration(defaults)
            return defaults

        try:
            with open(config_file, "r") as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load configuration: {e}")

        if not isinstance(config, dict):
            raise ConfigurationError(
                f"Failed to load configuration: {config_path} must contain a mapping"
            )

        merged = cls._deep_merge(cls.get_defaults(), config)
        cls.validate_configuration(merged)
        return merged

    @classmethod
    def elasticsearch_timeout(cls) -> float:
        """ELASTICSEARCH_TIMEOUT as seconds.

        Raises:
            ConfigurationError: If the value is not a number
        """
        try:
            return float(cls.ELASTICSEARCH_TIMEOUT)
        except (TypeError, ValueError):
            raise ConfigurationError(
                f"Invalid ELASTICSEARCH_TIMEOUT: {cls.ELASTICSEARCH_TIMEOUT!r}"
            )

    @classmethod
    def get_defaults(cls) -> Dict[str, Any]:
        """Get default configuration values."""
        return {
            "elasticsearch": {
                "url": cls.ELASTICSEARCH_URL,
                "request_timeout": cls.elasticsearch_timeout(),
            },
            "request_logs": {
                "index": cls.REQUEST_LOGS_INDEX,
                "index_config": REQUEST_LOGS_INDEX_CONFIG,
                "default_size": cls.REQUEST_LOGS_DEFAULT_SIZE,
            },
            "logging": {
                "level": cls.LOG_LEVEL,
                "format": cls.LOG_FORMAT,
            },
        }

    @staticmethod
    def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries.

        Args:
            base: Base dictionary
            override: Override dictionary

        Returns:
            Merged dictionary
        """
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = Config._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    @classmethod
    def validate_configuration(cls, config: Dict[str, Any]) -> bool:
        """Validate configuration values.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        es = config.get("elasticsearch", {})
        if not es.get("url"):
            raise ConfigurationError("elasticsearch.url must be set")

        timeout = es.get("request_timeout")
        if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
            raise ConfigurationError(f"Invalid elasticsearch.request_timeout: {timeout}")

        logs = config.get("request_logs", {})
        if not logs.get("index"):
            raise ConfigurationError("request_logs.index must be set")

        size = logs.get("default_size")
        if not isinstance(size, int) or size < 0:
            raise ConfigurationError(f"Invalid request_logs.default_size: {size}")

        return True


class ConfigurationError(Exception):
    """Raised when configuration is invalid."""

    pass


# Singleton instance
_config_instance: Optional[Dict[str, Any]] = None


def get_config() -> Dict[str, Any]:
    """Get the global configuration instance."""
    global _config_instance
    if _config_instance is None:
        _config_instance = Config.load_from_file()
    return _config_instance


def reload_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Reload configuration from file."""
    global _config_instance
    _config_instance = Config.load_from_file(config_path)
    return _config_instance
