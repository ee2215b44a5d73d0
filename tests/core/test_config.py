#!/usr/bin/env python3
"""
Test suite for config.py - Configuration management tests
"""
import json
import os
import tempfile

import pytest
from unittest.mock import patch

from src.core import config as config_module
from src.core.config import Config, ConfigurationError, get_config, reload_config


def write_yaml(content):
    handle = tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False)
    handle.write(content)
    handle.close()
    return handle.name


class TestConfig:
    """Test suite for Config class"""

    def test_class_constants(self):
        assert Config.REQUEST_LOGS_DEFAULT_SIZE == 100
        assert Config.REQUEST_LOGS_INDEX
        assert Config.ELASTICSEARCH_URL

    def test_defaults(self):
        defaults = Config.get_defaults()

        assert set(defaults) == {"elasticsearch", "request_logs", "logging"}
        assert defaults["request_logs"]["default_size"] == 100
        assert Config.validate_configuration(defaults) is True

    def test_default_index_config_is_json(self):
        index_config = json.loads(Config.get_defaults()["request_logs"]["index_config"])

        properties = index_config["mappings"]["properties"]
        assert properties["timestamp"]["type"] == "date"
        assert properties["indices"]["type"] == "keyword"

    def test_defaults_are_fresh_copies(self):
        first = Config.get_defaults()
        first["elasticsearch"]["url"] = "http://changed:9200"

        assert Config.get_defaults()["elasticsearch"]["url"] != "http://changed:9200"

    def test_missing_file_returns_defaults(self):
        assert Config.load_from_file("/nonexistent/arcrc.yaml") == Config.get_defaults()

    def test_missing_file_still_validates(self):
        with patch.object(Config, "REQUEST_LOGS_INDEX", ""):
            with pytest.raises(ConfigurationError, match="request_logs.index"):
                Config.load_from_file("/nonexistent/arcrc.yaml")

    def test_timeout_env_is_parsed(self):
        with patch.object(Config, "ELASTICSEARCH_TIMEOUT", "2.5"):
            assert Config.get_defaults()["elasticsearch"]["request_timeout"] == 2.5

    @pytest.mark.parametrize("timeout", ["fast", "", None])
    def test_invalid_timeout_env(self, timeout):
        with patch.object(Config, "ELASTICSEARCH_TIMEOUT", timeout):
            with pytest.raises(ConfigurationError, match="ELASTICSEARCH_TIMEOUT"):
                Config.get_defaults()
            with pytest.raises(ConfigurationError, match="ELASTICSEARCH_TIMEOUT"):
                Config.load_from_file("/nonexistent/arcrc.yaml")

    def test_load_from_file_deep_merges(self):
        path = write_yaml(
            "elasticsearch:\n"
            "  url: http://es.internal:9200\n"
            "request_logs:\n"
            "  index: gateway-logs\n"
        )
        try:
            config = Config.load_from_file(path)
        finally:
            os.unlink(path)

        assert config["elasticsearch"]["url"] == "http://es.internal:9200"
        assert config["elasticsearch"]["request_timeout"] == Config.elasticsearch_timeout()
        assert config["request_logs"]["index"] == "gateway-logs"
        assert config["request_logs"]["default_size"] == 100

    def test_env_var_selects_file(self):
        path = write_yaml("request_logs:\n  index: from-env\n")
        try:
            with patch.dict(os.environ, {"ARC_CONFIG": path}):
                config = Config.load_from_file()
        finally:
            os.unlink(path)

        assert config["request_logs"]["index"] == "from-env"

    def test_empty_file_returns_defaults(self):
        path = write_yaml("")
        try:
            config = Config.load_from_file(path)
        finally:
            os.unlink(path)

        assert config == Config.get_defaults()

    def test_invalid_yaml(self):
        path = write_yaml("elasticsearch: [unclosed\n")
        try:
            with pytest.raises(ConfigurationError, match="Failed to load configuration"):
                Config.load_from_file(path)
        finally:
            os.unlink(path)

    def test_non_mapping_yaml(self):
        path = write_yaml("- just\n- a list\n")
        try:
            with pytest.raises(ConfigurationError, match="must contain a mapping"):
                Config.load_from_file(path)
        finally:
            os.unlink(path)

    def test_deep_merge_replaces_non_dict_values(self):
        merged = Config._deep_merge({"a": {"b": 1, "c": 2}, "d": 1}, {"a": {"b": 3}, "d": {"e": 4}})

        assert merged == {"a": {"b": 3, "c": 2}, "d": {"e": 4}}


class TestValidateConfiguration:
    """Test configuration validation"""

    def test_missing_url(self):
        config = Config.get_defaults()
        config["elasticsearch"]["url"] = ""

        with pytest.raises(ConfigurationError, match="elasticsearch.url"):
            Config.validate_configuration(config)

    @pytest.mark.parametrize("timeout", [0, -1, "fast"])
    def test_invalid_timeout(self, timeout):
        config = Config.get_defaults()
        config["elasticsearch"]["request_timeout"] = timeout

        with pytest.raises(ConfigurationError, match="request_timeout"):
            Config.validate_configuration(config)

    def test_missing_index(self):
        config = Config.get_defaults()
        config["request_logs"]["index"] = None

        with pytest.raises(ConfigurationError, match="request_logs.index"):
            Config.validate_configuration(config)

    @pytest.mark.parametrize("size", [-1, "100", None])
    def test_invalid_default_size(self, size):
        config = Config.get_defaults()
        config["request_logs"]["default_size"] = size

        with pytest.raises(ConfigurationError, match="default_size"):
            Config.validate_configuration(config)


class TestGlobalConfig:
    """Test the module-level configuration singleton"""

    def test_get_config_is_cached(self):
        with patch.object(config_module, "_config_instance", None):
            with patch.object(Config, "load_from_file", return_value={"cached": True}) as mock_load:
                assert get_config() == {"cached": True}
                assert get_config() == {"cached": True}

        mock_load.assert_called_once()

    def test_reload_config(self):
        with patch.object(config_module, "_config_instance", {"old": True}):
            with patch.object(Config, "load_from_file", return_value={"new": True}) as mock_load:
                assert reload_config("custom.yaml") == {"new": True}
                assert get_config() == {"new": True}

        mock_load.assert_called_once_with("custom.yaml")
