"""
Unit tests for configuration loader module.
"""

import logging

import pytest
import yaml

from dynaform import config_loader
from dynaform.config_loader import (
    deep_merge, get_config_value, get_default_config, get_logging_level, load_config,
    reload_config
)
from dynaform.exceptions import ConfigurationLoadError


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point config loading at a temporary config.yaml and clear the cache."""
    config_file = tmp_path / 'config.yaml'
    monkeypatch.setattr(config_loader, 'CONFIG_FILE', config_file)
    monkeypatch.setattr(config_loader, '_config_cache', None)
    return config_file


class TestDeepMerge:
    """Test cases for deep_merge function."""

    def test_deep_merge_simple_dicts(self):
        """Test deep merging of simple dictionaries."""
        base = {'a': 1, 'b': 2}
        update = {'b': 3, 'c': 4}

        result = deep_merge(base, update)

        assert result == {'a': 1, 'b': 3, 'c': 4}
        # Ensure original dicts are not modified
        assert base == {'a': 1, 'b': 2}
        assert update == {'b': 3, 'c': 4}

    def test_deep_merge_nested_dicts(self):
        """Test deep merging of nested dictionaries."""
        base = {'forms': {'identity_key': 'hash', 'max_visible_items': 3}}
        update = {'forms': {'max_visible_items': 5}}

        result = deep_merge(base, update)

        assert result == {'forms': {'identity_key': 'hash', 'max_visible_items': 5}}

    def test_deep_merge_non_dict_values(self):
        """Test deep merging when values are not dictionaries."""
        base = {'a': {'nested': 1}, 'b': [1, 2, 3]}
        update = {'a': {'nested': 2}, 'b': [4, 5, 6]}

        result = deep_merge(base, update)

        assert result == {'a': {'nested': 2}, 'b': [4, 5, 6]}


class TestGetDefaultConfig:
    """Test cases for get_default_config function."""

    def test_get_default_config_structure(self):
        """Test that default config has expected structure."""
        config = get_default_config()

        for section in ['app', 'logging', 'forms', 'messages', 'schema']:
            assert section in config
        assert config['forms']['identity_key'] == 'hash'
        assert config['forms']['max_visible_items'] == 3
        assert config['messages']['required'] == 'This field is required'

    def test_defaults_are_fresh_copies(self):
        config = get_default_config()
        config['forms']['identity_key'] = 'id'

        assert get_default_config()['forms']['identity_key'] == 'hash'


class TestLoadConfig:
    """Test cases for load_config function."""

    def test_missing_file_uses_defaults(self, isolated_config):
        assert load_config() == get_default_config()

    def test_user_values_override_defaults(self, isolated_config):
        isolated_config.write_text(yaml.safe_dump({'forms': {'identity_key': 'id'}}), encoding='utf-8')

        config = load_config()

        assert config['forms']['identity_key'] == 'id'
        assert config['forms']['max_visible_items'] == 3

    def test_config_is_cached(self, isolated_config):
        first = load_config()
        isolated_config.write_text(yaml.safe_dump({'app': {'name': 'Other'}}), encoding='utf-8')

        assert load_config() is first
        assert reload_config()['app']['name'] == 'Other'

    def test_explicit_path_bypasses_cache(self, isolated_config, tmp_path):
        other = tmp_path / 'other.yaml'
        other.write_text(yaml.safe_dump({'app': {'version': '9'}}), encoding='utf-8')

        assert load_config(other)['app']['version'] == '9'
        assert config_loader._config_cache is None

    def test_empty_file(self, isolated_config):
        isolated_config.write_text('', encoding='utf-8')

        assert load_config() == get_default_config()

    def test_invalid_yaml_falls_back(self, isolated_config):
        isolated_config.write_text('forms: [unclosed', encoding='utf-8')

        assert load_config() == get_default_config()

    def test_invalid_yaml_strict(self, isolated_config):
        isolated_config.write_text('forms: [unclosed', encoding='utf-8')

        with pytest.raises(ConfigurationLoadError):
            load_config(isolated_config, strict=True)

    def test_non_mapping_strict(self, isolated_config):
        isolated_config.write_text('- a\n- b\n', encoding='utf-8')

        assert load_config(isolated_config) == get_default_config()
        with pytest.raises(ConfigurationLoadError):
            load_config(isolated_config, strict=True)


class TestConfigHelpers:
    """Test cases for get_config_value and logging helpers."""

    def test_get_config_value(self, isolated_config):
        isolated_config.write_text(yaml.safe_dump({'forms': {'max_visible_items': 5}}), encoding='utf-8')

        assert get_config_value('forms', 'max_visible_items') == 5
        assert get_config_value('forms', 'missing', 'x') == 'x'
        assert get_config_value('nope', 'key', 1) == 1

    @pytest.mark.parametrize("level_str, expected", [
        ('DEBUG', logging.DEBUG),
        ('info', logging.INFO),
        ('Warning', logging.WARNING),
        ('bogus', logging.INFO),
    ])
    def test_get_logging_level(self, level_str, expected):
        assert get_logging_level(level_str) == expected

    def test_configure_logging(self, isolated_config, monkeypatch):
        isolated_config.write_text(yaml.safe_dump({'logging': {'level': 'DEBUG'}}), encoding='utf-8')
        calls = []
        monkeypatch.setattr(logging, 'basicConfig', lambda **kwargs: calls.append(kwargs))

        level = config_loader.configure_logging()

        assert level == logging.DEBUG
        assert calls[0]['level'] == logging.DEBUG
