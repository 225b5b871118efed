"""
Tests for configuration loading
"""

import pytest

from taskflow.config import Config, ConfigError


def write(tmp_path, text):
    path = tmp_path / "taskflow.yaml"
    path.write_text(text)
    return path


def test_defaults_without_file(tmp_path):
    cfg = Config.load(str(tmp_path / "missing.yaml"), environ={})
    assert cfg.port == 3000
    assert cfg.host == "127.0.0.1"
    assert cfg.backend_mode == "memory"


def test_yaml_values(tmp_path):
    path = write(tmp_path, "port: 8080\nsupabase_url: https://x.supabase.co\nsupabase_key: k\n")
    cfg = Config.load(str(path), environ={})
    assert cfg.port == 8080
    assert cfg.backend_mode == "remote"


def test_unknown_keys_ignored(tmp_path):
    path = write(tmp_path, "port: 3001\nfavourite_colour: blue\n")
    assert Config.load(str(path), environ={}).port == 3001


def test_env_overrides_file(tmp_path):
    path = write(tmp_path, "port: 8080\nlog_level: INFO\n")
    cfg = Config.load(str(path), environ={"TASKFLOW_PORT": "9000", "TASKFLOW_LOG_LEVEL": "DEBUG"})
    assert cfg.port == 9000
    assert cfg.log_level == "DEBUG"


def test_config_path_from_env(tmp_path):
    path = write(tmp_path, "host: 0.0.0.0\n")
    cfg = Config.load(environ={"TASKFLOW_CONFIG": str(path)})
    assert cfg.host == "0.0.0.0"


def test_blank_env_is_ignored(tmp_path):
    cfg = Config.load(str(tmp_path / "none.yaml"), environ={"TASKFLOW_PORT": "  "})
    assert cfg.port == 3000


def test_bad_env_cast(tmp_path):
    with pytest.raises(ConfigError, match="TASKFLOW_PORT"):
        Config.load(str(tmp_path / "none.yaml"), environ={"TASKFLOW_PORT": "abc"})


def test_non_mapping_file(tmp_path):
    path = write(tmp_path, "- just\n- a list\n")
    with pytest.raises(ConfigError, match="mapping"):
        Config.load(str(path), environ={})


def test_unknown_mode(tmp_path):
    with pytest.raises(ConfigError, match="Unknown mode"):
        Config.load(str(tmp_path / "none.yaml"), environ={"TASKFLOW_MODE": "cloud"})


def test_remote_mode_needs_credentials(tmp_path):
    with pytest.raises(ConfigError, match="supabase_url"):
        Config.load(str(tmp_path / "none.yaml"), environ={"TASKFLOW_MODE": "remote"})


def test_explicit_memory_mode_with_credentials():
    cfg = Config(supabase_url="https://x", supabase_key="k", mode="memory")
    cfg.validate()
    assert cfg.backend_mode == "memory"


def test_max_sessions_from_env(tmp_path):
    cfg = Config.load(str(tmp_path / "none.yaml"), environ={"TASKFLOW_MAX_SESSIONS": "50"})
    assert cfg.max_sessions == 50


def test_max_sessions_must_be_positive():
    with pytest.raises(ConfigError, match="max_sessions"):
        Config(max_sessions=0).validate()
