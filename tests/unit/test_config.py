"""Tests for configuration loading."""

import pytest

from stepflow.config import load_config
from stepflow.memory import SQLiteMemoryStore, get_memory_store
from stepflow.runtime import WorkflowRuntime


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
engine:
  max_iterations: 7
  parallel_failure: await_all
memory:
  history_limit: 3
telemetry:
  enabled: false
"""
    )
    monkeypatch.setenv("STEPFLOW_CONFIG", str(config_path))

    config = load_config()
    assert config.engine.max_iterations == 7
    assert config.engine.parallel_failure == "await_all"
    assert config.memory.history_limit == 3
    assert config.telemetry.enabled is False


def test_load_config_defaults_when_missing(tmp_path, monkeypatch):
    monkeypatch.setenv("STEPFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("STEPFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("STEPFLOW_MAX_ITERATIONS", raising=False)

    config = load_config()
    assert config.engine.max_iterations == 100
    assert config.engine.parallel_failure == "fail_fast"
    assert config.memory.database_url is None


def test_null_max_iterations_means_unbounded(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("engine:\n  max_iterations: null\n")

    config = load_config(str(config_path))
    assert config.engine.max_iterations is None


def test_env_overrides(tmp_path, monkeypatch):
    db_path = tmp_path / "memory.db"
    monkeypatch.setenv("STEPFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.setenv("STEPFLOW_DATABASE_URL", f"sqlite://{db_path}")
    monkeypatch.setenv("STEPFLOW_MAX_ITERATIONS", "12")

    config = load_config()
    assert config.memory.database_url == f"sqlite://{db_path}"
    assert config.engine.max_iterations == 12


def test_runtime_from_config_uses_sqlite(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"""
memory:
  database_url: sqlite://{tmp_path / "memory.db"}
engine:
  max_iterations: 5
"""
    )
    config = load_config(str(config_path))

    runtime = WorkflowRuntime.from_config(config)
    assert isinstance(runtime.memory, SQLiteMemoryStore)
    assert runtime.max_iterations == 5
    assert runtime.telemetry is not None


def test_get_memory_store_rejects_unknown_backend():
    with pytest.raises(ValueError):
        get_memory_store("redis://localhost:6379")
