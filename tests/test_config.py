"""
Unit Tests — Configuration
==========================
Layering of defaults, JSON file, environment and flags.
"""
import pytest

from provider_agent.config import AgentConfig, build_config, load_config, save_config


def test_defaults():
    cfg = build_config(env={}, overrides={"provider": "0xabc"})
    assert cfg.coordinator_url == "http://localhost:8080"
    assert cfg.poll_interval == 5.0
    assert cfg.output_root == "./outputs"
    assert cfg.mount_point == "/out"
    assert cfg.job_timeout is None
    assert str(cfg.resolved_spool_path).endswith(".pending-results.jsonl")


def test_layer_precedence():
    cfg = build_config(
        file_cfg  = {"provider": "0xfile", "poll_interval": 30, "coordinator_url": "http://file"},
        env       = {"PROVIDER_ADDR": "0xenv", "PROVIDER_POLL_INTERVAL": "12"},
        overrides = {"poll_interval": 2, "coordinator_url": None},
    )
    assert cfg.provider == "0xenv"
    assert cfg.poll_interval == 2.0
    assert cfg.coordinator_url == "http://file"


def test_unknown_file_keys_ignored():
    cfg = build_config(file_cfg={"provider": "0xabc", "region": "us-east-1"}, env={})
    assert cfg.provider == "0xabc"


def test_env_job_timeout_parsed():
    cfg = build_config(env={"PROVIDER_ADDR": "0xabc", "PROVIDER_JOB_TIMEOUT": "90"})
    assert cfg.job_timeout == 90.0


@pytest.mark.parametrize("overrides", [
    {},
    {"provider": "0xabc", "poll_interval": 0},
    {"provider": "0xabc", "job_timeout": -1},
    {"provider": "0xabc", "mount_point": "out"},
])
def test_invalid(overrides):
    with pytest.raises(ValueError):
        build_config(env={}, overrides=overrides)


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "cfg" / "config.json"
    cfg = AgentConfig(provider="0xabc", poll_interval=7)

    save_config(path, cfg.to_dict())

    assert build_config(file_cfg=load_config(path), env={}) == cfg


def test_load_missing_file(tmp_path):
    assert load_config(tmp_path / "nope.json") == {}
