"""Tests for driver option resolution and validation."""

import argparse

import pytest

from vscale_machine.config import (
    DEFAULT_MADE_FROM,
    DriverOptions,
    add_flags,
    create_flags,
    load_config_file,
    options_from_args,
    resolve_options,
)
from vscale_machine.errors import ConfigError, CredentialError


def _parse(*argv):
    parser = argparse.ArgumentParser()
    add_flags(parser)
    return parser.parse_args(argv)


# ── create_flags ─────────────────────────────────────────────────


def test_create_flags_env_vars():
    env_vars = {flag.name: flag.env_var for flag in create_flags()}
    assert env_vars["vscale-access-token"] == "VSCALE_ACCESS_TOKEN"
    assert env_vars["vscale-location"] == "VSCALE_LOCATION"
    assert env_vars["vscale-rplan"] == "VSCALE_RPLAN"
    assert env_vars["vscale-made-from"] == "VSCALE_MADE_FROM"
    assert env_vars["vscale-swap-file"] == "VSCALE_SWAP_FILE"


# ── resolve_options ──────────────────────────────────────────────


def test_resolve_defaults():
    options = resolve_options(env={})
    assert options.access_token == ""
    assert options.location == "spb0"
    assert options.rplan == "small"
    assert options.made_from == DEFAULT_MADE_FROM
    assert options.swap_file == 0
    assert options.poll_interval == 1.0
    assert options.poll_max_attempts == 120
    assert options.best_effort_cleanup is False


def test_resolve_from_env():
    env = {
        "VSCALE_ACCESS_TOKEN": "env-token",
        "VSCALE_LOCATION": "msk0",
        "VSCALE_SWAP_FILE": "512",
        "VSCALE_BEST_EFFORT_CLEANUP": "true",
    }
    options = resolve_options(env=env)
    assert options.access_token == "env-token"
    assert options.location == "msk0"
    assert options.swap_file == 512
    assert options.best_effort_cleanup is True


def test_resolve_precedence_flag_over_file_over_env():
    env = {"VSCALE_RPLAN": "large", "VSCALE_LOCATION": "msk0", "VSCALE_MADE_FROM": "debian_8.1_64_001_master"}
    file_config = {"rplan": "medium", "location": "spb0"}
    flags = {"vscale_rplan": "huge"}

    options = resolve_options(flags, file_config, env)

    assert options.rplan == "huge"
    assert options.location == "spb0"
    assert options.made_from == "debian_8.1_64_001_master"


def test_resolve_file_accepts_underscored_keys():
    options = resolve_options(file_config={"swap_file": 256, "access-token": "t"}, env={})
    assert options.swap_file == 256
    assert options.access_token == "t"


def test_resolve_invalid_int():
    with pytest.raises(ConfigError, match="--vscale-swap-file"):
        resolve_options(env={"VSCALE_SWAP_FILE": "lots"})


def test_resolve_rejects_bool_for_int():
    with pytest.raises(ConfigError, match="--vscale-swap-file"):
        resolve_options(file_config={"swap-file": True})


def test_resolve_rejects_fractional_int():
    with pytest.raises(ConfigError, match="not a whole number"):
        resolve_options(file_config={"poll-max-attempts": 1.5})


def test_resolve_accepts_whole_float_for_int():
    options = resolve_options(file_config={"swap-file": 512.0})
    assert options.swap_file == 512
    assert isinstance(options.swap_file, int)


def test_resolve_rejects_bool_for_float():
    with pytest.raises(ConfigError, match="--vscale-poll-interval"):
        resolve_options(file_config={"poll-interval": False})


# ── validate ─────────────────────────────────────────────────────


def test_validate_missing_token():
    with pytest.raises(CredentialError, match="--vscale-access-token"):
        DriverOptions().validate()


def test_validate_negative_swap():
    with pytest.raises(ConfigError, match="swap"):
        DriverOptions(access_token="t", swap_file=-1).validate()


def test_validate_zero_attempts():
    with pytest.raises(ConfigError, match="max-attempts"):
        DriverOptions(access_token="t", poll_max_attempts=0).validate()


def test_host_record_and_poll_policy():
    options = DriverOptions(access_token="t", rplan="medium", swap_file=128, poll_interval=0.5, poll_max_attempts=10)
    record = options.host_record(machine_name="m", store_path="/store/m")
    assert record.plan == "medium"
    assert record.swap_size_mb == 128
    assert record.machine_name == "m"
    assert options.poll_policy.interval == 0.5
    assert options.poll_policy.max_attempts == 10


# ── load_config_file ─────────────────────────────────────────────


def test_load_config_file(tmp_path, caplog):
    path = tmp_path / "vscale.yaml"
    path.write_text("rplan: medium\nswap-file: 1024\nbogus: 1\n")

    with caplog.at_level("WARNING"):
        config = load_config_file(str(path))

    assert config["rplan"] == "medium"
    assert config["swap-file"] == 1024
    assert "bogus" in caplog.text


def test_load_config_file_missing(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config_file(str(tmp_path / "missing.yaml"))


def test_load_config_file_not_mapping(tmp_path):
    path = tmp_path / "vscale.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ConfigError, match="mapping"):
        load_config_file(str(path))


def test_load_config_file_invalid_yaml(tmp_path):
    path = tmp_path / "vscale.yaml"
    path.write_text("rplan: [unclosed\n")
    with pytest.raises(ConfigError, match="YAML"):
        load_config_file(str(path))


# ── options_from_args ────────────────────────────────────────────


def test_options_from_args(monkeypatch, tmp_path):
    monkeypatch.delenv("VSCALE_ACCESS_TOKEN", raising=False)
    path = tmp_path / "vscale.yaml"
    path.write_text("access-token: file-token\nlocation: msk0\n")

    args = _parse("--config", str(path), "--vscale-swap-file", "64", "--vscale-best-effort-cleanup")
    options = options_from_args(args)

    assert options.access_token == "file-token"
    assert options.location == "msk0"
    assert options.swap_file == 64
    assert options.best_effort_cleanup is True


def test_options_from_args_requires_token(monkeypatch):
    monkeypatch.delenv("VSCALE_ACCESS_TOKEN", raising=False)
    with pytest.raises(CredentialError):
        options_from_args(_parse())
