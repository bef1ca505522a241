from pathlib import Path

import pytest

from cann_registry.config import (
    DEFAULT_ELECTRUM_URL,
    DEFAULT_MIN_WAIT_TIME,
    ConfigurationError,
    RegistryConfig,
    load_registry_config,
)

CATEGORY = "ab" * 32


@pytest.fixture(autouse=True)
def isolated_default_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("cann_registry.config.DEFAULT_CONFIG_PATH", tmp_path / "missing.yaml")
    monkeypatch.setattr("cann_registry.config._CONFIG_PATH_OVERRIDE", None)


def test_load_registry_config_prefers_environment_over_yaml(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        f"""
        registry:
          category: "{'cd' * 32}"
          tld: .bch
          network: chipnet
          min_starting_bid: 20000
          artifacts_dir: {tmp_path / 'artifacts'}
        electrum:
          url: http://filehost:50001
          timeout: 5
        """
    )

    env_map = {
        "CANN_CATEGORY": CATEGORY.upper(),
        "CANN_MIN_STARTING_BID": "15000",
        "CANN_ELECTRUM_URL": "https://envhost:443",
    }

    config = load_registry_config(config_path=config_path, env=env_map)

    assert isinstance(config, RegistryConfig)
    assert config.category == CATEGORY
    assert config.network == "chipnet"
    assert config.min_starting_bid == 15000
    assert config.min_wait_time == DEFAULT_MIN_WAIT_TIME
    assert config.artifacts_dir == tmp_path / "artifacts"
    assert config.electrum.url == "https://envhost:443"
    assert config.electrum.timeout == 5.0


def test_overrides_win_over_environment() -> None:
    config = load_registry_config(
        env={"CANN_CATEGORY": CATEGORY, "CANN_NETWORK": "testnet"},
        overrides={"network": "regtest", "electrum_url": "http://127.0.0.1:9999", "fee_rate": 1.5},
    )

    assert config.network == "regtest"
    assert config.electrum.url == "http://127.0.0.1:9999"
    assert config.fee_rate == 1.5


def test_defaults_apply_without_file() -> None:
    config = load_registry_config(env={"CANN_CATEGORY": CATEGORY})

    assert config.tld == ".bch"
    assert config.network == "mainnet"
    assert config.chaingraph_url is None
    assert config.creator_incentive_address is None
    assert config.electrum.url == DEFAULT_ELECTRUM_URL


def test_missing_category_is_reported() -> None:
    with pytest.raises(ConfigurationError, match="CANN_CATEGORY"):
        load_registry_config(env={})


@pytest.mark.parametrize(
    "env,message",
    [
        ({"CANN_CATEGORY": "abcd"}, "32 bytes"),
        ({"CANN_CATEGORY": CATEGORY, "CANN_NETWORK": "signet"}, "Unknown network"),
        ({"CANN_CATEGORY": CATEGORY, "CANN_MIN_WAIT_TIME": "soon"}, "Invalid integer"),
        ({"CANN_CATEGORY": CATEGORY, "CANN_FEE_RATE": "0"}, "fee_rate must be positive"),
        ({"CANN_CATEGORY": CATEGORY, "CANN_CHAINGRAPH_URL": "ftp://index"}, "Chaingraph"),
    ],
)
def test_invalid_values_are_rejected(env: dict, message: str) -> None:
    with pytest.raises(ConfigurationError, match=message):
        load_registry_config(env=env)


def test_explicit_config_path_must_exist(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        load_registry_config(config_path=tmp_path / "absent.yaml", env={"CANN_CATEGORY": CATEGORY})


def test_config_file_must_be_a_mapping(tmp_path: Path) -> None:
    config_path = tmp_path / "config.yaml"
    config_path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigurationError, match="YAML object"):
        load_registry_config(config_path=config_path, env={"CANN_CATEGORY": CATEGORY})


def test_default_path_is_read_when_present(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    default_path = tmp_path / "default.yaml"
    default_path.write_text(f"registry:\n  category: '{CATEGORY}'\n  chaingraph_url: https://gql.example/v1\n")
    monkeypatch.setattr("cann_registry.config.DEFAULT_CONFIG_PATH", default_path)

    config = load_registry_config(env={})

    assert config.category == CATEGORY
    assert config.chaingraph_url == "https://gql.example/v1"
