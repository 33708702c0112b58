"""設定のユニットテスト"""

from pathlib import Path

import pytest
from featureflow_client import ClientConfig, ConfigError, FeatureflowErrorCodes, load_config
from featureflow_client.config import DEFAULT_BASE_URL, DEFAULT_EVENTS_URL


def test_defaults() -> None:
    config = ClientConfig()
    assert config.base_url == DEFAULT_BASE_URL
    assert config.events_url == DEFAULT_EVENTS_URL
    assert config.default_features == {}
    assert config.init_on_cache is False
    assert config.offline is False
    assert config.unique_evals is True
    assert config.timeout == 10_000
    assert config.cache_ttl == 10_000


def test_from_mapping_accepts_camel_case() -> None:
    """camelCase のキーを受け付ける。"""
    config = ClientConfig.from_mapping(
        {
            "baseUrl": "http://localhost:8080",
            "defaultFeatures": {"f": "on"},
            "initOnCache": True,
            "uniqueEvals": False,
            "cacheTTL": 0,
        }
    )
    assert config.base_url == "http://localhost:8080"
    assert config.default_features == {"f": "on"}
    assert config.init_on_cache is True
    assert config.unique_evals is False
    assert config.cache_ttl == 0


def test_from_mapping_accepts_snake_case() -> None:
    config = ClientConfig.from_mapping({"events_url": "http://events", "offline": True})
    assert config.events_url == "http://events"
    assert config.offline is True


def test_unknown_option_is_rejected() -> None:
    with pytest.raises(ConfigError) as exc_info:
        ClientConfig.from_mapping({"pollInterval": 5})
    assert exc_info.value.code == FeatureflowErrorCodes.VALIDATION


def test_invalid_values_are_rejected() -> None:
    with pytest.raises(ConfigError):
        ClientConfig.from_mapping({"timeout": 0})
    with pytest.raises(ConfigError):
        ClientConfig.from_mapping({"cacheTTL": -1})


def test_load_config_reads_featureflow_section(tmp_path: Path) -> None:
    """アプリ設定ファイル内の featureflow セクションを読む。"""
    config_file = tmp_path / "app.yaml"
    config_file.write_text(
        "app:\n  name: shop\n"
        "featureflow:\n  baseUrl: http://localhost:9000\n  timeout: 3000\n"
    )
    config = load_config(config_file)
    assert config.base_url == "http://localhost:9000"
    assert config.timeout == 3000


def test_load_config_unquoted_on_off_are_variants(tmp_path: Path) -> None:
    config_file = tmp_path / "featureflow.yaml"
    config_file.write_text("defaultFeatures:\n  a: on\n  b: off\n  c: beta\n")
    config = load_config(config_file)
    assert config.default_features == {"a": "on", "b": "off", "c": "beta"}


def test_load_config_env_override_merges_default_features(tmp_path: Path) -> None:
    """環境別設定は既定フィーチャーをキー単位で上書きする。"""
    base_file = tmp_path / "base.yaml"
    base_file.write_text("timeout: 5000\ndefaultFeatures:\n  a: off\n  b: off\n")
    env_file = tmp_path / "prod.yaml"
    env_file.write_text("featureflow:\n  default_features:\n    b: on\n  cacheTTL: 0\n")
    config = load_config(base_file, env_file)
    assert config.timeout == 5000
    assert config.cache_ttl == 0
    assert config.default_features == {"a": "off", "b": "on"}


def test_load_config_mixed_key_styles_do_not_conflict(tmp_path: Path) -> None:
    base_file = tmp_path / "base.yaml"
    base_file.write_text("baseUrl: http://base\n")
    env_file = tmp_path / "dev.yaml"
    env_file.write_text("base_url: http://dev\n")
    assert load_config(base_file, env_file).base_url == "http://dev"


def test_load_config_env_not_exists(tmp_path: Path) -> None:
    base_file = tmp_path / "base.yaml"
    base_file.write_text("offline: true\n")
    config = load_config(base_file, tmp_path / "missing.yaml")
    assert config.offline is True


def test_load_config_file_not_found(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as exc_info:
        load_config(tmp_path / "missing.yaml")
    assert exc_info.value.code == FeatureflowErrorCodes.READ_FILE


def test_load_config_invalid_yaml(tmp_path: Path) -> None:
    bad_file = tmp_path / "bad.yaml"
    bad_file.write_text("offline: {invalid: yaml: content:\n")
    with pytest.raises(ConfigError) as exc_info:
        load_config(bad_file)
    assert exc_info.value.code == FeatureflowErrorCodes.PARSE_YAML


def test_load_config_section_must_be_mapping(tmp_path: Path) -> None:
    config_file = tmp_path / "app.yaml"
    config_file.write_text("featureflow: enabled\n")
    with pytest.raises(ConfigError) as exc_info:
        load_config(config_file)
    assert exc_info.value.code == FeatureflowErrorCodes.PARSE_YAML


def test_load_config_rejects_unknown_option(tmp_path: Path) -> None:
    config_file = tmp_path / "featureflow.yaml"
    config_file.write_text("featureflow:\n  pollInterval: 5\n")
    with pytest.raises(ConfigError) as exc_info:
        load_config(config_file)
    assert exc_info.value.code == FeatureflowErrorCodes.VALIDATION
