"""クライアント設定（pydantic BaseModel）と YAML 読み込み"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import ConfigError, FeatureflowErrorCodes
from .models import OFF, ON

DEFAULT_BASE_URL = "https://app.featureflow.io"
DEFAULT_EVENTS_URL = "https://events.featureflow.io"


class ClientConfig(BaseModel):
    """クライアント設定。camelCase のキーでも指定できる。

    timeout と cache_ttl の単位はミリ秒。
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    base_url: str = Field(default=DEFAULT_BASE_URL, alias="baseUrl")
    events_url: str = Field(default=DEFAULT_EVENTS_URL, alias="eventsUrl")
    default_features: dict[str, str] = Field(default_factory=dict, alias="defaultFeatures")
    init_on_cache: bool = Field(default=False, alias="initOnCache")
    offline: bool = False
    unique_evals: bool = Field(default=True, alias="uniqueEvals")
    timeout: int = Field(default=10_000, gt=0)
    cache_ttl: int = Field(default=10_000, ge=0, alias="cacheTTL")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ClientConfig:
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            raise ConfigError(
                code=FeatureflowErrorCodes.VALIDATION,
                message=f"Config validation failed: {e}",
                cause=e,
            ) from e


CONFIG_SECTION = "featureflow"

_FIELD_NAMES = {
    field.alias: name for name, field in ClientConfig.model_fields.items() if field.alias
}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """override を base に再帰的にマージした新しい辞書を返す。"""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _variant_name(value: Any) -> Any:
    # YAML 1.1 では未クォートの on / off が真偽値になる
    if isinstance(value, bool):
        return ON if value else OFF
    return value


def _normalize(data: dict[str, Any], path: Path) -> dict[str, Any]:
    """featureflow セクションを取り出し、キーをフィールド名に揃える。

    camelCase と snake_case が混在したファイル同士でも正しくマージできるようにする。
    """
    section = data.get(CONFIG_SECTION, data)
    if not isinstance(section, dict):
        raise ConfigError(
            code=FeatureflowErrorCodes.PARSE_YAML,
            message=f"'{CONFIG_SECTION}' section must be a mapping: {path}",
        )
    options = {_FIELD_NAMES.get(key, key): value for key, value in section.items()}
    defaults = options.get("default_features")
    if isinstance(defaults, dict):
        options["default_features"] = {
            str(key): _variant_name(value) for key, value in defaults.items()
        }
    return options


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(
            code=FeatureflowErrorCodes.READ_FILE,
            message=f"Failed to read config file: {path}",
            cause=e,
        ) from e
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(
            code=FeatureflowErrorCodes.PARSE_YAML,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if not isinstance(data, dict):
        raise ConfigError(
            code=FeatureflowErrorCodes.PARSE_YAML,
            message=f"Config file must contain a mapping: {path}",
        )
    return _normalize(data, path)


def load_config(base_path: Path, env_path: Path | None = None) -> ClientConfig:
    """YAML の設定ファイルから ClientConfig を組み立てる。

    オプションはファイル直下か ``featureflow:`` セクションに置く。env_path が
    存在すれば base_path の上にマージされ、default_features はキー単位で上書きされる。
    """
    options = _read_yaml(Path(base_path))
    if env_path is not None and Path(env_path).exists():
        options = deep_merge(options, _read_yaml(Path(env_path)))
    return ClientConfig.from_mapping(options)
