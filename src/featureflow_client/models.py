"""featureflow データモデル"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Any, ClassVar, TypeAlias

OFF = "off"
ON = "on"


class AttributeKind(StrEnum):
    """属性値の種別。"""

    STRING = "string"
    NUMBER = "number"
    DATETIME = "datetime"


@dataclass(frozen=True)
class AttributeValue:
    """種別タグ付きの属性値。

    ユーザー属性は文字列・数値・日時、またはそれらの配列を取る。
    配列は ``values_of`` で AttributeValue のリストに展開される。
    """

    kind: AttributeKind
    raw: str | int | float | datetime

    @classmethod
    def of(cls, raw: Any) -> AttributeValue:
        if isinstance(raw, AttributeValue):
            return raw
        # bool は int のサブクラスなので先に弾く
        if isinstance(raw, bool):
            raise TypeError(f"Unsupported attribute value type: {type(raw).__name__}")
        if isinstance(raw, str):
            return cls(AttributeKind.STRING, raw)
        if isinstance(raw, (int, float)):
            return cls(AttributeKind.NUMBER, raw)
        if isinstance(raw, date):
            return cls(AttributeKind.DATETIME, _as_datetime(raw))
        raise TypeError(f"Unsupported attribute value type: {type(raw).__name__}")

    @classmethod
    def values_of(cls, raw: Any) -> list[AttributeValue]:
        """単一値または配列を AttributeValue のリストにする。"""
        if isinstance(raw, (list, tuple)):
            return [cls.of(item) for item in raw]
        return [cls.of(raw)]

    def as_string(self) -> str:
        if self.kind is AttributeKind.DATETIME:
            return _iso(self.raw)  # type: ignore[arg-type]
        if self.kind is AttributeKind.NUMBER:
            return number_to_string(self.raw)  # type: ignore[arg-type]
        return str(self.raw)

    def to_json(self) -> str | int | float:
        if self.kind is AttributeKind.DATETIME:
            return _iso(self.raw)  # type: ignore[arg-type]
        return self.raw  # type: ignore[return-value]


def number_to_string(value: int | float) -> str:
    """整数値の float は小数点なしで表す（5.0 -> "5"）。"""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _as_datetime(value: date) -> datetime:
    """date は UTC の 0 時として扱う。"""
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        return value.isoformat(timespec="milliseconds")
    return (
        value.astimezone(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def _attribute_to_json(raw: Any) -> Any:
    if isinstance(raw, (list, tuple)):
        return [_attribute_to_json(item) for item in raw]
    if isinstance(raw, date):
        return _iso(_as_datetime(raw))
    return raw


@dataclass
class User:
    """評価対象ユーザー。id がキャッシュのパーティションキーになる。"""

    id: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "attributes": {k: _attribute_to_json(v) for k, v in self.attributes.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        return cls(id=data.get("id", ""), attributes=dict(data.get("attributes") or {}))


@dataclass
class Condition:
    """オーディエンス条件。"""

    target: str
    operator: str
    values: list[str | int | float] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Condition:
        values = data.get("values") or []
        if not isinstance(values, list):
            values = [values]
        return cls(
            target=data["target"],
            operator=data["operator"],
            values=values,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "operator": self.operator,
            "values": list(self.values),
        }


@dataclass
class Audience:
    """条件の論理積。"""

    conditions: list[Condition] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Audience:
        return cls(conditions=[Condition.from_dict(c) for c in data.get("conditions") or []])

    def to_dict(self) -> dict[str, Any]:
        return {"conditions": [c.to_dict() for c in self.conditions]}


@dataclass
class Rule:
    """ルール。audience が無ければ無条件にマッチする。"""

    variant: str
    audience: Audience | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Rule:
        audience = data.get("audience")
        return cls(
            variant=data["variant"],
            audience=Audience.from_dict(audience) if audience else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"variant": self.variant}
        if self.audience is not None:
            data["audience"] = self.audience.to_dict()
        return data


@dataclass
class RuleFeature:
    """ルールベースのフィーチャー定義。"""

    rules: list[Rule] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RuleFeature:
        rules = data.get("rules") or []
        if not isinstance(rules, list):
            raise ValueError("Feature rules must be a list")
        return cls(rules=[Rule.from_dict(r) for r in rules])

    def to_dict(self) -> dict[str, Any]:
        return {"rules": [r.to_dict() for r in self.rules]}


Feature: TypeAlias = str | RuleFeature


def feature_from_json(data: Any) -> Feature:
    """JSON 値からフィーチャーを復元する。文字列は静的なバリアント。"""
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        return RuleFeature.from_dict(data)
    raise ValueError(f"Invalid feature definition: {data!r}")


def feature_to_json(feature: Feature) -> Any:
    if isinstance(feature, str):
        return feature
    return feature.to_dict()


def features_from_json(data: Any) -> dict[str, Feature]:
    if not isinstance(data, dict):
        raise ValueError("Feature set must be a JSON object")
    try:
        return {str(key): feature_from_json(value) for key, value in data.items()}
    except (KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"Invalid feature definition: {e}") from e


def features_to_json(features: dict[str, Feature]) -> dict[str, Any]:
    return {key: feature_to_json(value) for key, value in features.items()}


@dataclass(frozen=True)
class Evaluation:
    """フィーチャー評価結果。value は常に小文字。"""

    value: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", self.value.lower())

    def is_variant(self, variant: str) -> bool:
        return variant.lower() == self.value

    def is_on(self) -> bool:
        return self.value == ON

    def is_off(self) -> bool:
        return self.value == OFF


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class EvaluateEvent:
    """評価イベント。"""

    kind: ClassVar[str] = "evaluate"

    user: User
    feature_key: str
    variant: str
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "featureKey": self.feature_key,
            "evaluatedVariant": self.variant,
            "impressions": 1,
            "user": self.user.to_dict(),
            "timestamp": _iso(self.timestamp),
        }


@dataclass
class GoalEvent:
    """ゴールイベント。送信時点の評価済みフィーチャーを添付する。"""

    kind: ClassVar[str] = "goal"

    user: User
    goal_key: str
    evaluated_features: dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "goalKey": self.goal_key,
            "impressions": 1,
            "evaluatedFeatures": dict(self.evaluated_features),
            "user": self.user.to_dict(),
            "timestamp": _iso(self.timestamp),
        }


QueuedEvent: TypeAlias = EvaluateEvent | GoalEvent
