"""条件評価（純粋関数）"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from enum import StrEnum

from .models import AttributeKind, AttributeValue, number_to_string

ConditionValue = str | int | float


class Operator(StrEnum):
    """条件演算子。"""

    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    GREATER_THAN = "greaterThan"
    GREATER_THAN_OR_EQUAL = "greaterThanOrEqual"
    LESS_THAN = "lessThan"
    LESS_THAN_OR_EQUAL = "lessThanOrEqual"
    IN = "in"
    NOT_IN = "notIn"
    MATCHES = "matches"


_COMPARATORS: dict[Operator, Callable[[float, float], bool]] = {
    Operator.GREATER_THAN: lambda a, b: a > b,
    Operator.GREATER_THAN_OR_EQUAL: lambda a, b: a >= b,
    Operator.LESS_THAN: lambda a, b: a < b,
    Operator.LESS_THAN_OR_EQUAL: lambda a, b: a <= b,
}


def _text(value: ConditionValue) -> str:
    if isinstance(value, str):
        return value
    return number_to_string(value)


def _number(value: ConditionValue) -> float:
    """数値化できない値は NaN（どの比較も偽になる）。"""
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _timestamp(value: ConditionValue | datetime) -> float:
    """日時を epoch 秒に変換する。数値は epoch ミリ秒とみなす。"""
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str):
        try:
            moment = datetime.fromisoformat(value)
        except ValueError:
            return math.nan
    else:
        return _number(value) / 1000.0
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.timestamp()


def _ordered(operator: Operator, value: AttributeValue, values: Sequence[ConditionValue]) -> bool:
    compare = _COMPARATORS[operator]
    if value.kind is AttributeKind.DATETIME:
        left = _timestamp(value.raw)
        return any(compare(left, _timestamp(v)) for v in values)
    left = _number(value.raw)  # type: ignore[arg-type]
    return any(compare(left, _number(v)) for v in values)


def matches_condition(
    operator: str,
    value: AttributeValue,
    values: Sequence[ConditionValue],
) -> bool:
    """1 つの属性値に対して条件を評価する。

    Args:
        operator: 演算子名（``Operator`` の値）。未知の演算子は常に偽。
        value: コンテキストの属性値
        values: 条件の比較対象値

    Returns:
        条件を満たせば True

    Raises:
        re.error: ``matches`` の正規表現が不正な場合
    """
    try:
        op = Operator(operator)
    except ValueError:
        return False

    text = value.as_string()
    if op is Operator.EQUALS:
        return any(_text(v) == text for v in values)
    if op is Operator.NOT_EQUALS:
        return all(_text(v) != text for v in values)
    if op is Operator.CONTAINS:
        return any(_text(v) in text for v in values)
    if op is Operator.NOT_CONTAINS:
        return all(_text(v) not in text for v in values)
    if op is Operator.STARTS_WITH:
        return any(text.startswith(_text(v)) for v in values)
    if op is Operator.ENDS_WITH:
        return any(text.endswith(_text(v)) for v in values)
    if op in _COMPARATORS:
        return _ordered(op, value, values)
    if op is Operator.IN:
        return value.kind is not AttributeKind.DATETIME and value.raw in values
    if op is Operator.NOT_IN:
        return value.kind is AttributeKind.DATETIME or value.raw not in values
    # Operator.MATCHES
    return any(re.search(_text(v), text) is not None for v in values)
