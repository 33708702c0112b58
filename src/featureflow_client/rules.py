"""ルールマッチャー（バリアント解決）"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .conditions import matches_condition
from .models import AttributeValue, Condition, Feature, Rule

logger = logging.getLogger(__name__)

DATE_ATTRIBUTE = "featureflow.date"
HOUR_OF_DAY_ATTRIBUTE = "featureflow.hourofday"


@dataclass
class EvaluationContext:
    """ルール評価に使う属性コンテキスト。"""

    attributes: dict[str, list[AttributeValue]] = field(default_factory=dict)

    @classmethod
    def build(cls, attributes: Mapping[str, Any], now: datetime) -> EvaluationContext:
        """ユーザー属性と時刻由来の属性からコンテキストを組み立てる。

        時刻由来の属性は毎回上書きされ、同名のユーザー属性より優先される。
        """
        context = {key: AttributeValue.values_of(raw) for key, raw in attributes.items()}
        context[DATE_ATTRIBUTE] = [AttributeValue.of(now)]
        context[HOUR_OF_DAY_ATTRIBUTE] = [AttributeValue.of(now.hour)]
        return cls(attributes=context)


def _condition_passes(condition: Condition, context: EvaluationContext) -> bool:
    values = context.attributes.get(condition.target)
    if not values:
        return True
    try:
        return any(
            matches_condition(condition.operator, value, condition.values) for value in values
        )
    except re.error as e:
        logger.warning(
            "Invalid condition pattern, treating condition as failed",
            extra={"target": condition.target, "error": str(e)},
        )
        return False


def rule_matches(rule: Rule, context: EvaluationContext) -> bool:
    if rule.audience is None or not rule.audience.conditions:
        return True
    return all(_condition_passes(c, context) for c in rule.audience.conditions)


def resolve_variant(feature: Feature, context: EvaluationContext) -> str | None:
    """フィーチャーをバリアントに解決する。どのルールにもマッチしなければ None。"""
    if isinstance(feature, str):
        return feature
    for rule in feature.rules:
        if rule_matches(rule, context):
            return rule.variant
    return None
