"""条件評価のユニットテスト"""

import re
from datetime import datetime, timezone

import pytest
from featureflow_client import AttributeValue, Operator, matches_condition


def v(raw) -> AttributeValue:
    return AttributeValue.of(raw)


def test_equals_any_value() -> None:
    """equals はいずれかの値と一致すれば真。"""
    assert matches_condition("equals", v("admin"), ["user", "admin"]) is True
    assert matches_condition("equals", v("guest"), ["user", "admin"]) is False


def test_equals_compares_string_forms() -> None:
    """equals は文字列表現で比較する。"""
    assert matches_condition("equals", v(5), ["5"]) is True
    assert matches_condition("equals", v(5.0), ["5"]) is True
    assert matches_condition("equals", v("10"), [10]) is True


def test_not_equals_requires_all_to_differ() -> None:
    assert matches_condition("notEquals", v("a"), ["b", "c"]) is True
    assert matches_condition("notEquals", v("a"), ["b", "a"]) is False


def test_contains_and_not_contains() -> None:
    assert matches_condition("contains", v("hello world"), ["xyz", "world"]) is True
    assert matches_condition("contains", v("hello"), ["xyz"]) is False
    assert matches_condition("notContains", v("hello"), ["xyz", "abc"]) is True
    assert matches_condition("notContains", v("hello"), ["xyz", "ell"]) is False


def test_starts_with_and_ends_with() -> None:
    assert matches_condition("startsWith", v("user@example.com"), ["admin", "user"]) is True
    assert matches_condition("startsWith", v("user@example.com"), ["example"]) is False
    assert matches_condition("endsWith", v("user@example.com"), ["@example.com"]) is True
    assert matches_condition("endsWith", v("user@example.com"), [".org"]) is False


def test_numeric_comparisons() -> None:
    """数値比較はいずれかの値を満たせば真。"""
    assert matches_condition(Operator.GREATER_THAN, v(10), [5]) is True
    assert matches_condition(Operator.GREATER_THAN, v(10), [10]) is False
    assert matches_condition(Operator.GREATER_THAN_OR_EQUAL, v(10), [10]) is True
    assert matches_condition(Operator.LESS_THAN, v(3), [20, 1]) is True
    assert matches_condition(Operator.LESS_THAN_OR_EQUAL, v(3), [2]) is False


def test_numeric_comparison_with_string_attribute() -> None:
    assert matches_condition("greaterThan", v("42"), ["41"]) is True


def test_numeric_comparison_with_non_numeric_is_false() -> None:
    """数値化できない値との比較は偽（例外にならない）。"""
    assert matches_condition("greaterThan", v("abc"), [1]) is False
    assert matches_condition("lessThan", v(1), ["abc"]) is False


def test_date_comparisons() -> None:
    """日時属性は日時として比較する。"""
    now = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert matches_condition("greaterThan", v(now), ["2024-01-01T00:00:00Z"]) is True
    assert matches_condition("lessThan", v(now), ["2024-01-01T00:00:00Z"]) is False
    assert matches_condition("lessThanOrEqual", v(now), ["2024-06-01T12:00:00+00:00"]) is True
    assert matches_condition("greaterThanOrEqual", v(now), ["2025-01-01"]) is False


def test_date_comparison_with_epoch_millis() -> None:
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    millis = int(datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp() * 1000)
    assert matches_condition("greaterThan", v(now), [millis]) is True


def test_date_comparison_with_unparseable_value_is_false() -> None:
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    assert matches_condition("greaterThan", v(now), ["not a date"]) is False


def test_in_uses_exact_membership() -> None:
    """in は型変換なしの完全一致。"""
    assert matches_condition("in", v("a"), ["a", "b"]) is True
    assert matches_condition("in", v(1), [1, 2]) is True
    assert matches_condition("in", v("1"), [1, 2]) is False


def test_not_in() -> None:
    assert matches_condition("notIn", v("c"), ["a", "b"]) is True
    assert matches_condition("notIn", v("a"), ["a", "b"]) is False
    assert matches_condition("notIn", v("1"), [1]) is True


def test_matches_regex() -> None:
    assert matches_condition("matches", v("user-123"), [r"^user-\d+$"]) is True
    assert matches_condition("matches", v("admin"), [r"^user-", r"min$"]) is True
    assert matches_condition("matches", v("admin"), [r"^user-"]) is False


def test_matches_invalid_regex_raises() -> None:
    """不正な正規表現は呼び出し元へ伝播する。"""
    with pytest.raises(re.error):
        matches_condition("matches", v("x"), ["("])


def test_unknown_operator_fails_closed() -> None:
    assert matches_condition("approximately", v("a"), ["a"]) is False


def test_empty_values() -> None:
    """比較値が空の場合、any は偽・all は真。"""
    assert matches_condition("equals", v("a"), []) is False
    assert matches_condition("notEquals", v("a"), []) is True
