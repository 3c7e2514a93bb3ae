import pytest

from app.dashboards.issues import IssueRule, get_issues, rules_for, validate_rule
from app.utils.exceptions import InvalidConfigException

OOS = IssueRule(key="oos", label="Out of stock", column="total_available", type="equals", value=0)


def test_equals_rule_flags_when_condition_fails():
    assert get_issues({"total_available": 0}, [OOS]) == []
    assert get_issues({"total_available": 5}, [OOS]) == ["oos"]


def test_is_null_flags_empty_values():
    rule = IssueRule(key="no_due", label="Missing due date", column="due_date", type="is_null")
    assert get_issues({"due_date": None}, [rule]) == ["no_due"]
    assert get_issues({"due_date": ""}, [rule]) == ["no_due"]
    assert get_issues({}, [rule]) == ["no_due"]
    assert get_issues({"due_date": "2025-01-01"}, [rule]) == []


def test_is_not_null_flags_populated_values():
    rule = IssueRule(key="has_legacy", label="Legacy code set", column="legacy_code", type="is_not_null")
    assert get_issues({"legacy_code": "X1"}, [rule]) == ["has_legacy"]
    assert get_issues({"legacy_code": None}, [rule]) == []


def test_regex_only_checks_populated_values():
    rule = IssueRule(key="bad_number", label="Bad number", column="number", type="regex", pattern=r"^REQ-\d+$")
    assert get_issues({"number": "REQ-12"}, [rule]) == []
    assert get_issues({"number": "12"}, [rule]) == ["bad_number"]
    assert get_issues({"number": None}, [rule]) == []


@pytest.mark.parametrize(
    "rule_type, value, actual, flagged",
    [
        ("gt", 0, 5, False),
        ("gt", 0, -1, True),
        ("gte", 0, 0, False),
        ("lt", 10, 12, True),
        ("lte", "2025-01-31", "2025-02-01", True),
        ("lte", "2025-01-31", "2025-01-31", False),
        ("gt", 0, None, False),
    ],
)
def test_ordering_rules(rule_type, value, actual, flagged):
    rule = IssueRule(key="k", label="k", column="c", type=rule_type, value=value)
    assert (get_issues({"c": actual}, [rule]) == ["k"]) is flagged


def test_membership_and_text_rules():
    in_rule = IssueRule(key="bad_wh", label="Bad warehouse", column="wh", type="in", value=["RTZ", "AMC"])
    not_in = IssueRule(key="closed_wh", label="Closed warehouse", column="wh", type="not_in", value=["OLD"])
    contains = IssueRule(key="no_ref", label="No ref", column="note", type="contains", value="REF")
    not_contains = IssueRule(key="tbd", label="TBD", column="note", type="not_contains", value="tbd")
    row = {"wh": "OLD", "note": "see ref 12, TBD"}
    assert get_issues(row, [in_rule, not_in, contains, not_contains]) == ["bad_wh", "closed_wh", "tbd"]


def test_not_equals_and_duplicates_keep_order():
    rule = IssueRule(key="zero", label="Zero", column="qty", type="not_equals", value=0)
    assert get_issues({"qty": "0"}, [rule, rule]) == ["zero", "zero"]


def test_unknown_type_is_rejected():
    rule = IssueRule(key="k", label="k", column="c", type="fuzzy")
    with pytest.raises(InvalidConfigException):
        get_issues({"c": 1}, [rule])
    with pytest.raises(InvalidConfigException):
        validate_rule(rule)


def test_invalid_regex_fails_validation():
    with pytest.raises(InvalidConfigException):
        validate_rule(IssueRule(key="k", label="k", column="c", type="regex", pattern="("))


def test_rules_for_filters_by_rules_key():
    other = IssueRule(key="x", label="x", column="c", type="is_null", rules_key="secondary")
    assert rules_for([OOS, other], "secondary") == [other]
    assert rules_for([OOS, other], None) == [OOS, other]
