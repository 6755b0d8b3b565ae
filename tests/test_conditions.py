"""Tests for the conditions library."""

import datetime

import pytest

from flux_release.conditions import (
    Condition,
    ConditionStatus,
    ConditionType,
    Reason,
    get_condition,
    has_condition,
    progressing,
    set_condition,
)


def test_set_condition_appends() -> None:
    """Test setting conditions of different types."""
    conditions = set_condition(
        (), ConditionType.INSTALLED, ConditionStatus.TRUE, Reason.INSTALL_SUCCEEDED, "ok"
    )
    conditions = set_condition(
        conditions,
        ConditionType.READY,
        ConditionStatus.TRUE,
        Reason.RECONCILIATION_SUCCEEDED,
        "ready",
    )
    assert [c.type for c in conditions] == [
        ConditionType.INSTALLED,
        ConditionType.READY,
    ]
    assert conditions[0].reason == "InstallSucceeded"
    assert conditions[1].message == "ready"


def test_set_condition_replaces() -> None:
    """Test that setting a condition twice never leaves duplicates."""
    conditions = set_condition(
        (), ConditionType.READY, ConditionStatus.FALSE, Reason.UPGRADE_FAILED, "boom"
    )
    conditions = set_condition(
        conditions,
        ConditionType.UPGRADED,
        ConditionStatus.FALSE,
        Reason.UPGRADE_FAILED,
        "boom",
    )
    conditions = set_condition(
        conditions,
        ConditionType.READY,
        ConditionStatus.TRUE,
        Reason.UPGRADE_SUCCEEDED,
        "fixed",
    )
    assert [c.type for c in conditions] == [
        ConditionType.UPGRADED,
        ConditionType.READY,
    ]
    ready = get_condition(conditions, ConditionType.READY)
    assert ready
    assert ready.is_true
    assert ready.message == "fixed"


def test_set_condition_idempotent() -> None:
    """Test setting the same condition repeatedly."""
    conditions: tuple[Condition, ...] = ()
    for _ in range(3):
        conditions = set_condition(
            conditions,
            ConditionType.TESTED,
            ConditionStatus.TRUE,
            Reason.TEST_SUCCEEDED,
            "passed",
        )
    assert len(conditions) == 1
    assert conditions[0].type == ConditionType.TESTED


def test_set_condition_does_not_modify_input() -> None:
    """Test that the previous conditions are left untouched."""
    before = progressing()
    after = set_condition(
        before, ConditionType.READY, ConditionStatus.TRUE, Reason.INSTALL_SUCCEEDED, ""
    )
    assert before[0].status == ConditionStatus.UNKNOWN
    assert after[0].status == ConditionStatus.TRUE


def test_progressing() -> None:
    """Test the conditions of a reconciliation in progress."""
    conditions = progressing()
    assert len(conditions) == 1
    (ready,) = conditions
    assert ready.type == ConditionType.READY
    assert ready.status == ConditionStatus.UNKNOWN
    assert ready.reason == Reason.PROGRESSING
    assert ready.reason == "Progressing"
    assert ready.message == "reconciliation in progress"
    assert ready.last_transition_time.tzinfo is not None
    assert not ready.is_true
    assert not ready.is_false


def test_lookup() -> None:
    """Test finding conditions by type and status."""
    conditions = set_condition(
        progressing(),
        ConditionType.INSTALLED,
        ConditionStatus.FALSE,
        Reason.INSTALL_FAILED,
        "failed",
    )
    assert has_condition(conditions, ConditionType.INSTALLED, ConditionStatus.FALSE)
    assert not has_condition(
        conditions, ConditionType.INSTALLED, ConditionStatus.TRUE
    )
    assert not has_condition(conditions, ConditionType.UPGRADED, ConditionStatus.FALSE)
    assert get_condition(conditions, ConditionType.UPGRADED) is None


def test_condition_serialization() -> None:
    """Test the kubernetes representation of a condition."""
    condition = Condition.from_dict(
        {
            "type": "Ready",
            "status": "True",
            "reason": "InstallSucceeded",
            "message": "Helm install succeeded",
            "lastTransitionTime": "2024-03-01T10:05:00+00:00",
        }
    )
    assert condition.type == ConditionType.READY
    assert condition.is_true
    assert condition.last_transition_time == datetime.datetime(
        2024, 3, 1, 10, 5, tzinfo=datetime.timezone.utc
    )
    assert condition.to_dict() == {
        "type": "Ready",
        "status": "True",
        "reason": "InstallSucceeded",
        "message": "Helm install succeeded",
        "lastTransitionTime": "2024-03-01T10:05:00+00:00",
    }


def test_unknown_condition_type() -> None:
    """Test that condition types are a closed set."""
    with pytest.raises(ValueError):
        Condition.from_dict({"type": "Redy", "status": "True"})
