"""Status conditions for a HelmRelease.

Conditions are kept as an immutable tuple with at most one entry per
condition type. Setting a condition returns a new tuple where any previous
entry of the same type has been replaced by the new one at the end.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
import datetime
from enum import StrEnum
import logging

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig

__all__ = [
    "ConditionType",
    "ConditionStatus",
    "Reason",
    "Condition",
    "set_condition",
    "get_condition",
    "has_condition",
    "progressing",
]

_LOGGER = logging.getLogger(__name__)

PROGRESSING_MESSAGE = "reconciliation in progress"


class ConditionType(StrEnum):
    """Known condition types recorded on a HelmRelease."""

    READY = "Ready"
    """Aggregate readiness of the HelmRelease."""

    INSTALLED = "Installed"
    """Outcome of the last Helm install action."""

    UPGRADED = "Upgraded"
    """Outcome of the last Helm upgrade action."""

    TESTED = "Tested"
    """Outcome of the last Helm test action."""

    ROLLED_BACK = "RolledBack"
    """Outcome of the last Helm rollback action."""

    UNINSTALLED = "Uninstalled"
    """Outcome of the last Helm uninstall action."""


class ConditionStatus(StrEnum):
    """Status of a condition."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class Reason(StrEnum):
    """Reasons attached to a condition."""

    INSTALL_SUCCEEDED = "InstallSucceeded"
    INSTALL_FAILED = "InstallFailed"
    UPGRADE_SUCCEEDED = "UpgradeSucceeded"
    UPGRADE_FAILED = "UpgradeFailed"
    TEST_SUCCEEDED = "TestSucceeded"
    TEST_FAILED = "TestFailed"
    ROLLBACK_SUCCEEDED = "RollbackSucceeded"
    ROLLBACK_FAILED = "RollbackFailed"
    UNINSTALL_SUCCEEDED = "UninstallSucceeded"
    UNINSTALL_FAILED = "UninstallFailed"
    ARTIFACT_FAILED = "ArtifactFailed"
    INIT_FAILED = "InitFailed"
    GET_LAST_RELEASE_FAILED = "GetLastReleaseFailed"
    DEPENDENCY_NOT_READY = "DependencyNotReady"
    PROGRESSING = "Progressing"
    RECONCILIATION_SUCCEEDED = "ReconciliationSucceeded"
    RECONCILIATION_FAILED = "ReconciliationFailed"
    SUSPENDED = "Suspended"


def _now() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.timezone.utc)


def _parse_time(value: str | datetime.datetime) -> datetime.datetime:
    # yaml loaders may already produce a datetime for unquoted timestamps
    if isinstance(value, datetime.datetime):
        return value
    return datetime.datetime.fromisoformat(value)


@dataclass(frozen=True)
class Condition(DataClassDictMixin):
    """A typed and timestamped status record on a HelmRelease."""

    type: ConditionType
    """The type of the condition e.g. Ready."""

    status: ConditionStatus
    """Whether the condition holds."""

    reason: str = ""
    """A short CamelCase reason for the last transition."""

    message: str = ""
    """A human readable message about the last transition."""

    last_transition_time: datetime.datetime = field(
        metadata=field_options(
            alias="lastTransitionTime",
            serialize=datetime.datetime.isoformat,
            deserialize=_parse_time,
        ),
        default_factory=_now,
    )
    """When the condition was last set."""

    @property
    def is_true(self) -> bool:
        """Return True if the condition status is True."""
        return self.status == ConditionStatus.TRUE

    @property
    def is_false(self) -> bool:
        """Return True if the condition status is False."""
        return self.status == ConditionStatus.FALSE

    class Config(BaseConfig):
        serialize_by_alias = True


def set_condition(
    conditions: Iterable[Condition],
    condition_type: ConditionType,
    status: ConditionStatus,
    reason: str,
    message: str,
) -> tuple[Condition, ...]:
    """Return new conditions with the condition of the given type replaced."""
    _LOGGER.debug(
        "Setting condition %s=%s (%s): %s", condition_type, status, reason, message
    )
    kept = tuple(c for c in conditions if c.type != condition_type)
    return kept + (
        Condition(
            type=condition_type,
            status=status,
            reason=str(reason),
            message=message,
            last_transition_time=_now(),
        ),
    )


def get_condition(
    conditions: Iterable[Condition], condition_type: ConditionType
) -> Condition | None:
    """Return the condition of the given type, if present."""
    for condition in conditions:
        if condition.type == condition_type:
            return condition
    return None


def has_condition(
    conditions: Iterable[Condition],
    condition_type: ConditionType,
    status: ConditionStatus,
) -> bool:
    """Return True if a condition of the given type has the given status."""
    return any(c.type == condition_type and c.status == status for c in conditions)


def progressing() -> tuple[Condition, ...]:
    """Return conditions for a reconciliation that has just started.

    All previous per-action conditions are discarded. The reason is the
    CamelCase `Progressing` used by every other Flux reason, not a lowercase
    "progressing".
    """
    return (
        Condition(
            type=ConditionType.READY,
            status=ConditionStatus.UNKNOWN,
            reason=str(Reason.PROGRESSING),
            message=PROGRESSING_MESSAGE,
            last_transition_time=_now(),
        ),
    )
