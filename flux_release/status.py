"""Observed state of a HelmRelease and recording of reconciliation outcomes.

A `HelmReleaseStatus` is an immutable snapshot. The recording functions in
this module never modify their input and instead return an updated copy, so
a status may be shared with readers while a single reconciliation produces
its replacement.
"""

from dataclasses import dataclass, field, replace
import logging
from typing import Any

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig

from .conditions import (
    Condition,
    ConditionStatus,
    ConditionType,
    progressing,
    set_condition,
)
from .exceptions import InputException

__all__ = [
    "HelmReleaseStatus",
    "set_readiness",
    "record_success",
    "record_failure",
    "reset_conditions",
]

_LOGGER = logging.getLogger(__name__)

NAMESPACE_SEPARATOR = "/"

KNOWN_CONDITION_TYPES = {str(condition_type) for condition_type in ConditionType}


@dataclass(frozen=True)
class HelmReleaseStatus(DataClassDictMixin):
    """The observed state of a HelmRelease."""

    observed_generation: int = field(
        metadata=field_options(alias="observedGeneration"), default=0
    )
    """The last reconciled generation."""

    conditions: tuple[Condition, ...] = ()
    """Conditions of the HelmRelease with at most one entry per type."""

    last_applied_revision: str = field(
        metadata=field_options(alias="lastAppliedRevision"), default=""
    )
    """The revision of the last successfully applied source."""

    last_attempted_revision: str = field(
        metadata=field_options(alias="lastAttemptedRevision"), default=""
    )
    """The revision of the last reconciliation attempt."""

    last_attempted_values_checksum: str = field(
        metadata=field_options(alias="lastAttemptedValuesChecksum"), default=""
    )
    """The SHA1 checksum of the values of the last reconciliation attempt."""

    last_release_revision: int = field(
        metadata=field_options(alias="lastReleaseRevision"), default=0
    )
    """The revision of the last Helm release."""

    helm_chart: str = field(metadata=field_options(alias="helmChart"), default="")
    """Namespaced name of the HelmChart generated for the HelmRelease."""

    failures: int = 0
    """The reconciliation failure count, reset after a successful reconciliation."""

    @property
    def helm_chart_ref(self) -> tuple[str, str]:
        """Return the namespace and name of the generated HelmChart.

        An unset chart returns a pair of empty strings.
        """
        if not self.helm_chart:
            return ("", "")
        namespace, sep, name = self.helm_chart.partition(NAMESPACE_SEPARATOR)
        if not sep or not namespace or not name:
            raise InputException(
                f"Invalid helmChart '{self.helm_chart}' expected 'namespace/name'"
            )
        return (namespace, name)

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        # Newer controllers record condition types this library never writes
        if not (conditions := d.get("conditions")):
            return d
        known = [
            c
            for c in conditions
            if not isinstance(c, dict) or c.get("type") in KNOWN_CONDITION_TYPES
        ]
        if len(known) != len(conditions):
            _LOGGER.debug(
                "Ignoring unknown condition types: %s",
                [c["type"] for c in conditions if c not in known],
            )
        return {**d, "conditions": known}

    def __post_init__(self) -> None:
        if self.failures < 0:
            raise InputException(f"Invalid failure count {self.failures}")

    class Config(BaseConfig):
        serialize_by_alias = True
        omit_default = True


def reset_conditions(status: HelmReleaseStatus) -> HelmReleaseStatus:
    """Return the status with conditions reset to a single progressing Ready condition."""
    return replace(status, conditions=progressing())


def set_readiness(
    status: HelmReleaseStatus,
    generation: int,
    ready: ConditionStatus,
    reason: str,
    message: str,
    revision: str,
    release_revision: int,
    values_checksum: str,
) -> HelmReleaseStatus:
    """Record the Ready condition and the inputs of a reconciliation attempt."""
    return replace(
        status,
        conditions=set_condition(
            status.conditions, ConditionType.READY, ready, reason, message
        ),
        observed_generation=generation,
        last_attempted_revision=revision,
        last_release_revision=release_revision,
        last_attempted_values_checksum=values_checksum,
    )


def record_failure(
    status: HelmReleaseStatus,
    generation: int,
    revision: str,
    release_revision: int,
    values_checksum: str,
    reason: str,
    message: str,
) -> HelmReleaseStatus:
    """Record a failed reconciliation attempt and increment the failure count."""
    updated = set_readiness(
        status,
        generation,
        ConditionStatus.FALSE,
        reason,
        message,
        revision,
        release_revision,
        values_checksum,
    )
    _LOGGER.debug(
        "Reconciliation of revision %s failed (%d previous failures): %s",
        revision,
        status.failures,
        message,
    )
    return replace(updated, failures=status.failures + 1)


def record_success(
    status: HelmReleaseStatus,
    generation: int,
    revision: str,
    release_revision: int,
    values_checksum: str,
    reason: str,
    message: str,
) -> HelmReleaseStatus:
    """Record a successful reconciliation attempt.

    This is the only way the last applied revision advances and the only way
    the failure count is cleared.
    """
    updated = set_readiness(
        status,
        generation,
        ConditionStatus.TRUE,
        reason,
        message,
        revision,
        release_revision,
        values_checksum,
    )
    _LOGGER.debug("Reconciliation of revision %s succeeded", revision)
    return replace(updated, last_applied_revision=revision, failures=0)
