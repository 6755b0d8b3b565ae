"""Decide which Helm action a HelmRelease needs next.

The `should_*` functions are pure and total: they look at the recorded
status of a HelmRelease plus freshly observed values and never raise. Any
optional configuration must already be resolved by the caller, see
`flux_release.release.HelmReleaseSpec.resolve`.
"""

from dataclasses import dataclass
from enum import StrEnum
import logging

from .conditions import ConditionStatus, ConditionType, has_condition
from .release import HelmRelease
from .status import HelmReleaseStatus

__all__ = [
    "Action",
    "Observation",
    "Decision",
    "should_upgrade",
    "should_test",
    "should_rollback",
    "should_uninstall",
    "decide",
]

_LOGGER = logging.getLogger(__name__)


class Action(StrEnum):
    """A Helm action performed for a HelmRelease."""

    INSTALL = "install"
    UPGRADE = "upgrade"
    TEST = "test"
    ROLLBACK = "rollback"
    UNINSTALL = "uninstall"


def should_upgrade(
    status: HelmReleaseStatus,
    revision: str,
    release_revision: int,
    values_checksum: str,
    generation: int,
    max_retries: int,
) -> bool:
    """Determine if a Helm upgrade needs to be performed.

    An upgrade is needed when any input changed since the last attempt, or
    when the last attempt failed and the retry budget is not exhausted. A
    negative `max_retries` means retry forever.
    """
    if status.last_attempted_revision != revision:
        _LOGGER.debug(
            "Revision changed %s -> %s", status.last_attempted_revision, revision
        )
        return True
    if status.last_release_revision != release_revision:
        _LOGGER.debug(
            "Release revision changed %d -> %d",
            status.last_release_revision,
            release_revision,
        )
        return True
    if status.observed_generation != generation:
        _LOGGER.debug(
            "Generation changed %d -> %d", status.observed_generation, generation
        )
        return True
    if status.last_attempted_values_checksum != values_checksum:
        _LOGGER.debug("Values checksum changed")
        return True
    if status.failures > 0 and (max_retries < 0 or status.failures < max_retries):
        _LOGGER.debug(
            "Retrying after %d failures (max retries %d)",
            status.failures,
            max_retries,
        )
        return True
    return False


def should_test(status: HelmReleaseStatus, test_enabled: bool) -> bool:
    """Determine if a Helm test needs to be performed.

    Tests only run after a successful install or upgrade.
    """
    if not test_enabled:
        return False
    return any(
        condition.status == ConditionStatus.TRUE
        and condition.type in (ConditionType.INSTALLED, ConditionType.UPGRADED)
        for condition in status.conditions
    )


def should_rollback(
    status: HelmReleaseStatus, rollback_enabled: bool, release_revision: int
) -> bool:
    """Determine if a Helm rollback needs to be performed.

    A rollback is only possible when a failed upgrade produced a release
    revision newer than `release_revision`.
    """
    if not rollback_enabled:
        return False
    if status.last_release_revision <= release_revision:
        return False
    return has_condition(
        status.conditions, ConditionType.UPGRADED, ConditionStatus.FALSE
    )


def should_uninstall(status: HelmReleaseStatus, release_revision: int) -> bool:
    """Determine if a Helm uninstall needs to be performed after a failed install."""
    if release_revision <= 0:
        return False
    return has_condition(
        status.conditions, ConditionType.INSTALLED, ConditionStatus.FALSE
    )


@dataclass(frozen=True)
class Observation:
    """Values observed at the start of a reconciliation."""

    revision: str
    """Revision of the chart artifact."""

    release_revision: int
    """Revision of the current Helm release, 0 when there is no release."""

    values_checksum: str
    """Checksum of the composed values."""


@dataclass(frozen=True)
class Decision:
    """The actions a HelmRelease needs given its current status."""

    install: bool = False
    upgrade: bool = False
    test: bool = False
    rollback: bool = False
    uninstall: bool = False

    @property
    def actions(self) -> list[Action]:
        """The actions to perform, in order."""
        return [action for action in Action if getattr(self, action.value)]


def decide(release: HelmRelease, observation: Observation) -> Decision:
    """Evaluate every decision for a HelmRelease in one reconciliation.

    A release without a Helm release revision is installed, and has nothing
    to upgrade or roll back. The test, rollback and uninstall decisions look
    at the conditions as currently recorded, so a driver that records the
    outcome of an install or upgrade calls this again for follow-up actions.
    """
    config = release.resolve()
    if config.suspend:
        _LOGGER.info("HelmRelease %s is suspended", release.namespaced_name)
        return Decision()
    status = release.status
    install = observation.release_revision <= 0
    decision = Decision(
        install=install,
        upgrade=not install
        and should_upgrade(
            status,
            observation.revision,
            observation.release_revision,
            observation.values_checksum,
            release.generation,
            config.upgrade.max_retries,
        ),
        test=should_test(status, config.test.enable),
        rollback=not install
        and should_rollback(
            status, config.rollback.enable, observation.release_revision
        ),
        uninstall=should_uninstall(status, observation.release_revision),
    )
    _LOGGER.debug(
        "HelmRelease %s actions: %s", release.namespaced_name, decision.actions
    )
    return decision
