"""Representation of a Flux HelmRelease and its configuration.

The desired state of a HelmRelease has many optional settings that fall back
to a default from an enclosing scope, e.g. the timeout of an upgrade defaults
to the timeout of the release which itself defaults to five minutes. These
defaults are resolved once with `HelmReleaseSpec.resolve` into a
`ReleaseConfig` which has no optional fields, before any decision is made.
"""

from dataclasses import dataclass, field, replace
import datetime
from enum import StrEnum
import hashlib
import logging
from pathlib import Path
import re
from typing import Any, ClassVar, Optional, TypeVar

import aiofiles
from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig
from mashumaro.exceptions import InvalidFieldValue, MissingField
import yaml

from .conditions import ConditionStatus, ConditionType, get_condition
from .exceptions import InputException
from .status import (
    HelmReleaseStatus,
    record_failure,
    record_success,
    reset_conditions,
)

__all__ = [
    "HELM_RELEASE",
    "AnnotationKey",
    "HelmRelease",
    "HelmReleaseSpec",
    "ReleaseConfig",
    "parse_duration",
    "format_duration",
    "values_checksum",
    "read_releases",
]

_LOGGER = logging.getLogger(__name__)


# Match a prefix of apiVersion to ensure we have the right type of object.
# We don't check specific versions for forward compatibility on upgrade.
HELM_RELEASE_DOMAIN = "helm.toolkit.fluxcd.io"
HELM_RELEASE = "HelmRelease"
HELM_REPO_KIND = "HelmRepository"

DEFAULT_TIMEOUT = datetime.timedelta(seconds=300)
DEFAULT_MAX_HISTORY = 10

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1,
    "m": 60,
    "h": 3600,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


class AnnotationKey(StrEnum):
    """Annotation and index keys used with HelmRelease objects."""

    RECONCILE_AT = "fluxcd.io/reconcileAt"
    """Annotation requesting a reconciliation outside of the interval."""

    SOURCE_INDEX = ".metadata.source"
    """Key used for indexing HelmReleases by their source."""


def parse_duration(value: str | None) -> datetime.timedelta | None:
    """Parse a duration string such as '5m0s' or '1h30m'."""
    if value is None:
        return None
    if value == "0":
        return datetime.timedelta(0)
    pos = 0
    seconds = 0.0
    for match in _DURATION_PART.finditer(value):
        if match.start() != pos:
            break
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(value):
        raise InputException(f"Invalid duration '{value}'")
    return datetime.timedelta(seconds=seconds)


def format_duration(value: datetime.timedelta | None) -> str | None:
    """Format a duration the way it is written in a HelmRelease e.g. '5m0s'."""
    if value is None:
        return None
    total = value.total_seconds()
    if total == 0:
        return "0s"
    if total < 1:
        return f"{total * 1000:g}ms"
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    result = f"{seconds:g}s"
    if hours or minutes:
        result = f"{int(minutes)}m{result}"
    if hours:
        result = f"{int(hours)}h{result}"
    return result


def _duration_field() -> Any:
    return field(
        metadata=field_options(serialize=format_duration, deserialize=parse_duration),
        default=None,
    )


T = TypeVar("T")


def _or_default(value: T | None, default: T) -> T:
    return default if value is None else value


def values_checksum(values: dict[str, Any] | None) -> str:
    """Return the SHA1 checksum of the values serialized as yaml."""
    content = yaml.safe_dump(values or {}, sort_keys=True)
    return hashlib.sha1(content.encode()).hexdigest()


class _SpecConfig(BaseConfig):
    serialize_by_alias = True
    omit_none = True


@dataclass(frozen=True)
class CrossNamespaceObjectReference(DataClassDictMixin):
    """A reference to an object in any namespace."""

    name: str
    """The name of the referenced object."""

    kind: str = HELM_REPO_KIND
    """The kind of the referenced object."""

    namespace: Optional[str] = None
    """The namespace of the referenced object, defaults to the release namespace."""

    api_version: Optional[str] = field(
        metadata=field_options(alias="apiVersion"), default=None
    )
    """The apiVersion of the referenced object."""

    Config = _SpecConfig


@dataclass(frozen=True)
class HelmChartTemplate(DataClassDictMixin):
    """The template for the HelmChart generated for a HelmRelease."""

    name: str
    """Name of the Helm chart in the referenced repository."""

    source_ref: CrossNamespaceObjectReference = field(
        metadata=field_options(alias="sourceRef")
    )
    """The source the chart is available at."""

    version: Optional[str] = None
    """Version semver expression, defaults to latest when omitted."""

    interval: Optional[datetime.timedelta] = _duration_field()
    """Interval at which to check the source for chart updates."""

    @classmethod
    def __pre_deserialize__(cls, d: dict[Any, Any]) -> dict[Any, Any]:
        # Newer API versions nest the template under `spec` and call it `chart`
        if "spec" in d:
            d = d["spec"]
        if "chart" in d and "name" not in d:
            d = {**d, "name": d["chart"]}
            del d["chart"]
        return d

    Config = _SpecConfig


@dataclass(frozen=True)
class ValuesReference(DataClassDictMixin):
    """A reference to a resource containing values for a HelmRelease."""

    kind: str
    """The kind of resource e.g. ConfigMap or Secret."""

    name: str
    """The name of the resource."""

    values_key: str = field(
        metadata=field_options(alias="valuesKey"), default="values.yaml"
    )
    """The key in the resource that contains the values."""

    target_path: Optional[str] = field(
        metadata=field_options(alias="targetPath"), default=None
    )
    """The path in the HelmRelease values to store the values."""

    optional: bool = False
    """Whether the reference is optional."""

    Config = _SpecConfig


@dataclass(frozen=True)
class Install(DataClassDictMixin):
    """Configuration for Helm install actions."""

    timeout: Optional[datetime.timedelta] = _duration_field()
    disable_wait: bool = field(
        metadata=field_options(alias="disableWait"), default=False
    )
    disable_hooks: bool = field(
        metadata=field_options(alias="disableHooks"), default=False
    )
    disable_openapi_validation: bool = field(
        metadata=field_options(alias="disableOpenAPIValidation"), default=False
    )
    replace: bool = False
    skip_crds: bool = field(metadata=field_options(alias="skipCRDs"), default=False)

    Config = _SpecConfig


@dataclass(frozen=True)
class Upgrade(DataClassDictMixin):
    """Configuration for Helm upgrade actions."""

    timeout: Optional[datetime.timedelta] = _duration_field()
    max_retries: int = field(metadata=field_options(alias="maxRetries"), default=0)
    """Retries on failure before bailing, a negative value retries forever."""

    disable_wait: bool = field(
        metadata=field_options(alias="disableWait"), default=False
    )
    disable_hooks: bool = field(
        metadata=field_options(alias="disableHooks"), default=False
    )
    disable_openapi_validation: bool = field(
        metadata=field_options(alias="disableOpenAPIValidation"), default=False
    )
    force: bool = False
    preserve_values: bool = field(
        metadata=field_options(alias="preserveValues"), default=False
    )
    cleanup_on_fail: bool = field(
        metadata=field_options(alias="cleanupOnFail"), default=False
    )

    Config = _SpecConfig


@dataclass(frozen=True)
class Test(DataClassDictMixin):
    """Configuration for Helm test actions."""

    __test__ = False  # Not a pytest test class

    enable: bool = False
    timeout: Optional[datetime.timedelta] = _duration_field()

    Config = _SpecConfig


@dataclass(frozen=True)
class Rollback(DataClassDictMixin):
    """Configuration for Helm rollback actions."""

    enable: bool = False
    timeout: Optional[datetime.timedelta] = _duration_field()
    disable_wait: bool = field(
        metadata=field_options(alias="disableWait"), default=False
    )
    disable_hooks: bool = field(
        metadata=field_options(alias="disableHooks"), default=False
    )
    recreate: bool = False
    force: bool = False
    cleanup_on_fail: bool = field(
        metadata=field_options(alias="cleanupOnFail"), default=False
    )

    Config = _SpecConfig


@dataclass(frozen=True)
class Uninstall(DataClassDictMixin):
    """Configuration for Helm uninstall actions."""

    timeout: Optional[datetime.timedelta] = _duration_field()
    disable_hooks: bool = field(
        metadata=field_options(alias="disableHooks"), default=False
    )
    keep_history: bool = field(
        metadata=field_options(alias="keepHistory"), default=False
    )

    Config = _SpecConfig


@dataclass(frozen=True)
class ReleaseConfig:
    """Fully resolved configuration of a HelmRelease.

    Every action has a concrete timeout and no setting is left to a default.
    """

    interval: datetime.timedelta
    chart_interval: datetime.timedelta
    chart_namespace: str
    suspend: bool
    timeout: datetime.timedelta
    max_history: int
    install: Install
    upgrade: Upgrade
    test: Test
    rollback: Rollback
    uninstall: Uninstall


@dataclass(frozen=True)
class HelmReleaseSpec(DataClassDictMixin):
    """The desired state of a HelmRelease."""

    chart: HelmChartTemplate
    """The Helm chart name, version and source."""

    interval: datetime.timedelta = field(
        metadata=field_options(serialize=format_duration, deserialize=parse_duration)
    )
    """Interval at which to reconcile the Helm release."""

    suspend: bool = False
    """Suspend reconciliation for this HelmRelease."""

    release_name: Optional[str] = field(
        metadata=field_options(alias="releaseName"), default=None
    )
    target_namespace: Optional[str] = field(
        metadata=field_options(alias="targetNamespace"), default=None
    )
    depends_on: Optional[list[str]] = field(
        metadata=field_options(alias="dependsOn"), default=None
    )
    timeout: Optional[datetime.timedelta] = _duration_field()
    max_history: Optional[int] = field(
        metadata=field_options(alias="maxHistory"), default=None
    )
    install: Optional[Install] = None
    upgrade: Optional[Upgrade] = None
    test: Optional[Test] = None
    rollback: Optional[Rollback] = None
    uninstall: Optional[Uninstall] = None
    values_from: Optional[list[ValuesReference]] = field(
        metadata=field_options(alias="valuesFrom"), default=None
    )
    values: Optional[dict[str, Any]] = None

    Config = _SpecConfig

    def resolve(self, namespace: str) -> ReleaseConfig:
        """Resolve all defaults for a release in the given namespace."""
        timeout = _or_default(self.timeout, DEFAULT_TIMEOUT)
        install = self.install or Install()
        upgrade = self.upgrade or Upgrade()
        test = self.test or Test()
        rollback = self.rollback or Rollback()
        uninstall = self.uninstall or Uninstall()
        return ReleaseConfig(
            interval=self.interval,
            chart_interval=_or_default(self.chart.interval, self.interval),
            chart_namespace=self.chart.source_ref.namespace or namespace,
            suspend=self.suspend,
            timeout=timeout,
            max_history=_or_default(self.max_history, DEFAULT_MAX_HISTORY),
            install=replace(install, timeout=_or_default(install.timeout, timeout)),
            upgrade=replace(upgrade, timeout=_or_default(upgrade.timeout, timeout)),
            test=replace(test, timeout=_or_default(test.timeout, timeout)),
            rollback=replace(
                rollback, timeout=_or_default(rollback.timeout, timeout)
            ),
            uninstall=replace(
                uninstall, timeout=_or_default(uninstall.timeout, timeout)
            ),
        )


@dataclass(frozen=True)
class HelmRelease(DataClassDictMixin):
    """A representation of a Flux HelmRelease with its observed status."""

    kind: ClassVar[str] = HELM_RELEASE

    name: str
    """The name of the HelmRelease."""

    namespace: str
    """The namespace that owns the HelmRelease."""

    spec: HelmReleaseSpec
    """The desired state of the HelmRelease."""

    generation: int = 0
    """The generation of the desired state."""

    annotations: dict[str, str] | None = None
    """Annotations on the HelmRelease."""

    status: HelmReleaseStatus = field(default_factory=HelmReleaseStatus)
    """The observed state of the HelmRelease."""

    class Config(BaseConfig):
        omit_none = True

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "HelmRelease":
        """Parse a HelmRelease from a kubernetes resource object."""
        if not (api_version := doc.get("apiVersion")):
            raise InputException(f"Invalid object missing apiVersion: {doc}")
        if not api_version.startswith(HELM_RELEASE_DOMAIN):
            raise InputException(
                f"Invalid object expected '{HELM_RELEASE_DOMAIN}': {doc}"
            )
        if not (metadata := doc.get("metadata")):
            raise InputException(f"Invalid {cls.kind} missing metadata: {doc}")
        if not (name := metadata.get("name")):
            raise InputException(f"Invalid {cls.kind} missing metadata.name: {doc}")
        if not (namespace := metadata.get("namespace")):
            raise InputException(
                f"Invalid {cls.kind} missing metadata.namespace: {doc}"
            )
        if not (spec := doc.get("spec")):
            raise InputException(f"Invalid {cls.kind} missing spec: {doc}")
        if not spec.get("chart"):
            raise InputException(f"Invalid {cls.kind} missing spec.chart: {doc}")
        try:
            return cls(
                name=name,
                namespace=namespace,
                generation=metadata.get("generation", 0),
                annotations=metadata.get("annotations"),
                spec=HelmReleaseSpec.from_dict(spec),
                status=HelmReleaseStatus.from_dict(doc.get("status") or {}),
            )
        except (MissingField, InvalidFieldValue, InputException) as err:
            raise InputException(
                f"Invalid {cls.kind} {namespace}/{name}: {err}"
            ) from err

    @property
    def namespaced_name(self) -> str:
        """Return the namespace and name concatenated as an id."""
        return f"{self.namespace}/{self.name}"

    @property
    def release_name(self) -> str:
        """Name of the Helm release, defaults to '[TargetNamespace-]Name'."""
        if self.spec.release_name:
            return self.spec.release_name
        if self.spec.target_namespace:
            return f"{self.spec.target_namespace}-{self.name}"
        return self.name

    @property
    def release_namespace(self) -> str:
        """Actual namespace where the Helm release will be installed to."""
        if self.spec.target_namespace:
            return self.spec.target_namespace
        return self.namespace

    @property
    def helm_chart_name(self) -> str:
        """Name of the HelmChart generated for this HelmRelease."""
        return f"{self.namespace}-{self.name}"

    @property
    def values(self) -> dict[str, Any]:
        """The inline values of the HelmRelease."""
        return self.spec.values or {}

    @property
    def reconcile_requested_at(self) -> str | None:
        """Value of the annotation requesting an out of band reconciliation."""
        return (self.annotations or {}).get(AnnotationKey.RECONCILE_AT)

    def resolve(self) -> ReleaseConfig:
        """Return the fully resolved configuration of the HelmRelease."""
        return self.spec.resolve(self.namespace)

    def progressing(self) -> "HelmRelease":
        """Return the HelmRelease with conditions reset for a new reconciliation."""
        return replace(self, status=reset_conditions(self.status))

    def ready(
        self,
        revision: str,
        release_revision: int,
        values_checksum: str,
        reason: str,
        message: str,
    ) -> "HelmRelease":
        """Return the HelmRelease with a successful attempt recorded."""
        _LOGGER.info("HelmRelease %s is ready: %s", self.namespaced_name, message)
        return replace(
            self,
            status=record_success(
                self.status,
                self.generation,
                revision,
                release_revision,
                values_checksum,
                reason,
                message,
            ),
        )

    def not_ready(
        self,
        revision: str,
        release_revision: int,
        values_checksum: str,
        reason: str,
        message: str,
    ) -> "HelmRelease":
        """Return the HelmRelease with a failed attempt recorded."""
        _LOGGER.info("HelmRelease %s is not ready: %s", self.namespaced_name, message)
        return replace(
            self,
            status=record_failure(
                self.status,
                self.generation,
                revision,
                release_revision,
                values_checksum,
                reason,
                message,
            ),
        )

    @property
    def ready_status(self) -> ConditionStatus:
        """Status of the Ready condition, Unknown when it was never recorded."""
        if condition := get_condition(self.status.conditions, ConditionType.READY):
            return condition.status
        return ConditionStatus.UNKNOWN


async def read_releases(path: Path) -> list[HelmRelease]:
    """Return all HelmRelease objects in a yaml file."""
    async with aiofiles.open(str(path)) as release_file:
        content = await release_file.read()
    try:
        docs = list(yaml.safe_load_all(content))
    except yaml.YAMLError as err:
        raise InputException(f"`{path}` failed to parse as yaml: {err}") from err
    releases = []
    for doc in docs:
        if not isinstance(doc, dict) or doc.get("kind") != HELM_RELEASE:
            _LOGGER.debug("Skipping non-HelmRelease document in %s", path)
            continue
        releases.append(HelmRelease.parse_doc(doc))
    return releases
