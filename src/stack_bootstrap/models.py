"""Data models for stack-bootstrap.

This module provides the immutable value types passed between the
bootstrap components: resource descriptors for existence checks,
desired-state records for secrets and chart releases, and the outcomes
reported back by the installer and the address waiter.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, NamedTuple


class ResourceKind(str, Enum):
    """Kinds of cluster resources the prober knows how to look up."""

    NAMESPACE = "namespace"
    SECRET = "secret"
    CHART_RELEASE = "chart-release"
    STATEFULSET = "statefulset"
    SERVICE = "service"
    DEPLOYMENT = "deployment"
    PERSISTENT_VOLUME_CLAIM = "persistentvolumeclaim"
    IP_ADDRESS_POOL = "ipaddresspool"
    CUSTOM_RESOURCE_DEFINITION = "customresourcedefinition"

    @property
    def cluster_scoped(self) -> bool:
        """Whether resources of this kind live outside any namespace."""
        return self in (ResourceKind.NAMESPACE, ResourceKind.CUSTOM_RESOURCE_DEFINITION)


class Phase(str, Enum):
    """Independently invocable bootstrap phases, in default order."""

    NAMESPACES = "namespaces"
    NETWORK = "network"
    INGRESS = "ingress"
    DATABASE = "database"
    SECRETS = "secrets"
    PROVISION = "provision"
    APPLICATIONS = "applications"
    REPORT = "report"
    RESET_DATABASE = "reset-database"


class ReleaseOutcome(str, Enum):
    """What the chart installer did with a release."""

    INSTALLED = "installed"
    UPGRADED = "upgraded"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class ResourceDescriptor:
    """Identifies a resource, or a set of resources, for an existence check.

    Attributes:
        kind: The resource kind.
        namespace: Namespace of the resource; None for cluster-scoped kinds.
        name: Exact resource name. Mutually exclusive with label_selector.
        label_selector: Kubernetes label selector matching one or more resources.

    """

    kind: ResourceKind
    namespace: str | None = None
    name: str | None = None
    label_selector: str | None = None

    def __post_init__(self) -> None:
        if (self.name is None) == (self.label_selector is None):
            raise ValueError("Exactly one of name or label_selector must be given")
        if self.kind.cluster_scoped and self.namespace is not None:
            raise ValueError(f"{self.kind.value} is cluster-scoped and takes no namespace")
        if not self.kind.cluster_scoped and not self.namespace:
            raise ValueError(f"{self.kind.value} requires a namespace")

    def __str__(self) -> str:
        target = self.name if self.name is not None else f"-l {self.label_selector}"
        if self.namespace:
            return f"{self.kind.value} {self.namespace}/{target}"
        return f"{self.kind.value} {target}"


class CredentialSet(Mapping[str, str]):
    """Read-only mapping of logical credential name to generated value.

    The repr only lists credential names so a set can be traced safely.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, str]) -> None:
        self._values: Mapping[str, str] = MappingProxyType(dict(values))

    def __getitem__(self, name: str) -> str:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"CredentialSet(names={list(self._values)!r})"


@dataclass(frozen=True, slots=True)
class SecretRecord:
    """Desired state of an Opaque secret.

    Attributes:
        namespace: Namespace of the secret.
        name: Name of the secret.
        data: Key to plain-text value mapping stored in the secret.

    """

    namespace: str
    name: str
    data: Mapping[str, str] = field(repr=False)

    def __post_init__(self) -> None:
        if not self.data:
            raise ValueError(f"Secret {self.namespace}/{self.name} must hold at least one key")


@dataclass(frozen=True, slots=True)
class HelmRepository:
    """A named Helm chart repository."""

    name: str
    url: str


@dataclass(frozen=True, slots=True)
class ChartRelease:
    """Declarative description of a Helm release.

    Attributes:
        name: Release name.
        chart: Chart reference (``repo/chart`` or a local chart directory).
        namespace: Namespace the release is installed into.
        values: Values overlay passed to Helm on top of values_files.
        values_files: Value files passed to Helm in order.
        timeout: Seconds Helm may wait for the release workloads to be ready.
        repository: Repository the chart is fetched from, if any.
        create_namespace: Whether Helm should create a missing namespace.

    """

    name: str
    chart: str
    namespace: str
    values: Mapping[str, Any] = field(default_factory=dict)
    values_files: tuple[Path, ...] = ()
    timeout: int = 300
    repository: HelmRepository | None = None
    create_namespace: bool = False


@dataclass(frozen=True, slots=True)
class ProvisioningTriple:
    """A database user, its password and the database it owns."""

    user: str
    password: str = field(repr=False)
    database: str


@dataclass(frozen=True, slots=True)
class ServiceDatabase:
    """Database wiring for one downstream service.

    Attributes:
        credential: Logical credential name (e.g. ``kratos``).
        user: Database role owned by the service.
        database: Database owned by the role.
        secret_name: Name of the connection secret handed to the service.
        namespace: Namespace the connection secret is written to.
        secret_key: Key holding the connection URL inside the secret.
        scheme: URL scheme expected by the service.
        query: Optional query string appended to the URL (without ``?``).

    """

    credential: str
    user: str
    database: str
    secret_name: str
    namespace: str
    secret_key: str = "dsn"
    scheme: str = "postgres"
    query: str | None = None

    @property
    def password_key(self) -> str:
        """Key of this service's password in the init passwords secret."""
        return f"{self.credential}-password"


class AddressOutcome(NamedTuple):
    """Result of waiting for a LoadBalancer address.

    Attributes:
        address: The assigned IP or hostname, or None if none appeared.
        attempts: Number of status queries performed.

    """

    address: str | None
    attempts: int

    @property
    def timed_out(self) -> bool:
        """Whether the wait ended without an address."""
        return self.address is None


class DatabaseEndpoint(NamedTuple):
    """Administrative access to the running PostgreSQL instance."""

    host: str
    namespace: str
    port: int
    pod: str
    admin_user: str
    admin_password: str

    def __repr__(self) -> str:
        return (
            f"DatabaseEndpoint(host={self.host!r}, namespace={self.namespace!r}, "
            f"port={self.port!r}, pod={self.pod!r}, admin_user={self.admin_user!r})"
        )
