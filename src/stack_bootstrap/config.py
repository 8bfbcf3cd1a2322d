"""Bootstrap configuration.

All tunables of a bootstrap run live in one immutable ``BootstrapConfig``
that is threaded through every phase. The only value read from the
environment is the PostgreSQL release name (``RELEASE_NAME``); everything
else is a compiled-in default that may be overridden from the command line.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from stack_bootstrap.models import ChartRelease, HelmRepository, ServiceDatabase

RELEASE_NAME_ENV = "RELEASE_NAME"
DEFAULT_RELEASE_NAME = "geo-metrics"

FIELD_MANAGER = "stack-bootstrap"
POSTGRES_LABEL_SELECTOR = "app.kubernetes.io/name=postgresql"

METALLB_API_GROUP = "metallb.io"
METALLB_API_VERSION = "v1beta1"
METALLB_POOL_CRD = f"ipaddresspools.{METALLB_API_GROUP}"

BITNAMI = HelmRepository(name="bitnami", url="https://charts.bitnami.com/bitnami")
CETIC = HelmRepository(name="cetic", url="https://cetic.github.io/helm-charts")
INGRESS_NGINX = HelmRepository(name="ingress-nginx", url="https://kubernetes.github.io/ingress-nginx")
METALLB = HelmRepository(name="metallb", url="https://metallb.github.io/metallb")


@dataclass(frozen=True, slots=True)
class BootstrapConfig:
    """Immutable settings for a bootstrap run.

    Attributes:
        release_name: PostgreSQL release name; also names the local app chart.
        project_root: Directory holding ``k8s/`` manifests and ``helm/`` values.
        context: Kubernetes context to use; None for the current context.

    Timeouts are in seconds.
    """

    release_name: str = DEFAULT_RELEASE_NAME
    project_root: Path = field(default_factory=Path.cwd)
    context: str | None = None

    infra_namespace: str = "geo-infra"
    ory_namespace: str = "geo-ory"
    app_namespace: str = "geo-app"
    ingress_namespace: str = "ingress-nginx"
    metallb_namespace: str = "metallb-system"

    address_range: str = "192.168.1.240-192.168.1.250"
    address_pool_name: str = "default-pool"
    dns_domain: str = "combaldieu.fr"
    adminer_host: str = "adminer.combaldieu.fr"

    postgres_port: int = 5432
    postgres_admin_user: str = "postgres"
    init_secret_name: str = "postgres-init-passwords"

    metallb_timeout: int = 300
    ingress_timeout: int = 600
    postgres_timeout: int = 300
    adminer_timeout: int = 180
    application_timeout: int = 300

    lb_max_attempts: int = 30
    lb_interval: float = 2.0
    crd_max_attempts: int = 30
    crd_interval: float = 10.0
    secret_read_attempts: int = 5
    secret_read_interval: float = 1.0

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> "BootstrapConfig":
        """Build a configuration from the environment plus explicit overrides.

        Args:
            environ: Environment mapping; defaults to ``os.environ``.
            **overrides: Field values taking precedence over defaults.
                None values are ignored so unset CLI options fall through.

        Returns:
            The resulting configuration.

        """
        environ = os.environ if environ is None else environ
        settings: dict[str, Any] = {}
        release_name = environ.get(RELEASE_NAME_ENV)
        if release_name:
            settings["release_name"] = release_name
        settings.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**settings)

    def with_context(self, context: str) -> "BootstrapConfig":
        """Return a copy bound to the given Kubernetes context."""
        return replace(self, context=context)

    # Derived names

    @property
    def namespaces(self) -> tuple[str, ...]:
        """Namespaces owned by the application stack."""
        return (self.infra_namespace, self.ory_namespace, self.app_namespace)

    @property
    def postgres_service(self) -> str:
        return f"{self.release_name}-postgresql"

    @property
    def postgres_host(self) -> str:
        """In-cluster DNS name of the PostgreSQL service."""
        return f"{self.postgres_service}.{self.infra_namespace}.svc.cluster.local"

    @property
    def admin_secret_name(self) -> str:
        """Secret generated by the PostgreSQL chart for the superuser."""
        return self.postgres_service

    @property
    def ingress_service(self) -> str:
        return "ingress-nginx-controller"

    @property
    def namespaces_manifest(self) -> Path:
        return self.project_root / "k8s" / "namespaces" / "namespaces.yaml"

    @property
    def ingress_manifest(self) -> Path:
        return self.project_root / "k8s" / "ingress" / "infra.yaml"

    @property
    def values_dir(self) -> Path:
        return self.project_root / "helm" / "values"

    @property
    def application_chart_dir(self) -> Path:
        return self.project_root / "helm" / self.release_name

    @property
    def services(self) -> tuple[ServiceDatabase, ...]:
        """Per-service database wiring, one entry per generated credential."""
        return (
            ServiceDatabase(
                credential="geo-app",
                user="geo_app_user",
                database="geo_metrics_db",
                secret_name="geo-app-db-credentials",
                namespace=self.app_namespace,
                secret_key="db-url",
                scheme="postgresql",
            ),
            ServiceDatabase(
                credential="kratos",
                user="kratos_user",
                database="kratos_db",
                secret_name="kratos-db-credentials",
                namespace=self.ory_namespace,
                query="sslmode=disable",
            ),
            ServiceDatabase(
                credential="hydra",
                user="hydra_user",
                database="hydra_db",
                secret_name="hydra-db-credentials",
                namespace=self.ory_namespace,
                query="sslmode=disable",
            ),
            ServiceDatabase(
                credential="keto",
                user="keto_user",
                database="keto_db",
                secret_name="keto-db-credentials",
                namespace=self.ory_namespace,
                query="sslmode=disable",
            ),
        )

    # Releases

    def metallb_release(self) -> ChartRelease:
        return ChartRelease(
            name="metallb",
            chart="metallb/metallb",
            namespace=self.metallb_namespace,
            timeout=self.metallb_timeout,
            repository=METALLB,
            create_namespace=True,
        )

    def ingress_release(self) -> ChartRelease:
        return ChartRelease(
            name="ingress-nginx",
            chart="ingress-nginx/ingress-nginx",
            namespace=self.ingress_namespace,
            values={"controller": {"service": {"type": "LoadBalancer"}}},
            timeout=self.ingress_timeout,
            repository=INGRESS_NGINX,
            create_namespace=True,
        )

    def postgres_release(self, values_files: tuple[Path, ...] = ()) -> ChartRelease:
        return ChartRelease(
            name=self.release_name,
            chart="bitnami/postgresql",
            namespace=self.infra_namespace,
            values_files=values_files,
            timeout=self.postgres_timeout,
            repository=BITNAMI,
        )

    def adminer_release(self, values_files: tuple[Path, ...] = ()) -> ChartRelease:
        return ChartRelease(
            name="adminer",
            chart="cetic/adminer",
            namespace=self.infra_namespace,
            values_files=values_files,
            timeout=self.adminer_timeout,
            repository=CETIC,
        )

    def application_release(self) -> ChartRelease:
        return ChartRelease(
            name=self.release_name,
            chart=str(self.application_chart_dir),
            namespace=self.app_namespace,
            timeout=self.application_timeout,
        )

    # MetalLB resources

    def metallb_manifests(self) -> list[dict[str, Any]]:
        """IPAddressPool and L2Advertisement documents for the configured range."""
        api_version = f"{METALLB_API_GROUP}/{METALLB_API_VERSION}"
        return [
            {
                "apiVersion": api_version,
                "kind": "IPAddressPool",
                "metadata": {"name": self.address_pool_name, "namespace": self.metallb_namespace},
                "spec": {"addresses": [self.address_range]},
            },
            {
                "apiVersion": api_version,
                "kind": "L2Advertisement",
                "metadata": {"name": f"{self.address_pool_name}-l2", "namespace": self.metallb_namespace},
                "spec": {"ipAddressPools": [self.address_pool_name]},
            },
        ]
