"""Bootstrap orchestrator.

This module provides the Bootstrap class, which composes the prober,
chart installer, secret store, provisioner and address waiter into named
phases. Each phase checks the cluster, mutates only what is missing and
verifies the result. Phases share no in-process state, so any of them can
be invoked on its own: whatever a phase needs from an earlier one is read
back from the cluster.
"""

import time
from collections.abc import Callable, Sequence
from pathlib import Path

import click
import questionary

from stack_bootstrap import console
from stack_bootstrap.config import METALLB_POOL_CRD, POSTGRES_LABEL_SELECTOR, BootstrapConfig
from stack_bootstrap.core.cluster import Cluster
from stack_bootstrap.core.helm import RELEASE_DEPLOYED, Helm
from stack_bootstrap.core.kubectl import Kubectl
from stack_bootstrap.core.prober import ResourceProber
from stack_bootstrap.core.waiter import Deadline, poll, wait_for_address
from stack_bootstrap.database.provisioning import DatabaseProvisioner
from stack_bootstrap.exceptions import (
    ChartInstallError,
    ClusterApiError,
    ProvisioningError,
    ReleaseTimeoutError,
    SecretNotFoundError,
)
from stack_bootstrap.models import (
    ChartRelease,
    DatabaseEndpoint,
    Phase,
    ProvisioningTriple,
    ReleaseOutcome,
    ResourceDescriptor,
    ResourceKind,
    SecretRecord,
)
from stack_bootstrap.secrets.dsn import build_dsn
from stack_bootstrap.secrets.generation import generate_credential_set
from stack_bootstrap.secrets.store import SecretStore
from stack_bootstrap.styles import PROMPT_STYLE, QMARK

DEFAULT_SEQUENCE: tuple[Phase, ...] = (
    Phase.NAMESPACES,
    Phase.NETWORK,
    Phase.INGRESS,
    Phase.DATABASE,
    Phase.SECRETS,
    Phase.PROVISION,
    Phase.APPLICATIONS,
    Phase.REPORT,
)

_PHASE_TITLES: dict[Phase, str] = {
    Phase.NAMESPACES: "Namespaces",
    Phase.NETWORK: "Network layer (MetalLB)",
    Phase.INGRESS: "Ingress controller",
    Phase.DATABASE: "PostgreSQL",
    Phase.SECRETS: "Database credentials",
    Phase.PROVISION: "Database users and databases",
    Phase.APPLICATIONS: "Application charts",
    Phase.REPORT: "Connection information",
    Phase.RESET_DATABASE: "Reset PostgreSQL",
}

_ADMIN_PASSWORD_KEY = "postgres-password"


class Bootstrap:
    """Runs bootstrap phases against one cluster.

    Attributes:
        config: Settings of this run.
        cluster: Connected cluster.
        helm: Chart installer.
        kubectl: Manifest applier and pod exec.
        prober: Resource existence checks.
        store: Secret store.
        provisioner: Database provisioner.
        warnings: Recoverable problems reported so far.

    """

    def __init__(
        self,
        config: BootstrapConfig,
        cluster: Cluster,
        *,
        helm: Helm | None = None,
        kubectl: Kubectl | None = None,
        show_password: bool = False,
        assume_yes: bool = False,
        deadline: Deadline | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize Bootstrap.

        Args:
            config: Settings of this run.
            cluster: Connected cluster.
            helm: Helm wrapper; built for the config's context when omitted.
            kubectl: kubectl wrapper; built for the config's context when omitted.
            show_password: Print the superuser password in the report.
            assume_yes: Skip the confirmation of destructive phases.
            deadline: Optional overall deadline for every polling wait.
            sleep: Function used to pause between polls.

        """
        self.config = config
        self.cluster = cluster
        self.helm = helm or Helm(context=config.context)
        self.kubectl = kubectl or Kubectl(context=config.context)
        self.prober = ResourceProber(self.helm)
        self.store = SecretStore(sleep=sleep)
        self.provisioner = DatabaseProvisioner(self.kubectl)
        self.show_password = show_password
        self.assume_yes = assume_yes
        self.deadline = deadline
        self.warnings: list[str] = []
        self._sleep = sleep
        self._phases: dict[Phase, Callable[[], None]] = {
            Phase.NAMESPACES: self.create_namespaces,
            Phase.NETWORK: self.setup_network,
            Phase.INGRESS: self.deploy_ingress,
            Phase.DATABASE: self.deploy_database,
            Phase.SECRETS: self.setup_database_secrets,
            Phase.PROVISION: self.provision_databases,
            Phase.APPLICATIONS: self.deploy_applications,
            Phase.REPORT: self.show_connection_info,
            Phase.RESET_DATABASE: self.reset_database,
        }

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return f"Bootstrap(context={self.config.context!r}, release={self.config.release_name!r})"

    def run(self, phases: Sequence[Phase] | None = None) -> list[str]:
        """Run phases in order, halting on the first fatal error.

        Args:
            phases: Phases to run; the default sequence when None.

        Returns:
            Warnings collected during the run.

        """
        sequence = tuple(phases) if phases else DEFAULT_SEQUENCE
        if Phase.SECRETS in sequence and Phase.PROVISION not in sequence:
            self._warn(
                "Credentials are rotated without provisioning; database passwords stay stale "
                f"until the {console.highlight(Phase.PROVISION.value)} phase runs"
            )

        for index, phase in enumerate(sequence, start=1):
            console.phase_banner(index, len(sequence), _PHASE_TITLES[phase])
            self._phases[phase]()

        console.newline()
        if self.warnings:
            console.warning(f"Completed with {len(self.warnings)} warning(s)")
        else:
            console.success("Bootstrap complete")
        return list(self.warnings)

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        console.warning(message)

    def _exists(self, kind: ResourceKind, name: str, namespace: str | None = None) -> bool:
        return self.prober.exists(ResourceDescriptor(kind=kind, namespace=namespace, name=name))

    def _values_files(self, filename: str) -> tuple[Path, ...]:
        """Return the values file as a 1-tuple when present, warning otherwise."""
        path = self.config.values_dir / filename
        if path.is_file():
            return (path,)
        self._warn(f"Values file not found at {path}; using chart defaults")
        return ()

    def _install(self, release: ChartRelease) -> ReleaseOutcome:
        if release.repository is not None:
            self.helm.ensure_repository(release.repository)
            self.helm.update_repositories()
        outcome = self.helm.install_or_upgrade(release)
        console.success(
            f"Release {console.highlight(release.name)} {outcome.value} in namespace '{release.namespace}'"
        )
        return outcome

    def _verify_release(self, release: ChartRelease) -> None:
        if not self._exists(ResourceKind.CHART_RELEASE, release.name, release.namespace):
            raise ChartInstallError(f"Release '{release.name}' missing from {release.namespace} after install")

    # Phases

    def create_namespaces(self) -> None:
        """Create the application namespaces."""
        manifest = self.config.namespaces_manifest
        if manifest.is_file():
            console.action(f"Applying {manifest}")
            self.kubectl.apply_file(manifest)
            console.success(f"Namespaces applied from {manifest.name}")
        else:
            self._warn(f"Namespace file not found at {manifest}; creating namespaces directly")
            for namespace in self.config.namespaces:
                if self._exists(ResourceKind.NAMESPACE, namespace):
                    console.step(f"Namespace '{namespace}' already exists")
                elif self.cluster.create_namespace(namespace):
                    console.success(f"Created namespace {console.highlight(namespace)}")
                else:
                    console.step(f"Namespace '{namespace}' appeared concurrently")

        missing = [ns for ns in self.config.namespaces if not self._exists(ResourceKind.NAMESPACE, ns)]
        if missing:
            raise ClusterApiError(f"Namespaces missing after creation: {', '.join(missing)}")

    def setup_network(self) -> None:
        """Install MetalLB and configure its address pool."""
        release = self.config.metallb_release()
        self._install(release)

        console.action("Waiting for MetalLB custom resource definitions")
        registered, attempts = poll(
            lambda: True if self._exists(ResourceKind.CUSTOM_RESOURCE_DEFINITION, METALLB_POOL_CRD) else None,
            max_attempts=self.config.crd_max_attempts,
            interval=self.config.crd_interval,
            deadline=self.deadline,
            sleep=self._sleep,
        )
        if registered is None:
            raise ReleaseTimeoutError(f"{METALLB_POOL_CRD} was not registered after {attempts} attempt(s)")

        self.kubectl.apply_documents(self.config.metallb_manifests())
        pool = ResourceDescriptor(
            kind=ResourceKind.IP_ADDRESS_POOL,
            namespace=self.config.metallb_namespace,
            name=self.config.address_pool_name,
        )
        if not self.prober.exists(pool):
            raise ClusterApiError(f"{pool} missing after apply")
        console.success(
            f"Address pool {console.highlight(self.config.address_pool_name)} serves {self.config.address_range}"
        )

    def deploy_ingress(self) -> None:
        """Install the NGINX ingress controller and report its external address."""
        release = self.config.ingress_release()
        status = self.helm.release_status(release.name, release.namespace)
        if status == RELEASE_DEPLOYED:
            console.step("NGINX Ingress Controller already installed")
        else:
            if status is not None:
                console.warning(f"Release {release.name} is in state '{status}'; upgrading to repair it")
            self._install(release)
            self._verify_release(release)

        console.action("Waiting for LoadBalancer IP assignment")
        service = ResourceDescriptor(
            kind=ResourceKind.SERVICE,
            namespace=self.config.ingress_namespace,
            name=self.config.ingress_service,
        )
        outcome = wait_for_address(
            service,
            max_attempts=self.config.lb_max_attempts,
            interval=self.config.lb_interval,
            deadline=self.deadline,
            sleep=self._sleep,
        )
        if outcome.timed_out:
            self._warn(f"LoadBalancer IP not assigned after {outcome.attempts} attempt(s)")
            console.command_hint(
                "Check manually with:",
                [f"kubectl get svc {self.config.ingress_service} -n {self.config.ingress_namespace}"],
            )
            return

        console.success(f"LoadBalancer IP assigned: {console.highlight(outcome.address)}")
        console.command_hint(
            "Configure your DNS:",
            [
                f"*.{self.config.dns_domain} -> {outcome.address}",
                f"{self.config.adminer_host} -> {outcome.address}",
            ],
        )

    def deploy_database(self) -> None:
        """Install PostgreSQL and wait for it to be ready."""
        release = self.config.postgres_release(self._values_files("values-postgres.yaml"))
        self._install(release)
        workload = ResourceDescriptor(
            kind=ResourceKind.STATEFULSET,
            namespace=self.config.infra_namespace,
            label_selector=POSTGRES_LABEL_SELECTOR,
        )
        if not self.prober.exists(workload):
            raise ChartInstallError(f"No PostgreSQL statefulset found in {self.config.infra_namespace}")

    def setup_database_secrets(self) -> None:
        """Generate fresh passwords and overwrite every credential secret."""
        services = self.config.services
        console.action("Generating secure random passwords")
        credentials = generate_credential_set(service.credential for service in services)

        self.store.upsert(
            SecretRecord(
                namespace=self.config.infra_namespace,
                name=self.config.init_secret_name,
                data={service.password_key: credentials[service.credential] for service in services},
            )
        )
        for service in services:
            dsn = build_dsn(service, credentials[service.credential], self.config.postgres_host, self.config.postgres_port)
            self.store.upsert(SecretRecord(namespace=service.namespace, name=service.secret_name, data={service.secret_key: dsn}))

        console.success("All database credentials configured (secrets always overwritten)")

    def _database_endpoint(self) -> DatabaseEndpoint:
        namespace = self.config.infra_namespace
        admin_password = self.store.read(
            namespace,
            self.config.admin_secret_name,
            _ADMIN_PASSWORD_KEY,
            attempts=self.config.secret_read_attempts,
            interval=self.config.secret_read_interval,
        )
        pod = self.cluster.find_pod(namespace, POSTGRES_LABEL_SELECTOR)
        if pod is None:
            raise ProvisioningError(f"No PostgreSQL pod found in {namespace}; run the database phase first")
        return DatabaseEndpoint(
            host=self.config.postgres_host,
            namespace=namespace,
            port=self.config.postgres_port,
            pod=pod,
            admin_user=self.config.postgres_admin_user,
            admin_password=admin_password,
        )

    def _stored_triples(self) -> list[ProvisioningTriple]:
        """Rebuild provisioning triples from the passwords in the secret store."""
        triples = []
        for service in self.config.services:
            password = self.store.read(
                self.config.infra_namespace,
                self.config.init_secret_name,
                service.password_key,
                attempts=self.config.secret_read_attempts,
                interval=self.config.secret_read_interval,
            )
            triples.append(ProvisioningTriple(user=service.user, password=password, database=service.database))
        return triples

    def provision_databases(self) -> None:
        """Create or update per-service users and databases."""
        console.action("Creating custom users and databases in PostgreSQL")
        endpoint = self._database_endpoint()
        triples = self._stored_triples()
        self.provisioner.provision(endpoint, triples)

        existing = set(self.provisioner.list_databases(endpoint))
        missing = [triple.database for triple in triples if triple.database not in existing]
        if missing:
            raise ProvisioningError(f"Databases missing after provisioning: {', '.join(missing)}")

    def deploy_applications(self) -> None:
        """Install Adminer, its ingress, and the local application chart."""
        self._install(self.config.adminer_release(self._values_files("values-adminer.yaml")))

        manifest = self.config.ingress_manifest
        if manifest.is_file():
            console.action("Applying Adminer Ingress")
            self.kubectl.apply_file(manifest)
            console.success("Adminer Ingress applied")
        else:
            self._warn(f"Adminer Ingress manifest not found at {manifest}")

        chart_dir = self.config.application_chart_dir
        if chart_dir.is_dir():
            release = self.config.application_release()
            self._install(release)
            self._verify_release(release)
        else:
            self._warn(f"Local {self.config.release_name} chart not found at {chart_dir}; skipping")

    def show_connection_info(self) -> None:
        """Print connection details read back from the cluster."""
        services = self.config.services
        infra = self.config.infra_namespace

        console.summary_panel("Adminer (Database UI)", {"URL": f"https://{self.config.adminer_host}"})

        admin_secret = self.config.admin_secret_name
        if self.show_password:
            try:
                password = self.store.read(infra, admin_secret, _ADMIN_PASSWORD_KEY)
            except SecretNotFoundError:
                password = "N/A"
        else:
            password = "hidden (use --show-password)"
        console.summary_panel(
            "PostgreSQL Superuser",
            {"Host": self.config.postgres_host, "Username": self.config.postgres_admin_user, "Password": password},
        )
        if not self.show_password:
            console.info(
                "Superuser password: "
                f"kubectl get secret {admin_secret} -n {infra} -o jsonpath='{{.data.{_ADMIN_PASSWORD_KEY}}}' | base64 -d"
            )

        console.summary_panel(
            "Application Databases",
            {service.database: f"owner: {service.user}" for service in services},
        )

        secrets = {}
        for service in services:
            present = self._exists(ResourceKind.SECRET, service.secret_name, service.namespace)
            secrets[service.secret_name] = f"{service.namespace}" if present else f"{service.namespace} (missing)"
            if not present:
                self._warn(f"Secret {service.namespace}/{service.secret_name} not found; run the secrets phase")
        console.summary_panel("Application Secrets", secrets, border_style="cyan")

        console.command_hint(
            "To retrieve application database URLs:",
            [
                f"kubectl get secret {service.secret_name} -n {service.namespace} "
                f"-o jsonpath='{{.data.{service.secret_key}}}' | base64 -d"
                for service in services
            ],
        )

    def reset_database(self) -> None:
        """Delete the PostgreSQL workload and its volume claims."""
        namespace = self.config.infra_namespace
        if not self.assume_yes:
            confirmed = questionary.confirm(
                f"Delete PostgreSQL workloads and volumes in '{namespace}'? All data will be lost",
                default=False,
                style=PROMPT_STYLE,
                qmark=QMARK,
            ).ask()
            if not confirmed:
                console.warning("Database reset cancelled.")
                raise click.Abort()

        console.action(f"Deleting PostgreSQL StatefulSet/Deployment and PVCs in {namespace}")
        self.cluster.delete_by_label(namespace, POSTGRES_LABEL_SELECTOR)
        console.success(f"PostgreSQL reset in {namespace}")
