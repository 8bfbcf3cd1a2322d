"""stack-bootstrap: idempotent bootstrap of a Kubernetes application stack.

This package converges a cluster onto a small application stack (MetalLB,
NGINX ingress, PostgreSQL with per-service credentials, Adminer) through
named, independently re-runnable phases.

Example usage:
    from stack_bootstrap import Bootstrap, BootstrapConfig, Cluster, Phase

    cluster = Cluster(select_context=False)
    config = BootstrapConfig.from_env().with_context(cluster.context)

    # Run the full default sequence
    Bootstrap(config, cluster).run()

    # Or a single phase
    Bootstrap(config, cluster).run([Phase.PROVISION])
"""

__version__ = "0.1.0"

from stack_bootstrap.cli import cli
from stack_bootstrap.config import BootstrapConfig
from stack_bootstrap.core.bootstrap import Bootstrap
from stack_bootstrap.core.cluster import Cluster
from stack_bootstrap.exceptions import (
    BinaryNotFoundError,
    BootstrapError,
    ChartInstallError,
    ClusterApiError,
    ClusterConnectionError,
    ManifestApplyError,
    ProvisioningError,
    ReleaseTimeoutError,
    SecretNotFoundError,
)
from stack_bootstrap.models import Phase

__all__ = [
    # Version
    "__version__",
    # Main CLI
    "cli",
    # Classes
    "Bootstrap",
    "BootstrapConfig",
    "Cluster",
    "Phase",
    # Exceptions
    "BootstrapError",
    "BinaryNotFoundError",
    "ChartInstallError",
    "ClusterApiError",
    "ClusterConnectionError",
    "ManifestApplyError",
    "ProvisioningError",
    "ReleaseTimeoutError",
    "SecretNotFoundError",
]
