"""Custom exceptions for stack-bootstrap.

This module defines the exception hierarchy used throughout the application.
Every exception here is fatal for the phase that raises it: the sequence
halts and the CLI exits with a non-zero status. Expected absence of a
resource is never an exception, and recoverable conditions (a pending
LoadBalancer address, a missing optional manifest) are reported as warnings.
"""


class BootstrapError(Exception):
    """Base exception for all stack-bootstrap errors.

    All custom exceptions in this package inherit from this class,
    allowing callers to catch every fatal bootstrap error with a single
    except clause.
    """

    pass


class ClusterConnectionError(BootstrapError):
    """Raised when the Kubernetes control plane cannot be used.

    This can occur when:
    - The kubeconfig is invalid or missing
    - The cluster is unreachable
    - Authentication or authorisation fails (HTTP 401/403)
    """

    pass


class ClusterApiError(BootstrapError):
    """Raised when the Kubernetes API answers with an unexpected error.

    A 404 during an existence check is not an error and never ends up here.
    """

    pass


class BinaryNotFoundError(BootstrapError):
    """Raised when a required binary (helm, kubectl) is not found on PATH."""

    pass


class ManifestApplyError(BootstrapError):
    """Raised when ``kubectl apply`` rejects a manifest."""

    pass


class ChartInstallError(BootstrapError):
    """Raised when a Helm install or upgrade fails."""

    pass


class ReleaseTimeoutError(ChartInstallError):
    """Raised when a release does not become ready before its deadline.

    This covers Helm's own ``--timeout`` expiring as well as other bounded
    waits whose failure makes the phase impossible to finish, such as
    custom resource definitions that never get registered.
    """

    pass


class SecretNotFoundError(BootstrapError):
    """Raised when a stored secret, or a key inside it, cannot be read."""

    pass


class ProvisioningError(BootstrapError):
    """Raised when a database statement fails for a reason other than
    the object already existing.
    """

    pass
