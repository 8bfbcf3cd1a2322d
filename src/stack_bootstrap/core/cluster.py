"""Kubernetes cluster interaction utilities.

This module provides the Cluster class, which selects the kube context,
verifies that the control plane answers, and performs the few direct
API mutations the bootstrap needs (namespaces, pod lookup, cleanup).
"""

import click
import questionary
from icecream import ic
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import MaxRetryError

from stack_bootstrap import console
from stack_bootstrap.exceptions import BootstrapError, ClusterApiError, ClusterConnectionError
from stack_bootstrap.styles import POINTER, PROMPT_STYLE, QMARK

_AUTH_FAILURES = (401, 403)
_CONFLICT = 409


def translate_api_error(err: ApiException | MaxRetryError, action: str) -> BootstrapError:
    """Map a kubernetes client failure to a bootstrap exception.

    Args:
        err: The failure raised by the kubernetes client.
        action: Short description of what was attempted, used in the message.

    Returns:
        ClusterConnectionError for unreachable clusters and auth failures,
        ClusterApiError for any other API error.

    """
    if isinstance(err, MaxRetryError):
        return ClusterConnectionError(f"Failed to connect to the Kubernetes cluster while trying to {action}: {err.reason}")
    if err.status in _AUTH_FAILURES:
        return ClusterConnectionError(f"Not authorised to {action}: {err.status} {err.reason}")
    return ClusterApiError(f"Failed to {action}: {err.status} {err.reason}")


class Cluster:
    """Manages the connection to the target Kubernetes cluster.

    Attributes:
        context: The active Kubernetes context name.
        server_version: Version reported by the API server.

    """

    def __init__(self, *, select_context: bool, context: str | None = None) -> None:
        """Initialize Cluster, load its kubeconfig and check connectivity.

        Args:
            select_context: If True, prompt the user to select a context.
            context: Explicit context name. Ignored when select_context is True.

        Raises:
            ClusterConnectionError: If the kubeconfig is unusable or the
                control plane cannot be reached.

        """
        self.context: str = self._set_context(select_context=select_context, context=context)
        try:
            config.load_kube_config(context=self.context)
        except ConfigException as e:
            raise ClusterConnectionError(f"Cannot load context '{self.context}': {e}") from e
        self.server_version: str = self._check_connection()

    @staticmethod
    def _set_context(*, select_context: bool, context: str | None) -> str:
        """Resolve the Kubernetes context to use.

        Raises:
            ClusterConnectionError: If kubeconfig is invalid or missing.
            click.Abort: If user cancels context selection.

        """
        try:
            contexts, current_context = config.list_kube_config_contexts()
        except ConfigException as e:
            raise ClusterConnectionError(f"Invalid or missing kubeconfig: {e}") from e
        context_names: list[str] = [ctx["name"] for ctx in contexts]
        if select_context:
            context = questionary.select(
                "Select context to bootstrap",
                choices=context_names,
                default=current_context["name"] if current_context else None,
                style=PROMPT_STYLE,
                pointer=POINTER,
                qmark=QMARK,
            ).ask()
            if context is None:
                console.warning("Context selection cancelled.")
                raise click.Abort()
        elif context is not None:
            if context not in context_names:
                raise ClusterConnectionError(f"Context '{context}' not found in kubeconfig")
        elif current_context:
            context = str(current_context["name"])
        else:
            raise ClusterConnectionError("No current context set in kubeconfig")
        console.action(f"Working with {console.highlight(context)} cluster")
        return context

    @staticmethod
    def _check_connection() -> str:
        """Ask the API server for its version.

        Returns:
            The server git version.

        Raises:
            ClusterConnectionError: If the cluster is unreachable or rejects the credentials.

        """
        with console.spinner("Contacting the Kubernetes API server..."):
            try:
                version = client.VersionApi().get_code()
            except (ApiException, MaxRetryError) as e:
                raise translate_api_error(e, "query the server version") from e
        ic(version.git_version)
        return str(version.git_version)

    @staticmethod
    def create_namespace(name: str) -> bool:
        """Create a namespace.

        Args:
            name: Namespace name.

        Returns:
            True if the namespace was created, False if it appeared
            concurrently and already exists.

        """
        body = client.V1Namespace(metadata=client.V1ObjectMeta(name=name))
        try:
            client.CoreV1Api().create_namespace(body=body)
        except ApiException as e:
            if e.status == _CONFLICT:
                return False
            raise translate_api_error(e, f"create namespace {name}") from e
        except MaxRetryError as e:
            raise translate_api_error(e, f"create namespace {name}") from e
        return True

    @staticmethod
    def find_pod(namespace: str, label_selector: str) -> str | None:
        """Find a pod by label, preferring one that is running.

        Args:
            namespace: Namespace to search.
            label_selector: Label selector the pod must match.

        Returns:
            The pod name, or None if no pod matches.

        """
        try:
            pods = client.CoreV1Api().list_namespaced_pod(namespace, label_selector=label_selector).items
        except (ApiException, MaxRetryError) as e:
            raise translate_api_error(e, f"list pods in {namespace}") from e
        if not pods:
            return None
        running = [pod for pod in pods if pod.status is not None and pod.status.phase == "Running"]
        return str((running or pods)[0].metadata.name)

    @staticmethod
    def delete_by_label(namespace: str, label_selector: str) -> None:
        """Delete statefulsets, deployments and volume claims matching a label.

        Args:
            namespace: Namespace to clean up.
            label_selector: Label selector of the objects to delete.

        """
        apps_v1_api = client.AppsV1Api()
        core_v1_api = client.CoreV1Api()
        deletions = (
            ("statefulsets", apps_v1_api.delete_collection_namespaced_stateful_set),
            ("deployments", apps_v1_api.delete_collection_namespaced_deployment),
            ("persistent volume claims", core_v1_api.delete_collection_namespaced_persistent_volume_claim),
        )
        for label, delete in deletions:
            try:
                delete(namespace, label_selector=label_selector)
            except (ApiException, MaxRetryError) as e:
                raise translate_api_error(e, f"delete {label} in {namespace}") from e
            console.step(f"Deleted {label} matching {console.highlight(label_selector)} in {namespace}")

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return f"Cluster(context={self.context!r}, server_version={self.server_version!r})"
