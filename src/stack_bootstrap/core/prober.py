"""Resource existence checks.

The prober answers "does this resource exist right now?" with typed
lookups against the Kubernetes API (and Helm for chart releases). A
missing resource is a normal ``False``; only a cluster that cannot be
talked to, or an unexpected API answer, raises.
"""

from typing import Any

from icecream import ic
from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import MaxRetryError

from stack_bootstrap.config import METALLB_API_GROUP, METALLB_API_VERSION
from stack_bootstrap.core.cluster import translate_api_error
from stack_bootstrap.core.helm import Helm
from stack_bootstrap.models import ResourceDescriptor, ResourceKind

_NOT_FOUND = 404


class ResourceProber:
    """Checks resource existence for create-vs-skip decisions.

    Attributes:
        helm: Helm wrapper used for chart release lookups.

    """

    def __init__(self, helm: Helm) -> None:
        self.helm = helm

    def exists(self, descriptor: ResourceDescriptor) -> bool:
        """Report whether the described resource currently exists.

        For a label selector, the answer is whether at least one resource
        matches.

        Args:
            descriptor: What to look for.

        Returns:
            True if the resource exists, False otherwise.

        Raises:
            ClusterConnectionError: If the cluster is unreachable or rejects the credentials.
            ClusterApiError: If the API answers with an unexpected error.

        """
        if descriptor.kind is ResourceKind.CHART_RELEASE:
            return self._release_exists(descriptor)

        try:
            if descriptor.name is not None:
                self._read(descriptor)
                found = True
            else:
                found = bool(self._list(descriptor).items)
        except ApiException as e:
            if e.status != _NOT_FOUND:
                raise translate_api_error(e, f"look up {descriptor}") from e
            found = False
        except MaxRetryError as e:
            raise translate_api_error(e, f"look up {descriptor}") from e

        ic(str(descriptor), found)
        return found

    def _release_exists(self, descriptor: ResourceDescriptor) -> bool:
        if descriptor.name is None:
            raise ValueError("Chart releases can only be looked up by name")
        return self.helm.release_exists(descriptor.name, descriptor.namespace)

    @staticmethod
    def _read(descriptor: ResourceDescriptor) -> Any:
        """Fetch a single named resource; raises ApiException(404) when absent."""
        name, namespace = descriptor.name, descriptor.namespace
        match descriptor.kind:
            case ResourceKind.NAMESPACE:
                return client.CoreV1Api().read_namespace(name)
            case ResourceKind.SECRET:
                return client.CoreV1Api().read_namespaced_secret(name, namespace)
            case ResourceKind.SERVICE:
                return client.CoreV1Api().read_namespaced_service(name, namespace)
            case ResourceKind.PERSISTENT_VOLUME_CLAIM:
                return client.CoreV1Api().read_namespaced_persistent_volume_claim(name, namespace)
            case ResourceKind.STATEFULSET:
                return client.AppsV1Api().read_namespaced_stateful_set(name, namespace)
            case ResourceKind.DEPLOYMENT:
                return client.AppsV1Api().read_namespaced_deployment(name, namespace)
            case ResourceKind.IP_ADDRESS_POOL:
                return client.CustomObjectsApi().get_namespaced_custom_object(
                    METALLB_API_GROUP, METALLB_API_VERSION, namespace, "ipaddresspools", name
                )
            case ResourceKind.CUSTOM_RESOURCE_DEFINITION:
                return client.ApiextensionsV1Api().read_custom_resource_definition(name)
            case _:
                raise ValueError(f"Unsupported resource kind: {descriptor.kind.value}")

    @staticmethod
    def _list(descriptor: ResourceDescriptor) -> Any:
        """List resources matching a label selector."""
        selector, namespace = descriptor.label_selector, descriptor.namespace
        match descriptor.kind:
            case ResourceKind.NAMESPACE:
                return client.CoreV1Api().list_namespace(label_selector=selector)
            case ResourceKind.SECRET:
                return client.CoreV1Api().list_namespaced_secret(namespace, label_selector=selector)
            case ResourceKind.SERVICE:
                return client.CoreV1Api().list_namespaced_service(namespace, label_selector=selector)
            case ResourceKind.PERSISTENT_VOLUME_CLAIM:
                return client.CoreV1Api().list_namespaced_persistent_volume_claim(namespace, label_selector=selector)
            case ResourceKind.STATEFULSET:
                return client.AppsV1Api().list_namespaced_stateful_set(namespace, label_selector=selector)
            case ResourceKind.DEPLOYMENT:
                return client.AppsV1Api().list_namespaced_deployment(namespace, label_selector=selector)
            case ResourceKind.IP_ADDRESS_POOL:
                return _CustomObjectList(
                    client.CustomObjectsApi().list_namespaced_custom_object(
                        METALLB_API_GROUP, METALLB_API_VERSION, namespace, "ipaddresspools", label_selector=selector
                    )
                )
            case ResourceKind.CUSTOM_RESOURCE_DEFINITION:
                return client.ApiextensionsV1Api().list_custom_resource_definition(label_selector=selector)
            case _:
                raise ValueError(f"Unsupported resource kind: {descriptor.kind.value}")


class _CustomObjectList:
    """Gives a custom object list response the ``items`` attribute of typed lists."""

    def __init__(self, response: dict[str, Any]) -> None:
        self.items: list[Any] = response.get("items", [])
