"""Cluster secret storage.

Secrets are written with an overwrite-always policy: any existing secret
of the same name is deleted and a fresh one is created from the desired
record, so the stored keys are exactly the record's keys. Between the
delete and the create the secret briefly does not exist; ``read`` retries
to ride over that window.
"""

import base64
import time
from collections.abc import Callable

from icecream import ic
from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import MaxRetryError

from stack_bootstrap import console
from stack_bootstrap.core.cluster import translate_api_error
from stack_bootstrap.core.waiter import poll
from stack_bootstrap.exceptions import SecretNotFoundError
from stack_bootstrap.models import SecretRecord

_NOT_FOUND = 404


class SecretStore:
    """Writes and reads Opaque secrets through the Kubernetes API."""

    def __init__(self, *, sleep: Callable[[float], None] = time.sleep) -> None:
        self._sleep = sleep

    def upsert(self, record: SecretRecord) -> bool:
        """Replace a secret with the given record.

        Args:
            record: Desired secret state.

        Returns:
            True if an existing secret was replaced, False if it was created fresh.

        Raises:
            ClusterConnectionError: If the cluster is unreachable.
            ClusterApiError: If the delete or create is rejected.

        """
        core_v1_api = client.CoreV1Api()
        target = f"secret {record.namespace}/{record.name}"
        ic(target, sorted(record.data))

        replaced = True
        try:
            core_v1_api.delete_namespaced_secret(record.name, record.namespace)
        except ApiException as e:
            if e.status != _NOT_FOUND:
                raise translate_api_error(e, f"delete {target}") from e
            replaced = False
        except MaxRetryError as e:
            raise translate_api_error(e, f"delete {target}") from e

        body = client.V1Secret(
            metadata=client.V1ObjectMeta(name=record.name, namespace=record.namespace),
            type="Opaque",
            string_data=dict(record.data),
        )
        try:
            core_v1_api.create_namespaced_secret(record.namespace, body)
        except (ApiException, MaxRetryError) as e:
            raise translate_api_error(e, f"create {target}") from e

        verb = "Replaced" if replaced else "Created"
        console.success(f"{verb} secret {console.highlight(record.name)} in {record.namespace}")
        return replaced

    def read(self, namespace: str, name: str, key: str, *, attempts: int = 1, interval: float = 1.0) -> str:
        """Read and decode one key of a stored secret.

        Args:
            namespace: Namespace of the secret.
            name: Name of the secret.
            key: Key to decode.
            attempts: How many times to look before giving up.
            interval: Pause between attempts, in seconds.

        Returns:
            The decoded value.

        Raises:
            SecretNotFoundError: If the secret or key is still missing after all attempts.
            ClusterConnectionError: If the cluster is unreachable.

        """
        value, _ = poll(
            lambda: self._read_once(namespace, name, key),
            max_attempts=attempts,
            interval=interval,
            sleep=self._sleep,
        )
        if value is None:
            raise SecretNotFoundError(f"Key '{key}' of secret {namespace}/{name} not found")
        return value

    @staticmethod
    def _read_once(namespace: str, name: str, key: str) -> str | None:
        try:
            secret = client.CoreV1Api().read_namespaced_secret(name, namespace)
        except ApiException as e:
            if e.status == _NOT_FOUND:
                return None
            raise translate_api_error(e, f"read secret {namespace}/{name}") from e
        except MaxRetryError as e:
            raise translate_api_error(e, f"read secret {namespace}/{name}") from e

        encoded = (secret.data or {}).get(key)
        if encoded is None:
            return None
        return base64.b64decode(encoded).decode()
