"""kubectl wrapper for manifest apply and pod exec.

Manifests are applied server-side so repeated applies converge instead of
conflicting. Pod exec streams stdin to the container, which is how
statements and credentials reach ``psql`` without appearing on any
command line.
"""

import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import yaml

from stack_bootstrap.config import FIELD_MANAGER
from stack_bootstrap.core.process import run_command, stderr_of
from stack_bootstrap.exceptions import ManifestApplyError

_SERVER_SIDE = "--server-side"
_FIELD_MANAGER = f"--field-manager={FIELD_MANAGER}"


class Kubectl:
    """Runs kubectl commands against one kube context."""

    def __init__(self, *, context: str | None = None, binary: str = "kubectl") -> None:
        self.context: str | None = context
        self.binary: str = binary

    def _build_kubectl_cmd(self, *args: str) -> list[str]:
        cmd: list[str] = [self.binary]
        if self.context:
            cmd.append(f"--context={self.context}")
        cmd.extend(args)
        return cmd

    def apply_file(self, path: Path) -> str:
        """Apply a manifest file server-side.

        Args:
            path: Manifest file to apply.

        Returns:
            kubectl's summary of the applied objects.

        Raises:
            ManifestApplyError: If kubectl rejects the manifest.

        """
        cmd = self._build_kubectl_cmd("apply", _SERVER_SIDE, _FIELD_MANAGER, "-f", str(path))
        try:
            return run_command(cmd).stdout.strip()
        except subprocess.CalledProcessError as err:
            raise ManifestApplyError(f"Failed to apply {path} (exit code {err.returncode}): {stderr_of(err)}") from err

    def apply_documents(self, documents: list[dict[str, Any]]) -> str:
        """Apply in-memory manifests server-side.

        Args:
            documents: Kubernetes objects to apply.

        Returns:
            kubectl's summary of the applied objects.

        Raises:
            ManifestApplyError: If kubectl rejects a document.

        """
        cmd = self._build_kubectl_cmd("apply", _SERVER_SIDE, _FIELD_MANAGER, "-f", "-")
        manifest = yaml.safe_dump_all(documents, default_flow_style=False, sort_keys=False)
        kinds = ", ".join(f"{doc['kind']}/{doc['metadata']['name']}" for doc in documents)
        try:
            return run_command(cmd, input_text=manifest).stdout.strip()
        except subprocess.CalledProcessError as err:
            raise ManifestApplyError(f"Failed to apply {kinds} (exit code {err.returncode}): {stderr_of(err)}") from err

    def exec_in_pod(
        self,
        namespace: str,
        pod: str,
        command: Sequence[str],
        *,
        input_text: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a command inside a pod, feeding input_text to its stdin.

        Raises:
            subprocess.CalledProcessError: If the command exits non-zero;
                callers classify the failure.

        """
        cmd = self._build_kubectl_cmd("exec", "-i", "--namespace", namespace, pod, "--", *command)
        return run_command(cmd, input_text=input_text)

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return f"Kubectl(context={self.context!r})"
