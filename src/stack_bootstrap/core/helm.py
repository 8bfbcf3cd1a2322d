"""Helm binary wrapper.

This module provides the Helm class, which manages chart repositories and
installs or upgrades releases, blocking until the release workloads are
ready. Helm is driven through its CLI with JSON output so repository and
release lookups are typed rather than grepped.
"""

import contextlib
import json
import shutil
import subprocess
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

import yaml
from icecream import ic

from stack_bootstrap import console
from stack_bootstrap.core.process import run_command, stderr_of
from stack_bootstrap.exceptions import BinaryNotFoundError, ChartInstallError, ReleaseTimeoutError
from stack_bootstrap.models import ChartRelease, HelmRepository, ReleaseOutcome

# Extra seconds the helm process gets beyond its own --timeout before being killed
_TIMEOUT_GRACE = 30

_DEADLINE_MARKERS = (
    "timed out waiting for the condition",
    "context deadline exceeded",
)
_NO_REPOSITORIES = "no repositories to show"

RELEASE_DEPLOYED = "deployed"


class Helm:
    """Runs helm commands against one kube context.

    Attributes:
        context: Kubernetes context passed to every helm call, if any.

    """

    def __init__(self, *, context: str | None = None, binary: str | None = None) -> None:
        """Initialize Helm.

        Args:
            context: Kubernetes context for ``--kube-context``.
            binary: Path to the helm binary; looked up on PATH on first use when omitted.

        """
        self.context: str | None = context
        self._binary: str | None = binary
        self._repositories_updated: bool = False

    @property
    def binary(self) -> str:
        """Path to the helm binary.

        Raises:
            BinaryNotFoundError: If helm is not on PATH.

        """
        if self._binary is None:
            found = shutil.which("helm")
            if found is None:
                raise BinaryNotFoundError(
                    "helm binary not found. Please install helm or ensure it's in your PATH. "
                    "See: https://helm.sh/docs/intro/install/"
                )
            self._binary = found
        return self._binary

    def _build_helm_cmd(self, *args: str) -> list[str]:
        cmd: list[str] = [self.binary]
        if self.context:
            cmd.append(f"--kube-context={self.context}")
        cmd.extend(args)
        return cmd

    def _run_json(self, *args: str) -> Any:
        result = run_command(self._build_helm_cmd(*args, "--output", "json"))
        return json.loads(result.stdout) if result.stdout.strip() else []

    def list_repositories(self) -> dict[str, str]:
        """Return configured repositories as a name -> URL mapping."""
        try:
            repositories = self._run_json("repo", "list")
        except subprocess.CalledProcessError as err:
            # helm exits non-zero when no repository is configured yet
            if _NO_REPOSITORIES in stderr_of(err):
                return {}
            raise ChartInstallError(f"Failed to list Helm repositories: {stderr_of(err)}") from err
        return {repo["name"]: repo["url"] for repo in repositories}

    def ensure_repository(self, repository: HelmRepository) -> bool:
        """Add a chart repository unless it is already configured.

        Args:
            repository: The repository to ensure.

        Returns:
            True if the repository was added, False if it already existed.

        """
        if repository.name in self.list_repositories():
            console.step(f"Helm repo {console.highlight(repository.name)} already added")
            return False

        try:
            run_command(self._build_helm_cmd("repo", "add", repository.name, repository.url))
        except subprocess.CalledProcessError as err:
            raise ChartInstallError(f"Failed to add Helm repo '{repository.name}': {stderr_of(err)}") from err
        console.success(f"Added Helm repo {console.highlight(repository.name)}")
        # A new repository needs an index refresh even if one already happened
        self._repositories_updated = False
        return True

    def update_repositories(self) -> None:
        """Refresh repository indexes, at most once per process."""
        if self._repositories_updated:
            return
        with console.spinner("Updating Helm repositories..."):
            try:
                run_command(self._build_helm_cmd("repo", "update"))
            except subprocess.CalledProcessError as err:
                raise ChartInstallError(f"Failed to update Helm repositories: {stderr_of(err)}") from err
        self._repositories_updated = True
        console.step("Helm repos updated")

    def release_status(self, name: str, namespace: str | None) -> str | None:
        """Return the status of a release in a namespace.

        Args:
            name: Release name.
            namespace: Namespace to look in.

        Returns:
            The status helm reports (``deployed``, ``failed``,
            ``pending-install``, ...), or None if there is no such release.

        """
        args = ["list", "--all", "--filter", f"^{name}$"]
        if namespace:
            args.extend(["--namespace", namespace])
        try:
            releases = self._run_json(*args)
        except subprocess.CalledProcessError as err:
            raise ChartInstallError(f"Failed to list Helm releases: {stderr_of(err)}") from err
        ic(releases)
        for release in releases:
            if release.get("name") == name:
                return str(release.get("status") or "unknown")
        return None

    def release_exists(self, name: str, namespace: str | None) -> bool:
        """Check whether a release is present in a namespace, in any state."""
        return self.release_status(name, namespace) is not None

    def install_or_upgrade(self, release: ChartRelease) -> ReleaseOutcome:
        """Install a release, or upgrade it in place, and wait until it is ready.

        Calling this twice with the same release results in a no-op upgrade.

        Args:
            release: The release to converge.

        Returns:
            INSTALLED if the release was new, UPGRADED otherwise.

        Raises:
            ReleaseTimeoutError: If the workloads are not ready within release.timeout.
            ChartInstallError: If helm fails for any other reason.

        """
        existed = self.release_exists(release.name, release.namespace)

        cmd = self._build_helm_cmd(
            "upgrade",
            "--install",
            release.name,
            release.chart,
            "--namespace",
            release.namespace,
            "--wait",
            f"--timeout={release.timeout}s",
        )
        if release.create_namespace:
            cmd.append("--create-namespace")
        for values_file in release.values_files:
            cmd.extend(["--values", str(values_file)])

        overlay_path: Path | None = None
        try:
            if release.values:
                overlay_path = self._write_overlay(release.values)
                cmd.extend(["--values", str(overlay_path)])

            verb = "Upgrading" if existed else "Installing"
            with console.spinner(f"{verb} {release.name} ({release.chart}), waiting up to {release.timeout}s..."):
                run_command(cmd, timeout=release.timeout + _TIMEOUT_GRACE)
        except subprocess.TimeoutExpired as err:
            raise ReleaseTimeoutError(
                f"Release '{release.name}' was not ready within {release.timeout}s"
            ) from err
        except subprocess.CalledProcessError as err:
            stderr = stderr_of(err)
            if any(marker in stderr for marker in _DEADLINE_MARKERS):
                raise ReleaseTimeoutError(
                    f"Release '{release.name}' was not ready within {release.timeout}s: {stderr}"
                ) from err
            raise ChartInstallError(
                f"Failed to install release '{release.name}' (exit code {err.returncode}): {stderr}"
            ) from err
        finally:
            if overlay_path is not None:
                with contextlib.suppress(OSError):
                    overlay_path.unlink(missing_ok=True)

        return ReleaseOutcome.UPGRADED if existed else ReleaseOutcome.INSTALLED

    @staticmethod
    def _write_overlay(values: Any) -> Path:
        """Write a values overlay to a temporary YAML file."""
        with NamedTemporaryFile("w", suffix=".yaml", prefix="values-", delete=False) as f:
            yaml.safe_dump(dict(values), f, default_flow_style=False)
        return Path(f.name)

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return f"Helm(context={self.context!r}, binary={self._binary!r})"
