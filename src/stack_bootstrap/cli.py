#!/usr/bin/env python
"""Command-line interface for stack-bootstrap.

This module provides the main CLI entry point. Without a phase argument the
full default sequence runs; with one, only that phase runs.
"""

import sys
from pathlib import Path

import click
from icecream import ic

from stack_bootstrap import __version__, console
from stack_bootstrap.config import BootstrapConfig
from stack_bootstrap.core.bootstrap import DEFAULT_SEQUENCE, Bootstrap
from stack_bootstrap.core.cluster import Cluster
from stack_bootstrap.exceptions import BootstrapError
from stack_bootstrap.models import Phase

_PHASE_HELP = ", ".join(phase.value for phase in DEFAULT_SEQUENCE)


@click.command(
    help=(
        "Converge a Kubernetes cluster onto the application stack. "
        f"PHASE runs a single phase; without it all phases run in order: {_PHASE_HELP}. "
        "The destructive reset-database phase only runs when named."
    )
)
@click.argument("phase", required=False, type=click.Choice([phase.value for phase in Phase]))
@click.option("--version", "-v", required=False, is_flag=True, help="print version")
@click.option("--debug", required=False, is_flag=True, help="print debug information")
@click.option("--select", required=False, is_flag=True, default=False, help="prompt for context select")
@click.option("--context", required=False, help="kube context to use instead of the current one")
@click.option(
    "--project-root",
    required=False,
    type=click.Path(file_okay=False, path_type=Path),
    help="directory holding k8s/ manifests and helm/ values (default: current directory)",
)
@click.option("--address-range", required=False, help="MetalLB address range, e.g. 192.168.1.240-192.168.1.250")
@click.option("--show-password", required=False, is_flag=True, help="print the PostgreSQL superuser password")
@click.option("--yes", "-y", "assume_yes", required=False, is_flag=True, help="do not ask before destructive phases")
def cli(
    phase: str | None,
    version: bool,
    debug: bool,
    select: bool,
    context: str | None,
    project_root: Path | None,
    address_range: str | None,
    show_password: bool,
    assume_yes: bool,
) -> None:
    """Process CLI arguments and run the requested phases.

    Args:
        phase: Single phase to run; None runs the default sequence.
        version: Print version and exit.
        debug: Enable debug output.
        select: Prompt for Kubernetes context selection.
        context: Explicit Kubernetes context name.
        project_root: Directory with manifests and values files.
        address_range: MetalLB address range override.
        show_password: Print the superuser password in the report.
        assume_yes: Skip confirmation of destructive phases.

    """
    if not debug:
        ic.disable()

    if version:
        click.echo(__version__)
        return

    phases = [Phase(phase)] if phase else None

    try:
        cluster = Cluster(select_context=select, context=context)
        config = BootstrapConfig.from_env(
            project_root=project_root,
            address_range=address_range,
        ).with_context(cluster.context)
        ic(config)
        Bootstrap(config, cluster, show_password=show_password, assume_yes=assume_yes).run(phases)
    except BootstrapError as e:
        console.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    cli()
