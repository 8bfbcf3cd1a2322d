"""Core infrastructure subpackage.

This package contains the Bootstrap orchestrator along with the cluster,
helm and kubectl wrappers, the existence prober and the polling helpers.
"""

from stack_bootstrap.core.cluster import Cluster
from stack_bootstrap.core.helm import Helm
from stack_bootstrap.core.kubectl import Kubectl
from stack_bootstrap.core.prober import ResourceProber
from stack_bootstrap.core.waiter import Deadline, poll, wait_for_address
from stack_bootstrap.core.bootstrap import DEFAULT_SEQUENCE, Bootstrap

__all__ = [
    "Bootstrap",
    "Cluster",
    "DEFAULT_SEQUENCE",
    "Deadline",
    "Helm",
    "Kubectl",
    "ResourceProber",
    "poll",
    "wait_for_address",
]
