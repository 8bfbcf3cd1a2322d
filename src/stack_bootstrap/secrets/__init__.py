"""Secrets management subpackage.

This package contains credential generation, connection URL templating
and the overwrite-always secret store.
"""

from stack_bootstrap.secrets.dsn import build_dsn
from stack_bootstrap.secrets.generation import generate, generate_credential_set
from stack_bootstrap.secrets.store import SecretStore

__all__ = [
    # generation
    "generate",
    "generate_credential_set",
    # dsn
    "build_dsn",
    # store
    "SecretStore",
]
