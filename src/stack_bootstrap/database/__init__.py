"""Database provisioning subpackage."""

from stack_bootstrap.database.provisioning import DatabaseProvisioner, build_statements

__all__ = [
    "DatabaseProvisioner",
    "build_statements",
]
