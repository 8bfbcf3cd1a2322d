"""PostgreSQL user and database provisioning.

Statements run through ``psql`` inside the database pod. Each service gets
its own batch, and a batch cut short by a concurrent creator is run once
more so its remaining statements still apply. The batches are written to
be re-runnable:

- the role is created when missing and otherwise has its password reset,
  so the database always accepts the password held in the secret store;
- the database is created through ``\\gexec`` only when it does not exist;
- the grant is naturally idempotent.

The superuser password is sent as the first line of stdin and exported by
the container shell, keeping it off every command line.
"""

import re
import subprocess
from collections.abc import Iterable

from icecream import ic

from stack_bootstrap import console
from stack_bootstrap.core.kubectl import Kubectl
from stack_bootstrap.core.process import redact, stderr_of
from stack_bootstrap.exceptions import ProvisioningError
from stack_bootstrap.models import DatabaseEndpoint, ProvisioningTriple

_IDENTIFIER_PATTERN = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")

# SQLSTATE 42710 duplicate_object and 42P04 duplicate_database
_ALREADY_EXISTS_PATTERN = re.compile(r'ERROR:\s+(role|database) "[^"]+" already exists')

# A batch aborted by a concurrent creator is run once more
_BATCH_ATTEMPTS = 2

# $0 is the admin user, $1 the database to connect to
_PSQL_SHELL = 'read -r PGPASSWORD && export PGPASSWORD && exec psql -v ON_ERROR_STOP=1 -X -q -U "$0" -d "$1"'

_LIST_DATABASES = "SELECT datname FROM pg_catalog.pg_database WHERE NOT datistemplate ORDER BY datname;"


def _identifier(value: str) -> str:
    if not _IDENTIFIER_PATTERN.match(value):
        raise ProvisioningError(f"Invalid PostgreSQL identifier: '{value}'")
    return value


def _literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def build_statements(triple: ProvisioningTriple) -> str:
    """Render the idempotent statement batch for one triple.

    Args:
        triple: User, password and database to converge.

    Returns:
        SQL text for psql, including a ``\\gexec`` meta-command.

    Raises:
        ProvisioningError: If the user or database name is not a plain identifier.

    """
    user = _identifier(triple.user)
    database = _identifier(triple.database)
    password = _literal(triple.password)
    return f"""\
DO $provision$
BEGIN
    IF NOT EXISTS (SELECT FROM pg_catalog.pg_roles WHERE rolname = {_literal(user)}) THEN
        CREATE USER {user} WITH PASSWORD {password};
    ELSE
        ALTER USER {user} WITH LOGIN PASSWORD {password};
    END IF;
END
$provision$;
SELECT 'CREATE DATABASE {database} OWNER {user}'
WHERE NOT EXISTS (SELECT FROM pg_catalog.pg_database WHERE datname = {_literal(database)})\\gexec
GRANT ALL PRIVILEGES ON DATABASE {database} TO {user};
"""


class DatabaseProvisioner:
    """Creates per-service users and databases in the running PostgreSQL."""

    def __init__(self, kubectl: Kubectl) -> None:
        self.kubectl = kubectl

    def _psql(self, endpoint: DatabaseEndpoint, sql: str, *, database: str = "postgres") -> str:
        command = ["sh", "-c", _PSQL_SHELL, endpoint.admin_user, database]
        result = self.kubectl.exec_in_pod(
            endpoint.namespace,
            endpoint.pod,
            command,
            input_text=f"{endpoint.admin_password}\n{sql}",
        )
        return result.stdout

    def provision(self, endpoint: DatabaseEndpoint, triples: Iterable[ProvisioningTriple]) -> None:
        """Ensure every triple's user and database exist with matching ownership.

        Re-running with the same triples leaves exactly one user and one
        database per triple. An "already exists" failure, which only happens
        when something else created the object concurrently, aborts the rest
        of that batch; the batch is then run once more, and its existence
        checks take the update and skip paths for the objects now present.

        Args:
            endpoint: Administrative access to the database.
            triples: Users, passwords and databases to converge.

        Raises:
            ProvisioningError: If any statement fails for another reason,
                or the repeated batch fails again.

        """
        ic(endpoint)
        for triple in triples:
            sql = build_statements(triple)
            for attempt in range(1, _BATCH_ATTEMPTS + 1):
                try:
                    self._psql(endpoint, sql)
                    break
                except subprocess.CalledProcessError as err:
                    stderr = redact(stderr_of(err), (triple.password, endpoint.admin_password))
                    if attempt < _BATCH_ATTEMPTS and _ALREADY_EXISTS_PATTERN.search(stderr):
                        console.warning(f"{triple.database}: {stderr.splitlines()[0]}, re-running the batch")
                        continue
                    raise ProvisioningError(
                        f"Provisioning {triple.database} for {triple.user} failed (exit code {err.returncode}): {stderr}"
                    ) from err
            console.success(f"Provisioned {console.highlight(triple.database)} (owner: {triple.user})")

    def list_databases(self, endpoint: DatabaseEndpoint) -> list[str]:
        """Return the names of all non-template databases.

        Raises:
            ProvisioningError: If the query fails.

        """
        try:
            output = self._psql(endpoint, f"\\pset tuples_only on\n\\pset format unaligned\n{_LIST_DATABASES}")
        except subprocess.CalledProcessError as err:
            stderr = redact(stderr_of(err), (endpoint.admin_password,))
            raise ProvisioningError(f"Failed to list databases: {stderr}") from err
        return [line.strip() for line in output.splitlines() if line.strip()]
