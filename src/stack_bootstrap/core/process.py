"""Subprocess helpers shared by the helm and kubectl wrappers."""

import subprocess
from collections.abc import Iterable, Sequence

from icecream import ic

from stack_bootstrap.exceptions import BinaryNotFoundError

_ERR_BINARY_NOT_FOUND = "{binary} not found; please install {binary} and ensure it's on PATH"
_REDACTED = "****"


def redact(text: str, secrets: Iterable[str]) -> str:
    """Replace every occurrence of the given secret values in text.

    Args:
        text: Text that may contain secret values.
        secrets: Values to hide. Empty values are ignored.

    Returns:
        The text with each secret replaced by a fixed mask.

    """
    for secret in secrets:
        if secret:
            text = text.replace(secret, _REDACTED)
    return text


def run_command(
    cmd: Sequence[str],
    *,
    input_text: str | None = None,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run a command, capturing text output.

    Arguments are passed as a list, never through a shell. Callers that hand
    secrets to a command must pass them through ``input_text`` so they stay
    out of process listings and debug traces.

    Args:
        cmd: The command and its arguments.
        input_text: Text written to the command's stdin.
        timeout: Seconds after which the command is killed.

    Returns:
        The completed process.

    Raises:
        BinaryNotFoundError: If the executable is not on PATH.
        subprocess.CalledProcessError: If the command exits non-zero.
        subprocess.TimeoutExpired: If the command outlives the timeout.

    """
    ic(list(cmd))
    try:
        return subprocess.run(
            list(cmd),
            input=input_text,
            capture_output=True,
            text=True,
            check=True,
            timeout=timeout,
        )
    except FileNotFoundError as err:
        raise BinaryNotFoundError(_ERR_BINARY_NOT_FOUND.format(binary=cmd[0])) from err


def stderr_of(err: subprocess.CalledProcessError) -> str:
    """Return the stripped stderr of a failed command, or an empty string."""
    stderr = err.stderr
    if isinstance(stderr, bytes):
        stderr = stderr.decode(errors="replace")
    return (stderr or "").strip()
