"""Fixed-interval polling.

``poll`` is the single waiting primitive of the bootstrap: it repeats a
non-blocking probe a bounded number of times with a constant pause in
between, optionally capped by a ``Deadline`` shared across several waits.
``wait_for_address`` builds the LoadBalancer address wait on top of it.
"""

import time
from collections.abc import Callable
from typing import TypeVar

from icecream import ic
from kubernetes import client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import MaxRetryError

from stack_bootstrap import console
from stack_bootstrap.core.cluster import translate_api_error
from stack_bootstrap.models import AddressOutcome, ResourceDescriptor, ResourceKind

T = TypeVar("T")

_NOT_FOUND = 404


class Deadline:
    """An absolute point in time that several waits can share.

    Attributes:
        seconds: The budget the deadline was created with.

    """

    def __init__(self, seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.seconds: float = seconds
        self._clock = clock
        self._expires_at: float = clock() + seconds

    def remaining(self) -> float:
        """Seconds left before expiry, never negative."""
        return max(0.0, self._expires_at - self._clock())

    def expired(self) -> bool:
        return self.remaining() <= 0

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return f"Deadline(seconds={self.seconds!r}, remaining={self.remaining():.1f})"


def poll(
    probe: Callable[[], T | None],
    *,
    max_attempts: int,
    interval: float,
    deadline: Deadline | None = None,
    sleep: Callable[[float], None] = time.sleep,
    on_miss: Callable[[int], None] | None = None,
) -> tuple[T | None, int]:
    """Call probe until it returns a value or the attempt budget runs out.

    The probe is called exactly max_attempts times when it never succeeds,
    unless the deadline expires first. There is no pause after the last
    attempt.

    Args:
        probe: Non-blocking check returning a value when done, None otherwise.
        max_attempts: Maximum number of probe calls.
        interval: Fixed pause between attempts, in seconds.
        deadline: Optional overall deadline; pauses are shortened to fit it.
        sleep: Function used to pause.
        on_miss: Called with the attempt number after each unsuccessful probe.

    Returns:
        The probe result (or None) and the number of attempts made.

    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 0
    for attempt in range(1, max_attempts + 1):
        result = probe()
        if result is not None:
            return result, attempt
        if on_miss is not None:
            on_miss(attempt)
        if attempt == max_attempts:
            break
        if deadline is not None:
            if deadline.expired():
                break
            sleep(min(interval, deadline.remaining()))
        else:
            sleep(interval)
    return None, attempt


def read_service_address(descriptor: ResourceDescriptor) -> str | None:
    """Return the first LoadBalancer IP or hostname of a service, if assigned.

    A service that does not exist yet is reported as having no address.

    Raises:
        ClusterConnectionError: If the cluster is unreachable.

    """
    try:
        service = client.CoreV1Api().read_namespaced_service(descriptor.name, descriptor.namespace)
    except ApiException as e:
        if e.status == _NOT_FOUND:
            return None
        raise translate_api_error(e, f"read {descriptor}") from e
    except MaxRetryError as e:
        raise translate_api_error(e, f"read {descriptor}") from e

    load_balancer = service.status.load_balancer if service.status else None
    ingress = load_balancer.ingress if load_balancer else None
    if not ingress:
        return None
    return ingress[0].ip or ingress[0].hostname or None


def wait_for_address(
    descriptor: ResourceDescriptor,
    *,
    max_attempts: int = 30,
    interval: float = 2.0,
    deadline: Deadline | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> AddressOutcome:
    """Poll a service until it is assigned an external address.

    Args:
        descriptor: Named service to watch.
        max_attempts: Number of status queries before giving up.
        interval: Fixed pause between queries, in seconds.
        deadline: Optional overall deadline.
        sleep: Function used to pause.

    Returns:
        The address (None when the budget ran out) and the attempts made.

    """
    if descriptor.kind is not ResourceKind.SERVICE or descriptor.name is None:
        raise ValueError("wait_for_address needs a service descriptor with a name")

    address, attempts = poll(
        lambda: read_service_address(descriptor),
        max_attempts=max_attempts,
        interval=interval,
        deadline=deadline,
        sleep=sleep,
        on_miss=lambda _: console.progress_dot(),
    )
    console.newline()
    ic(address, attempts)
    return AddressOutcome(address=address, attempts=attempts)
