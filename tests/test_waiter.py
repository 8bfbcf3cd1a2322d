"""Tests for core/waiter.py module."""

from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException

from stack_bootstrap.core.waiter import Deadline, poll, read_service_address, wait_for_address
from stack_bootstrap.exceptions import ClusterApiError
from stack_bootstrap.models import ResourceDescriptor, ResourceKind

INGRESS_SERVICE = ResourceDescriptor(
    kind=ResourceKind.SERVICE, namespace="ingress-nginx", name="ingress-nginx-controller"
)


class FakeClock:
    """Monotonic clock advanced by the fake sleep."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


def _service_with_ingress(ip=None, hostname=None):
    service = MagicMock()
    entry = MagicMock()
    entry.ip = ip
    entry.hostname = hostname
    service.status.load_balancer.ingress = [entry]
    return service


def _pending_service():
    service = MagicMock()
    service.status.load_balancer.ingress = None
    return service


class TestPoll:
    """Tests for the polling primitive."""

    def test_immediate_success(self, sleeps, fake_sleep):
        """Test no pause happens when the first probe succeeds."""
        result, attempts = poll(lambda: "ready", max_attempts=5, interval=2.0, sleep=fake_sleep)
        assert (result, attempts) == ("ready", 1)
        assert sleeps == []

    def test_exhausts_attempts(self, sleeps, fake_sleep):
        """Test the probe runs exactly max_attempts times with no trailing pause."""
        probe = MagicMock(return_value=None)
        result, attempts = poll(probe, max_attempts=30, interval=2.0, sleep=fake_sleep)

        assert result is None
        assert attempts == 30
        assert probe.call_count == 30
        assert sleeps == [2.0] * 29

    def test_success_after_misses(self, fake_sleep):
        """Test misses are reported and the eventual result returned."""
        probe = MagicMock(side_effect=[None, None, "10.0.0.1"])
        misses = []
        result, attempts = poll(probe, max_attempts=10, interval=1.0, sleep=fake_sleep, on_miss=misses.append)
        assert (result, attempts) == ("10.0.0.1", 3)
        assert misses == [1, 2]

    def test_rejects_zero_attempts(self):
        """Test a budget of zero attempts is invalid."""
        with pytest.raises(ValueError):
            poll(lambda: None, max_attempts=0, interval=1.0)

    def test_deadline_caps_waiting(self):
        """Test a shared deadline stops polling early."""
        clock = FakeClock()
        deadline = Deadline(5.0, clock=clock)
        probe = MagicMock(return_value=None)

        result, attempts = poll(probe, max_attempts=30, interval=2.0, deadline=deadline, sleep=clock.sleep)

        assert result is None
        assert attempts < 30
        assert clock.now == pytest.approx(5.0)


class TestDeadline:
    """Tests for Deadline."""

    def test_remaining_never_negative(self):
        """Test remaining time bottoms out at zero."""
        clock = FakeClock()
        deadline = Deadline(3.0, clock=clock)
        assert deadline.remaining() == 3.0
        clock.sleep(10)
        assert deadline.remaining() == 0.0
        assert deadline.expired()


class TestServiceAddress:
    """Tests for LoadBalancer address lookups."""

    def test_ip_address(self, mock_core_v1_api):
        """Test an assigned IP is returned."""
        mock_core_v1_api.read_namespaced_service.return_value = _service_with_ingress(ip="192.168.1.240")
        assert read_service_address(INGRESS_SERVICE) == "192.168.1.240"

    def test_hostname(self, mock_core_v1_api):
        """Test a hostname is used when no IP is reported."""
        mock_core_v1_api.read_namespaced_service.return_value = _service_with_ingress(hostname="lb.example.com")
        assert read_service_address(INGRESS_SERVICE) == "lb.example.com"

    def test_pending(self, mock_core_v1_api):
        """Test a pending LoadBalancer has no address."""
        mock_core_v1_api.read_namespaced_service.return_value = _pending_service()
        assert read_service_address(INGRESS_SERVICE) is None

    def test_missing_service(self, mock_core_v1_api):
        """Test a service that does not exist yet has no address."""
        mock_core_v1_api.read_namespaced_service.side_effect = ApiException(status=404)
        assert read_service_address(INGRESS_SERVICE) is None

    def test_api_error(self, mock_core_v1_api):
        """Test unexpected API errors propagate."""
        mock_core_v1_api.read_namespaced_service.side_effect = ApiException(status=500, reason="Internal")
        with pytest.raises(ClusterApiError):
            read_service_address(INGRESS_SERVICE)


class TestWaitForAddress:
    """Tests for the LoadBalancer wait."""

    def test_address_assigned(self, mock_core_v1_api, sleeps, fake_sleep):
        """Test the wait stops once an address appears."""
        mock_core_v1_api.read_namespaced_service.side_effect = [
            _pending_service(),
            _service_with_ingress(ip="192.168.1.240"),
        ]
        outcome = wait_for_address(INGRESS_SERVICE, sleep=fake_sleep)

        assert outcome.address == "192.168.1.240"
        assert outcome.attempts == 2
        assert not outcome.timed_out
        assert sleeps == [2.0]

    def test_timeout_is_an_outcome(self, mock_core_v1_api, sleeps, fake_sleep):
        """Test a never-assigned address is reported, not raised."""
        mock_core_v1_api.read_namespaced_service.return_value = _pending_service()
        outcome = wait_for_address(INGRESS_SERVICE, max_attempts=30, interval=2.0, sleep=fake_sleep)

        assert outcome.timed_out
        assert outcome.attempts == 30
        assert mock_core_v1_api.read_namespaced_service.call_count == 30
        assert len(sleeps) == 29

    def test_requires_named_service(self):
        """Test only named services can be waited on."""
        descriptor = ResourceDescriptor(kind=ResourceKind.SECRET, namespace="x", name="y")
        with pytest.raises(ValueError, match="service descriptor"):
            wait_for_address(descriptor)
