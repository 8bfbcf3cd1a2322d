"""Shared test fixtures for stack-bootstrap tests."""

from unittest.mock import MagicMock, patch

import pytest

from stack_bootstrap.config import BootstrapConfig


@pytest.fixture
def mock_kube_contexts():
    """Mock kubernetes config contexts."""
    with patch("kubernetes.config.list_kube_config_contexts") as mock:
        mock.return_value = ([{"name": "test-context"}, {"name": "other-context"}], {"name": "test-context"})
        yield mock


@pytest.fixture
def mock_kube_config():
    """Mock kubernetes config loading."""
    with patch("kubernetes.config.load_kube_config") as mock:
        yield mock


@pytest.fixture
def mock_version_api():
    """Mock VersionApi so the connectivity check succeeds."""
    with patch("kubernetes.client.VersionApi") as mock:
        api_instance = MagicMock()
        mock.return_value = api_instance
        api_instance.get_code.return_value.git_version = "v1.30.2"
        yield api_instance


@pytest.fixture
def mock_core_v1_api():
    """Mock CoreV1Api."""
    with patch("kubernetes.client.CoreV1Api") as mock:
        api_instance = MagicMock()
        mock.return_value = api_instance
        yield api_instance


@pytest.fixture
def mock_apps_v1_api():
    """Mock AppsV1Api."""
    with patch("kubernetes.client.AppsV1Api") as mock:
        api_instance = MagicMock()
        mock.return_value = api_instance
        yield api_instance


@pytest.fixture
def mock_custom_objects_api():
    """Mock CustomObjectsApi."""
    with patch("kubernetes.client.CustomObjectsApi") as mock:
        api_instance = MagicMock()
        mock.return_value = api_instance
        yield api_instance


@pytest.fixture
def mock_apiextensions_api():
    """Mock ApiextensionsV1Api."""
    with patch("kubernetes.client.ApiextensionsV1Api") as mock:
        api_instance = MagicMock()
        mock.return_value = api_instance
        yield api_instance


@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for command execution."""
    with patch("subprocess.run") as mock:
        mock.return_value = MagicMock(returncode=0, stdout="", stderr="")
        yield mock


@pytest.fixture
def cluster_mocks(mock_kube_contexts, mock_kube_config, mock_version_api):
    """Combined fixture for creating a Cluster instance without a cluster."""
    return {
        "contexts": mock_kube_contexts,
        "config": mock_kube_config,
        "version": mock_version_api,
    }


@pytest.fixture
def bootstrap_config(tmp_path):
    """Configuration rooted in an empty temporary project directory."""
    return BootstrapConfig(project_root=tmp_path, context="test-context", lb_interval=0, crd_interval=0)


@pytest.fixture
def sleeps():
    """A recording replacement for time.sleep."""
    calls: list[float] = []
    return calls


@pytest.fixture
def fake_sleep(sleeps):
    """Sleep function that records its argument instead of pausing."""
    return sleeps.append
