"""Tests for config.py module."""

from pathlib import Path

from stack_bootstrap.config import DEFAULT_RELEASE_NAME, BootstrapConfig


class TestConfigFromEnv:
    """Tests for building configuration."""

    def test_defaults(self):
        """Test defaults when the environment is empty."""
        config = BootstrapConfig.from_env({})
        assert config.release_name == DEFAULT_RELEASE_NAME
        assert config.namespaces == ("geo-infra", "geo-ory", "geo-app")
        assert config.context is None

    def test_release_name_from_env(self):
        """Test RELEASE_NAME overrides the release name."""
        config = BootstrapConfig.from_env({"RELEASE_NAME": "staging"})
        assert config.release_name == "staging"
        assert config.postgres_host == "staging-postgresql.geo-infra.svc.cluster.local"
        assert config.admin_secret_name == "staging-postgresql"

    def test_empty_release_name_ignored(self):
        """Test an empty RELEASE_NAME falls back to the default."""
        assert BootstrapConfig.from_env({"RELEASE_NAME": ""}).release_name == DEFAULT_RELEASE_NAME

    def test_none_overrides_are_ignored(self):
        """Test unset CLI options do not clobber defaults."""
        config = BootstrapConfig.from_env({}, project_root=None, address_range="10.0.0.10-10.0.0.20")
        assert config.project_root == Path.cwd()
        assert config.address_range == "10.0.0.10-10.0.0.20"

    def test_with_context_returns_copy(self):
        """Test binding a context does not mutate the original."""
        config = BootstrapConfig.from_env({})
        bound = config.with_context("prod")
        assert bound.context == "prod"
        assert config.context is None


class TestDerivedSettings:
    """Tests for derived names and releases."""

    def test_project_paths(self, tmp_path):
        """Test manifest and values paths are rooted in the project."""
        config = BootstrapConfig(project_root=tmp_path)
        assert config.namespaces_manifest == tmp_path / "k8s" / "namespaces" / "namespaces.yaml"
        assert config.ingress_manifest == tmp_path / "k8s" / "ingress" / "infra.yaml"
        assert config.values_dir == tmp_path / "helm" / "values"
        assert config.application_chart_dir == tmp_path / "helm" / DEFAULT_RELEASE_NAME

    def test_services_are_distinct(self):
        """Test each service has its own user, database and secret."""
        services = BootstrapConfig().services
        assert [s.credential for s in services] == ["geo-app", "kratos", "hydra", "keto"]
        assert len({s.user for s in services}) == 4
        assert len({s.database for s in services}) == 4
        assert len({(s.namespace, s.secret_name) for s in services}) == 4

    def test_service_secret_namespaces(self):
        """Test the app secret lands in the app namespace and Ory secrets in the Ory namespace."""
        config = BootstrapConfig()
        by_name = {s.credential: s for s in config.services}
        assert by_name["geo-app"].namespace == config.app_namespace
        assert by_name["geo-app"].secret_key == "db-url"
        assert by_name["kratos"].namespace == config.ory_namespace
        assert by_name["kratos"].query == "sslmode=disable"

    def test_ingress_release_uses_load_balancer(self):
        """Test the ingress release requests a LoadBalancer service."""
        release = BootstrapConfig().ingress_release()
        assert release.values["controller"]["service"]["type"] == "LoadBalancer"
        assert release.timeout == 600
        assert release.repository.name == "ingress-nginx"

    def test_postgres_release(self, tmp_path):
        """Test the PostgreSQL release name follows the configured release name."""
        values = tmp_path / "values-postgres.yaml"
        release = BootstrapConfig(release_name="demo").postgres_release((values,))
        assert release.name == "demo"
        assert release.chart == "bitnami/postgresql"
        assert release.values_files == (values,)

    def test_metallb_manifests(self):
        """Test the address pool and its advertisement reference each other."""
        config = BootstrapConfig(address_range="10.0.0.10-10.0.0.20")
        pool, advertisement = config.metallb_manifests()
        assert pool["kind"] == "IPAddressPool"
        assert pool["spec"]["addresses"] == ["10.0.0.10-10.0.0.20"]
        assert advertisement["kind"] == "L2Advertisement"
        assert advertisement["spec"]["ipAddressPools"] == [pool["metadata"]["name"]]
        assert pool["metadata"]["namespace"] == config.metallb_namespace
