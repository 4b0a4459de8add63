"""Tests for configuration management."""

import os
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from authdeploy.config import (
    AuthDeployConfig,
    ChartsConfig,
    ClusterConfig,
    ConfigLoader,
    InstallMode,
    PathsConfig,
    SecretsConfig,
    WaitConfig,
    get_default_config,
    load_config,
)
from authdeploy.core.exceptions import ConfigError
from authdeploy.core.output import OutputFormat
from authdeploy.core.utils import mask_secret, parse_duration, parse_seconds


class TestClusterConfig:
    """Tests for ClusterConfig."""

    def test_defaults(self):
        config = ClusterConfig()
        assert config.get_name() == "authentik-cluster"
        assert config.get_region() == "ap-south-1"
        assert config.get_profile() is None

    def test_values_from_config(self):
        config = ClusterConfig(name="auth-staging", region="us-west-2", aws_profile="ops")
        assert config.get_name() == "auth-staging"
        assert config.get_region() == "us-west-2"
        assert config.get_profile() == "ops"

    def test_env_overrides_config(self):
        os.environ["CLUSTER_NAME"] = "env-cluster"
        os.environ["AWS_REGION"] = "eu-central-1"
        config = ClusterConfig(name="config-cluster", region="us-east-1")
        assert config.get_name() == "env-cluster"
        assert config.get_region() == "eu-central-1"

    def test_prefixed_env_wins(self):
        os.environ["CLUSTER_NAME"] = "plain"
        os.environ["AUTHDEPLOY_CLUSTER_NAME"] = "prefixed"
        os.environ["AWS_REGION"] = "us-east-1"
        os.environ["AUTHDEPLOY_AWS_REGION"] = "eu-west-1"
        config = ClusterConfig()
        assert config.get_name() == "prefixed"
        assert config.get_region() == "eu-west-1"


class TestPathsConfig:
    """Tests for PathsConfig."""

    def test_defaults_relative_to_project_root(self, tmp_path):
        paths = PathsConfig(project_root=str(tmp_path))
        assert paths.terraform_path == tmp_path.resolve() / "terraform"
        assert paths.tfvars_path == tmp_path.resolve() / "terraform" / "terraform.tfvars"
        assert paths.tfvars_example_path.name == "terraform.tfvars.example"
        assert paths.ingress_manifest_path == tmp_path.resolve() / "k8s-manifests" / "ingress-resources.yaml"
        assert paths.argocd_application_path == tmp_path.resolve() / "argocd" / "applications" / "authentik.yaml"

    def test_project_root_from_env(self, tmp_path):
        os.environ["AUTHDEPLOY_PROJECT_ROOT"] = str(tmp_path)
        assert PathsConfig().terraform_path == tmp_path.resolve() / "terraform"

    def test_absolute_paths_kept(self, tmp_path):
        paths = PathsConfig(terraform_dir=str(tmp_path / "infra"))
        assert paths.terraform_path == tmp_path / "infra"


class TestWaitConfig:
    """Tests for WaitConfig."""

    def test_defaults(self):
        waits = WaitConfig()
        assert waits.node_ready_timeout == 600
        assert waits.argocd_password_attempts == 30
        assert waits.argocd_password_interval == 10
        assert waits.lb_hostname_attempts == 20
        assert waits.lb_hostname_interval == 15
        assert waits.sync_poll_attempts == 20
        assert waits.force_sync_at == 10
        assert waits.destroy_attempts == 2

    def test_duration_strings(self):
        waits = WaitConfig(node_ready_timeout="15m", lb_settle_delay="1m30s", app_ready_timeout="45")
        assert waits.node_ready_timeout == 900
        assert waits.lb_settle_delay == 90
        assert waits.app_ready_timeout == 45

    def test_invalid_duration(self):
        with pytest.raises(ValidationError):
            WaitConfig(node_ready_timeout="ten minutes")

    def test_force_sync_must_be_within_poll(self):
        with pytest.raises(ValidationError):
            WaitConfig(sync_poll_attempts=5, force_sync_at=10)

    def test_destroy_attempts_positive(self):
        with pytest.raises(ValidationError):
            WaitConfig(destroy_attempts=0)


class TestChartsConfig:
    """Tests for ChartsConfig."""

    def test_defaults(self):
        charts = ChartsConfig()
        assert charts.argocd.chart == "argo/argo-cd"
        assert charts.argocd.namespace == "argocd"
        assert charts.ingress_nginx.create_namespace is True
        assert charts.authentik.repo_url == "https://charts.goauthentik.io"

    def test_partial_override_keeps_defaults(self):
        charts = ChartsConfig(authentik={"values": {"server.replicas": "2"}, "namespace": "auth"})
        assert charts.authentik.namespace == "auth"
        assert charts.authentik.chart == "authentik/authentik"
        assert charts.authentik.values["server.replicas"] == "2"
        assert charts.authentik.values["authentik.postgresql.enabled"] == "false"


class TestSecretsConfig:
    def test_defaults(self):
        secrets = SecretsConfig()
        assert secrets.secret_name == "authentik-secrets"
        assert secrets.namespace == "authentik"
        assert secrets.signing_key_length == 50
        assert secrets.db_password_length == 32

    def test_minimum_length(self):
        with pytest.raises(ValidationError):
            SecretsConfig(signing_key_length=8)


class TestAuthDeployConfig:
    """Tests for the root model."""

    def test_defaults(self):
        config = get_default_config()
        assert config.install_mode == InstallMode.HELM
        assert config.tools == ["terraform", "aws", "kubectl", "helm"]
        assert config.global_settings.output_format == OutputFormat.TABLE

    def test_global_alias(self):
        config = AuthDeployConfig(**{"global": {"output_format": "json", "dry_run": True}})
        assert config.global_settings.output_format == OutputFormat.JSON
        assert config.global_settings.dry_run is True


class TestConfigLoader:
    """Tests for ConfigLoader."""

    def test_load_explicit_file(self, tmp_path):
        config_file = tmp_path / "custom.yaml"
        config_file.write_text(yaml.dump({
            "install_mode": "argocd",
            "cluster": {"name": "from-file"},
            "waits": {"node_ready_timeout": "20m"},
        }))

        config = load_config(config_file)

        assert config.install_mode == InstallMode.ARGOCD
        assert config.cluster.get_name() == "from-file"
        assert config.waits.node_ready_timeout == 1200

    def test_project_file_discovered(self, tmp_path):
        (tmp_path / "authdeploy.yaml").write_text("cluster:\n  region: us-east-2\n")
        config = ConfigLoader().load()
        assert config.cluster.get_region() == "us-east-2"

    def test_explicit_overrides_user_config(self, tmp_path):
        user_dir = Path.home() / ".authdeploy"
        user_dir.mkdir()
        (user_dir / "config.yaml").write_text("cluster:\n  name: user\n  region: us-east-1\n")
        explicit = tmp_path / "explicit.yaml"
        explicit.write_text("cluster:\n  name: explicit\n")

        config = ConfigLoader().load(explicit)

        assert config.cluster.get_name() == "explicit"
        assert config.cluster.get_region() == "us-east-1"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("cluster: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(config_file)

    def test_invalid_values(self, tmp_path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("install_mode: kustomize\n")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(config_file)


class TestUtils:
    def test_parse_duration(self):
        assert parse_duration("90").total_seconds() == 90
        assert parse_duration("2h").total_seconds() == 7200
        assert parse_seconds("1h30m") == 5400

    def test_parse_duration_invalid(self):
        with pytest.raises(ValueError):
            parse_duration("5x")
        with pytest.raises(ValueError):
            parse_duration("")

    def test_mask_secret(self):
        assert mask_secret("supersecret") == "supe*******"
        assert mask_secret("abc") == "***"
        assert mask_secret(None) == ""
