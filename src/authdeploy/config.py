"""Configuration management for authdeploy using Pydantic."""

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from authdeploy.core.exceptions import ConfigError
from authdeploy.core.logging import LogLevel
from authdeploy.core.output import OutputFormat
from authdeploy.core.utils import parse_seconds

DEFAULT_CLUSTER_NAME = "authentik-cluster"
DEFAULT_AWS_REGION = "ap-south-1"


class InstallMode(str, Enum):
    """How the Authentik release is installed."""

    HELM = "helm"
    ARGOCD = "argocd"


class ClusterConfig(BaseModel):
    """Target EKS cluster."""

    name: str | None = None
    region: str | None = None
    aws_profile: str | None = None

    def get_name(self) -> str:
        """Get cluster name from environment, config or default."""
        return (
            os.environ.get("AUTHDEPLOY_CLUSTER_NAME")
            or os.environ.get("CLUSTER_NAME")
            or self.name
            or DEFAULT_CLUSTER_NAME
        )

    def get_region(self) -> str:
        """Get AWS region from environment, config or default."""
        return (
            os.environ.get("AUTHDEPLOY_AWS_REGION")
            or os.environ.get("AWS_REGION")
            or self.region
            or DEFAULT_AWS_REGION
        )

    def get_profile(self) -> str | None:
        """Get AWS profile from config or environment."""
        return os.environ.get("AWS_PROFILE") or self.aws_profile


class PathsConfig(BaseModel):
    """Locations of the Terraform and manifest files, relative to the project root."""

    project_root: str = "."
    terraform_dir: str = "terraform"
    tfvars_file: str = "terraform.tfvars"
    tfvars_example: str = "terraform.tfvars.example"
    plan_file: str = "tfplan"
    ingress_manifest: str = "k8s-manifests/ingress-resources.yaml"
    argocd_application: str = "argocd/applications/authentik.yaml"

    def get_project_root(self) -> Path:
        root = os.environ.get("AUTHDEPLOY_PROJECT_ROOT") or self.project_root
        return Path(root).expanduser().resolve()

    def resolve(self, relative: str) -> Path:
        """Resolve a configured path against the project root."""
        path = Path(relative).expanduser()
        if path.is_absolute():
            return path
        return self.get_project_root() / path

    @property
    def terraform_path(self) -> Path:
        return self.resolve(self.terraform_dir)

    @property
    def tfvars_path(self) -> Path:
        return self.terraform_path / self.tfvars_file

    @property
    def tfvars_example_path(self) -> Path:
        return self.terraform_path / self.tfvars_example

    @property
    def ingress_manifest_path(self) -> Path:
        return self.resolve(self.ingress_manifest)

    @property
    def argocd_application_path(self) -> Path:
        return self.resolve(self.argocd_application)


class WaitConfig(BaseModel):
    """Timeouts, poll counts and intervals.

    Durations accept seconds or strings such as ``10m`` or ``1m30s``.
    """

    node_ready_timeout: int = 600
    argocd_ready_timeout: int = 600
    ingress_ready_timeout: int = 300
    app_ready_timeout: int = 300

    argocd_password_attempts: int = 30
    argocd_password_interval: int = 10

    lb_settle_delay: int = 30
    lb_hostname_attempts: int = 20
    lb_hostname_interval: int = 15

    sync_poll_attempts: int = 20
    sync_poll_interval: int = 15
    force_sync_at: int = 10

    teardown_app_cleanup_delay: int = 30
    teardown_lb_cleanup_delay: int = 60
    destroy_attempts: int = 2

    @field_validator(
        "node_ready_timeout",
        "argocd_ready_timeout",
        "ingress_ready_timeout",
        "app_ready_timeout",
        "argocd_password_interval",
        "lb_settle_delay",
        "lb_hostname_interval",
        "sync_poll_interval",
        "teardown_app_cleanup_delay",
        "teardown_lb_cleanup_delay",
        mode="before",
    )
    @classmethod
    def parse_duration_field(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_seconds(v)
        return v

    @model_validator(mode="after")
    def check_force_sync(self) -> "WaitConfig":
        if not 1 <= self.force_sync_at <= self.sync_poll_attempts:
            raise ValueError("force_sync_at must be between 1 and sync_poll_attempts")
        if self.destroy_attempts < 1:
            raise ValueError("destroy_attempts must be at least 1")
        return self


class ChartConfig(BaseModel):
    """A Helm chart install."""

    release: str
    chart: str
    repo_name: str
    repo_url: str
    namespace: str
    create_namespace: bool = False
    values: dict[str, str] = Field(default_factory=dict)


def _argocd_chart() -> ChartConfig:
    return ChartConfig(
        release="argocd",
        chart="argo/argo-cd",
        repo_name="argo",
        repo_url="https://argoproj.github.io/argo-helm",
        namespace="argocd",
        values={
            "server.service.type": "ClusterIP",
            "server.extraArgs[0]": "--insecure",
            r"configs.params.server\.insecure": "true",
        },
    )


def _ingress_chart() -> ChartConfig:
    return ChartConfig(
        release="ingress-nginx",
        chart="ingress-nginx/ingress-nginx",
        repo_name="ingress-nginx",
        repo_url="https://kubernetes.github.io/ingress-nginx",
        namespace="ingress-nginx",
        create_namespace=True,
        values={
            "controller.service.type": "LoadBalancer",
            r"controller.service.annotations.service\.beta\.kubernetes\.io/aws-load-balancer-type": "nlb",
            r"controller.service.annotations.service\.beta\.kubernetes\.io/aws-load-balancer-scheme": "internet-facing",
        },
    )


def _authentik_chart() -> ChartConfig:
    return ChartConfig(
        release="authentik",
        chart="authentik/authentik",
        repo_name="authentik",
        repo_url="https://charts.goauthentik.io",
        namespace="authentik",
        values={
            "authentik.postgresql.enabled": "false",
            "authentik.redis.enabled": "false",
            "server.replicas": "1",
            "server.service.type": "ClusterIP",
            "worker.replicas": "1",
        },
    )


class ChartsConfig(BaseModel):
    """Helm charts installed by the pipeline."""

    argocd: ChartConfig = Field(default_factory=_argocd_chart)
    ingress_nginx: ChartConfig = Field(default_factory=_ingress_chart)
    authentik: ChartConfig = Field(default_factory=_authentik_chart)

    @model_validator(mode="before")
    @classmethod
    def merge_defaults(cls, data: Any) -> Any:
        """Let config files override single chart fields."""
        if not isinstance(data, dict):
            return data
        defaults = {
            "argocd": _argocd_chart,
            "ingress_nginx": _ingress_chart,
            "authentik": _authentik_chart,
        }
        merged = dict(data)
        for key, factory in defaults.items():
            override = data.get(key)
            if isinstance(override, dict):
                base = factory().model_dump()
                values = {**base["values"], **override.get("values", {})}
                merged[key] = {**base, **override, "values": values}
        return merged


class SecretsConfig(BaseModel):
    """Generated credential bundle settings."""

    secret_name: str = "authentik-secrets"
    namespace: str = "authentik"
    db_name: str = "authentik"
    db_user: str = "authentik"
    signing_key_length: int = 50
    db_password_length: int = 32

    @field_validator("signing_key_length", "db_password_length")
    @classmethod
    def validate_length(cls, v: int) -> int:
        if v < 16:
            raise ValueError("generated secrets must be at least 16 characters")
        return v


class ArgoCDConfig(BaseModel):
    """ArgoCD objects the pipeline reads and writes."""

    application: str = "authentik"
    server_deployment: str = "argocd-server"
    server_service: str = "argocd-server"
    server_service_port: int = 80
    admin_secret: str = "argocd-initial-admin-secret"
    admin_user: str = "admin"
    local_port: int = 8080


class IngressConfig(BaseModel):
    """ingress-nginx controller objects."""

    controller_service: str = "ingress-nginx-controller"
    controller_selector: str = "app.kubernetes.io/component=controller"


class AuthentikConfig(BaseModel):
    """Authentik release settings."""

    server_deployment: str = "authentik-server"
    health_path: str = "/-/health/live/"
    http_timeout: int = 10


class K8sConfig(BaseModel):
    """Kubernetes API client configuration."""

    kubeconfig: str | None = None
    context: str | None = None

    def get_kubeconfig(self) -> str | None:
        """Get kubeconfig path from config or environment."""
        return os.environ.get("AUTHDEPLOY_KUBECONFIG") or os.environ.get("KUBECONFIG") or self.kubeconfig


class GlobalConfig(BaseModel):
    """Global settings."""

    output_format: OutputFormat = OutputFormat.TABLE
    verbosity: LogLevel = LogLevel.WARNING
    dry_run: bool = False


class AuthDeployConfig(BaseModel):
    """Main configuration model."""

    model_config = {"populate_by_name": True}

    version: str = "1"
    global_settings: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    install_mode: InstallMode = InstallMode.HELM
    tools: list[str] = Field(default_factory=lambda: ["terraform", "aws", "kubectl", "helm"])
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    waits: WaitConfig = Field(default_factory=WaitConfig)
    charts: ChartsConfig = Field(default_factory=ChartsConfig)
    secrets: SecretsConfig = Field(default_factory=SecretsConfig)
    argocd: ArgoCDConfig = Field(default_factory=ArgoCDConfig)
    ingress: IngressConfig = Field(default_factory=IngressConfig)
    authentik: AuthentikConfig = Field(default_factory=AuthentikConfig)
    k8s: K8sConfig = Field(default_factory=K8sConfig)


class ConfigLoader:
    """Loads and merges configuration from multiple sources."""

    CONFIG_FILENAMES = ["authdeploy.yaml", "authdeploy.yml", ".authdeploy.yaml", ".authdeploy.yml"]

    def __init__(self):
        self._config: AuthDeployConfig | None = None

    def load(self, config_file: str | Path | None = None) -> AuthDeployConfig:
        """Load configuration from files.

        Priority (highest to lowest):
        1. Explicitly specified config file
        2. Project config (./authdeploy.yaml)
        3. User config (~/.authdeploy/config.yaml)

        Environment variables are applied at lookup time by the models.
        """
        configs: list[dict[str, Any]] = []

        user_config_path = Path.home() / ".authdeploy" / "config.yaml"
        if user_config_path.exists():
            configs.append(self._load_yaml_file(user_config_path))

        project_config = self._find_project_config()
        if project_config:
            configs.append(self._load_yaml_file(project_config))

        if config_file:
            config_path = Path(config_file)
            if not config_path.exists():
                raise ConfigError(f"Config file not found: {config_file}")
            configs.append(self._load_yaml_file(config_path))

        merged = self._merge_configs(configs)

        try:
            self._config = AuthDeployConfig(**merged)
        except ValueError as e:
            raise ConfigError(f"Invalid configuration: {e}")
        return self._config

    def _find_project_config(self) -> Path | None:
        """Find project config file in current or parent directories."""
        current = Path.cwd()

        while current != current.parent:
            for filename in self.CONFIG_FILENAMES:
                config_path = current / filename
                if config_path.exists():
                    return config_path
            current = current.parent

        return None

    def _load_yaml_file(self, path: Path) -> dict[str, Any]:
        try:
            with open(path) as f:
                content = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}")
        if not isinstance(content, dict):
            raise ConfigError(f"Invalid config in {path}: expected a mapping")
        return content

    def _merge_configs(self, configs: list[dict[str, Any]]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for config in configs:
            result = self._deep_merge(result, config)
        return result

    def _deep_merge(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result


_config_loader = ConfigLoader()


def load_config(config_file: str | Path | None = None) -> AuthDeployConfig:
    """Load authdeploy configuration.

    Args:
        config_file: Optional explicit config file path

    Returns:
        Loaded configuration
    """
    return _config_loader.load(config_file)


def get_default_config() -> AuthDeployConfig:
    """Get default configuration without loading from files."""
    return AuthDeployConfig()
