"""Pytest fixtures for authdeploy tests."""

import os
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from authdeploy.config import AuthDeployConfig, PathsConfig
from authdeploy.core.context import AuthDeployContext
from authdeploy.core.output import OutputFormat
from authdeploy.tools import Toolbox

TFVARS = """cluster_name = "authentik-cluster"
aws_region   = "ap-south-1"
db_password  = "tfvars-password"
authentik_secret_key = "old-key"
"""

UNREACHABLE_KUBECONFIG = """apiVersion: v1
kind: Config
clusters:
- name: offline
  cluster:
    server: https://127.0.0.1:1
    insecure-skip-tls-verify: true
users:
- name: offline
  user:
    token: not-a-real-token
contexts:
- name: offline
  context:
    cluster: offline
    user: offline
current-context: offline
"""


class FakeTimer:
    """Timer that records requested waits instead of sleeping."""

    def __init__(self) -> None:
        self.waits: list[float] = []
        self.cancelled = False

    def wait(self, seconds: float) -> bool:
        self.waits.append(seconds)
        return self.cancelled

    def cancel(self) -> None:
        self.cancelled = True

    def reset(self) -> None:
        self.cancelled = False


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click CLI runner."""
    return CliRunner()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Project tree with terraform vars and both manifests."""
    tf_dir = tmp_path / "terraform"
    tf_dir.mkdir()
    (tf_dir / "terraform.tfvars").write_text(TFVARS)
    (tf_dir / "terraform.tfvars.example").write_text(TFVARS)

    manifests = tmp_path / "k8s-manifests"
    manifests.mkdir()
    (manifests / "ingress-resources.yaml").write_text("kind: Ingress\n")

    apps = tmp_path / "argocd" / "applications"
    apps.mkdir(parents=True)
    (apps / "authentik.yaml").write_text("kind: Application\n")
    return tmp_path


@pytest.fixture
def config(project: Path) -> AuthDeployConfig:
    """Configuration rooted at the temporary project."""
    return AuthDeployConfig(paths=PathsConfig(project_root=str(project)))


@pytest.fixture
def tools() -> MagicMock:
    """Parent mock whose children stand in for every tool wrapper.

    All calls land in ``tools.mock_calls`` in order.
    """
    tools = MagicMock()
    tools.runner.which.side_effect = lambda tool: f"/usr/local/bin/{tool}"
    tools.terraform.plan_file = "tfplan"
    tools.terraform.output.return_value = None
    tools.aws.verify_credentials.return_value = {"account": "123456789012", "arn": "arn:aws:iam::123456789012:user/ci"}
    tools.kubectl.wait.return_value = True
    tools.k8s.namespace_exists.return_value = True
    tools.k8s.upsert_secret.return_value = "created"
    tools.k8s.read_secret_key.return_value = "argo-admin-pass"
    tools.k8s.service_hostname.return_value = "abc123.elb.ap-south-1.amazonaws.com"
    tools.k8s.application_status.return_value = ("Synced", "Healthy")
    return tools


@pytest.fixture
def toolbox(tools: MagicMock) -> Toolbox:
    return Toolbox(
        runner=tools.runner,
        terraform=tools.terraform,
        aws=tools.aws,
        kubectl=tools.kubectl,
        helm=tools.helm,
        k8s=tools.k8s,
        authentik=tools.authentik,
    )


@pytest.fixture
def unreachable_kubeconfig(tmp_path: Path) -> Path:
    """Kubeconfig whose API server refuses every connection."""
    path = tmp_path / "kubeconfig-offline"
    path.write_text(UNREACHABLE_KUBECONFIG)
    return path


@pytest.fixture
def timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def context(config: AuthDeployConfig, toolbox: Toolbox, timer: FakeTimer) -> AuthDeployContext:
    """Context wired to mocked tools and a non-sleeping timer."""
    return AuthDeployContext(
        config=config,
        output_format=OutputFormat.TABLE,
        color=False,
        tools=toolbox,
        timer=timer,
    )


@pytest.fixture(autouse=True)
def clean_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Clean environment variables and config discovery before each test."""
    env_vars = [
        "CLUSTER_NAME",
        "AWS_REGION",
        "AWS_PROFILE",
        "AUTHDEPLOY_CONFIG",
        "AUTHDEPLOY_PROJECT_ROOT",
        "AUTHDEPLOY_CLUSTER_NAME",
        "AUTHDEPLOY_AWS_REGION",
        "AUTHDEPLOY_KUBECONFIG",
        "KUBECONFIG",
    ]

    original = {k: os.environ.get(k) for k in env_vars}

    for k in env_vars:
        os.environ.pop(k, None)

    # Keep user and project config files out of the tests
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)

    yield

    for k, v in original.items():
        if v is not None:
            os.environ[k] = v
        else:
            os.environ.pop(k, None)
