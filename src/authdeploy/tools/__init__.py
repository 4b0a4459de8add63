"""Wrappers around the external tools the pipeline drives."""

from dataclasses import dataclass
from typing import Any

from authdeploy.config import AuthDeployConfig
from authdeploy.core.runner import CommandRunner


@dataclass
class Toolbox:
    """The set of tool wrappers a pipeline run uses."""

    runner: Any
    terraform: Any
    aws: Any
    kubectl: Any
    helm: Any
    k8s: Any
    authentik: Any

    @classmethod
    def from_config(cls, config: AuthDeployConfig, runner: CommandRunner) -> "Toolbox":
        from authdeploy.tools.authentik import AuthentikProbe
        from authdeploy.tools.aws import AWSClient
        from authdeploy.tools.helm import HelmCLI
        from authdeploy.tools.k8s import K8sClient
        from authdeploy.tools.kubectl import KubectlCLI
        from authdeploy.tools.terraform import TerraformCLI

        return cls(
            runner=runner,
            terraform=TerraformCLI(runner, config.paths.terraform_path, config.paths.plan_file),
            aws=AWSClient(config.cluster, runner),
            kubectl=KubectlCLI(runner, config.k8s.context),
            helm=HelmCLI(runner),
            k8s=K8sClient(config.k8s),
            authentik=AuthentikProbe(config.authentik),
        )


__all__ = ["Toolbox"]
