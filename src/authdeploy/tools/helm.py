"""Helm CLI wrapper."""

import json

from authdeploy.config import ChartConfig
from authdeploy.core.exceptions import ToolError
from authdeploy.core.logging import get_logger
from authdeploy.core.runner import CommandRunner

logger = get_logger(__name__)


def set_args(values: dict[str, str]) -> list[str]:
    """Render --set flags in insertion order."""
    args: list[str] = []
    for key, value in values.items():
        args.extend(["--set", f"{key}={value}"])
    return args


def secret_env_values(secret_name: str, keys: list[str], prefix: str = "global.env") -> dict[str, str]:
    """Wire each key of a secret into the chart's env list by reference.

    Produces ``<prefix>[i].name`` plus a ``valueFrom.secretKeyRef`` pair so
    the pods read the current secret contents rather than copied values.
    """
    values: dict[str, str] = {}
    for i, key in enumerate(keys):
        values[f"{prefix}[{i}].name"] = key
        values[f"{prefix}[{i}].valueFrom.secretKeyRef.name"] = secret_name
        values[f"{prefix}[{i}].valueFrom.secretKeyRef.key"] = key
    return values


class HelmCLI:
    """Installs and removes chart releases."""

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    def add_repo(self, chart: ChartConfig) -> None:
        """Add the chart's repository and refresh the index."""
        self._runner.run(["helm", "repo", "add", chart.repo_name, chart.repo_url, "--force-update"])
        self._runner.run(["helm", "repo", "update", chart.repo_name])

    def install(self, chart: ChartConfig, extra_values: dict[str, str] | None = None) -> None:
        """helm install; an existing release is left for Helm to reject.

        Raises:
            ToolError: With Helm's stderr on failure
        """
        args = ["helm", "install", chart.release, chart.chart, "--namespace", chart.namespace]
        if chart.create_namespace:
            args.append("--create-namespace")
        args.extend(set_args({**chart.values, **(extra_values or {})}))

        try:
            self._runner.run(args)
        except ToolError as e:
            raise ToolError(
                f"Failed to install {chart.release}",
                command=e.command,
                returncode=e.returncode,
                stderr=e.stderr,
            )
        logger.info("Helm release installed", release=chart.release, namespace=chart.namespace)

    def uninstall(self, release: str, namespace: str) -> None:
        self._runner.run(["helm", "uninstall", release, "--namespace", namespace])

    def status(self, release: str, namespace: str) -> str | None:
        """Release status (deployed, failed, ...) or None if not installed."""
        raw = self._runner.output(["helm", "status", release, "--namespace", namespace, "-o", "json"])
        if not raw:
            return None
        try:
            return json.loads(raw).get("info", {}).get("status")
        except json.JSONDecodeError:
            return None
