"""Terraform CLI wrapper."""

import json
from pathlib import Path

from authdeploy.core.exceptions import ToolError
from authdeploy.core.logging import get_logger
from authdeploy.core.runner import CommandRunner

logger = get_logger(__name__)

# Disable color when capturing output
CAPTURE_ENV = {"TF_CLI_ARGS": "-no-color", "TF_IN_AUTOMATION": "1"}


class TerraformCLI:
    """Runs terraform against one working directory.

    init, validate, plan and output run even in dry-run mode; apply and
    destroy do not.
    """

    def __init__(self, runner: CommandRunner, working_dir: Path, plan_file: str = "tfplan"):
        self._runner = runner
        self.working_dir = Path(working_dir)
        self.plan_file = plan_file

    def _run(self, args: list[str], capture: bool = False, mutating: bool = True):
        return self._runner.run(
            ["terraform"] + args,
            cwd=self.working_dir,
            capture=capture,
            env=CAPTURE_ENV if capture else None,
            mutating=mutating,
        )

    def init(self) -> None:
        try:
            self._run(["init", "-input=false"], mutating=False)
        except ToolError as e:
            raise ToolError("Terraform init failed", command=e.command, returncode=e.returncode)

    def validate(self) -> None:
        """Validate configuration, reporting diagnostics from -json output."""
        result = self._runner.run(
            ["terraform", "validate", "-json"],
            cwd=self.working_dir,
            env=CAPTURE_ENV,
            check=False,
            mutating=False,
        )
        if result.returncode == 0:
            return

        lines = []
        try:
            data = json.loads(result.stdout)
            for diag in data.get("diagnostics", []):
                line = f"{diag.get('severity', 'error')}: {diag.get('summary', 'Unknown error')}"
                if diag.get("detail"):
                    line = f"{line}\n  {diag['detail']}"
                lines.append(line)
        except json.JSONDecodeError:
            lines.append(result.stdout or result.stderr)

        raise ToolError(
            "Terraform validation failed",
            command=["terraform", "validate"],
            returncode=result.returncode,
            stderr="\n".join(lines),
        )

    def plan(self) -> None:
        """Write a saved plan to the plan file."""
        try:
            self._run(["plan", "-input=false", f"-out={self.plan_file}"], mutating=False)
        except ToolError as e:
            raise ToolError("Terraform plan failed", command=e.command, returncode=e.returncode)

    def apply(self) -> None:
        """Apply the saved plan."""
        try:
            self._run(["apply", "-input=false", self.plan_file])
        except ToolError as e:
            raise ToolError("Terraform apply failed", command=e.command, returncode=e.returncode)

    def destroy(self) -> None:
        try:
            self._run(["destroy", "-auto-approve", "-input=false"])
        except ToolError as e:
            raise ToolError("Terraform destroy failed", command=e.command, returncode=e.returncode)

    def output(self, name: str) -> str | None:
        """Read a raw output value; None if unavailable."""
        value = self._runner.output(["terraform", "output", "-raw", name], cwd=self.working_dir)
        if value is None:
            logger.debug("Terraform output unavailable", output=name)
        return value
