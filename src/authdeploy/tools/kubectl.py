"""kubectl wrapper for blocking waits and manifest files."""

from pathlib import Path

from authdeploy.core.logging import get_logger
from authdeploy.core.runner import CommandRunner

logger = get_logger(__name__)


class KubectlCLI:
    """Runs kubectl against the current kubeconfig context."""

    def __init__(self, runner: CommandRunner, context: str | None = None):
        self._runner = runner
        self._context = context

    def _base(self) -> list[str]:
        args = ["kubectl"]
        if self._context:
            args.extend(["--context", self._context])
        return args

    def wait(
        self,
        resource: str,
        condition: str,
        timeout: int,
        namespace: str | None = None,
        selector: str | None = None,
        all_resources: bool = False,
    ) -> bool:
        """Block until a condition holds or the timeout passes.

        Args:
            resource: e.g. ``nodes``, ``pod``, ``deployment/argocd-server``
            condition: e.g. ``Ready``, ``available``
            timeout: Ceiling in seconds, enforced by kubectl

        Returns:
            True if the condition was met
        """
        args = self._base() + ["wait", f"--for=condition={condition}", resource]
        if all_resources:
            args.append("--all")
        if namespace:
            args.extend(["--namespace", namespace])
        if selector:
            args.extend(["--selector", selector])
        args.append(f"--timeout={timeout}s")

        result = self._runner.run(args, check=False, mutating=False)
        if result.returncode != 0:
            logger.warning(
                "Wait condition not met",
                resource=resource,
                condition=condition,
                stderr=(result.stderr or "").strip(),
            )
            return False
        return True

    def apply_file(self, path: Path) -> None:
        """kubectl apply -f; raises ToolError with kubectl's stderr."""
        self._runner.run(self._base() + ["apply", "-f", str(path)])

    def delete_file(self, path: Path, ignore_not_found: bool = True) -> None:
        args = self._base() + ["delete", "-f", str(path)]
        if ignore_not_found:
            args.append("--ignore-not-found=true")
        self._runner.run(args)

    def delete_load_balancer_services(self) -> None:
        """Delete every LoadBalancer service so cloud load balancers are released."""
        self._runner.run(
            self._base()
            + [
                "delete",
                "svc",
                "--all-namespaces",
                "--field-selector",
                "spec.type=LoadBalancer",
                "--ignore-not-found=true",
            ]
        )

