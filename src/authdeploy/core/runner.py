"""Subprocess runner for external command-line tools."""

import os
import shlex
import shutil
import subprocess
from typing import Callable

from authdeploy.core.exceptions import MissingToolError, ToolError
from authdeploy.core.logging import get_logger

logger = get_logger(__name__)


class CommandRunner:
    """Runs external tools and surfaces their errors verbatim.

    In dry-run mode commands marked as mutating are printed instead of
    executed; read-only commands still run.
    """

    def __init__(self, dry_run: bool = False, echo: Callable[[str], None] | None = None):
        self.dry_run = dry_run
        self._echo = echo

    def which(self, tool: str) -> str | None:
        """Locate a tool on PATH."""
        return shutil.which(tool)

    def require(self, tool: str) -> str:
        path = self.which(tool)
        if not path:
            raise MissingToolError(tool)
        return path

    def run(
        self,
        args: list[str],
        cwd: str | os.PathLike | None = None,
        capture: bool = True,
        input: str | None = None,
        env: dict[str, str] | None = None,
        check: bool = True,
        mutating: bool = True,
    ) -> subprocess.CompletedProcess:
        """Run a command.

        Args:
            args: Command and arguments; the first item is the tool name
            cwd: Working directory
            capture: Capture stdout/stderr instead of streaming to the terminal
            input: Text passed on stdin
            env: Extra environment variables
            check: Raise ToolError on a non-zero exit status
            mutating: Skip the command in dry-run mode

        Returns:
            The completed process
        """
        command_line = shlex.join(args)

        if self.dry_run and mutating:
            if self._echo:
                self._echo(f"[dim][dry-run] Would run: {command_line}[/dim]")
            logger.info("Dry-run skip", command=command_line)
            return subprocess.CompletedProcess(args, 0, stdout="", stderr="")

        tool_path = self.require(args[0])
        cmd = [tool_path] + args[1:]

        run_env = os.environ.copy()
        if env:
            run_env.update(env)

        logger.debug("Running command", command=command_line, cwd=cwd)

        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=capture,
                input=input,
                text=True,
                env=run_env,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise ToolError(f"Failed to run {args[0]}: {e}", command=args)

        if check and result.returncode != 0:
            raise ToolError(
                f"{command_line} failed with exit code {result.returncode}",
                command=args,
                returncode=result.returncode,
                stderr=result.stderr if capture else None,
            )
        return result

    def output(self, args: list[str], cwd: str | os.PathLike | None = None) -> str | None:
        """Run a read-only command and return its stripped stdout, or None on failure."""
        try:
            result = self.run(args, cwd=cwd, check=False, mutating=False)
        except (MissingToolError, ToolError) as e:
            logger.debug("Read command failed", command=shlex.join(args), error=str(e))
            return None
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None
