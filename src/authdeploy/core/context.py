"""Click context object for sharing state across commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import click

from authdeploy.config import AuthDeployConfig, get_default_config
from authdeploy.core.logging import LogLevel, setup_logging
from authdeploy.core.output import OutputFormat, OutputFormatter
from authdeploy.core.poll import CancellableTimer
from authdeploy.core.runner import CommandRunner

if TYPE_CHECKING:
    from authdeploy.tools import Toolbox


class AuthDeployContext:
    """Shared context object for authdeploy commands.

    This object is passed through Click's context mechanism and provides
    access to configuration, output, the tool wrappers and the timer
    every wait sleeps on.
    """

    def __init__(
        self,
        config: AuthDeployConfig | None = None,
        output_format: OutputFormat | None = None,
        verbose: int = 0,
        quiet: bool = False,
        dry_run: bool = False,
        color: bool = True,
        tools: Toolbox | None = None,
        timer: CancellableTimer | None = None,
        assume_yes: bool = False,
    ):
        self._config = config or get_default_config()

        self._output_format = output_format or self._config.global_settings.output_format
        self._verbose = verbose
        self._quiet = quiet
        self._dry_run = dry_run or self._config.global_settings.dry_run
        self._color = color
        self.assume_yes = assume_yes

        if verbose >= 2:
            log_level = LogLevel.DEBUG
        elif verbose == 1:
            log_level = LogLevel.INFO
        elif quiet:
            log_level = LogLevel.ERROR
        else:
            log_level = self._config.global_settings.verbosity

        setup_logging(log_level, rich_output=color)

        self._output = OutputFormatter(
            format=self._output_format,
            color=color,
            quiet=quiet,
        )

        self._tools = tools
        self.timer = timer or CancellableTimer()

    @property
    def config(self) -> AuthDeployConfig:
        return self._config

    @property
    def output(self) -> OutputFormatter:
        return self._output

    @property
    def output_format(self) -> OutputFormat:
        return self._output_format

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    @property
    def verbose(self) -> int:
        return self._verbose

    @property
    def quiet(self) -> bool:
        return self._quiet

    @property
    def color(self) -> bool:
        return self._color

    @property
    def tools(self) -> Toolbox:
        """Get or create the tool wrappers."""
        if self._tools is None:
            from authdeploy.tools import Toolbox

            runner = CommandRunner(dry_run=self._dry_run, echo=self._output.print)
            self._tools = Toolbox.from_config(self._config, runner)
        return self._tools

    def confirm(self, message: str, accepted: tuple[str, ...] = ("y", "Y")) -> bool:
        """Ask for operator confirmation; ``--yes`` answers for them."""
        if self.assume_yes:
            self._output.print(f"[dim]{message} (auto-approved)[/dim]")
            return True
        return self._output.confirm(message, accepted)

    def log_dry_run(self, action: str, details: dict[str, Any] | None = None) -> None:
        """Log a dry-run action."""
        if self._dry_run:
            msg = f"[dry-run] {action}"
            if details:
                detail_str = ", ".join(f"{k}={v}" for k, v in details.items())
                msg = f"{msg} ({detail_str})"
            self._output.print(f"[dim]{msg}[/dim]")


pass_context = click.make_pass_decorator(AuthDeployContext, ensure=True)
