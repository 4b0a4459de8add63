"""Main CLI entry point for authdeploy."""

import sys
from typing import Any

import click
from rich.console import Console

from authdeploy import __version__
from authdeploy.config import load_config
from authdeploy.core.context import AuthDeployContext
from authdeploy.core.exceptions import AuthDeployError, ConfigError
from authdeploy.core.output import OutputFormat

CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 120,
}


class OutputFormatType(click.ParamType):
    """Custom Click parameter type for output format."""

    name = "format"

    def convert(
        self,
        value: Any,
        param: click.Parameter | None,
        ctx: click.Context | None,
    ) -> OutputFormat:
        if isinstance(value, OutputFormat):
            return value
        try:
            return OutputFormat(value.lower())
        except ValueError:
            self.fail(
                f"Invalid format '{value}'. Choose from: table, json, yaml, raw",
                param,
                ctx,
            )


OUTPUT_FORMAT = OutputFormatType()


def print_version(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    console = Console()
    console.print(f"authdeploy version {__version__}")
    ctx.exit()


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option(
    "-o",
    "--output",
    "output_format",
    type=OUTPUT_FORMAT,
    metavar="FORMAT",
    help="Output format: table, json, yaml, raw",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase verbosity (-v for info, -vv for debug)",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    help="Suppress non-essential output",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Show what would happen without making changes",
)
@click.option(
    "--no-color",
    is_flag=True,
    help="Disable colored output",
)
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(exists=True),
    metavar="FILE",
    envvar="AUTHDEPLOY_CONFIG",
    help="Path to config file",
)
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit",
)
@click.pass_context
def cli(
    ctx: click.Context,
    output_format: OutputFormat | None,
    verbose: int,
    quiet: bool,
    dry_run: bool,
    no_color: bool,
    config_file: str | None,
) -> None:
    """authdeploy - Authentik and ArgoCD on AWS EKS.

    Provisions the infrastructure with Terraform, installs ArgoCD,
    ingress-nginx and Authentik, and tears it all down again.

    \b
    Examples:
        authdeploy prereqs
        authdeploy deploy
        authdeploy secrets show
        authdeploy status
        authdeploy cleanup

    \b
    Configuration:
        ~/.authdeploy/config.yaml    User configuration
        ./authdeploy.yaml            Project configuration
        CLUSTER_NAME, AWS_REGION     Target cluster overrides
    """
    try:
        config = load_config(config_file)

        ctx.obj = AuthDeployContext(
            config=config,
            output_format=output_format,
            verbose=verbose,
            quiet=quiet,
            dry_run=dry_run,
            color=not no_color,
        )

        if ctx.obj.dry_run and not quiet:
            ctx.obj.output.print_warning("Dry-run mode enabled - no changes will be made")

    except ConfigError as e:
        console = Console(stderr=True)
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)


def register_commands() -> None:
    """Register all commands."""
    from authdeploy.commands.cleanup import cleanup
    from authdeploy.commands.deploy import deploy
    from authdeploy.commands.prereqs import prereqs
    from authdeploy.commands.secrets import secrets
    from authdeploy.commands.status import status

    cli.add_command(deploy)
    cli.add_command(cleanup)
    cli.add_command(secrets)
    cli.add_command(prereqs)
    cli.add_command(status)


register_commands()


@cli.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """Show current configuration."""
    deploy_ctx: AuthDeployContext = ctx.obj
    cfg = deploy_ctx.config
    paths = cfg.paths
    config_data = {
        "output_format": deploy_ctx.output_format.value,
        "dry_run": deploy_ctx.dry_run,
        "verbose": deploy_ctx.verbose,
        "install_mode": cfg.install_mode.value,
        "cluster": {
            "name": cfg.cluster.get_name(),
            "region": cfg.cluster.get_region(),
            "aws_profile": cfg.cluster.get_profile(),
        },
        "paths": {
            "project_root": str(paths.get_project_root()),
            "terraform_dir": str(paths.terraform_path),
            "has_tfvars": paths.tfvars_path.is_file(),
            "ingress_manifest": str(paths.ingress_manifest_path),
            "argocd_application": str(paths.argocd_application_path),
        },
        "secrets": {
            "secret_name": cfg.secrets.secret_name,
            "namespace": cfg.secrets.namespace,
        },
        "tools": cfg.tools,
    }
    deploy_ctx.output.print_data(config_data, title="Current Configuration")


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except AuthDeployError as e:
        console = Console(stderr=True)
        console.print(f"[red]Error:[/red] {e}")
        hint = getattr(e, "remediation", None) or e.details.get("hint")
        if hint:
            console.print(f"[dim]{hint}[/dim]")
        sys.exit(1)
    except KeyboardInterrupt:
        console = Console(stderr=True)
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
