"""Cleanup command."""

import sys

import click

from authdeploy.core.context import AuthDeployContext, pass_context
from authdeploy.core.output import OutputFormat
from authdeploy.pipeline.orchestrator import TeardownOrchestrator


@click.command()
@click.option("--yes", "assume_yes", is_flag=True, help="Skip the 'yes' confirmation")
@pass_context
def cleanup(ctx: AuthDeployContext, assume_yes: bool) -> None:
    """Destroy the deployment and all AWS infrastructure.

    \b
    Removes ingress-nginx and the applied manifests, deletes every
    LoadBalancer service so AWS releases the load balancers, then runs
    terraform destroy (retried once). Individual cleanup steps that fail
    are reported as warnings.

    \b
    Examples:
        authdeploy cleanup
        authdeploy --dry-run cleanup --yes
    """
    if assume_yes:
        ctx.assume_yes = True

    try:
        run = TeardownOrchestrator(ctx).run()
    except KeyboardInterrupt:
        ctx.timer.cancel()
        ctx.output.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)

    if ctx.output_format in (OutputFormat.JSON, OutputFormat.YAML):
        ctx.output.print_data(run.to_dict())
    elif run.succeeded:
        ctx.output.print_success("Cleanup completed")
        ctx.output.print("Check the AWS console to confirm no billable resources remain.")

    if run.exit_code:
        sys.exit(run.exit_code)
