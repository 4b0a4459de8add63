"""Deploy command."""

import sys

import click

from authdeploy.config import InstallMode
from authdeploy.core.context import AuthDeployContext, pass_context
from authdeploy.core.output import OutputFormat, format_duration
from authdeploy.pipeline.orchestrator import DeployOrchestrator


@click.command()
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Apply the plan without prompting")
@click.option(
    "--mode",
    type=click.Choice([m.value for m in InstallMode]),
    help="Install Authentik with Helm directly or through ArgoCD",
)
@pass_context
def deploy(ctx: AuthDeployContext, assume_yes: bool, mode: str | None) -> None:
    """Deploy Authentik and ArgoCD on a new EKS cluster.

    \b
    Runs terraform plan and apply, waits for the cluster, installs ArgoCD
    and ingress-nginx, stores the Authentik secrets, installs Authentik
    and applies the ingress rules.

    \b
    Examples:
        authdeploy deploy
        authdeploy deploy --mode argocd
        authdeploy --dry-run deploy
        CLUSTER_NAME=auth-prod AWS_REGION=eu-west-1 authdeploy deploy --yes
    """
    if assume_yes:
        ctx.assume_yes = True

    orchestrator = DeployOrchestrator(ctx)
    run = orchestrator.new_run()
    if mode:
        run.install_mode = mode

    ctx.output.print_header(
        f"Deploying Authentik to {run.cluster_name} ({run.region}, {run.install_mode} mode)"
    )

    try:
        run = orchestrator.run(run)
    except KeyboardInterrupt:
        ctx.timer.cancel()
        ctx.output.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)

    if ctx.output_format in (OutputFormat.JSON, OutputFormat.YAML):
        ctx.output.print_data(run.to_dict())
    elif run.succeeded:
        suffix = f" with {len(run.warnings)} warning(s)" if run.warnings else ""
        ctx.output.print_success(
            f"Deployment finished in {format_duration(run.duration_seconds)}{suffix}"
        )

    if run.exit_code:
        sys.exit(run.exit_code)
