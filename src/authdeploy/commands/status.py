"""Status command."""

from typing import Any

import click

from authdeploy.core.context import AuthDeployContext, pass_context
from authdeploy.core.exceptions import AuthDeployError
from authdeploy.core.output import OutputFormat


def _collect(ctx: AuthDeployContext) -> dict[str, Any]:
    cfg = ctx.config
    tools = ctx.tools
    charts = cfg.charts
    status: dict[str, Any] = {
        "cluster": cfg.cluster.get_name(),
        "region": cfg.cluster.get_region(),
        "install_mode": cfg.install_mode.value,
    }

    try:
        status["cluster_status"] = tools.aws.cluster_status() or "NOT FOUND"
    except AuthDeployError as e:
        status["cluster_status"] = f"unknown ({e.message})"

    try:
        status["nodes"] = tools.k8s.list_nodes()
    except AuthDeployError as e:
        status["nodes"] = []
        status["nodes_error"] = e.message
        return status

    releases = {}
    for chart in (charts.argocd, charts.ingress_nginx, charts.authentik):
        releases[chart.release] = tools.helm.status(chart.release, chart.namespace) or "not installed"
    status["releases"] = releases

    sync, health = tools.k8s.application_status(cfg.argocd.application, charts.argocd.namespace)
    status["argocd_application"] = {"sync": sync, "health": health}

    try:
        status["authentik_server"] = tools.k8s.deployment_ready(
            cfg.authentik.server_deployment, charts.authentik.namespace
        )
    except AuthDeployError as e:
        status["authentik_server"] = f"unknown ({e.message})"

    hostname = tools.k8s.service_hostname(cfg.ingress.controller_service, charts.ingress_nginx.namespace)
    status["load_balancer"] = hostname or "pending"
    if hostname:
        status["authentik_health"] = tools.authentik.check(hostname)
    return status


@click.command()
@pass_context
def status(ctx: AuthDeployContext) -> None:
    """Show cluster, release and Authentik health.

    \b
    Examples:
        authdeploy status
        authdeploy -o json status
    """
    result = _collect(ctx)

    if ctx.output_format != OutputFormat.TABLE:
        ctx.output.print_data(result)
        return

    summary = {
        "Cluster": f"{result['cluster']} ({result['region']})",
        "EKS status": result["cluster_status"],
        "Install mode": result["install_mode"],
    }
    if "nodes_error" in result:
        summary["Nodes"] = f"unreachable ({result['nodes_error']})"
        ctx.output.print_data(summary, title="Deployment Status")
        return

    for release, state in result["releases"].items():
        summary[f"Release {release}"] = state
    app = result["argocd_application"]
    summary["ArgoCD application"] = f"{app['sync']} / {app['health']}"
    summary["Authentik server"] = result["authentik_server"]
    summary["Load balancer"] = result["load_balancer"]

    health = result.get("authentik_health")
    if health:
        if health["healthy"]:
            summary["Authentik"] = f"healthy ({health['url']})"
        else:
            detail = health.get("error") or f"HTTP {health.get('status_code')}"
            summary["Authentik"] = f"unhealthy: {detail}"

    ctx.output.print_data(summary, title="Deployment Status")
    if result["nodes"]:
        ctx.output.print_data(result["nodes"], headers=["name", "status", "version"], title="Nodes")
