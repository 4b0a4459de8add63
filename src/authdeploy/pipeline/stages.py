"""Pipeline stages.

Each stage is a plain function ``stage(ctx, run) -> StageResult`` that
performs one state transition. Stages print a status line before acting.
Errors that end the run are raised as AuthDeployError subclasses and turned
into FATAL results by the orchestrator; advisory problems are returned as
WARNING results.
"""

from typing import Any

from authdeploy.core.context import AuthDeployContext
from authdeploy.core.exceptions import (
    AuthDeployError,
    ClusterNotReadyError,
    ConfigMissingError,
    K8sError,
    MissingToolError,
    ToolError,
    WaitTimeoutError,
)
from authdeploy.core.logging import get_logger
from authdeploy.core.poll import poll_until
from authdeploy.core.progress import spinner
from authdeploy.pipeline.models import BUNDLE_KEYS, PipelineRun, SecretBundle, StageResult
from authdeploy.pipeline.secrets import TfvarsFile, build_bundle, write_back
from authdeploy.tools.helm import secret_env_values

logger = get_logger(__name__)

ARGOCD_PASSWORD_COMMAND = (
    "kubectl -n {namespace} get secret {secret} -o jsonpath='{{.data.password}}' | base64 -d"
)
HOSTNAME_COMMAND = (
    "kubectl get svc {service} -n {namespace} "
    "-o jsonpath='{{.status.loadBalancer.ingress[0].hostname}}'"
)


def _spin(ctx: AuthDeployContext, message: str):
    return spinner(message, enabled=not ctx.quiet and ctx.color)


def pause(ctx: AuthDeployContext, seconds: int, message: str) -> None:
    """Fixed delay on the run's timer; skipped in dry-run mode."""
    if seconds <= 0:
        return
    if ctx.dry_run:
        ctx.log_dry_run(f"Would wait {seconds}s: {message}")
        return
    ctx.output.print_status(f"{message} ({seconds}s)...")
    with _spin(ctx, message):
        ctx.timer.wait(seconds)


def _progress(ctx: AuthDeployContext, what: str):
    def on_attempt(attempt: int, attempts: int, _value: Any) -> None:
        ctx.output.print(f"[dim]   Waiting for {what}... ({attempt}/{attempts})[/dim]")

    return on_attempt


def _poll_secret_password(ctx: AuthDeployContext) -> str | None:
    cfg = ctx.config
    waits = cfg.waits
    k8s = ctx.tools.k8s
    result = poll_until(
        lambda: k8s.read_secret_key(cfg.argocd.admin_secret, cfg.charts.argocd.namespace, "password"),
        timeout=waits.argocd_password_attempts * waits.argocd_password_interval,
        interval=waits.argocd_password_interval,
        timer=ctx.timer,
        on_attempt=_progress(ctx, "ArgoCD admin password"),
        description="argocd admin password",
    )
    return result.value if result.satisfied else None


def _poll_ingress_hostname(ctx: AuthDeployContext) -> str | None:
    cfg = ctx.config
    waits = cfg.waits
    k8s = ctx.tools.k8s
    result = poll_until(
        lambda: k8s.service_hostname(cfg.ingress.controller_service, cfg.charts.ingress_nginx.namespace),
        timeout=waits.lb_hostname_attempts * waits.lb_hostname_interval,
        interval=waits.lb_hostname_interval,
        timer=ctx.timer,
        on_attempt=_progress(ctx, "load balancer hostname"),
        description="ingress load balancer hostname",
    )
    return result.value if result.satisfied else None


# Deploy stages


def check_prereqs(ctx: AuthDeployContext, run: PipelineRun) -> StageResult:
    """START -> PREREQS_CHECKED: every required tool is on PATH."""
    ctx.output.print_status("Checking prerequisites...")
    runner = ctx.tools.runner
    for tool in ctx.config.tools:
        if not runner.which(tool):
            raise MissingToolError(tool, hint="Run 'authdeploy prereqs' for install instructions")
    return StageResult.ok("All prerequisites are installed")


def plan_infra(ctx: AuthDeployContext, run: PipelineRun) -> StageResult:
    """PREREQS_CHECKED -> INFRA_PLANNED: credentials, init, validate, plan."""
    paths = ctx.config.paths
    tfvars = paths.tfvars_path
    if not tfvars.is_file():
        raise ConfigMissingError(
            str(tfvars),
            remediation=f"cp {paths.tfvars_example_path} {tfvars}",
        )

    ctx.output.print_status("Checking AWS credentials...")
    identity = ctx.tools.aws.verify_credentials()
    ctx.output.print_success(f"AWS credentials configured (account {identity.get('account', '?')})")

    terraform = ctx.tools.terraform
    ctx.output.print_status("Initializing Terraform...")
    terraform.init()
    ctx.output.print_status("Validating Terraform configuration...")
    terraform.validate()
    ctx.output.print_status("Planning infrastructure changes...")
    terraform.plan()
    return StageResult.ok(f"Plan saved to {terraform.plan_file}")


def confirm_apply(ctx: AuthDeployContext, run: PipelineRun) -> StageResult:
    """INFRA_PLANNED -> INFRA_CONFIRMED: y/Y proceeds, anything else aborts."""
    if not ctx.confirm("Do you want to continue?"):
        return StageResult.abort("Deployment cancelled")
    return StageResult.ok("Confirmed")


def apply_infra(ctx: AuthDeployContext, run: PipelineRun) -> StageResult:
    """INFRA_CONFIRMED -> INFRA_APPLIED."""
    ctx.output.print_status("Applying infrastructure (this can take 15-20 minutes)...")
    ctx.tools.terraform.apply()
    return StageResult.ok("Infrastructure deployed")


def wait_cluster(ctx: AuthDeployContext, run: PipelineRun) -> StageResult:
    """INFRA_APPLIED -> CLUSTER_READY: kubeconfig, then all nodes Ready."""
    ctx.output.print_status(f"Configuring kubectl for {run.cluster_name}...")
    ctx.tools.aws.update_kubeconfig()

    timeout = ctx.config.waits.node_ready_timeout
    ctx.output.print_status("Waiting for cluster nodes to be ready...")
    with _spin(ctx, "Waiting for nodes"):
        ready = ctx.tools.kubectl.wait("nodes", "Ready", timeout, all_resources=True)
    if not ready:
        raise ClusterNotReadyError(
            f"Cluster nodes not ready after {timeout}s",
            timeout_seconds=timeout,
        )
    return StageResult.ok("Cluster is ready")


def install_platform(ctx: AuthDeployContext, run: PipelineRun) -> StageResult:
    """CLUSTER_READY -> PLATFORM_SERVICES_READY: ArgoCD and ingress-nginx."""
    cfg = ctx.config
    tools = ctx.tools
    charts = cfg.charts
    waits = cfg.waits

    for namespace in (charts.argocd.namespace, cfg.secrets.namespace):
        if ctx.dry_run:
            ctx.log_dry_run("Would ensure namespace", {"namespace": namespace})
        else:
            tools.k8s.ensure_namespace(namespace)

    ctx.output.print_status("Installing ArgoCD...")
    tools.helm.add_repo(charts.argocd)
    tools.helm.install(charts.argocd)
    with _spin(ctx, "Waiting for ArgoCD"):
        ready = tools.kubectl.wait(
            f"deployment/{cfg.argocd.server_deployment}",
            "available",
            waits.argocd_ready_timeout,
            namespace=charts.argocd.namespace,
        )
    if not ready:
        raise WaitTimeoutError("ArgoCD server not available", timeout_seconds=waits.argocd_ready_timeout)
    ctx.output.print_success("ArgoCD is ready")

    warnings = []
    run.argocd_password = _poll_secret_password(ctx)
    if not run.argocd_password:
        warnings.append("ArgoCD admin password not available yet")

    ctx.output.print_status("Installing NGINX Ingress Controller...")
    tools.helm.add_repo(charts.ingress_nginx)
    tools.helm.install(charts.ingress_nginx)
    with _spin(ctx, "Waiting for ingress controller"):
        ready = tools.kubectl.wait(
            "pod",
            "ready",
            waits.ingress_ready_timeout,
            namespace=charts.ingress_nginx.namespace,
            selector=cfg.ingress.controller_selector,
        )
    if not ready:
        raise WaitTimeoutError(
            "Ingress controller pods not ready",
            timeout_seconds=waits.ingress_ready_timeout,
        )
    ctx.output.print_success("NGINX Ingress Controller is ready")

    pause(ctx, waits.lb_settle_delay, "Waiting for load balancer to be provisioned")
    run.ingress_hostname = _poll_ingress_hostname(ctx)
    if run.ingress_hostname:
        ctx.output.print_success(f"Load balancer: {run.ingress_hostname}")
    else:
        warnings.append("Load balancer hostname not allocated yet")

    if warnings:
        return StageResult.warn("; ".join(warnings))
    return StageResult.ok("Platform services are ready")


def store_bundle(ctx: AuthDeployContext, bundle: SecretBundle, tfvars: TfvarsFile) -> str:
    """Upsert the bundle into the secret store and update tfvars.

    Returns:
        ``created``, ``replaced`` or ``skipped`` (dry-run)
    """
    cfg = ctx.config.secrets
    k8s = ctx.tools.k8s

    if ctx.dry_run:
        ctx.log_dry_run(
            "Would upsert secret",
            {"secret": cfg.secret_name, "namespace": cfg.namespace, "keys": len(bundle.values)},
        )
        return "skipped"

    if not k8s.namespace_exists(cfg.namespace):
        raise K8sError(
            f"Namespace {cfg.namespace} not found",
            details={"hint": "Run 'authdeploy deploy' to create it"},
        )

    action = k8s.upsert_secret(cfg.secret_name, cfg.namespace, bundle.as_data())
    logger.info("Secret stored", secret=cfg.secret_name, action=action, sources=bundle.provenance())

    if not tfvars.exists():
        ctx.output.print(f"[dim]{tfvars.path} not found, skipping tfvars update[/dim]")
        return action
    try:
        updated = write_back(tfvars, bundle)
    except OSError as e:
        ctx.output.print_warning(f"Could not update {tfvars.path}: {e}")
        return action
    if updated:
        ctx.output.print(f"[dim]Updated {', '.join(updated)} in {tfvars.path} (backup kept)[/dim]")
    return action


def store_secrets(ctx: AuthDeployContext, run: PipelineRun) -> StageResult:
    """PLATFORM_SERVICES_READY -> SECRETS_READY."""
    ctx.output.print_status("Generating Authentik secrets...")
    tfvars = TfvarsFile(ctx.config.paths.tfvars_path)
    run.bundle = build_bundle(ctx.config, ctx.tools.terraform, tfvars)
    action = store_bundle(ctx, run.bundle, tfvars)
    return StageResult.ok(f"Secret {ctx.config.secrets.secret_name} {action}")


def _install_with_helm(ctx: AuthDeployContext) -> StageResult:
    cfg = ctx.config
    chart = cfg.charts.authentik
    tools = ctx.tools

    ctx.output.print_status("Installing Authentik with Helm...")
    tools.helm.add_repo(chart)
    tools.helm.install(chart, secret_env_values(cfg.secrets.secret_name, BUNDLE_KEYS))

    with _spin(ctx, "Waiting for Authentik"):
        ready = tools.kubectl.wait(
            f"deployment/{cfg.authentik.server_deployment}",
            "available",
            cfg.waits.app_ready_timeout,
            namespace=chart.namespace,
        )
    if not ready:
        return StageResult.warn("Authentik deployment not ready yet, it may still be starting")
    return StageResult.ok("Authentik is ready")


def _install_with_argocd(ctx: AuthDeployContext) -> StageResult:
    cfg = ctx.config
    waits = cfg.waits
    tools = ctx.tools
    namespace = cfg.charts.argocd.namespace
    app = cfg.argocd.application

    manifest = cfg.paths.argocd_application_path
    if not manifest.is_file():
        raise ConfigMissingError(str(manifest))

    ctx.output.print_status("Deploying Authentik via ArgoCD...")
    tools.kubectl.apply_file(manifest)

    last = {"sync": "Unknown", "health": "Unknown"}
    forced = []

    def synced_and_healthy() -> bool:
        last["sync"], last["health"] = tools.k8s.application_status(app, namespace)
        return last["sync"] == "Synced" and last["health"] == "Healthy"

    def on_attempt(attempt: int, attempts: int, _value: Any) -> None:
        ctx.output.print(
            f"[dim]   Sync: {last['sync']}, Health: {last['health']} ({attempt}/{attempts})[/dim]"
        )
        if attempt == waits.force_sync_at and not forced:
            forced.append(attempt)
            ctx.output.print_status("Forcing sync...")
            try:
                tools.k8s.request_application_sync(app, namespace)
            except K8sError as e:
                logger.warning("Forced sync failed", application=app, error=str(e))

    result = poll_until(
        synced_and_healthy,
        timeout=waits.sync_poll_attempts * waits.sync_poll_interval,
        interval=waits.sync_poll_interval,
        timer=ctx.timer,
        on_attempt=on_attempt,
        description="argocd application sync",
    )
    if not result.satisfied:
        return StageResult.warn(
            f"Application {app} not synced and healthy yet "
            f"(sync: {last['sync']}, health: {last['health']})",
            forced_sync=bool(forced),
        )
    return StageResult.ok(f"Application {app} synced and healthy", forced_sync=bool(forced))


def install_application(ctx: AuthDeployContext, run: PipelineRun) -> StageResult:
    """SECRETS_READY -> APPLICATION_INSTALLED, in the configured install mode."""
    if run.install_mode == "argocd":
        return _install_with_argocd(ctx)
    return _install_with_helm(ctx)


def apply_routing(ctx: AuthDeployContext, run: PipelineRun) -> StageResult:
    """APPLICATION_INSTALLED -> ROUTING_APPLIED; failures are advisory."""
    manifest = ctx.config.paths.ingress_manifest_path
    ctx.output.print_status("Applying ingress rules...")
    if not manifest.is_file():
        return StageResult.warn(f"Ingress manifest {manifest} not found")
    try:
        ctx.tools.kubectl.apply_file(manifest)
    except ToolError as e:
        return StageResult.warn(f"Failed to apply ingress rules: {e}")
    return StageResult.ok("Ingress rules applied")


def build_report(ctx: AuthDeployContext, run: PipelineRun) -> dict[str, str]:
    """Access details; each entry is a real value or the command that retrieves it."""
    cfg = ctx.config
    argocd_ns = cfg.charts.argocd.namespace
    ingress_ns = cfg.charts.ingress_nginx.namespace
    k8s = ctx.tools.k8s

    try:
        if not run.ingress_hostname:
            run.ingress_hostname = k8s.service_hostname(cfg.ingress.controller_service, ingress_ns)
        if not run.argocd_password:
            run.argocd_password = k8s.read_secret_key(cfg.argocd.admin_secret, argocd_ns, "password")
    except AuthDeployError as e:
        logger.debug("Report lookup failed", error=str(e))

    port = cfg.argocd.local_port
    report = {
        "argocd_port_forward": (
            f"kubectl port-forward svc/{cfg.argocd.server_service} -n {argocd_ns} "
            f"{port}:{cfg.argocd.server_service_port}"
        ),
        "argocd_url": f"http://localhost:{port}",
        "argocd_username": cfg.argocd.admin_user,
        "argocd_password": run.argocd_password
        or ARGOCD_PASSWORD_COMMAND.format(namespace=argocd_ns, secret=cfg.argocd.admin_secret),
        "authentik_url": f"http://{run.ingress_hostname}"
        if run.ingress_hostname
        else HOSTNAME_COMMAND.format(service=cfg.ingress.controller_service, namespace=ingress_ns),
    }
    if run.ingress_hostname:
        report["authentik_setup_url"] = f"http://{run.ingress_hostname}/if/flow/initial-setup/"
    return report


def report(ctx: AuthDeployContext, run: PipelineRun) -> StageResult:
    """ROUTING_APPLIED -> DONE: print access details."""
    run.report = build_report(ctx, run)
    r = run.report

    lines = [
        "[bold]ArgoCD[/bold]",
        f"  Port-forward: {r['argocd_port_forward']}",
        f"  URL:          {r['argocd_url']}",
        f"  Username:     {r['argocd_username']}",
        f"  Password:     {r['argocd_password']}",
        "",
        "[bold]Authentik[/bold]",
        f"  URL:          {r['authentik_url']}",
    ]
    if "authentik_setup_url" in r:
        lines.append(f"  Setup:        {r['authentik_setup_url']}")
    ctx.output.print_panel("\n".join(lines), title="Access Information", style="green")
    return StageResult.ok("Deployment complete")


# Teardown stages


def confirm_teardown(ctx: AuthDeployContext, run: PipelineRun) -> StageResult:
    """START -> CONFIRMED: only the exact token ``yes`` proceeds."""
    ctx.output.print_panel(
        "\n".join([
            f"Cluster: {run.cluster_name} ({run.region})",
            "",
            "This will permanently delete:",
            "  - EKS cluster and node groups",
            "  - RDS PostgreSQL database",
            "  - ElastiCache Redis cluster",
            "  - VPC, subnets and load balancers",
            "  - All data stored in these resources",
        ]),
        title="Destroy Infrastructure",
        style="red",
    )
    if not ctx.confirm("Are you sure you want to destroy everything?", accepted=("yes",)):
        return StageResult.abort("Cleanup cancelled")
    return StageResult.ok("Confirmed")


def configure_access(ctx: AuthDeployContext, run: PipelineRun) -> StageResult:
    """START/CONFIRMED -> CLUSTER_ACCESS; a missing cluster is only a warning."""
    ctx.output.print_status(f"Configuring kubectl for {run.cluster_name}...")
    try:
        ctx.tools.aws.update_kubeconfig()
    except AuthDeployError as e:
        return StageResult.warn(f"Could not configure kubectl, cluster may already be deleted: {e}")
    return StageResult.ok("kubectl configured")


def remove_workloads(ctx: AuthDeployContext, run: PipelineRun) -> StageResult:
    """Uninstall ingress-nginx and delete the applied manifests."""
    cfg = ctx.config
    tools = ctx.tools
    warnings = []

    ctx.output.print_status("Removing Kubernetes resources...")
    chart = cfg.charts.ingress_nginx
    try:
        tools.helm.uninstall(chart.release, chart.namespace)
    except AuthDeployError as e:
        warnings.append(f"helm uninstall {chart.release} failed: {e}")

    for manifest in (cfg.paths.ingress_manifest_path, cfg.paths.argocd_application_path):
        try:
            tools.kubectl.delete_file(manifest, ignore_not_found=True)
        except AuthDeployError as e:
            warnings.append(f"Failed to delete {manifest.name}: {e}")

    pause(ctx, cfg.waits.teardown_app_cleanup_delay, "Waiting for resources to be removed")

    if warnings:
        return StageResult.warn("; ".join(warnings))
    return StageResult.ok("Kubernetes resources removed")


def release_load_balancers(ctx: AuthDeployContext, run: PipelineRun) -> StageResult:
    """Delete every LoadBalancer service so AWS releases the load balancers."""
    ctx.output.print_status("Deleting LoadBalancer services...")
    result = StageResult.ok("Load balancer services deleted")
    try:
        ctx.tools.kubectl.delete_load_balancer_services()
    except AuthDeployError as e:
        result = StageResult.warn(f"Failed to delete LoadBalancer services: {e}")

    pause(ctx, ctx.config.waits.teardown_lb_cleanup_delay, "Waiting for AWS to release load balancers")
    return result


def manual_cleanup_items(run: PipelineRun) -> list[str]:
    return [
        f"EKS cluster: {run.cluster_name}",
        f"VPC tagged for {run.cluster_name}",
        f"RDS instance: {run.cluster_name}-authentik-db",
        f"ElastiCache cluster: {run.cluster_name}-authentik-redis",
    ]


def destroy_infra(ctx: AuthDeployContext, run: PipelineRun) -> StageResult:
    """LOAD_BALANCERS_RELEASED -> DONE: terraform destroy, retried."""
    attempts = ctx.config.waits.destroy_attempts
    terraform = ctx.tools.terraform
    error: ToolError | None = None

    for attempt in range(1, attempts + 1):
        ctx.output.print_status(
            "Destroying infrastructure (this can take 10-15 minutes)..."
            if attempt == 1
            else f"Retrying destroy (attempt {attempt}/{attempts})..."
        )
        try:
            terraform.destroy()
            return StageResult.ok("Infrastructure destroyed")
        except ToolError as e:
            error = e
            logger.warning("Destroy failed", attempt=attempt, error=e.message)
            if attempt < attempts:
                ctx.output.print_warning("Destroy failed, retrying...")

    ctx.output.print_checklist(
        [(item, False) for item in manual_cleanup_items(run)],
        title="Check these resources in the AWS console:",
    )
    return StageResult.fatal(error, "Destroy failed; some resources may need manual cleanup")
