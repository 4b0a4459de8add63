"""Secrets command group."""

import click

from authdeploy.core.context import AuthDeployContext, pass_context
from authdeploy.core.exceptions import K8sError
from authdeploy.core.utils import mask_secret
from authdeploy.pipeline.models import BUNDLE_KEYS
from authdeploy.pipeline.secrets import TfvarsFile, build_bundle
from authdeploy.pipeline.stages import store_bundle


@click.group()
@pass_context
def secrets(ctx: AuthDeployContext) -> None:
    """Inspect and regenerate the Authentik secret bundle.

    \b
    Examples:
        authdeploy secrets show
        authdeploy -o json secrets show
        authdeploy secrets generate --rotate-db-password
    """
    pass


@secrets.command()
@click.option("--mask", is_flag=True, help="Mask secret values")
@pass_context
def show(ctx: AuthDeployContext, mask: bool) -> None:
    """Show the stored secrets, ArgoCD password and Authentik URL."""
    ctx.tools.runner.require("kubectl")

    cfg = ctx.config
    k8s = ctx.tools.k8s
    namespace = cfg.secrets.namespace

    if not k8s.namespace_exists(namespace):
        raise K8sError(
            f"Namespace {namespace} not found",
            details={"hint": "Deploy Authentik first"},
        )

    data = k8s.read_secret(cfg.secrets.secret_name, namespace)
    if data is None:
        raise K8sError(
            f"Secret {cfg.secrets.secret_name} not found in namespace {namespace}",
            details={"hint": "Run 'authdeploy secrets generate'"},
        )

    ordered = [key for key in BUNDLE_KEYS if key in data] + sorted(k for k in data if k not in BUNDLE_KEYS)
    result = {key: mask_secret(data[key]) if mask else data[key] for key in ordered}

    password = k8s.read_secret_key(cfg.argocd.admin_secret, cfg.charts.argocd.namespace, "password")
    if password:
        result["ARGOCD_ADMIN_PASSWORD"] = mask_secret(password) if mask else password

    hostname = k8s.service_hostname(cfg.ingress.controller_service, cfg.charts.ingress_nginx.namespace)
    if hostname:
        result["AUTHENTIK_URL"] = f"http://{hostname}"

    ctx.output.print_data(result, title=f"{cfg.secrets.secret_name} ({namespace})")


@secrets.command()
@click.option(
    "--rotate-db-password",
    is_flag=True,
    help="Generate a new database password instead of reusing the current one",
)
@pass_context
def generate(ctx: AuthDeployContext, rotate_db_password: bool) -> None:
    """Generate the secret bundle and store it in the cluster.

    \b
    The signing key is always regenerated. Database and Redis hosts come
    from Terraform outputs when available. An existing secret is replaced.
    """
    cfg = ctx.config
    tfvars = TfvarsFile(cfg.paths.tfvars_path)

    ctx.output.print_status("Generating Authentik secrets...")
    bundle = build_bundle(cfg, ctx.tools.terraform, tfvars, rotate_db_password=rotate_db_password)
    action = store_bundle(ctx, bundle, tfvars)

    if action != "skipped":
        ctx.output.print_success(f"Secret {cfg.secrets.secret_name} {action} in namespace {cfg.secrets.namespace}")

    ctx.output.print_data(
        [{"key": key, "source": source} for key, source in bundle.provenance().items()],
        title="Secret sources",
    )
