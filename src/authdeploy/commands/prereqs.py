"""Prerequisites check command."""

import sys

import click

from authdeploy.core.context import AuthDeployContext, pass_context

INSTALL_HINTS = {
    "aws": {
        "darwin": 'curl "https://awscli.amazonaws.com/AWSCLIV2.pkg" -o AWSCLIV2.pkg && sudo installer -pkg AWSCLIV2.pkg -target /',
        "linux": 'curl "https://awscli.amazonaws.com/awscli-exe-linux-x86_64.zip" -o awscliv2.zip && unzip awscliv2.zip && sudo ./aws/install',
        "other": "https://docs.aws.amazon.com/cli/latest/userguide/install-cliv2.html",
    },
    "terraform": {
        "darwin": "brew tap hashicorp/tap && brew install hashicorp/tap/terraform",
        "linux": "sudo apt update && sudo apt install terraform (after adding the HashiCorp apt repository)",
        "other": "https://developer.hashicorp.com/terraform/install",
    },
    "kubectl": {
        "darwin": "brew install kubectl",
        "linux": 'curl -LO "https://dl.k8s.io/release/$(curl -L -s https://dl.k8s.io/release/stable.txt)/bin/linux/amd64/kubectl" && sudo install kubectl /usr/local/bin/kubectl',
        "other": "https://kubernetes.io/docs/tasks/tools/",
    },
    "helm": {
        "darwin": "brew install helm",
        "linux": "curl https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3 | bash",
        "other": "https://helm.sh/docs/intro/install/",
    },
    "git": {
        "darwin": "xcode-select --install",
        "linux": "sudo apt install git",
        "other": "https://git-scm.com/downloads",
    },
}

NEXT_STEPS = [
    "Configure AWS credentials: aws configure",
    "Copy terraform/terraform.tfvars.example to terraform/terraform.tfvars and edit it",
    "Run: authdeploy deploy",
]


def _platform() -> str:
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform.startswith("linux"):
        return "linux"
    return "other"


@click.command()
@pass_context
def prereqs(ctx: AuthDeployContext) -> None:
    """Check that the required command-line tools are installed.

    Prints install instructions for anything missing. Nothing is
    installed automatically.
    """
    tools = list(dict.fromkeys([*ctx.config.tools, "git"]))
    runner = ctx.tools.runner
    found = {tool: runner.which(tool) is not None for tool in tools}

    ctx.output.print_checklist([(tool, ok) for tool, ok in found.items()], title="Prerequisites")

    missing = [tool for tool, ok in found.items() if not ok]
    if missing:
        platform = _platform()
        for tool in missing:
            hint = INSTALL_HINTS.get(tool, {}).get(platform) or INSTALL_HINTS.get(tool, {}).get("other")
            ctx.output.print_error(f"{tool} not found")
            if hint:
                ctx.output.print(f"   Install: {hint}")
        sys.exit(1)

    ctx.output.print_success("All prerequisites are installed")
    ctx.output.print_header("Next steps")
    for i, step in enumerate(NEXT_STEPS, 1):
        ctx.output.print(f"  {i}. {step}")
