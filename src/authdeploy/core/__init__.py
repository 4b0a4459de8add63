"""Core utilities and shared components for authdeploy."""

# Note: Import context lazily to avoid circular imports
# Use: from authdeploy.core.context import AuthDeployContext, pass_context
from authdeploy.core.exceptions import (
    AuthDeployError,
    ClusterNotReadyError,
    ConfigError,
    ConfigMissingError,
    CredentialsError,
    MissingToolError,
    ToolError,
)
from authdeploy.core.output import OutputFormatter, console

__all__ = [
    "AuthDeployError",
    "ClusterNotReadyError",
    "ConfigError",
    "ConfigMissingError",
    "CredentialsError",
    "MissingToolError",
    "ToolError",
    "OutputFormatter",
    "console",
]
