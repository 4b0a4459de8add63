"""Custom exceptions for authdeploy."""

from typing import Any


class AuthDeployError(Exception):
    """Base exception for all authdeploy errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ConfigError(AuthDeployError):
    """Configuration-related errors."""

    pass


class ConfigMissingError(AuthDeployError):
    """A required declared-configuration file is absent."""

    def __init__(self, path: str, remediation: str | None = None):
        super().__init__(f"{path} not found")
        self.path = path
        self.remediation = remediation


class MissingToolError(AuthDeployError):
    """A required command-line tool is not installed."""

    def __init__(self, tool: str, hint: str | None = None):
        super().__init__(f"{tool} is required but not installed")
        self.tool = tool
        self.hint = hint


class CredentialsError(AuthDeployError):
    """Cloud credentials are missing or invalid."""

    pass


class ToolError(AuthDeployError):
    """An external tool exited with a non-zero status."""

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
    ):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr or ""

    def __str__(self) -> str:
        if self.stderr:
            return f"{self.message}\n{self.stderr.rstrip()}"
        return self.message


class WaitTimeoutError(AuthDeployError):
    """A readiness wait exceeded its ceiling."""

    def __init__(
        self,
        message: str,
        timeout_seconds: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.timeout_seconds = timeout_seconds


class ClusterNotReadyError(WaitTimeoutError):
    """Cluster nodes did not become ready in time."""

    pass


class K8sError(AuthDeployError):
    """Kubernetes API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
