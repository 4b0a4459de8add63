"""AWS access: boto3 for API calls, the aws CLI for kubeconfig."""

from typing import Any

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from authdeploy.config import ClusterConfig
from authdeploy.core.exceptions import CredentialsError, ToolError
from authdeploy.core.logging import get_logger
from authdeploy.core.runner import CommandRunner

logger = get_logger(__name__)


class AWSClient:
    """AWS session factory bound to the target cluster's region."""

    def __init__(self, config: ClusterConfig, runner: CommandRunner):
        self._config = config
        self._runner = runner
        self._session: boto3.Session | None = None

    @property
    def region(self) -> str:
        return self._config.get_region()

    @property
    def cluster_name(self) -> str:
        return self._config.get_name()

    @property
    def session(self) -> boto3.Session:
        """Get or create boto3 session."""
        if self._session is None:
            profile = self._config.get_profile()
            session_kwargs: dict[str, Any] = {"region_name": self.region}
            if profile:
                session_kwargs["profile_name"] = profile

            try:
                self._session = boto3.Session(**session_kwargs)
                logger.debug("Created AWS session", profile=profile, region=self.region)
            except BotoCoreError as e:
                raise CredentialsError(f"Failed to create AWS session: {e}")

        return self._session

    def client(self, service_name: str) -> Any:
        config = BotoConfig(
            retries={"max_attempts": 3, "mode": "adaptive"},
            connect_timeout=10,
            read_timeout=30,
        )
        return self.session.client(service_name, config=config)

    def verify_credentials(self) -> dict[str, str]:
        """Check that credentials resolve to an identity.

        Raises:
            CredentialsError: If no usable credentials are configured
        """
        try:
            identity = self.client("sts").get_caller_identity()
        except (BotoCoreError, ClientError) as e:
            raise CredentialsError(
                f"AWS credentials not configured: {e}",
                details={"hint": "Run 'aws configure'"},
            )
        logger.info("AWS identity verified", account=identity.get("Account"))
        return {"account": identity.get("Account", ""), "arn": identity.get("Arn", "")}

    def cluster_status(self) -> str | None:
        """EKS cluster status (ACTIVE, CREATING, ...) or None if absent."""
        try:
            response = self.client("eks").describe_cluster(name=self.cluster_name)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ResourceNotFoundException":
                return None
            raise CredentialsError(f"Failed to describe cluster: {e}")
        except BotoCoreError as e:
            raise CredentialsError(f"Failed to describe cluster: {e}")
        return response["cluster"]["status"]

    def update_kubeconfig(self) -> None:
        """Write cluster access credentials into the local kubeconfig."""
        args = [
            "aws",
            "eks",
            "update-kubeconfig",
            "--region",
            self.region,
            "--name",
            self.cluster_name,
        ]
        profile = self._config.get_profile()
        if profile:
            args.extend(["--profile", profile])
        try:
            self._runner.run(args)
        except ToolError as e:
            raise ToolError(
                f"Failed to configure kubectl for cluster {self.cluster_name}",
                command=e.command,
                returncode=e.returncode,
                stderr=e.stderr,
            )
