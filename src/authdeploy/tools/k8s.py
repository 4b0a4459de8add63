"""Kubernetes client using the official kubernetes Python client."""

import base64
from typing import Any

from urllib3.exceptions import HTTPError

from authdeploy.config import K8sConfig
from authdeploy.core.exceptions import CredentialsError, K8sError
from authdeploy.core.logging import get_logger

logger = get_logger(__name__)

ARGO_GROUP = "argoproj.io"
ARGO_VERSION = "v1alpha1"
ARGO_PLURAL = "applications"


class K8sClient:
    """Client for Kubernetes API operations.

    Configuration is loaded on first use, so the client can be built
    before ``aws eks update-kubeconfig`` has written the context.
    """

    def __init__(self, config: K8sConfig):
        self._config = config
        self._core_v1: Any = None
        self._apps_v1: Any = None
        self._custom_objects: Any = None
        self._loaded = False

    def _load_config(self) -> None:
        if self._loaded:
            return

        from kubernetes import config

        try:
            config.load_kube_config(
                config_file=self._config.get_kubeconfig(),
                context=self._config.context,
            )
        except (config.ConfigException, OSError) as e:
            raise CredentialsError(f"Failed to load kubeconfig: {e}")

        self._loaded = True
        logger.debug("Loaded k8s config", context=self._config.context)

    @property
    def core_v1(self) -> Any:
        """CoreV1Api client (namespaces, secrets, services, nodes)."""
        if self._core_v1 is None:
            self._load_config()
            from kubernetes import client

            self._core_v1 = client.CoreV1Api()
        return self._core_v1

    @property
    def apps_v1(self) -> Any:
        if self._apps_v1 is None:
            self._load_config()
            from kubernetes import client

            self._apps_v1 = client.AppsV1Api()
        return self._apps_v1

    @property
    def custom_objects(self) -> Any:
        """CustomObjectsApi client (ArgoCD applications)."""
        if self._custom_objects is None:
            self._load_config()
            from kubernetes import client

            self._custom_objects = client.CustomObjectsApi()
        return self._custom_objects

    # Namespace operations
    def namespace_exists(self, name: str) -> bool:
        from kubernetes.client.rest import ApiException

        try:
            self.core_v1.read_namespace(name)
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            raise K8sError(f"Failed to read namespace: {e.reason}", status_code=e.status)
        except HTTPError as e:
            raise K8sError(f"Failed to read namespace: {e}")

    def ensure_namespace(self, name: str) -> bool:
        """Create a namespace if absent.

        Returns:
            True if the namespace was created
        """
        from kubernetes import client
        from kubernetes.client.rest import ApiException

        body = client.V1Namespace(metadata=client.V1ObjectMeta(name=name))
        try:
            self.core_v1.create_namespace(body)
            logger.info("Created namespace", namespace=name)
            return True
        except ApiException as e:
            if e.status == 409:
                return False
            raise K8sError(f"Failed to create namespace {name}: {e.reason}", status_code=e.status)
        except HTTPError as e:
            raise K8sError(f"Failed to create namespace {name}: {e}")

    # Secret operations
    def upsert_secret(self, name: str, namespace: str, data: dict[str, str]) -> str:
        """Create the secret, or replace it if it exists.

        Returns:
            ``created`` or ``replaced``
        """
        from kubernetes import client
        from kubernetes.client.rest import ApiException

        body = client.V1Secret(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace),
            type="Opaque",
            string_data=data,
        )
        try:
            self.core_v1.create_namespaced_secret(namespace, body)
            return "created"
        except ApiException as e:
            if e.status != 409:
                raise K8sError(f"Failed to create secret {name}: {e.reason}", status_code=e.status)
        except HTTPError as e:
            raise K8sError(f"Failed to create secret {name}: {e}")

        try:
            self.core_v1.replace_namespaced_secret(name, namespace, body)
            return "replaced"
        except ApiException as e:
            raise K8sError(f"Failed to replace secret {name}: {e.reason}", status_code=e.status)
        except HTTPError as e:
            raise K8sError(f"Failed to replace secret {name}: {e}")

    def read_secret(self, name: str, namespace: str) -> dict[str, str] | None:
        """Read and decode a secret; None if it does not exist."""
        from kubernetes.client.rest import ApiException

        try:
            secret = self.core_v1.read_namespaced_secret(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise K8sError(f"Failed to read secret {name}: {e.reason}", status_code=e.status)
        except HTTPError as e:
            raise K8sError(f"Failed to read secret {name}: {e}")

        return {
            key: base64.b64decode(value).decode("utf-8")
            for key, value in (secret.data or {}).items()
        }

    def read_secret_key(self, name: str, namespace: str, key: str) -> str | None:
        """Read one decoded secret value; None if missing or unreadable."""
        try:
            data = self.read_secret(name, namespace)
        except K8sError as e:
            logger.debug("Secret read failed", secret=name, error=str(e))
            return None
        if not data:
            return None
        return data.get(key) or None

    # Service and workload status
    def service_hostname(self, name: str, namespace: str) -> str | None:
        """External load-balancer hostname (or IP) of a service, once allocated."""
        from kubernetes.client.rest import ApiException

        try:
            svc = self.core_v1.read_namespaced_service(name, namespace)
        except ApiException as e:
            logger.debug("Service read failed", service=name, status=e.status)
            return None
        except HTTPError as e:
            logger.debug("Service read failed", service=name, error=str(e))
            return None

        lb = svc.status.load_balancer if svc.status else None
        for ingress in (lb.ingress if lb and lb.ingress else []):
            if ingress.hostname or ingress.ip:
                return ingress.hostname or ingress.ip
        return None

    def list_nodes(self) -> list[dict[str, Any]]:
        from kubernetes.client.rest import ApiException

        try:
            nodes = self.core_v1.list_node()
        except ApiException as e:
            raise K8sError(f"Failed to list nodes: {e.reason}", status_code=e.status)
        except HTTPError as e:
            raise K8sError(f"Failed to list nodes: {e}")

        result = []
        for node in nodes.items:
            ready = "Unknown"
            for cond in node.status.conditions or []:
                if cond.type == "Ready":
                    ready = "Ready" if cond.status == "True" else "NotReady"
                    break
            result.append({
                "name": node.metadata.name,
                "status": ready,
                "version": node.status.node_info.kubelet_version if node.status.node_info else "",
            })
        return result

    def deployment_ready(self, name: str, namespace: str) -> str:
        """Ready replica count as ``ready/desired``, or ``missing``."""
        from kubernetes.client.rest import ApiException

        try:
            dep = self.apps_v1.read_namespaced_deployment(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return "missing"
            raise K8sError(f"Failed to read deployment {name}: {e.reason}", status_code=e.status)
        except HTTPError as e:
            raise K8sError(f"Failed to read deployment {name}: {e}")
        return f"{dep.status.ready_replicas or 0}/{dep.spec.replicas or 0}"

    # ArgoCD application operations
    def application_status(self, name: str, namespace: str) -> tuple[str, str]:
        """Sync and health status of an ArgoCD Application.

        Returns:
            ``(sync_status, health_status)``, ``Unknown`` where unreadable
        """
        from kubernetes.client.rest import ApiException

        try:
            app = self.custom_objects.get_namespaced_custom_object(
                ARGO_GROUP, ARGO_VERSION, namespace, ARGO_PLURAL, name
            )
        except ApiException as e:
            logger.debug("Application read failed", application=name, status=e.status)
            return "Unknown", "Unknown"
        except HTTPError as e:
            logger.debug("Application read failed", application=name, error=str(e))
            return "Unknown", "Unknown"

        status = app.get("status", {})
        return (
            status.get("sync", {}).get("status", "Unknown"),
            status.get("health", {}).get("status", "Unknown"),
        )

    def request_application_sync(self, name: str, namespace: str) -> None:
        """Ask ArgoCD to sync now by setting the Application's operation field."""
        from kubernetes.client.rest import ApiException

        try:
            self.custom_objects.patch_namespaced_custom_object(
                ARGO_GROUP,
                ARGO_VERSION,
                namespace,
                ARGO_PLURAL,
                name,
                {"operation": {"sync": {}}},
            )
        except ApiException as e:
            raise K8sError(f"Failed to request sync for {name}: {e.reason}", status_code=e.status)
        except HTTPError as e:
            raise K8sError(f"Failed to request sync for {name}: {e}")
