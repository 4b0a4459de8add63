"""HTTP probe for a running Authentik release."""

from typing import Any

import httpx

from authdeploy.config import AuthentikConfig
from authdeploy.core.logging import get_logger

logger = get_logger(__name__)


class AuthentikProbe:
    """Checks Authentik's liveness endpoint through the ingress."""

    def __init__(self, config: AuthentikConfig):
        self._config = config

    def check(self, hostname: str) -> dict[str, Any]:
        """Probe the liveness endpoint.

        Returns:
            Dict with ``url``, ``healthy`` and either ``status_code`` or ``error``
        """
        url = f"http://{hostname.rstrip('/')}{self._config.health_path}"
        try:
            response = httpx.get(url, timeout=self._config.http_timeout, follow_redirects=True)
        except httpx.RequestError as e:
            logger.debug("Authentik probe failed", url=url, error=str(e))
            return {"url": url, "healthy": False, "error": str(e)}

        return {
            "url": url,
            "healthy": response.is_success,
            "status_code": response.status_code,
        }
