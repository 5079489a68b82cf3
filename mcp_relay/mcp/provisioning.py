"""
Per-identity endpoint provisioning.

Some hosted MCP gateways hand out a dedicated server URL per user (so each
user's memory/integrations stay isolated). A provisioner turns an identity
key into such an endpoint before the first connection for that key.
"""

import logging
from abc import ABC, abstractmethod

import httpx

from .config import MCPTransportConfig, ProvisioningConfig
from .exceptions import MCPProvisioningError

logger = logging.getLogger(__name__)

_URL_KEYS = ("strataServerUrl", "serverUrl", "url")


class EndpointProvisioner(ABC):
    """Allocates a dedicated endpoint for an identity."""

    @abstractmethod
    async def provision(self, identity: str, base: MCPTransportConfig) -> MCPTransportConfig:
        """
        Return the endpoint ``identity`` should connect to.

        Args:
            identity: Opaque identity key
            base: The server's configured transport (headers/auth to carry over)

        Raises:
            MCPProvisioningError: If no endpoint could be allocated
        """


class StrataProvisioner(EndpointProvisioner):
    """
    Allocates a per-user "strata" server through an HTTP API.

    POSTs ``{"userId": identity, "servers": [...]}`` with the API key as a
    bearer token and expects a JSON body carrying ``strataServerUrl``.
    """

    def __init__(self, config: ProvisioningConfig, http_client: httpx.AsyncClient | None = None):
        self.config = config
        self._http_client = http_client

    async def _post(self, client: httpx.AsyncClient, identity: str) -> httpx.Response:
        return await client.post(
            self.config.api_url,
            json={"userId": identity, "servers": list(self.config.servers)},
            headers={"Authorization": f"Bearer {self.config.api_key}"},
            timeout=self.config.timeout_seconds,
        )

    async def provision(self, identity: str, base: MCPTransportConfig) -> MCPTransportConfig:
        logger.info("Provisioning endpoint for identity %s", identity)
        try:
            if self._http_client is not None:
                response = await self._post(self._http_client, identity)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, identity)
        except httpx.HTTPError as e:
            raise MCPProvisioningError(
                f"Provisioning request failed: {e}",
                identity=identity,
                details={"error": str(e), "error_type": type(e).__name__},
            ) from e

        if response.status_code >= 400:
            raise MCPProvisioningError(
                f"Provisioning API returned HTTP {response.status_code}",
                identity=identity,
                status_code=response.status_code,
                details={"body": response.text[:500]},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise MCPProvisioningError(
                "Provisioning API returned invalid JSON", identity=identity
            ) from e

        url = next((data.get(key) for key in _URL_KEYS if isinstance(data, dict) and data.get(key)), None)
        if not url:
            raise MCPProvisioningError(
                "Provisioning API response did not include a server URL",
                identity=identity,
                details={"keys": sorted(data) if isinstance(data, dict) else []},
            )

        return MCPTransportConfig(
            type=base.type if base.is_http else "streamable_http",
            url=url,
            headers=dict(base.headers) if base.headers else None,
            auth_type=base.auth_type,
            auth_token=base.auth_token,
        )
