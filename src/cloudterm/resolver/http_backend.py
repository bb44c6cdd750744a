"""HTTP address resolver backend.

Queries an instance metadata service over HTTP. The service is expected
to answer ``GET {base_url}/instances/{instance_id}`` with a JSON body
like ``{"state": "running", "public_ip": "203.0.113.5"}`` and a 404 for
unknown instances. The id is percent-encoded into a single path segment.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from cloudterm.domain.models import InstanceRecord
from cloudterm.resolver.base import AddressResolver, ResolverError

logger = logging.getLogger(__name__)


class HttpAddressResolver(AddressResolver):
    """Resolves instances through a remote metadata service."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        path: str = "/instances/{instance_id}",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._path = path
        self._timeout = timeout
        self._client = client or httpx.AsyncClient(base_url=self._base_url, timeout=timeout)

    async def describe(self, instance_id: str) -> InstanceRecord | None:
        """Fetch the instance record via HTTP GET."""
        # Keep the id inside one path segment.
        path = self._path.format(instance_id=quote(instance_id, safe=""))
        try:
            resp = await self._client.get(path)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ResolverError(f"Instance lookup failed: {e}", instance_id) from e

        if resp.status_code == 404:
            logger.debug("Metadata service has no instance %s", instance_id)
            return None
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ResolverError(
                f"Instance lookup failed: HTTP {resp.status_code}", instance_id
            ) from e

        try:
            return InstanceRecord.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise ResolverError(f"Invalid instance metadata: {e}", instance_id) from e

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
