"""
Pooled HTTP client for the ESPN NFL site API.

One ESPNClient owns one httpx.AsyncClient. Connections are kept alive and
reused across calls, the pool is bounded, and every failure surfaces as a
TransportError so the retry layer has a single type to reason about.
"""

import logging
import threading
from typing import Any, Dict, Optional

import httpx

from .config import get_http_headers, get_http_limits, get_http_timeout
from .config_manager import ConfigManager, get_config_manager
from .errors import TransportError

logger = logging.getLogger(__name__)


class ESPNClient:
    """Keep-alive JSON client with a fixed base URL, timeout and headers."""

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config_manager: Configuration source, defaults to the process default
            transport: Optional httpx transport (tests pass an httpx.MockTransport)
        """
        self._config_manager = config_manager or get_config_manager()
        self._transport = transport
        self._swap_lock = threading.Lock()
        self._client = self._create_client()
        self.generation = 1

    def _create_client(self) -> httpx.AsyncClient:
        http = self._config_manager.config.http
        return httpx.AsyncClient(
            base_url=http.base_url,
            timeout=get_http_timeout(self._config_manager),
            limits=get_http_limits(self._config_manager),
            headers=get_http_headers(self._config_manager),
            verify=http.verify_tls,
            follow_redirects=True,
            transport=self._transport,
        )

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def get_json(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Issue a single GET and return the decoded JSON body.

        Raises:
            TransportError: On timeout, network failure, non-2xx status or an
                undecodable body
        """
        client = self._client
        try:
            response = await client.get(endpoint, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise TransportError(f"Request to {endpoint} timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise TransportError(
                e.response.reason_phrase or "HTTP error",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Network error requesting {endpoint}: {e}") from e
        except ValueError as e:
            raise TransportError(f"Invalid JSON from {endpoint}: {e}") from e

    async def recycle(self) -> None:
        """Close the pooled client and replace it with a fresh one."""
        with self._swap_lock:
            old_client = self._client
            self._client = self._create_client()
            self.generation += 1
        await old_client.aclose()
        logger.info(f"[HTTP] Connection pool recycled (generation {self.generation})")

    async def aclose(self) -> None:
        await self._client.aclose()
