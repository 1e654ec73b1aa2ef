"""
HTTP utilities for forwarding routed requests to the LLM gateway.

The client here does NOT retry on its own: retries belong to the
RetryExecutor so that classification and backoff live in one place. Non-2xx
responses are raised as ``httpx.HTTPStatusError``, which the error classifier
understands through ``exc.response.status_code``.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import httpx

from agent_router.settings import UpstreamSettings


@dataclass
class ProxyConfig:
    """Configuration for proxy and SSL settings."""

    verify: Union[bool, str, None]
    trust_env: bool
    proxy_url: Optional[str]


def get_cert_bundle_path() -> Optional[str]:
    ssl_cert_file = os.environ.get("SSL_CERT_FILE")
    if ssl_cert_file and os.path.exists(ssl_cert_file):
        return ssl_cert_file
    return None


def _resolve_proxy_config(verify: Union[bool, str, None] = None) -> ProxyConfig:
    """Detect proxies from the environment and pick SSL verification."""
    if verify is None:
        verify = get_cert_bundle_path()
    if verify is None:
        verify = True

    proxy_url = (
        os.environ.get("HTTPS_PROXY")
        or os.environ.get("https_proxy")
        or os.environ.get("HTTP_PROXY")
        or os.environ.get("http_proxy")
    )

    return ProxyConfig(
        verify=verify,
        trust_env=proxy_url is not None,
        proxy_url=proxy_url,
    )


def create_async_client(
    timeout: float = 600.0,
    verify: Union[bool, str, None] = None,
    headers: Optional[Dict[str, str]] = None,
    base_url: str = "",
) -> httpx.AsyncClient:
    config = _resolve_proxy_config(verify)
    return httpx.AsyncClient(
        base_url=base_url,
        proxy=config.proxy_url,
        verify=config.verify,
        headers=headers or {},
        timeout=timeout,
        trust_env=config.trust_env,
    )


class UpstreamClient:
    """Posts chat-completion bodies to the gateway with the routed model."""

    def __init__(
        self,
        settings: Optional[UpstreamSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings = settings or UpstreamSettings()
        self._log = logger or logging.getLogger(__name__)
        self._owns_client = client is None
        if client is None:
            headers = {"content-type": "application/json"}
            if self.settings.api_key is not None:
                headers["x-api-key"] = self.settings.api_key.get_secret_value()
            client = create_async_client(
                timeout=self.settings.timeout_seconds,
                headers=headers,
                base_url=self.settings.base_url,
            )
        self._client = client

    async def send_completion(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST ``body`` and return the decoded JSON response.

        Raises ``httpx.HTTPStatusError`` for non-2xx and ``httpx.TransportError``
        subclasses for network failures.
        """
        response = await self._client.post(self.settings.completions_path, json=body)
        if response.is_error:
            self._log.debug(
                f"Upstream returned {response.status_code} for model {body.get('model')}"
            )
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
