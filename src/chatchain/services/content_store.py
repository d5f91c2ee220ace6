"""Content store client for archiving messages on IPFS.

This module provides the ContentStore class that publishes message payloads
to a Pinata-compatible pinning service and resolves them back through an IPFS
gateway. It includes:

- Two-mode operation driven by ``PublishConfig`` (real or demo)
- Deterministic-format placeholder locators when publishing is unavailable
- Circuit breaker pattern for fault tolerance
- Metrics collection for monitoring
"""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
import time
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import httpx
from pydantic import ValidationError

from chatchain.core.settings import Settings, settings
from chatchain.schemas.publish_config import (
    Configured,
    Unconfigured,
    publish_config_adapter,
    publish_config_from_keys,
)
from chatchain.services.errors import EnrichmentUnavailableError, PublishUnavailableError
from chatchain.services.json_store import read_json, write_json

# Configure logger for this module
logger = logging.getLogger(__name__)

# HTTP status codes
HTTP_OK = 200
HTTP_INTERNAL_SERVER_ERROR = 500

FALLBACK_LOCATOR_RE = re.compile(r"^0x[0-9a-f]{64}$")


def generate_fallback_locator() -> str:
    """Return a random locator shaped like a transaction hash."""
    return "0x" + secrets.token_hex(32)


def is_fallback_locator(locator: str | None) -> bool:
    """Return True if ``locator`` was produced in demo / fallback mode."""
    return bool(locator) and FALLBACK_LOCATOR_RE.match(locator or "") is not None


class CircuitState(Enum):
    """Circuit breaker states for fault tolerance."""

    CLOSED = "closed"      # Normal operation - requests allowed
    OPEN = "open"          # Circuit is open - requests blocked
    HALF_OPEN = "half_open"  # Testing if service is back - limited requests allowed


@dataclass
class ContentStoreMetrics:
    """Metrics collection for content store operations."""

    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    fallback_count: int = 0
    total_response_time: float = 0.0
    error_counts_by_type: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def record_request(
        self, response_time: float, success: bool, error_type: str | None = None
    ) -> None:
        """Record a request metric."""
        self.request_count += 1
        self.total_response_time += response_time

        if success:
            self.success_count += 1
        else:
            self.error_count += 1
            if error_type:
                self.error_counts_by_type[error_type] += 1


@dataclass
class CircuitBreaker:
    """Circuit breaker for content store requests."""

    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    success_threshold: int = 1

    _state: CircuitState = CircuitState.CLOSED
    _failure_count: int = 0
    _success_count: int = 0
    _last_failure_time: float = 0.0

    def is_open(self) -> bool:
        """Check if circuit is open."""
        if self._state == CircuitState.OPEN:
            # Check if we should transition to half-open
            if time.time() - self._last_failure_time > self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0
            return self._state == CircuitState.OPEN
        return False

    def record_success(self) -> None:
        """Record a successful operation."""
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._state = CircuitState.CLOSED
                self._failure_count = 0
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self) -> None:
        """Record a failed operation."""
        self._failure_count += 1
        self._last_failure_time = time.time()

        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN

    def get_state(self) -> CircuitState:
        return self._state


class PublishConfigStore:
    """Persists the publish credentials record next to the other local state.

    An absent file means "no record"; the caller then falls back to the keys
    from the environment, and finally to demo mode.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> Configured | Unconfigured | None:
        raw = read_json(self.path, None)
        if raw is None:
            return None
        try:
            return publish_config_adapter.validate_python(raw)
        except ValidationError as exc:
            logger.warning("Ignoring invalid publish config at %s: %s", self.path, exc)
            return None

    def save(self, config: Configured | Unconfigured) -> None:
        write_json(self.path, config.model_dump(mode="json", by_alias=True))

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


def load_publish_config(
    store: PublishConfigStore | None = None,
    app_settings: Settings | None = None,
) -> Configured | Unconfigured:
    """Resolve the active publish config: stored record, then env keys, then demo."""
    app_settings = app_settings or settings
    if store is not None:
        stored = store.load()
        if stored is not None:
            return stored
    return publish_config_from_keys(
        app_settings.pinata_api_key,
        app_settings.pinata_secret_api_key,
    )


class ContentStore:
    """Publish/resolve adapter for the content-addressed blob service.

    ``publish`` never raises: when the store is unconfigured, unreachable or
    tripped, the caller still gets a syntactically valid fallback locator.
    """

    def __init__(
        self,
        config: Configured | Unconfigured | None = None,
        *,
        app_settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        self.settings = app_settings or settings
        self._config: Configured | Unconfigured = config or Unconfigured()
        self._client = client
        self._owns_client = client is None
        self._client_lock = asyncio.Lock()
        self._circuit_breaker = circuit_breaker or CircuitBreaker()
        self.metrics = ContentStoreMetrics()

    @property
    def config(self) -> Configured | Unconfigured:
        return self._config

    @property
    def demo_mode(self) -> bool:
        return isinstance(self._config, Unconfigured)

    def configure(self, config: Configured | Unconfigured) -> None:
        """Switch every subsequent publish to ``config`` in one step."""
        self._config = config
        self._circuit_breaker = CircuitBreaker(
            failure_threshold=self._circuit_breaker.failure_threshold,
            recovery_timeout=self._circuit_breaker.recovery_timeout,
            success_threshold=self._circuit_breaker.success_threshold,
        )
        logger.info("Content store switched to %s mode", "demo" if self.demo_mode else "real")

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.settings.http_timeout_seconds),
                )
        return self._client

    async def close(self) -> None:
        async with self._client_lock:
            if self._client is not None and self._owns_client:
                await self._client.aclose()
                self._client = None

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json_data: Any | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        if self._circuit_breaker.is_open():
            raise PublishUnavailableError("Content store circuit breaker is open")

        client = await self._ensure_client()
        start_time = time.time()
        success = False
        error_type = None

        try:
            response = await client.request(method, url, json=json_data, headers=headers)
            if response.status_code < HTTP_INTERNAL_SERVER_ERROR:
                self._circuit_breaker.record_success()
                success = True
            else:
                self._circuit_breaker.record_failure()
                error_type = f"http_{response.status_code}"
                raise PublishUnavailableError(
                    f"Content store responded with {response.status_code}"
                )
        except httpx.HTTPError as exc:
            self._circuit_breaker.record_failure()
            error_type = "network_error"
            raise PublishUnavailableError(f"Content store request failed: {exc}") from exc
        finally:
            self.metrics.record_request(time.time() - start_time, success, error_type)

        return response

    async def _fallback(self) -> str:
        self.metrics.fallback_count += 1
        delay = max(0.0, float(self.settings.fallback_latency_seconds))
        if delay:
            await asyncio.sleep(delay)
        return generate_fallback_locator()

    async def publish(self, payload: Mapping[str, Any]) -> str:
        """Archive ``payload`` and return its locator (real or fallback)."""
        config = self._config
        if isinstance(config, Unconfigured):
            return await self._fallback()

        try:
            return await self._publish_real(config, payload)
        except PublishUnavailableError as exc:
            logger.warning("Publishing to content store failed, using fallback locator: %s", exc)
            return await self._fallback()

    async def _publish_real(self, config: Configured, payload: Mapping[str, Any]) -> str:
        body = {
            "pinataContent": dict(payload),
            "pinataMetadata": {"name": f"chatchain-message-{payload.get('timestamp', '')}"},
        }
        response = await self._request(
            "POST",
            f"{self.settings.pinata_api_url.rstrip('/')}/pinning/pinJSONToIPFS",
            json_data=body,
            headers={
                "pinata_api_key": config.api_key,
                "pinata_secret_api_key": config.secret_key,
            },
        )
        if response.status_code != HTTP_OK:
            raise PublishUnavailableError(
                f"Unexpected content store response ({response.status_code}) when publishing"
            )
        try:
            body = response.json()
        except ValueError as exc:
            raise PublishUnavailableError("Content store returned a non-JSON body") from exc
        if not isinstance(body, dict):
            raise PublishUnavailableError("Content store returned a non-object body")
        locator = body.get("IpfsHash")
        if not locator:
            raise PublishUnavailableError("Content store response carried no locator")
        logger.debug("Published message payload as %s", locator)
        return str(locator)

    async def resolve(self, locator: str) -> dict[str, Any] | None:
        """Fetch the archived payload for ``locator``; None when unavailable."""
        if self.demo_mode or is_fallback_locator(locator):
            return None
        try:
            return await self._resolve_real(locator)
        except (EnrichmentUnavailableError, PublishUnavailableError) as exc:
            logger.debug("Could not resolve %s: %s", locator, exc)
            return None

    async def _resolve_real(self, locator: str) -> dict[str, Any]:
        response = await self._request(
            "GET", f"{self.settings.ipfs_gateway_url.rstrip('/')}/ipfs/{locator}"
        )
        if response.status_code != HTTP_OK:
            raise EnrichmentUnavailableError(
                f"Gateway responded with {response.status_code} for {locator}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise EnrichmentUnavailableError(f"Gateway returned non-JSON body for {locator}") from exc
        if not isinstance(payload, dict):
            raise EnrichmentUnavailableError(f"Gateway returned non-object payload for {locator}")
        return payload
