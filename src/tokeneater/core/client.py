"""Remote usage client.

Stateless fetch of a UsageSnapshot given a credential and an optional
SOCKS5 proxy. Decoding is tolerant: every bucket is decoded on its own and
a bucket that fails to decode is dropped instead of failing the payload.
"""

from __future__ import annotations

import logging
from abc import ABC
from abc import abstractmethod
from datetime import UTC
from datetime import datetime

import httpx
import msgspec

from tokeneater import __version__
from tokeneater.config.settings import DEFAULT_TIMEOUT
from tokeneater.errors import MalformedResponseError
from tokeneater.errors import UsageClientError
from tokeneater.errors import classify_exception
from tokeneater.errors import classify_network_error
from tokeneater.errors import error_for_response
from tokeneater.models import BUCKET_KEYS
from tokeneater.models import Credential
from tokeneater.models import ProxyConfig
from tokeneater.models import UsageBucket
from tokeneater.models import UsageSnapshot

logger = logging.getLogger(__name__)

USAGE_URL = "https://api.anthropic.com/api/oauth/usage"
ANTHROPIC_BETA = "oauth-2025-04-20"


class _WireBucket(msgspec.Struct):
    utilization: float
    resets_at: str | None = None


def _parse_resets_at(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _parse_bucket(raw: object) -> UsageBucket | None:
    if raw is None:
        return None
    try:
        wire = msgspec.convert(raw, type=_WireBucket)
    except msgspec.ValidationError:
        return None
    utilization = min(100.0, max(0.0, wire.utilization))
    return UsageBucket(utilization=utilization, resets_at=_parse_resets_at(wire.resets_at))


def parse_usage_payload(content: bytes | str) -> UsageSnapshot:
    """Parse a usage response body.

    Actual API format (2025-01):
    {
        "five_hour": { "utilization": 0.0, "resets_at": "2026-01-17T06:59:59.846865+00:00" },
        "seven_day": { "utilization": 27.0, "resets_at": "2026-01-22T18:59:59Z" },
        "seven_day_sonnet": { "utilization": 3.0, "resets_at": "..." },
        "extra_usage": { "is_enabled": false, ... }
    }

    Raises:
        MalformedResponseError: Body is not a JSON object or has no usable bucket
    """
    try:
        data = msgspec.json.decode(content)
    except msgspec.DecodeError as e:
        raise MalformedResponseError(f"Invalid JSON in usage response: {e}") from e

    if not isinstance(data, dict):
        raise MalformedResponseError("Usage response is not a JSON object")

    buckets = {}
    for key in BUCKET_KEYS:
        bucket = _parse_bucket(data.get(key))
        if bucket is not None:
            buckets[key] = bucket
        elif data.get(key) is not None:
            logger.debug("Dropping undecodable bucket %s", key)

    snapshot = UsageSnapshot(**buckets)
    if snapshot.is_empty():
        raise MalformedResponseError("Usage response contained no usable buckets")
    return snapshot


class ConnectionTestResult(msgspec.Struct, frozen=True):
    """Outcome of a one-off connection test."""

    success: bool
    message: str


class UsageClient(ABC):
    """Fetches usage snapshots from the remote account API."""

    @abstractmethod
    async def fetch(
        self, credential: Credential, proxy: ProxyConfig | None = None
    ) -> UsageSnapshot:
        """Fetch one snapshot.

        Raises:
            AuthFailureError: 401/403
            HTTPStatusFailure: Any other non-2xx status
            NetworkFailure: Transport failure
            MalformedResponseError: No decodable bucket
        """
        ...

    async def test_connection(
        self, credential: Credential, proxy: ProxyConfig | None = None
    ) -> ConnectionTestResult:
        """Fetch once and report the outcome without raising."""
        try:
            snapshot = await self.fetch(credential, proxy)
        except Exception as e:
            error = classify_exception(e)
            return ConnectionTestResult(success=False, message=error.message)

        if snapshot.five_hour is not None:
            message = f"Connected. Session usage: {snapshot.five_hour.percent()}%"
        else:
            message = "Connected."
        return ConnectionTestResult(success=True, message=message)

    async def aclose(self) -> None:
        """Release any held connections."""


class HttpUsageClient(UsageClient):
    """Usage client backed by httpx.

    One AsyncClient is kept per distinct proxy setting so connections are
    pooled across polls.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        url: str = USAGE_URL,
    ) -> None:
        self.timeout = timeout
        self.url = url
        self._transport = transport
        self._clients: dict[str | None, httpx.AsyncClient] = {}

    def _client_for(self, proxy: ProxyConfig | None) -> httpx.AsyncClient:
        proxy_url = proxy.url if proxy is not None and proxy.enabled else None
        client = self._clients.get(proxy_url)
        if client is None:
            kwargs = {
                "timeout": httpx.Timeout(self.timeout, connect=10.0),
                "limits": httpx.Limits(max_connections=5, max_keepalive_connections=2),
                "follow_redirects": True,
            }
            if self._transport is not None:
                kwargs["transport"] = self._transport
            elif proxy_url is not None:
                kwargs["proxy"] = proxy_url
            client = httpx.AsyncClient(**kwargs)
            self._clients[proxy_url] = client
        return client

    def _headers(self, credential: Credential) -> dict[str, str]:
        return {
            **credential.to_headers(),
            "anthropic-beta": ANTHROPIC_BETA,
            "Accept": "application/json",
            "User-Agent": f"tokeneater/{__version__}",
        }

    async def fetch(
        self, credential: Credential, proxy: ProxyConfig | None = None
    ) -> UsageSnapshot:
        client = self._client_for(proxy)
        logger.debug("Fetching usage with credential %s", credential.fingerprint)

        try:
            response = await client.get(self.url, headers=self._headers(credential))
        except httpx.TransportError as e:
            raise classify_network_error(e) from e

        if error := error_for_response(response):
            raise error

        return parse_usage_payload(response.content)

    async def aclose(self) -> None:
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()


class MemoryUsageClient(UsageClient):
    """Scripted client for tests and embedding.

    Each fetch pops the next scripted result; a scripted exception is
    raised. With one result left, it repeats forever.
    """

    def __init__(self, results: list[UsageSnapshot | Exception] | None = None) -> None:
        self.results: list[UsageSnapshot | Exception] = list(results or [])
        self.calls: list[Credential] = []
        self.proxies: list[ProxyConfig | None] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def fetch(
        self, credential: Credential, proxy: ProxyConfig | None = None
    ) -> UsageSnapshot:
        self.calls.append(credential)
        self.proxies.append(proxy)
        if not self.results:
            raise UsageClientError("No scripted result")

        result = self.results[0] if len(self.results) == 1 else self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result
