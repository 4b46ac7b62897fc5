"""
Tunnel Client - Authenticated Backend Forwarding
=================================================

Relays a request to the single configured backend with an injected bearer
credential and a caller-supplied timeout.

Contract:
---------
- URL is the configured base address followed by ``path`` verbatim
- Exactly one ``Authorization: Bearer <secret>`` header is sent; any
  Authorization header supplied by the caller is discarded
- ``timeout_ms > 0`` bounds the whole call; ``timeout_ms <= 0`` disables it
- Timeouts and network failures are returned as ``ForwardError``, never raised
- No retries, no connection reuse between calls
"""

import asyncio
import enum
import json as jsonlib
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Mapping, Optional, Union

import httpx

from ..config import BackendConfig

logger = logging.getLogger(__name__)


# ============================================================================
# Request/Result Types
# ============================================================================

@dataclass
class ForwardOptions:
    """
    Per-call options for a tunnel request.

    Attributes:
        method: HTTP method
        headers: Caller headers (Authorization is always replaced)
        body: Raw request body
        json: JSON-serializable body (ignored when ``body`` is set)
        params: Query parameters appended to the URL
        stream: Leave the response body unread for pass-through streaming
    """

    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    json: Any = None
    params: Optional[Dict[str, str]] = None
    stream: bool = False


class ForwardErrorKind(str, enum.Enum):
    TIMEOUT = "timeout"
    NETWORK = "network"


@dataclass
class ForwardError:
    """Backend unreachable: the call timed out or failed at the network level."""

    message: str
    kind: ForwardErrorKind

    ok = False

    @property
    def error(self) -> str:
        return self.message


@dataclass
class ForwardResponse:
    """Completed backend call. Any HTTP status counts as completed."""

    status_code: int
    headers: httpx.Headers
    body: bytes = b""
    _response: Optional[httpx.Response] = field(default=None, repr=False)
    _client: Optional[httpx.AsyncClient] = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        return jsonlib.loads(self.body)

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        """Yield the unread body of a streaming response, then release it."""
        if self._response is None:
            if self.body:
                yield self.body
            return
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        finally:
            await self.aclose()

    async def aread(self) -> bytes:
        """Read the rest of a streaming body into ``body`` and release it."""
        if self._response is not None:
            try:
                self.body = await self._response.aread()
            finally:
                await self.aclose()
        return self.body

    async def aclose(self) -> None:
        if self._response is not None:
            await self._response.aclose()
            self._response = None
        if self._client is not None:
            await self._client.aclose()
            self._client = None


ForwardResult = Union[ForwardResponse, ForwardError]


# ============================================================================
# Header Construction
# ============================================================================

def build_tunnel_headers(
    shared_secret: str,
    headers: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """
    Merge caller headers with the tunnel credential.

    Every caller-supplied Authorization header is dropped, whatever its case,
    so the injected bearer token is the only one on the wire.

    Args:
        shared_secret: Tunnel secret, sent verbatim
        headers: Caller headers

    Returns:
        Headers dict for the backend request
    """
    merged = {
        k: v for k, v in (headers or {}).items()
        if k.lower() != "authorization"
    }
    merged["Authorization"] = f"Bearer {shared_secret}"
    return merged


# ============================================================================
# Tunnel Client
# ============================================================================

class TunnelClient:
    """
    Forwards requests to the configured backend.

    Args:
        config: Backend address and shared secret
        transport: Optional httpx transport (used by tests)
    """

    def __init__(
        self,
        config: BackendConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self._transport = transport

    def build_url(self, path: str) -> str:
        return f"{self.config.base_url}{path}"

    async def forward(
        self,
        path: str,
        options: Optional[ForwardOptions] = None,
        timeout_ms: float = 0,
    ) -> ForwardResult:
        """
        Send one request through the tunnel.

        Args:
            path: Path on the backend, optionally with a query string
            options: Method, headers and body; defaults to a plain GET
            timeout_ms: Abort the call after this many milliseconds (<= 0: never)

        Returns:
            ForwardResponse for any HTTP status, ForwardError otherwise
        """
        options = options or ForwardOptions()
        url = self.build_url(path)

        # Timeout is enforced below, not by httpx.
        client = httpx.AsyncClient(transport=self._transport, timeout=None)
        request = client.build_request(
            options.method,
            url,
            params=options.params,
            headers=build_tunnel_headers(self.config.shared_secret, options.headers),
            content=options.body,
            json=options.json if options.body is None else None,
        )

        logger.debug(
            "Forwarding request through tunnel",
            extra={"method": options.method, "path": path, "timeout_ms": timeout_ms},
        )

        try:
            send = client.send(request, stream=options.stream)
            if timeout_ms > 0:
                response = await asyncio.wait_for(send, timeout=timeout_ms / 1000)
            else:
                response = await send
        except asyncio.TimeoutError:
            await client.aclose()
            return self._failure(
                f"Request to {path} timed out after {timeout_ms:g}ms",
                ForwardErrorKind.TIMEOUT,
                path,
            )
        except httpx.TimeoutException as e:
            await client.aclose()
            return self._failure(
                f"Request to {path} timed out: {e}",
                ForwardErrorKind.TIMEOUT,
                path,
            )
        except httpx.TransportError as e:
            await client.aclose()
            return self._failure(
                f"Request to {path} failed: {str(e) or type(e).__name__}",
                ForwardErrorKind.NETWORK,
                path,
            )
        except BaseException:
            await client.aclose()
            raise

        logger.debug(
            "Tunnel response received",
            extra={"path": path, "status_code": response.status_code},
        )

        if options.stream:
            return ForwardResponse(
                status_code=response.status_code,
                headers=response.headers,
                _response=response,
                _client=client,
            )

        await client.aclose()
        return ForwardResponse(
            status_code=response.status_code,
            headers=response.headers,
            body=response.content,
        )

    def _failure(self, message: str, kind: ForwardErrorKind, path: str) -> ForwardError:
        logger.warning(
            "Tunnel request failed",
            extra={"path": path, "kind": kind.value, "error": message},
        )
        return ForwardError(message=message, kind=kind)
