"""HTTP transports that send requests for the executor.

A transport owns the network: connection reuse, TLS, redirects and the
timeout policy. Exceptions of its client library are raised as the
TransportError matching their status, with the client exception as cause.
"""

import logging
from datetime import timedelta
from time import monotonic
from typing import List, Optional, Protocol, Sequence, Tuple

import httpx

from reqfile.config import Settings
from reqfile.error import transport_error
from reqfile.response import Response
from reqfile.status import Status, register_error_type

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Protocol for HTTP transports."""

    async def send(
        self,
        method: str,
        url: str,
        headers: Sequence[Tuple[str, str]],
        body: Optional[bytes] = None,
        timeout: Optional[float] = None,
    ) -> Response:
        """Send a request and return the response of the server."""
        ...

    async def aclose(self):
        """Release the connections held by the transport."""
        ...


class HttpxTransport:
    """Transport backed by an httpx.AsyncClient."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        """Create a transport.

        Args:
            client: The client to send requests with. When omitted, the
                transport creates one configured from the settings, and
                closes it in aclose().

            settings: Timeout, default headers and redirect policy. Loaded
                from the environment when omitted.
        """
        self.settings = settings or Settings.from_environment()
        self._owned = client is None
        if client is None:
            client = httpx.AsyncClient(
                timeout=self.settings.timeout,
                follow_redirects=self.settings.follow_redirects,
            )
        self.client = client

    async def send(
        self,
        method: str,
        url: str,
        headers: Sequence[Tuple[str, str]],
        body: Optional[bytes] = None,
        timeout: Optional[float] = None,
    ) -> Response:
        logger.debug("sending %s %s", method, url)
        start = monotonic()
        try:
            request = self.client.build_request(
                method,
                url,
                headers=merge_headers(headers, self.settings.headers),
                content=body,
                timeout=timeout if timeout is not None else self.settings.timeout,
            )
            response = await self.client.send(
                request, stream=True, follow_redirects=self.settings.follow_redirects
            )
            try:
                content = await response.aread()
            finally:
                await response.aclose()
        except (httpx.HTTPError, httpx.StreamError, httpx.InvalidURL) as e:
            raise transport_error(e) from e

        # Response.elapsed is only set by httpx for streams it closes itself,
        # not for responses whose content was already loaded.
        return Response(
            status_code=response.status_code,
            headers=tuple(response.headers.multi_items()),
            body=content,
            reason=response.reason_phrase,
            version=response.http_version,
            elapsed=timedelta(seconds=monotonic() - start),
        )

    async def aclose(self):
        if self._owned:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.aclose()


def merge_headers(
    headers: Sequence[Tuple[str, str]], defaults: Sequence[Tuple[str, str]]
) -> List[Tuple[str, str]]:
    """Returns the request headers preceded by the defaults whose name does
    not appear in the request headers."""
    names = {name.lower() for (name, _) in headers}
    merged = [(k, v) for (k, v) in defaults if k.lower() not in names]
    merged.extend(headers)
    return merged


def httpx_error_status(error: Exception) -> Status:
    # See https://www.python-httpx.org/exceptions/
    match error:
        case httpx.TimeoutException():
            return Status.TIMEOUT
        case httpx.InvalidURL():
            return Status.INVALID_ARGUMENT
        case httpx.UnsupportedProtocol():
            return Status.INVALID_ARGUMENT
        case httpx.ProtocolError():
            return Status.HTTP_ERROR
        case httpx.ConnectError() | httpx.ReadError() | httpx.WriteError():
            return Status.TCP_ERROR
        case httpx.TooManyRedirects():
            return Status.HTTP_ERROR

    return Status.TEMPORARY_ERROR


# Register base exceptions.
register_error_type(httpx.HTTPError, httpx_error_status)
register_error_type(httpx.StreamError, httpx_error_status)
register_error_type(httpx.InvalidURL, httpx_error_status)
