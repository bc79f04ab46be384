import asyncio
import logging
from datetime import timedelta
from time import monotonic
from typing import Optional, Sequence, Tuple

import aiohttp

from reqfile.config import Settings
from reqfile.error import TimeoutError as RequestTimeoutError
from reqfile.error import transport_error
from reqfile.response import Response
from reqfile.status import Status, register_error_type
from reqfile.transport import merge_headers

logger = logging.getLogger(__name__)


class AiohttpTransport:
    """Transport backed by an aiohttp.ClientSession.

    The session is created lazily inside the running event loop, unless
    one is given to the constructor.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings.from_environment()
        self._session = session
        self._owned = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.settings.timeout),
            )
        return self._session

    async def send(
        self,
        method: str,
        url: str,
        headers: Sequence[Tuple[str, str]],
        body: Optional[bytes] = None,
        timeout: Optional[float] = None,
    ) -> Response:
        options: dict = {}
        if timeout is not None:
            options["timeout"] = aiohttp.ClientTimeout(total=timeout)

        logger.debug("sending %s %s", method, url)
        start = monotonic()
        try:
            async with self.session.request(
                method,
                url,
                headers=merge_headers(headers, self.settings.headers),
                data=body,
                allow_redirects=self.settings.follow_redirects,
                **options,
            ) as response:
                content = await response.read()
        except aiohttp.ClientError as e:
            raise transport_error(e) from e
        except asyncio.TimeoutError as e:
            # The total timeout raises a bare asyncio.TimeoutError, which is
            # not the builtin TimeoutError before Python 3.11.
            raise RequestTimeoutError(str(e) or "request timed out") from e

        return Response(
            status_code=response.status,
            headers=tuple(response.headers.items()),
            body=content,
            reason=response.reason or "",
            version=_http_version(response.version),
            elapsed=timedelta(seconds=monotonic() - start),
        )

    async def aclose(self):
        if self._owned and self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.aclose()


def _http_version(version: Optional[aiohttp.HttpVersion]) -> str:
    if version is None:
        return "HTTP/1.1"
    return f"HTTP/{version.major}.{version.minor}"


def aiohttp_error_status(error: Exception) -> Status:
    # See https://docs.aiohttp.org/en/stable/client_reference.html#hierarchy-of-exceptions
    match error:
        case aiohttp.ServerTimeoutError():
            return Status.TIMEOUT
        case aiohttp.ClientConnectorCertificateError() | aiohttp.ClientSSLError():
            return Status.TLS_ERROR
        case aiohttp.ClientConnectorDNSError():
            return Status.DNS_ERROR
        case aiohttp.ClientConnectionError():
            return Status.TCP_ERROR
        case aiohttp.InvalidURL():
            return Status.INVALID_ARGUMENT
        case aiohttp.TooManyRedirects() | aiohttp.ClientPayloadError():
            return Status.HTTP_ERROR
        case aiohttp.ClientResponseError():
            return Status.HTTP_ERROR

    return Status.TEMPORARY_ERROR


register_error_type(aiohttp.ClientError, aiohttp_error_status)
