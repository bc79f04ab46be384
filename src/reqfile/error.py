from builtins import TimeoutError as _TimeoutError
from typing import TYPE_CHECKING, Dict, Optional, Type, cast

from reqfile.status import (
    Status,
    register_error_type,
    status_for_cause,
    status_for_error,
)

if TYPE_CHECKING:
    from reqfile.request import Request


class ReqfileError(Exception):
    """Base class for reqfile exceptions."""

    _status = Status.UNSPECIFIED

    @property
    def status(self) -> Status:
        return self._status


class ParseError(ReqfileError, ValueError):
    """The text of a request file does not match the grammar.

    The error carries the position where parsing stopped, parsing is
    fail-fast and no request of the file is returned.
    """

    _status = Status.INVALID_ARGUMENT

    def __init__(
        self,
        expected: str,
        line: int,
        column: int,
        offset: int,
        source_line: str = "",
    ):
        self.expected = expected
        self.line = line
        self.column = column
        self.offset = offset
        self.source_line = source_line
        super().__init__(f"line {line}, column {column}: expected {expected}")

    def __str__(self):
        message = super().__str__()
        if not self.source_line:
            return message
        caret = " " * (self.column - 1) + "^"
        return f"{message}\n  {self.source_line}\n  {caret}"


class BuildError(ReqfileError, ValueError):
    """A request violates a constraint of the request model."""

    _status = Status.INVALID_ARGUMENT


class TransportError(ReqfileError):
    """Generic failure to obtain a response from the server. The original
    exception raised by the HTTP client is available as __cause__."""

    _status = Status.TEMPORARY_ERROR

    def __init__(self, message: str, request: Optional["Request"] = None):
        super().__init__(message)
        self.request = request


class TimeoutError(TransportError, _TimeoutError):
    """Request did not complete before the timeout."""

    _status = Status.TIMEOUT


class DNSError(TransportError, ConnectionError):
    """Host name of the request could not be resolved."""

    _status = Status.DNS_ERROR


class TCPError(TransportError, ConnectionError):
    """Connection to the server was refused, reset or lost."""

    _status = Status.TCP_ERROR


class TLSError(TransportError, ConnectionError):
    """TLS handshake or certificate verification failed."""

    _status = Status.TLS_ERROR


class HTTPError(TransportError):
    """Server answered with something that is not valid HTTP."""

    _status = Status.HTTP_ERROR


class InvalidRequestError(TransportError, ValueError):
    """The HTTP client refused to send the request, for example because
    the URI has no scheme or an unsupported one."""

    _status = Status.INVALID_ARGUMENT


class CancelledError(ReqfileError):
    """Execution of a request was cancelled before it completed."""

    _status = Status.CANCELLED


_TRANSPORT_ERRORS: Dict[Status, Type[TransportError]] = {
    Status.TIMEOUT: TimeoutError,
    Status.DNS_ERROR: DNSError,
    Status.TCP_ERROR: TCPError,
    Status.TLS_ERROR: TLSError,
    Status.HTTP_ERROR: HTTPError,
    Status.INVALID_ARGUMENT: InvalidRequestError,
}


def transport_error(
    error: BaseException, request: Optional["Request"] = None
) -> TransportError:
    """Wraps an exception raised by an HTTP client into the TransportError
    subclass matching its status. The caller is expected to raise the result
    `from error`."""
    if isinstance(error, TransportError):
        return error

    status = status_for_error(error)
    if status in (Status.TCP_ERROR, Status.TEMPORARY_ERROR):
        status = status_for_cause(error) or status

    cls = _TRANSPORT_ERRORS.get(status, TransportError)
    message = str(error) or type(error).__name__
    wrapped = cls(message, request)
    # Temporary and permanent failures share the generic class.
    wrapped._status = status
    return wrapped


def reqfile_error_status(error: Exception) -> Status:
    return cast(ReqfileError, error)._status


register_error_type(ReqfileError, reqfile_error_status)
