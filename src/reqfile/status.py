import enum
import socket
import ssl
from typing import Any, Callable, Dict, Optional, Type, Union


@enum.unique
class Status(int, enum.Enum):
    """Enumeration of the possible outcomes of executing a request.

    A completed round trip is always OK, whatever HTTP status code the
    server answered with. The other values describe why no response could
    be obtained.
    """

    UNSPECIFIED = 0
    OK = 1
    TIMEOUT = 2
    INVALID_ARGUMENT = 3
    TEMPORARY_ERROR = 4
    PERMANENT_ERROR = 5
    DNS_ERROR = 6
    TCP_ERROR = 7
    TLS_ERROR = 8
    HTTP_ERROR = 9
    CANCELLED = 10

    def __repr__(self):
        return self.name

    def __str__(self):
        return self.name

    @property
    def temporary(self) -> bool:
        return self in {
            Status.TIMEOUT,
            Status.TEMPORARY_ERROR,
            Status.DNS_ERROR,
            Status.TCP_ERROR,
            Status.TLS_ERROR,
            Status.HTTP_ERROR,
        }


Status.UNSPECIFIED.__doc__ = "Status not specified (default)"
Status.OK.__doc__ = "Request completed with a response"
Status.TIMEOUT.__doc__ = "Request did not complete before the timeout"
Status.INVALID_ARGUMENT.__doc__ = "Request could not be sent as written"
Status.TEMPORARY_ERROR.__doc__ = "Request failed with a temporary error"
Status.PERMANENT_ERROR.__doc__ = "Request failed with a permanent error"
Status.DNS_ERROR.__doc__ = "Request host name could not be resolved"
Status.TCP_ERROR.__doc__ = "Connection to the server failed"
Status.TLS_ERROR.__doc__ = "TLS negotiation with the server failed"
Status.HTTP_ERROR.__doc__ = "Server broke the HTTP protocol"
Status.CANCELLED.__doc__ = "Request was cancelled by the caller"

_ERROR_TYPES: Dict[Type[Exception], Union[Status, Callable[[Exception], Status]]] = {}


def status_for_error(error: BaseException) -> Status:
    """Returns a Status that corresponds to the specified error."""
    # See if the error matches one of the registered types.
    status_or_handler = _find_status_or_handler(error, _ERROR_TYPES)
    if status_or_handler is not None:
        if isinstance(status_or_handler, Status):
            return status_or_handler
        return status_or_handler(error)
    # If not, resort to standard error categorization.
    #
    # See https://docs.python.org/3/library/exceptions.html
    if isinstance(error, TimeoutError):
        return Status.TIMEOUT
    elif isinstance(error, socket.gaierror):
        return Status.DNS_ERROR
    elif isinstance(error, ssl.SSLError) or isinstance(error, ssl.CertificateError):
        return Status.TLS_ERROR
    elif isinstance(error, TypeError) or isinstance(error, ValueError):
        return Status.INVALID_ARGUMENT
    elif isinstance(error, ConnectionError):
        return Status.TCP_ERROR
    elif isinstance(error, EOFError) or isinstance(error, OSError):
        return Status.TEMPORARY_ERROR
    return Status.PERMANENT_ERROR


def status_for_cause(error: BaseException) -> Optional[Status]:
    """Walks the chain of causes of an error and returns the status of the
    first one that is more specific than a generic connection failure.

    HTTP clients wrap the low-level socket errors (name resolution, TLS)
    into their own connection errors, the chain is the only place where
    the original failure is still visible.
    """
    seen = set()
    cause = error.__cause__ or error.__context__
    while cause is not None and id(cause) not in seen:
        seen.add(id(cause))
        if isinstance(cause, socket.gaierror):
            return Status.DNS_ERROR
        if isinstance(cause, (ssl.SSLError, ssl.CertificateError)):
            return Status.TLS_ERROR
        cause = cause.__cause__ or cause.__context__
    return None


def register_error_type(
    error_type: Type[Exception],
    status_or_handler: Union[Status, Callable[[Exception], Status]],
):
    """Register an error type to Status mapping.

    The caller can either register a base exception and a handler, which
    derives a Status from errors of this type. Or, if there's only one
    exception to Status mapping to register, the caller can simply pass
    the exception class and the associated Status.
    """
    _ERROR_TYPES[error_type] = status_or_handler


def _find_status_or_handler(obj: Any, types):
    for cls in type(obj).__mro__:
        try:
            return types[cls]
        except KeyError:
            pass

    return None  # not found
