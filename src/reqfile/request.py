from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple, Union, overload

from reqfile.error import BuildError, ParseError
from reqfile.grammar import FileNode, RequestNode, parse_tree

logger = logging.getLogger(__name__)

Header = Tuple[str, str]


@enum.unique
class Method(str, enum.Enum):
    """HTTP methods that can be written in a request file."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    def __repr__(self):
        return self.value

    def __str__(self):
        return self.value

    @classmethod
    def parse(cls, value: str) -> Method:
        """Returns the method spelled exactly as value (case-sensitive).

        Raises:
            BuildError: if value is not one of the supported methods.
        """
        try:
            return cls(value)
        except ValueError:
            raise BuildError(f"unsupported request method: {value!r}") from None


@dataclass(frozen=True)
class Request:
    """One HTTP call read from a request file.

    Headers are kept in the order they were written. A name may appear more
    than once, every occurrence is kept and sent.
    """

    method: Method
    uri: str
    version: str = "1.1"
    headers: Tuple[Header, ...] = ()
    body: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.method, Method):
            object.__setattr__(self, "method", Method.parse(self.method))
        object.__setattr__(self, "headers", tuple(_header(h) for h in self.headers))
        _validate(self)

    @property
    def request_line(self) -> str:
        return f"{self.method} {self.uri} HTTP/{self.version}"

    def header(self, name: str) -> List[str]:
        """Returns all values of the header, matching its name
        case-insensitively, in the order they were written."""
        name = name.lower()
        return [v for (k, v) in self.headers if k.lower() == name]

    def content(self) -> Optional[bytes]:
        """Returns the body encoded as UTF-8, or None when the request has
        no body."""
        if self.body is None:
            return None
        return self.body.encode("utf-8")

    def __str__(self):
        lines = [self.request_line]
        lines.extend(f"{k}: {v}" for (k, v) in self.headers)
        text = "\n".join(lines) + "\n"
        if self.body is not None:
            text += "\n" + self.body
        return text


def _header(header) -> Header:
    if (
        not isinstance(header, (tuple, list))
        or len(header) != 2
        or not all(isinstance(part, str) for part in header)
    ):
        raise BuildError(f"header must be a (name, value) pair of strings: {header!r}")
    return (header[0], header[1])


def _validate(request: Request):
    for name in ("uri", "version"):
        if not isinstance(getattr(request, name), str):
            raise BuildError(f"request {name} must be a string")
    if request.body is not None and not isinstance(request.body, str):
        raise BuildError("request body must be a string")
    if not request.uri or any(c.isspace() for c in request.uri):
        raise BuildError(f"request uri must be non-empty without whitespace: {request.uri!r}")
    if not request.version or any(c != "." and not c.isdigit() for c in request.version):
        raise BuildError(f"invalid HTTP version: {request.version!r}")
    for name, value in request.headers:
        if not name or ":" in name or "\r" in name or "\n" in name:
            raise BuildError(f"invalid header name: {name!r}")
        if not value or "\r" in value or "\n" in value:
            raise BuildError(f"invalid value for header {name!r}: {value!r}")
    if request.body is not None and not request.body:
        raise BuildError("request body must be omitted rather than empty")


@dataclass(frozen=True)
class RequestFile(Sequence[Request]):
    """The requests of a request file, in the order they were written."""

    requests: Tuple[Request, ...] = field(default_factory=tuple)

    @overload
    def __getitem__(self, index: int) -> Request: ...

    @overload
    def __getitem__(self, index: slice) -> Sequence[Request]: ...

    def __getitem__(self, index: Union[int, slice]):
        return self.requests[index]

    def __len__(self) -> int:
        return len(self.requests)

    def __iter__(self) -> Iterator[Request]:
        return iter(self.requests)

    def __str__(self):
        if not self.requests:
            return "No requests found\n"
        return "".join(f"#{i}\n{r}" for i, r in enumerate(self.requests))


def build(node: RequestNode) -> Request:
    """Convert a request node of the syntax tree into a Request.

    Method, uri and version are taken verbatim, headers keep their order
    and duplicates, and the body is attached exactly as captured.

    Raises:
        BuildError: if the request violates a constraint of the model.
    """
    line = node.request_line
    try:
        return Request(
            method=Method.parse(line.method),
            uri=line.uri,
            version=line.version,
            headers=tuple((h.name, h.value) for h in node.headers),
            body=node.body.text if node.body is not None else None,
        )
    except BuildError as e:
        raise BuildError(f"line {node.position.line}: {e}") from e


def build_file(tree: FileNode) -> RequestFile:
    """Convert the syntax tree of a file into a RequestFile."""
    return RequestFile(tuple(build(node) for node in tree.requests))


def parse(text: str) -> RequestFile:
    """Parse the text of a request file.

    Raises:
        ParseError: if the text does not match the request file grammar.
    """
    requests = build_file(parse_tree(text))
    logger.debug("parsed %d request(s)", len(requests))
    return requests


def load(path: str) -> RequestFile:
    """Read and parse a UTF-8 encoded request file.

    Raises:
        OSError: if the file cannot be read.
        ParseError: if the file is not valid UTF-8 or does not match the
            request file grammar.
    """
    with open(path, "rb") as f:
        data = f.read()
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise _decode_error(data, e) from None
    logger.debug("loaded request file %s (%d bytes)", path, len(data))
    return parse(text)


def _decode_error(data: bytes, error: UnicodeDecodeError) -> ParseError:
    text = data[: error.start].decode("utf-8")
    line_start = text.rfind("\n") + 1
    end = data.find(b"\n", error.start)
    if end < 0:
        end = len(data)
    line = data[len(text[:line_start].encode("utf-8")) : end]
    return ParseError(
        "UTF-8 text",
        line=text.count("\n") + 1,
        column=len(text) - line_start + 1,
        offset=len(text),
        source_line=line.decode("utf-8", errors="replace").rstrip("\r"),
    )
