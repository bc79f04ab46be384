import codecs
import mimetypes
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional, Tuple, Union

Header = Tuple[str, str]


@dataclass(frozen=True)
class TextPayload:
    """Body of a text/* response decoded with its declared charset."""

    charset: str
    text: str


@dataclass(frozen=True)
class BytePayload:
    """Body of a response that is not text."""

    data: bytes
    extension: Optional[str] = None


Payload = Union[TextPayload, BytePayload]


@dataclass(frozen=True)
class Response:
    """Response returned by the server for a request.

    A response is a completed round trip whatever the status code is,
    4xx and 5xx responses are not errors at this level.
    """

    status_code: int
    headers: Tuple[Header, ...] = ()
    body: bytes = b""
    reason: str = ""
    version: str = "HTTP/1.1"
    elapsed: Optional[timedelta] = None

    def header(self, name: str) -> List[str]:
        name = name.lower()
        return [v for (k, v) in self.headers if k.lower() == name]

    @property
    def content_type(self) -> Optional[str]:
        values = self.header("content-type")
        return values[0] if values else None

    @property
    def payload(self) -> Payload:
        mime, params = parse_content_type(self.content_type)
        if mime is not None and mime.startswith("text/"):
            return decode_text(self.body, params.get("charset", "utf-8"))
        extension = mimetypes.guess_extension(mime) if mime else None
        return BytePayload(self.body, extension)

    @property
    def text(self) -> str:
        """Lossy UTF-8 view of the body."""
        return self.body.decode("utf-8", errors="replace")

    @property
    def is_informational(self) -> bool:
        return 100 <= self.status_code < 200

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_redirect(self) -> bool:
        return 300 <= self.status_code < 400

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600

    @property
    def status_line(self) -> str:
        return f"{self.version} {self.status_code} {self.reason}".rstrip()

    def render_body(self) -> str:
        payload = self.payload
        if isinstance(payload, TextPayload):
            return payload.text
        return self.text

    def render(self) -> str:
        """Render the entire response: status line, headers, a blank line
        and the body."""
        lines = [self.status_line]
        lines.extend(f"{k}: {v}" for (k, v) in self.headers)
        return "\n".join(lines) + "\n\n" + self.render_body()


def parse_content_type(value: Optional[str]) -> Tuple[Optional[str], dict]:
    """Split a Content-Type header value into its lowercased mime type and
    its parameters."""
    if not value:
        return None, {}
    mime, *rest = value.split(";")
    params = {}
    for param in rest:
        key, sep, val = param.partition("=")
        if sep:
            params[key.strip().lower()] = val.strip().strip('"')
    return mime.strip().lower() or None, params


def decode_text(data: bytes, charset: str) -> TextPayload:
    # Unknown charset labels fall back to UTF-8.
    try:
        codec = codecs.lookup(charset)
    except LookupError:
        codec = codecs.lookup("utf-8")
    return TextPayload(codec.name, data.decode(codec.name, errors="replace"))
