"""Recognizer for the request file grammar.

    file         = SOI (delimiter | request)* EOI
    request      = request_line headers? NEWLINE body?
    request_line = method " "+ uri " "+ "HTTP/" version NEWLINE
    method       = "GET" | "POST" | "PUT" | "DELETE"
    uri          = (!WHITESPACE ANY)+
    version      = (ASCII_DIGIT | ".")+
    headers      = header+
    header       = header_name ":" WHITESPACE header_value NEWLINE
    header_name  = (!(NEWLINE | ":") ANY)+
    header_value = (!NEWLINE ANY)+
    body         = (!delimiter ANY)+
    delimiter    = "###" NEWLINE+

NEWLINE is either "\\r\\n" or "\\n", and the same recognizer is used by
every rule. End of input is accepted wherever the last line of the file
would need a NEWLINE. Leading whitespace of the input is skipped. The body
rule only looks for a delimiter at the start of each line.

The parser fails on the first construct that does not match, there is no
recovery and no partial result.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from reqfile.error import ParseError

METHODS: Tuple[str, ...] = ("GET", "POST", "PUT", "DELETE")
"""Request methods accepted by the grammar, in the order they are tried."""

DELIMITER = "###"


@dataclass(frozen=True)
class Position:
    """Location of a syntax node in the source text."""

    offset: int
    line: int
    column: int


@dataclass(frozen=True)
class RequestLineNode:
    method: str
    uri: str
    version: str
    position: Position


@dataclass(frozen=True)
class HeaderNode:
    name: str
    value: str
    position: Position


@dataclass(frozen=True)
class BodyNode:
    text: str
    position: Position


@dataclass(frozen=True)
class RequestNode:
    request_line: RequestLineNode
    headers: Tuple[HeaderNode, ...]
    body: Optional[BodyNode]
    position: Position


@dataclass(frozen=True)
class DelimiterNode:
    position: Position


@dataclass(frozen=True)
class FileNode:
    items: Tuple[Union[RequestNode, DelimiterNode], ...]

    @property
    def requests(self) -> Tuple[RequestNode, ...]:
        return tuple(item for item in self.items if isinstance(item, RequestNode))


class _Cursor:
    """Scans the source text, keeping track of the line and column.

    All the low-level recognizers of the grammar live here so every rule
    matches line breaks and whitespace the same way.
    """

    __slots__ = ("text", "offset", "line", "line_start")

    def __init__(self, text: str):
        self.text = text
        self.offset = 0
        self.line = 1
        self.line_start = 0

    def at_end(self) -> bool:
        return self.offset >= len(self.text)

    def position(self) -> Position:
        return Position(self.offset, self.line, self.offset - self.line_start + 1)

    def mark(self) -> Tuple[int, int, int]:
        return (self.offset, self.line, self.line_start)

    def reset(self, mark: Tuple[int, int, int]):
        self.offset, self.line, self.line_start = mark

    def newline(self) -> bool:
        if self.text.startswith("\r\n", self.offset):
            self.offset += 2
        elif self.text.startswith("\n", self.offset):
            self.offset += 1
        else:
            return False
        self.line += 1
        self.line_start = self.offset
        return True

    def end_of_line(self) -> bool:
        return self.newline() or self.at_end()

    def whitespace(self) -> bool:
        """Matches exactly one space or tab."""
        if self.offset < len(self.text) and self.text[self.offset] in " \t":
            self.offset += 1
            return True
        return False

    def spaces(self) -> int:
        start = self.offset
        while self.text.startswith(" ", self.offset):
            self.offset += 1
        return self.offset - start

    def literal(self, value: str) -> bool:
        if self.text.startswith(value, self.offset):
            self.offset += len(value)
            return True
        return False

    def keyword(self, values: Tuple[str, ...]) -> Optional[str]:
        for value in values:
            if self.literal(value):
                return value
        return None

    def take_while(self, predicate: Callable[[str], bool]) -> str:
        start = self.offset
        end = len(self.text)
        while self.offset < end and predicate(self.text[self.offset]):
            self.offset += 1
        return self.text[start : self.offset]

    def skip_line(self):
        while not self.at_end() and not self.newline():
            self.offset += 1

    def skip_leading_whitespace(self):
        while not self.at_end():
            if not (self.newline() or self.whitespace()):
                break

    def delimiter_ahead(self) -> bool:
        if not self.text.startswith(DELIMITER, self.offset):
            return False
        after = self.offset + len(DELIMITER)
        return (
            after == len(self.text)
            or self.text.startswith("\n", after)
            or self.text.startswith("\r\n", after)
        )

    def fail(self, expected: str) -> ParseError:
        end = self.text.find("\n", self.line_start)
        if end < 0:
            end = len(self.text)
        source_line = self.text[self.line_start : end].rstrip("\r")
        position = self.position()
        return ParseError(
            expected,
            line=position.line,
            column=position.column,
            offset=position.offset,
            source_line=source_line,
        )


def _not_line_break(c: str) -> bool:
    return c != "\r" and c != "\n"


def _not_header_name_end(c: str) -> bool:
    return c != ":" and c != "\r" and c != "\n"


def _not_whitespace(c: str) -> bool:
    return not c.isspace()


def _is_version(c: str) -> bool:
    return c == "." or ("0" <= c <= "9")


def parse_tree(text: str) -> FileNode:
    """Parse the text of a request file into its syntax tree.

    Raises:
        ParseError: if the text does not match the grammar.
    """
    cursor = _Cursor(text)
    cursor.skip_leading_whitespace()

    items = []
    while not cursor.at_end():
        if cursor.delimiter_ahead():
            items.append(_delimiter(cursor))
        else:
            items.append(_request(cursor))
    return FileNode(tuple(items))


def _delimiter(cursor: _Cursor) -> DelimiterNode:
    position = cursor.position()
    cursor.literal(DELIMITER)
    cursor.end_of_line()
    while cursor.newline():
        pass
    return DelimiterNode(position)


def _request(cursor: _Cursor) -> RequestNode:
    position = cursor.position()
    request_line = _request_line(cursor)

    headers = []
    while True:
        header = _header(cursor)
        if header is None:
            break
        headers.append(header)

    if not cursor.end_of_line():
        raise cursor.fail("header or blank line")

    return RequestNode(request_line, tuple(headers), _body(cursor), position)


def _request_line(cursor: _Cursor) -> RequestLineNode:
    position = cursor.position()

    method = cursor.keyword(METHODS)
    if method is None:
        raise cursor.fail(f"request method ({', '.join(METHODS)}) or '{DELIMITER}'")
    if not cursor.spaces():
        raise cursor.fail("space after request method")

    uri = cursor.take_while(_not_whitespace)
    if not uri:
        raise cursor.fail("request uri")
    if not cursor.spaces():
        raise cursor.fail("space after request uri")

    if not cursor.literal("HTTP/"):
        raise cursor.fail("'HTTP/'")
    version = cursor.take_while(_is_version)
    if not version:
        raise cursor.fail("HTTP version")
    if not cursor.end_of_line():
        raise cursor.fail("line break after HTTP version")

    return RequestLineNode(method, uri, version, position)


def _header(cursor: _Cursor) -> Optional[HeaderNode]:
    # A line that is not a header is left untouched for the next rule.
    mark = cursor.mark()
    position = cursor.position()

    name = cursor.take_while(_not_header_name_end)
    if name and cursor.literal(":") and cursor.whitespace():
        value = cursor.take_while(_not_line_break)
        if value and cursor.end_of_line():
            return HeaderNode(name, value, position)

    cursor.reset(mark)
    return None


def _body(cursor: _Cursor) -> Optional[BodyNode]:
    if cursor.at_end() or cursor.delimiter_ahead():
        return None

    position = cursor.position()
    while not cursor.at_end():
        cursor.skip_line()
        if cursor.delimiter_ahead():
            break
    return BodyNode(cursor.text[position.offset : cursor.offset], position)
