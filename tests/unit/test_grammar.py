import pytest

from reqfile.error import ParseError
from reqfile.grammar import (
    METHODS,
    DelimiterNode,
    Position,
    RequestNode,
    parse_tree,
)


def test_empty_input():
    assert parse_tree("").items == ()


@pytest.mark.parametrize("text", ["\n", "  \n\t\n", "\r\n\r\n"])
def test_whitespace_only(text):
    assert parse_tree(text).items == ()


def test_delimiters_only():
    tree = parse_tree("###\n###\n\n###")
    assert len(tree.items) == 3
    assert all(isinstance(item, DelimiterNode) for item in tree.items)
    assert tree.requests == ()


@pytest.mark.parametrize("method", METHODS)
def test_request_line(method):
    tree = parse_tree(f"{method} http://test.dev/a?b=c HTTP/1.1\n")
    (request,) = tree.requests
    line = request.request_line
    assert line.method == method
    assert line.uri == "http://test.dev/a?b=c"
    assert line.version == "1.1"
    assert request.headers == ()
    assert request.body is None


def test_request_line_multiple_spaces():
    (request,) = parse_tree("GET   test.dev    HTTP/2\n").requests
    assert request.request_line.uri == "test.dev"
    assert request.request_line.version == "2"


def test_request_line_without_trailing_newline():
    (request,) = parse_tree("DELETE test.dev HTTP/1.1").requests
    assert request.request_line.method == "DELETE"


def test_leading_whitespace_is_skipped():
    (request,) = parse_tree("\n\n  POST test.dev HTTP/1\n").requests
    assert request.position == Position(offset=4, line=3, column=3)


def test_headers():
    text = "POST test.dev HTTP/1\nauthorization: Bearer xxxx\nAccept: */*\n\n"
    (request,) = parse_tree(text).requests
    assert [(h.name, h.value) for h in request.headers] == [
        ("authorization", "Bearer xxxx"),
        ("Accept", "*/*"),
    ]
    assert request.headers[1].position.line == 3
    assert request.body is None


def test_duplicate_headers_keep_order():
    text = "GET test.dev HTTP/1.1\nX-A: 1\nX-B: 2\nX-A: 3\n"
    (request,) = parse_tree(text).requests
    assert [(h.name, h.value) for h in request.headers] == [
        ("X-A", "1"),
        ("X-B", "2"),
        ("X-A", "3"),
    ]


def test_header_separator_is_a_single_whitespace():
    text = "GET test.dev HTTP/1.1\nX-A:\tvalue\nX-B:  spaced\n"
    (request,) = parse_tree(text).requests
    assert request.headers[0].value == "value"
    assert request.headers[1].value == " spaced"


def test_header_value_may_contain_colons():
    text = "GET test.dev HTTP/1.1\nX-Time: 12:30:00\n"
    (request,) = parse_tree(text).requests
    assert request.headers[0].name == "X-Time"
    assert request.headers[0].value == "12:30:00"


def test_body_stops_before_delimiter():
    text = "GET / HTTP/1.1\n\nBODY1\n###\nGET /b HTTP/1.1\n\n"
    first, second = parse_tree(text).requests
    assert first.body is not None
    assert first.body.text == "BODY1\n"
    assert first.body.position.line == 3
    assert second.request_line.uri == "/b"
    assert second.body is None


def test_body_runs_to_end_of_input():
    text = 'POST test.dev HTTP/1.1\nContent-Type: application/json\n\n{"name":"a"}'
    (request,) = parse_tree(text).requests
    assert request.body is not None
    assert request.body.text == '{"name":"a"}'


def test_body_is_not_structurally_parsed():
    body = "line one\n\nGET not.a.request HTTP/1.1\nX: y\n#### not a delimiter\n"
    (request,) = parse_tree(f"PUT test.dev HTTP/1.1\n\n{body}").requests
    assert request.body is not None
    assert request.body.text == body


def test_delimiter_is_only_detected_at_line_start():
    text = "POST test.dev HTTP/1.1\n\na ###\nb\n###\n"
    (request,) = parse_tree(text).requests
    assert request.body is not None
    assert request.body.text == "a ###\nb\n"


def test_example_file():
    text = (
        "GET http://example.com/ HTTP/1.1\n"
        "\n"
        "###\n"
        "\n"
        "POST http://example.com/items HTTP/1.1\n"
        "Content-Type: application/json\n"
        "\n"
        '{"name":"a"}\n'
    )
    tree = parse_tree(text)
    assert [type(item) for item in tree.items] == [
        RequestNode,
        DelimiterNode,
        RequestNode,
    ]
    first, second = tree.requests
    assert first.body is None
    assert second.headers[0].value == "application/json"
    assert second.body is not None
    assert second.body.text == '{"name":"a"}\n'


def test_crlf_line_breaks():
    text = "GET / HTTP/1.1\r\nX-A: 1\r\n\r\nbody\r\n###\r\nGET /b HTTP/1.1\r\n"
    first, second = parse_tree(text).requests
    assert first.headers[0].value == "1"
    assert first.body is not None
    assert first.body.text == "body\r\n"
    assert second.request_line.uri == "/b"
    assert second.position.line == 6


def test_blank_line_without_delimiter_opens_body():
    text = "GET /a HTTP/1.1\n\nGET /b HTTP/1.1\n"
    (request,) = parse_tree(text).requests
    # The blank line opens the body of the first request.
    assert request.body is not None
    assert request.body.text == "GET /b HTTP/1.1\n"


def test_unsupported_method():
    with pytest.raises(ParseError) as exc:
        parse_tree("GET /a HTTP/1.1\n\n###\nPATCH /b HTTP/1.1\n")
    assert exc.value.line == 4
    assert exc.value.column == 1
    assert exc.value.source_line == "PATCH /b HTTP/1.1"
    assert "request method" in exc.value.expected


def test_lowercase_method():
    with pytest.raises(ParseError):
        parse_tree("get /a HTTP/1.1\n")


def test_missing_http_literal():
    with pytest.raises(ParseError) as exc:
        parse_tree("GET /a 1.1\n")
    assert exc.value.expected == "'HTTP/'"
    assert exc.value.column == 8


def test_missing_uri():
    with pytest.raises(ParseError) as exc:
        parse_tree("GET HTTP/1.1\n")
    assert exc.value.expected == "space after request uri"


def test_tab_is_not_a_request_line_separator():
    with pytest.raises(ParseError) as exc:
        parse_tree("GET\t/a HTTP/1.1\n")
    assert exc.value.expected == "space after request method"


def test_missing_version():
    with pytest.raises(ParseError) as exc:
        parse_tree("GET /a HTTP/\n")
    assert exc.value.expected == "HTTP version"


def test_trailing_garbage_after_version():
    with pytest.raises(ParseError) as exc:
        parse_tree("GET /a HTTP/1.1 extra\n")
    assert exc.value.expected == "line break after HTTP version"


def test_malformed_header():
    with pytest.raises(ParseError) as exc:
        parse_tree("GET /a HTTP/1.1\nContent-Type:application/json\n")
    assert exc.value.line == 2
    assert exc.value.column == 1
    assert exc.value.expected == "header or blank line"


def test_empty_header_value():
    with pytest.raises(ParseError):
        parse_tree("GET /a HTTP/1.1\nX-Empty: \n")


def test_malformed_request_fails_whole_file():
    text = "GET /a HTTP/1.1\n\n###\nGET /b HTTP1.1\n\n###\nGET /c HTTP/1.1\n"
    with pytest.raises(ParseError) as exc:
        parse_tree(text)
    assert exc.value.line == 4


def test_delimiter_with_trailing_text_is_not_a_delimiter():
    with pytest.raises(ParseError) as exc:
        parse_tree("### first request\nGET /a HTTP/1.1\n")
    assert exc.value.line == 1


def test_parse_error_message():
    with pytest.raises(ParseError) as exc:
        parse_tree("GET /a HTTP/x\n")
    assert str(exc.value) == (
        "line 1, column 13: expected HTTP version\n"
        "  GET /a HTTP/x\n"
        "              ^"
    )
