from datetime import timedelta

import pytest

from reqfile.response import (
    BytePayload,
    Response,
    TextPayload,
    decode_text,
    parse_content_type,
)


def test_text_payload_with_charset():
    response = Response(
        200,
        headers=(("Content-Type", "text/plain; charset=ISO-8859-1"),),
        body="café".encode("latin-1"),
    )
    payload = response.payload
    assert isinstance(payload, TextPayload)
    assert payload.text == "café"
    assert payload.charset == "iso8859-1"


def test_text_payload_defaults_to_utf8():
    response = Response(
        200, headers=(("content-type", "text/html"),), body="é".encode()
    )
    assert response.payload == TextPayload("utf-8", "é")


def test_text_payload_with_unknown_charset():
    payload = decode_text(b"abc\xff", "not-a-charset")
    assert payload.charset == "utf-8"
    assert payload.text == "abc�"


def test_byte_payload():
    response = Response(
        200, headers=(("Content-Type", "application/json"),), body=b'{"a": 1}'
    )
    assert response.payload == BytePayload(b'{"a": 1}', ".json")


def test_byte_payload_without_content_type():
    assert Response(200, body=b"\x00\x01").payload == BytePayload(b"\x00\x01")


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, (None, {})),
        ("", (None, {})),
        ("Text/Plain", ("text/plain", {})),
        (
            'text/plain; Charset="utf-8"; format=flowed',
            ("text/plain", {"charset": "utf-8", "format": "flowed"}),
        ),
    ],
)
def test_parse_content_type(value, expected):
    assert parse_content_type(value) == expected


def test_duplicate_headers():
    response = Response(200, headers=(("Set-Cookie", "a=1"), ("set-cookie", "b=2")))
    assert response.header("SET-COOKIE") == ["a=1", "b=2"]


@pytest.mark.parametrize(
    "code,success,client_error,server_error",
    [
        (200, True, False, False),
        (204, True, False, False),
        (404, False, True, False),
        (503, False, False, True),
    ],
)
def test_status_classification(code, success, client_error, server_error):
    response = Response(code)
    assert response.is_success is success
    assert response.is_client_error is client_error
    assert response.is_server_error is server_error


def test_redirect_and_informational():
    assert Response(301).is_redirect
    assert Response(101).is_informational


def test_render():
    response = Response(
        404,
        headers=(("Content-Type", "text/plain"), ("X-A", "1")),
        body=b"not found",
        reason="Not Found",
        elapsed=timedelta(milliseconds=5),
    )
    assert response.render() == (
        "HTTP/1.1 404 Not Found\nContent-Type: text/plain\nX-A: 1\n\nnot found"
    )


def test_render_binary_body_is_lossy():
    response = Response(200, body=b"ok\xff", version="HTTP/2")
    assert response.status_line == "HTTP/2 200"
    assert response.render() == "HTTP/2 200\n\nok�"
