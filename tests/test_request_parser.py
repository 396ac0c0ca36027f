"""Tests for reading and parsing the request line."""

import io

import pytest

from httpserver import (
    MAX_LINE, IncomingRequest, MalformedRequest, UnsupportedMethod,
    parse_request_line, read_request_line,
)


def test_parses_simple_get() -> None:
    assert parse_request_line("GET /index.html HTTP/1.1") == IncomingRequest("GET", "/index.html")


def test_target_keeps_query_string_and_encoding() -> None:
    request = parse_request_line("GET /a%20b.txt?x=1 HTTP/1.0")

    assert request.target_path == "/a%20b.txt?x=1"


def test_target_may_contain_spaces() -> None:
    assert parse_request_line("GET /my file.txt HTTP/1.1").target_path == "/my file.txt"


def test_extra_spaces_after_method_are_skipped() -> None:
    assert parse_request_line("GET   /x HTTP/1.1").target_path == "/x"


@pytest.mark.parametrize("line", [
    "",
    "GET",
    "GET /index.html",
    "GET HTTP/1.1",
    "GET index.html HTTP/1.1",
    "get /index.html HTTP/1.1",
    "GET\t/index.html HTTP/1.1",
    "garbage",
])
def test_malformed_lines(line: str) -> None:
    with pytest.raises(MalformedRequest):
        parse_request_line(line)


@pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "HEAD"])
def test_other_methods_are_unsupported(method: str) -> None:
    with pytest.raises(UnsupportedMethod) as excinfo:
        parse_request_line(f"{method} /index.html HTTP/1.1")

    assert excinfo.value.method == method


def test_unsupported_method_is_a_malformed_request() -> None:
    assert issubclass(UnsupportedMethod, MalformedRequest)


def test_read_request_line_strips_crlf() -> None:
    rfile = io.BytesIO(b"GET /a HTTP/1.1\r\nHost: localhost\r\n\r\n")

    assert read_request_line(rfile) == "GET /a HTTP/1.1"


def test_read_request_line_accepts_bare_lf() -> None:
    assert read_request_line(io.BytesIO(b"GET /a HTTP/1.1\n")) == "GET /a HTTP/1.1"


def test_read_request_line_without_data() -> None:
    with pytest.raises(MalformedRequest):
        read_request_line(io.BytesIO(b""))


def test_read_request_line_too_long() -> None:
    rfile = io.BytesIO(b"GET /" + b"a" * MAX_LINE + b" HTTP/1.1\r\n")

    with pytest.raises(MalformedRequest):
        read_request_line(rfile)
