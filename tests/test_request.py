import pytest

from resty.request import Request, split_target


def test_target_keeps_path_parameters_and_query() -> None:
    req = Request("GET", "http://api.test.com/v1/items;jsessionid=abc?x=1")
    assert req.target == "/v1/items;jsessionid=abc?x=1"


def test_non_ascii_path_is_percent_encoded() -> None:
    req = Request("GET", "http://api.test.com/v1/café?q=olá")
    assert req.target == "/v1/caf%C3%A9?q=ol%C3%A1"
    assert req.target.isascii()


def test_existing_escapes_are_untouched() -> None:
    assert split_target("https://api.test.com/a%20b?q=a+b%26c")[3] == "/a%20b?q=a+b%26c"


def test_empty_path_targets_root() -> None:
    assert split_target("http://api.test.com")[3] == "/"


@pytest.mark.parametrize(
    "url, host_header",
    [
        ("http://api.test.com/v1", "api.test.com"),
        ("https://api.test.com:443/v1", "api.test.com"),
        ("http://localhost:8080/v1", "localhost:8080"),
        ("http://[::1]:8080/v1", "[::1]:8080"),
    ],
)
def test_host_header(url: str, host_header: str) -> None:
    assert Request("GET", url).headers["Host"] == host_header


@pytest.mark.parametrize("url", ["ftp://api.test.com/v1", "http:///v1"])
def test_rejects_unusable_url(url: str) -> None:
    with pytest.raises(ValueError):
        Request("GET", url)


def test_caller_headers_are_not_replaced() -> None:
    req = Request("POST", "http://api.test.com/v1", {"host": "proxy.local", "Connection": "keep-alive"}, "abc")
    assert req.headers["host"] == "proxy.local"
    assert "Host" not in req.headers
    assert req.headers["Connection"] == "keep-alive"
    assert req.headers["Content-Length"] == "3"


def test_body_is_utf8_with_matching_length() -> None:
    req = Request("PUT", "http://api.test.com/v1", content="olá")
    assert req.body == "olá".encode("utf-8")
    assert req.headers["Content-Length"] == "4"


def test_no_content_length_without_body() -> None:
    req = Request("get", "http://api.test.com/v1")
    assert req.method == "GET"
    assert req.body == b""
    assert "Content-Length" not in req.headers
    assert req.encoded_headers()[0] == (b"Host", b"api.test.com")
