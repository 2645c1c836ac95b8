from unittest.mock import Mock

import pytest
import requests

from pageinsight.domain.deadline import Deadline
from pageinsight.exceptions import BlockedRedirectError, DeadlineExceeded, HttpFetchError
from pageinsight.services.fetcher import HttpFetcher, charset_from_content_type
from pageinsight.services.safe_transport import LimitedBody


def _session(status=200, headers=None, chunks=(b"<html>ok</html>",)):
    session = Mock()
    resp = session.get.return_value
    resp.status_code = status
    resp.is_redirect = False
    resp.headers = headers if headers is not None else {}
    resp.url = "http://example.com"
    resp.iter_content.return_value = iter(chunks)
    return session


def test_fetch_success():
    session = _session(chunks=[b"hello ", b"world"])
    fetcher = HttpFetcher(session, user_agent='TestAgent')
    response = fetcher.fetch('http://example.com')
    assert response.status_code == 200
    assert isinstance(response.body, LimitedBody)
    assert b"".join(response.body) == b"hello world"


def test_fetch_sends_headers_and_streams():
    session = _session()
    HttpFetcher(session, user_agent='TestAgent', timeout=10).fetch('http://example.com')

    args, kwargs = session.get.call_args
    assert args == ('http://example.com',)
    assert kwargs['headers'] == {'User-Agent': 'TestAgent', 'Accept': 'text/html'}
    assert kwargs['stream'] is True
    assert kwargs['allow_redirects'] is False
    assert kwargs['timeout'] == pytest.approx(10, abs=0.5)


def test_fetch_timeout_clipped_to_deadline():
    session = _session()
    deadline = Deadline(2.5, clock=lambda: 0.0)
    HttpFetcher(session, user_agent='TestAgent', timeout=10).fetch('http://example.com', deadline)
    assert session.get.call_args.kwargs['timeout'] == pytest.approx(2.5)


def test_fetch_after_deadline_does_not_send():
    session = _session()
    now = [0.0]
    deadline = Deadline(1, clock=lambda: now[0])
    now[0] = 5.0

    with pytest.raises(DeadlineExceeded):
        HttpFetcher(session, user_agent='TestAgent').fetch('http://example.com', deadline)
    session.get.assert_not_called()


def test_fetch_wraps_requests_exception():
    session = Mock()
    session.get.side_effect = requests.exceptions.Timeout("timed out")
    fetcher = HttpFetcher(session, user_agent='TestAgent')

    with pytest.raises(HttpFetchError) as exc:
        fetcher.fetch('http://example.com')

    assert "http://example.com" in str(exc.value)
    assert isinstance(exc.value.original, requests.exceptions.Timeout)


def test_fetch_content_type_from_headers():
    session = _session(headers={'Content-Type': 'text/html; charset=ISO-8859-1'})
    response = HttpFetcher(session, user_agent='TestAgent').fetch('http://example.com')
    assert response.content_type == 'text/html; charset=ISO-8859-1'
    assert response.encoding == 'ISO-8859-1'


def test_fetch_missing_content_type():
    session = _session(headers={})
    response = HttpFetcher(session, user_agent='TestAgent').fetch('http://example.com')
    assert response.content_type is None
    assert response.encoding is None


def test_fetch_error_status_is_returned_not_raised():
    session = _session(status=503)
    response = HttpFetcher(session, user_agent='TestAgent').fetch('http://example.com')
    assert response.status_code == 503


def test_body_is_capped():
    session = _session(chunks=[b"x" * 8, b"y" * 8])
    response = HttpFetcher(session, user_agent='TestAgent', max_body_bytes=10).fetch('http://example.com')
    assert b"".join(response.body) == b"x" * 8 + b"y" * 2
    assert response.body.truncated is True


@pytest.mark.parametrize(
    "content_type, expected",
    [
        (None, None),
        ("text/html", None),
        ("text/html; charset=utf-8", "utf-8"),
        ('text/html; Charset="windows-1252"', "windows-1252"),
        ("text/html;charset=", None),
        ("text/html; boundary=x; charset=koi8-r", "koi8-r"),
    ],
)
def test_charset_from_content_type(content_type, expected):
    assert charset_from_content_type(content_type) == expected


class _RedirectResponse:
    """3xx whose body must never be touched."""

    def __init__(self, url, location, status=302):
        self.url = url
        self.status_code = status
        self.is_redirect = True
        self.headers = {"location": location, "Content-Length": str(30 * 1024 * 1024)}
        self.closed = False

    @property
    def content(self):
        raise AssertionError("redirect body was read")

    def iter_content(self, chunk_size=1):
        raise AssertionError("redirect body was read")

    def close(self):
        self.closed = True


def _final_response(url):
    resp = Mock()
    resp.url = url
    resp.status_code = 200
    resp.is_redirect = False
    resp.headers = {"Content-Type": "text/html"}
    resp.iter_content.return_value = iter([b"<title>final</title>"])
    return resp


def _chain(hops):
    """Session whose get() walks /0 -> /1 -> ... -> /hops, then serves a page."""
    responses = [
        _RedirectResponse(f"http://example.com/{i}", f"/{i + 1}") for i in range(hops)
    ]
    responses.append(_final_response(f"http://example.com/{hops}"))
    session = Mock()
    session.get.side_effect = responses
    return session, responses


def test_redirect_hops_are_followed_without_reading_their_bodies():
    session, responses = _chain(2)

    response = HttpFetcher(session, user_agent='TestAgent').fetch('http://example.com/0')

    assert response.status_code == 200
    assert b"".join(response.body) == b"<title>final</title>"
    requested = [c.args[0] for c in session.get.call_args_list]
    assert requested == ['http://example.com/0', 'http://example.com/1', 'http://example.com/2']
    assert all(c.kwargs['allow_redirects'] is False for c in session.get.call_args_list)
    assert responses[0].closed and responses[1].closed


def test_five_redirects_are_allowed():
    session, _ = _chain(5)
    response = HttpFetcher(session, user_agent='TestAgent').fetch('http://example.com/0')
    assert response.status_code == 200


def test_sixth_redirect_fails():
    session, responses = _chain(6)

    with pytest.raises(HttpFetchError) as exc:
        HttpFetcher(session, user_agent='TestAgent').fetch('http://example.com/0')

    assert isinstance(exc.value.original, requests.exceptions.TooManyRedirects)
    assert session.get.call_count == 6
    assert all(r.closed for r in responses[:6])


def test_redirect_to_non_http_scheme_fails():
    hop = _RedirectResponse('http://example.com/', 'file:///etc/passwd')
    session = Mock()
    session.get.return_value = hop

    with pytest.raises(HttpFetchError) as exc:
        HttpFetcher(session, user_agent='TestAgent').fetch('http://example.com/')

    assert isinstance(exc.value.original, BlockedRedirectError)
    assert hop.closed is True
    assert session.get.call_count == 1
