"""
Shared fixtures for ReplayPerf tests.
"""

import pytest
from requests.structures import CaseInsensitiveDict

from src.replayperf.replay.models import Request, Response, RequestResponse, Session

SEPARATOR = '-' * 58 + '\r\n'

HOME_BLOCK = (
    "http://www.example.com/\r\n"
    "\r\n"
    "GET / HTTP/1.1\r\n"
    "Host: www.example.com\r\n"
    "User-Agent: Mozilla/5.0\r\n"
    "Cookie: sid=abc123\r\n"
    "\r\n"
    "HTTP/1.1 200 OK\r\n"
    "Date: Tue, 15 Nov 2011 08:12:31 GMT\r\n"
    "Content-Type: text/html\r\n"
    "Set-Cookie: sid=def456; path=/\r\n"
    "Keep-Alive: timeout=15, max=50\r\n"
)

LOGIN_BLOCK = (
    "http://www.example.com/login\r\n"
    "\r\n"
    "POST /login HTTP/1.1\r\n"
    "Host: www.example.com\r\n"
    "Content-Type: application/x-www-form-urlencoded\r\n"
    "Content-Length: 7\r\n"
    "\r\n"
    "a=1&b=2\r\n"
    "HTTP/1.1 302 Found\r\n"
    "Date: Tue, 15 Nov 2011 08:12:34 GMT\r\n"
    "Location: http://www.example.com/home\r\n"
)


@pytest.fixture
def separator():
    return SEPARATOR


@pytest.fixture
def home_block():
    return HOME_BLOCK


@pytest.fixture
def login_block():
    return LOGIN_BLOCK


@pytest.fixture
def sample_transcript():
    """Two request/response blocks recorded 3 seconds apart."""
    return HOME_BLOCK + SEPARATOR + LOGIN_BLOCK + SEPARATOR


@pytest.fixture
def single_request_session():
    """Session with one GET expecting 200 OK."""
    request = Request(
        method='GET',
        url='http://localhost:8080/',
        headers=CaseInsensitiveDict({'Host': 'localhost:8080'})
    )
    expected = Response(
        status_code=200,
        reason='OK',
        headers=CaseInsensitiveDict({'Content-Type': 'text/html'})
    )
    return Session(entries=(RequestResponse.create(request, expected),))
