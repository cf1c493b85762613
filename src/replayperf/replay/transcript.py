"""
ReplayPerf Transcript Parser

Turns a LiveHTTP headers style capture into a replayable Session.

A transcript is a sequence of blocks separated by a line of 58 dashes. Each
block holds the page URL, the request as sent (headers, then the body if it
declared a Content-Length) and the response status line with its headers:

    http://www.example.com/login

    POST /login HTTP/1.1
    Host: www.example.com
    Content-Length: 7

    a=1&b=2
    HTTP/1.1 302 Found
    Date: Tue, 15 Nov 1994 08:12:31 GMT
    ----------------------------------------------------------

Delays between requests are inferred from the Date headers of consecutive
responses.
"""

import logging
import re
from typing import List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from requests.structures import CaseInsensitiveDict

from ..common import TranscriptLoader, decode_transcript, encode_transcript, parse_http_date
from ..common.errors import MalformedInputError
from .models import Delay, Request, RequestResponse, Response, Session
from .replay_config import ReplayConfig

logger = logging.getLogger("replayperf.transcript")

SEPARATOR = '-' * 58
DEFAULT_KEEP_ALIVE = 100

_SEPARATOR_RE = re.compile(r'^-{58}[ \t]*(?:\r?\n|\Z)', re.MULTILINE)
_TRAILING_NEWLINE_RE = re.compile(r'\r?\n\Z')
_REQUEST_LINE_RE = re.compile(r'^[A-Z]+ ')
_RESPONSE_MARKER = 'HTTP/'
_CONTENT_LENGTH_RE = re.compile(r'^Content-Length:[ \t]+(\d+)', re.IGNORECASE)
_COOKIE_RE = re.compile(r'^Cookie', re.IGNORECASE)
_SET_COOKIE_RE = re.compile(r'^Set-Cookie', re.IGNORECASE)
_KEEP_ALIVE_MAX_RE = re.compile(r'max=(\d+)')


def _trim(text: str) -> str:
    return _TRAILING_NEWLINE_RE.sub('', text)


class TranscriptLexer:
    """Split raw transcript text into blocks, one per request/response pair."""

    def __init__(self, text: str):
        self.text = text

    def blocks(self) -> List[str]:
        """
        Blocks in capture order, trailing newline trimmed.

        Blank blocks (e.g. after the final separator) are dropped.
        """
        return [_trim(block) for block in _SEPARATOR_RE.split(self.text) if block.strip()]


class _LineCursor:
    """Forward-only cursor over the lines of one block, line endings kept."""

    def __init__(self, block: str):
        self.lines = block.splitlines(keepends=True)
        self.index = 0

    def at_end(self) -> bool:
        return self.index >= len(self.lines)

    def peek(self) -> str:
        return self.lines[self.index]

    def advance(self) -> str:
        line = self.lines[self.index]
        self.index += 1
        return line


def extract_body(request_text: str, content_length: int) -> Tuple[str, bytes]:
    """
    Split accumulated request text into head and body.

    The capture writes the body straight after the headers, so the last
    ``content_length`` bytes of the text are the body.

    Args:
        request_text: Request line, headers and body, trailing newline trimmed
        content_length: Declared Content-Length

    Returns:
        (head text, body bytes)

    Raises:
        MalformedInputError: If fewer than content_length bytes are available
    """
    raw = encode_transcript(request_text)
    if content_length <= 0:
        return request_text, b''

    # The request line and headers must precede the body
    if len(raw) <= content_length:
        raise MalformedInputError(
            f"Content-Length header doesn't match the length of post data: "
            f"declared {content_length}, only {len(raw)} bytes in request block"
        )

    head = decode_transcript(raw[:-content_length])
    return head, raw[-content_length:]


def _parse_header_lines(lines: List[str]) -> CaseInsensitiveDict:
    headers = CaseInsensitiveDict()
    last_name = None
    for line in lines:
        line = line.rstrip('\r\n')
        if not line:
            break
        if line[0] in ' \t' and last_name:
            headers[last_name] = f"{headers[last_name]} {line.strip()}"
            continue
        name, sep, value = line.partition(':')
        if not sep:
            continue
        name = name.strip()
        value = value.strip()
        if name in headers:
            headers[name] = f"{headers[name]}, {value}"
        else:
            headers[name] = value
        last_name = name
    return headers


def parse_request_head(head: str) -> Optional[Tuple[str, str, str, CaseInsensitiveDict]]:
    """
    Parse a request line and headers.

    Returns:
        (method, uri, protocol, headers), or None without a valid request line
    """
    lines = head.splitlines()
    if not lines or not _REQUEST_LINE_RE.match(lines[0]):
        return None

    parts = lines[0].split(None, 2)
    method = parts[0]
    uri = parts[1] if len(parts) > 1 else '/'
    protocol = parts[2] if len(parts) > 2 else 'HTTP/1.1'
    return method, uri, protocol, _parse_header_lines(lines[1:])


def parse_response_head(head: str) -> Optional[Response]:
    """
    Parse a status line and headers into an expected Response.

    Returns:
        Response, or None if the status line is not valid
    """
    lines = head.splitlines()
    if not lines or not lines[0].startswith(_RESPONSE_MARKER):
        return None

    parts = lines[0].split(None, 2)
    if len(parts) < 2 or not parts[1].isdigit():
        return None

    return Response(
        status_code=int(parts[1]),
        reason=parts[2].strip() if len(parts) > 2 else '',
        headers=_parse_header_lines(lines[1:]),
        protocol=parts[0],
    )


def override_host(url: str, hostname: str) -> str:
    """Replace the host of ``url`` with ``hostname``, keeping port and path."""
    parts = urlsplit(url)
    netloc = hostname if parts.port is None else f"{hostname}:{parts.port}"
    if parts.username:
        userinfo = parts.username + (f":{parts.password}" if parts.password else '')
        netloc = f"{userinfo}@{netloc}"
    return urlunsplit(parts._replace(netloc=netloc))


class TranscriptParser:
    """
    Parse captured transcripts into Sessions.

    Example:
        parser = TranscriptParser(ReplayConfig(max_delay=1))
        session = parser.parse(open('session.txt').read())
        print(f"{session.urls_tested} URLs, {session.total_delay}s of delays")
    """

    def __init__(self, config: Optional[ReplayConfig] = None):
        """
        Initialize parser.

        Args:
            config: Replay configuration (delay, hostname, cookie and entry cap options)
        """
        self.config = config or ReplayConfig()

    def parse_file(self, file_path: str) -> Session:
        """Load and parse a transcript file ("-" for stdin)."""
        return self.parse(TranscriptLoader(file_path).load())

    def parse(self, text: str) -> Session:
        """
        Parse transcript text.

        Args:
            text: Raw transcript

        Returns:
            Session with requests and inferred delays in capture order

        Raises:
            MalformedInputError: If a request body doesn't match its Content-Length
        """
        entries = []
        keep_alive = self.config.keep_alive
        total_delay = 0.0
        last_response = None

        for block_no, block in enumerate(TranscriptLexer(text).blocks(), 1):
            parsed = self.parse_block(block)
            if parsed is None:
                logger.debug(f"Skipping block {block_no}: no request/response pair")
                continue

            request, response = parsed

            if not keep_alive:
                keep_alive = self._keep_alive_budget(response)
                if keep_alive:
                    logger.debug(f"Adopted keep-alive budget of {keep_alive} from block {block_no}")

            if self.config.use_delay and last_response is not None:
                delay = self.infer_delay(last_response, response)
                if delay is not None:
                    entries.append(Delay(delay))
                    total_delay += delay

            entries.append(RequestResponse.create(request, response))
            last_response = response

            if self.config.max_entries and len(entries) >= self.config.max_entries:
                logger.debug(f"Entry limit of {self.config.max_entries} reached, stopping")
                break

        session = Session(entries=tuple(entries), keep_alive=keep_alive, total_delay=total_delay)
        logger.info(f"Parsed {session.urls_tested} requests ({len(session)} entries), "
                    f"total delay {total_delay:g}s")
        return session

    def parse_block(self, block: str) -> Optional[Tuple[Request, Response]]:
        """
        Parse a single request/response block.

        Returns:
            (request, expected response), or None if either part is missing
        """
        cursor = _LineCursor(block)
        url = None
        request = None

        while not cursor.at_end():
            line = cursor.peek()

            if url is None:
                cursor.advance()
                if line.strip():
                    url = line.strip()
                continue

            if request is None and _REQUEST_LINE_RE.match(line):
                request = self._read_request(cursor, url)
                if request is None:
                    return None
                continue

            if request is not None and line.startswith(_RESPONSE_MARKER):
                response = self._read_response(cursor)
                if response is None:
                    return None
                return request, response

            cursor.advance()

        return None

    def _read_request(self, cursor: _LineCursor, url: str) -> Optional[Request]:
        text = cursor.advance()
        content_length = None

        while not cursor.at_end():
            line = cursor.peek()
            if line.startswith(_RESPONSE_MARKER):
                break
            cursor.advance()
            if not self.config.reuse_cookies and _COOKIE_RE.match(line):
                continue
            match = _CONTENT_LENGTH_RE.match(line)
            if match:
                content_length = int(match.group(1))
            text += line

        text = _trim(text)
        body = b''
        if content_length:
            text, body = extract_body(text, content_length)

        parsed = parse_request_head(text)
        if parsed is None:
            return None
        method, _uri, protocol, headers = parsed

        if content_length:
            declared = headers.get('Content-Length', '')
            if not declared.isdigit() or int(declared) != len(body):
                raise MalformedInputError(
                    f"Content-Length header doesn't match the length of post data "
                    f"for {method} {url}: declared {declared or 'none'}, got {len(body)} bytes"
                )

        if self.config.hostname:
            if 'Host' in headers:
                headers['Host'] = self.config.hostname
            url = override_host(url, self.config.hostname)

        return Request(method=method, url=url, headers=headers, body=body, protocol=protocol)

    def _read_response(self, cursor: _LineCursor) -> Optional[Response]:
        text = _trim(cursor.advance()) + '\n'

        while not cursor.at_end():
            line = cursor.advance()
            if line.startswith(SEPARATOR):
                break
            if not self.config.reuse_cookies and _SET_COOKIE_RE.match(line):
                continue
            text += line

        return parse_response_head(text)

    @staticmethod
    def _keep_alive_budget(response: Response) -> int:
        value = response.headers.get('Keep-Alive')
        if not value:
            return 0
        match = _KEEP_ALIVE_MAX_RE.search(value)
        return (int(match.group(1)) if match else 0) or DEFAULT_KEEP_ALIVE

    def infer_delay(self, previous: Response, current: Response) -> Optional[float]:
        """
        Delay between two recorded responses, clamped to max_delay.

        Returns:
            Seconds to wait, or None when there is nothing to wait for
            (non-positive difference, or a Date header missing)
        """
        previous_date = parse_http_date(previous.date)
        current_date = parse_http_date(current.date)
        if previous_date is None or current_date is None:
            return None

        try:
            delay = (current_date - previous_date).total_seconds()
        except TypeError:
            # "-0000" dates parse naive, others aware
            logger.debug(f"Can't compare dates {previous.date!r} and {current.date!r}")
            return None
        if delay <= 0:
            return None

        if self.config.max_delay and delay > self.config.max_delay:
            delay = self.config.max_delay
        return delay


def load_session(config: ReplayConfig) -> Session:
    """Read ``config.input`` and parse it into a Session."""
    return TranscriptParser(config).parse_file(config.input)
