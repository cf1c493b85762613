"""
ReplayPerf Session Model

Typed, immutable representation of a parsed session: requests to replay,
the responses recorded for them, and the delays inferred between them.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple, Union

from requests.structures import CaseInsensitiveDict

from ..common.utils import encode_transcript


def _header_lines(headers: CaseInsensitiveDict) -> str:
    return ''.join(f"{name}: {value}\r\n" for name, value in headers.items())


@dataclass(frozen=True)
class Request:
    """A request as recorded in the transcript, ready to be replayed."""

    method: str
    url: str
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: bytes = b''
    protocol: str = 'HTTP/1.1'

    @property
    def content_length(self) -> Optional[int]:
        """Declared Content-Length, or None when absent or not a number."""
        value = self.headers.get('Content-Length')
        try:
            return int(value) if value is not None else None
        except ValueError:
            return None

    def serialize(self) -> bytes:
        """Wire form of the request: request line, headers, blank line, body."""
        request_line = f"{self.method} {self.url} {self.protocol}".rstrip()
        head = f"{request_line}\r\n{_header_lines(self.headers)}\r\n"
        return encode_transcript(head) + self.body


@dataclass(frozen=True)
class Response:
    """
    An HTTP response, either recorded (expected) or received live.

    Only the status line and headers take part in matching.
    """

    status_code: int
    reason: str = ''
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: bytes = b''
    protocol: str = 'HTTP/1.1'

    @property
    def status_line(self) -> str:
        return f"{self.status_code} {self.reason}".rstrip()

    @property
    def date(self) -> Optional[str]:
        return self.headers.get('Date')

    def received_bytes(self) -> int:
        """
        Bytes received for this response.

        Prefers a non-zero declared Content-Length, otherwise the size of the
        serialized headers plus the body.
        """
        declared = self.headers.get('Content-Length')
        if declared:
            try:
                size = int(declared)
                if size:
                    return size
            except ValueError:
                pass
        return len(encode_transcript(_header_lines(self.headers))) + len(self.body)

    @classmethod
    def from_requests(cls, response) -> 'Response':
        """Build from a live ``requests.Response``."""
        return cls(
            status_code=int(response.status_code),
            reason=response.reason or '',
            headers=CaseInsensitiveDict(response.headers or {}),
            body=response.content or b'',
        )


@dataclass(frozen=True)
class RequestResponse:
    """A recorded request with the response it received at capture time."""

    request: Request
    expected_response: Response
    request_bytes: int

    @classmethod
    def create(cls, request: Request, expected_response: Response) -> 'RequestResponse':
        """Create an entry, fixing request_bytes to the serialized size."""
        return cls(
            request=request,
            expected_response=expected_response,
            request_bytes=len(request.serialize()),
        )

    @property
    def url(self) -> str:
        return self.request.url


@dataclass(frozen=True)
class Delay:
    """Pause inserted between two requests, in seconds."""

    seconds: float


SessionEntry = Union[RequestResponse, Delay]


@dataclass(frozen=True)
class Session:
    """
    Ordered, read-only replay sequence shared by all workers.

    Positions are 1-based indexes into ``entries`` (delays included), so a
    position identifies the same request across runs and workers.
    """

    entries: Tuple[SessionEntry, ...] = ()
    keep_alive: int = 0
    total_delay: float = 0.0

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[SessionEntry]:
        return iter(self.entries)

    def positions(self) -> Iterator[Tuple[int, SessionEntry]]:
        """Iterate (position, entry) pairs in replay order."""
        return enumerate(self.entries, 1)

    def requests(self) -> List[Tuple[int, RequestResponse]]:
        """All (position, RequestResponse) pairs, skipping delays."""
        return [(pos, e) for pos, e in self.positions() if isinstance(e, RequestResponse)]

    @property
    def urls_tested(self) -> int:
        return len(self.requests())
