"""
ReplayPerf Common Utilities

Shared helpers for loading transcripts, HTTP dates and saving results.
"""

import json
import sys
from datetime import datetime
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Any, Dict, Optional

STATUS_CLASSES = ('1xx', '2xx', '3xx', '4xx', '5xx')

# Bytes that are not valid UTF-8 (e.g. latin-1 form posts) survive a
# decode/encode round trip as lone surrogates
TRANSCRIPT_ENCODING = 'utf-8'
TRANSCRIPT_ERRORS = 'surrogateescape'


def decode_transcript(raw: bytes) -> str:
    """Decode raw transcript bytes without losing any of them."""
    return raw.decode(TRANSCRIPT_ENCODING, errors=TRANSCRIPT_ERRORS)


def encode_transcript(text: str) -> bytes:
    """Inverse of decode_transcript: the exact bytes that were captured."""
    return text.encode(TRANSCRIPT_ENCODING, errors=TRANSCRIPT_ERRORS)


class TranscriptLoader:
    """
    Loader for captured session transcripts.

    Reads a LiveHTTP headers style text capture from a file, or from stdin
    when the path is "-".

    Example:
        loader = TranscriptLoader("session.txt")
        text = loader.load()
    """

    def __init__(self, file_path: str = '-'):
        """
        Initialize transcript loader.

        Args:
            file_path: Path to transcript file, "-" for stdin
        """
        self.file_path = file_path

    @property
    def is_stdin(self) -> bool:
        return self.file_path in ('-', '')

    def load(self) -> str:
        """
        Load the whole transcript as text.

        Line endings are preserved as captured (CRLF or LF). Bytes that are
        not valid UTF-8 are kept, see decode_transcript.

        Returns:
            Transcript text

        Raises:
            FileNotFoundError: If transcript file doesn't exist
            OSError: If transcript file can't be read
        """
        if self.is_stdin:
            return decode_transcript(sys.stdin.buffer.read())

        path = Path(self.file_path)
        if not path.exists():
            raise FileNotFoundError(f"Transcript file not found: {path}")

        return decode_transcript(path.read_bytes())

    @staticmethod
    def load_from_file(file_path: str) -> str:
        """Convenience method to load a transcript in one call."""
        return TranscriptLoader(file_path).load()


def parse_http_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an HTTP Date header value.

    Args:
        value: Header value, e.g. "Tue, 15 Nov 1994 08:12:31 GMT"

    Returns:
        Timezone-aware datetime, or None if missing or unparsable
    """
    if not value:
        return None

    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None


def status_class(status_code: int) -> Optional[str]:
    """
    Map a status code to its class label ("1xx".."5xx").

    Returns:
        Class label, or None for codes outside 100-599
    """
    label = f"{status_code // 100}xx"
    return label if label in STATUS_CLASSES else None


def save_report(data: Dict[str, Any], output_file: str):
    """
    Save a report dictionary to a JSON file.

    Args:
        data: JSON-serializable report (see RunReport.to_dict)
        output_file: Path to output JSON file
    """
    with open(output_file, 'w') as f:
        json.dump(data, f, indent=2)
