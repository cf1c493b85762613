"""
ReplayPerf Response Matcher

Decides whether a live response counts as a successful replay of the
recorded one.

Two policies:
- status: status lines must be equal
- status + headers: status lines and every listed header must be equal
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from .models import Response


@dataclass(frozen=True)
class MatchPolicy(ABC):
    """
    Base match policy.

    Not instantiable. Build one with ``from_headers`` or use a variant
    directly.
    """

    @staticmethod
    def from_headers(header_names: Optional[Iterable[str]]) -> 'MatchPolicy':
        """
        Choose a policy from the configured header names.

        Args:
            header_names: Headers that must match, empty for status only

        Returns:
            StatusOnly or StatusAndHeaders
        """
        names = tuple(header_names or ())
        if names:
            return StatusAndHeaders(names)
        return StatusOnly()

    @abstractmethod
    def describe(self) -> str:
        """Short label for reports."""

    @abstractmethod
    def headers_match(self, expected: Response, actual: Response) -> bool:
        """Header comparison applied once the status lines are equal."""


@dataclass(frozen=True)
class StatusOnly(MatchPolicy):
    """Match on the status line alone."""

    def describe(self) -> str:
        return "status line"

    def headers_match(self, expected: Response, actual: Response) -> bool:
        return True


@dataclass(frozen=True)
class StatusAndHeaders(MatchPolicy):
    """Match on the status line and on every header in ``header_names``."""

    header_names: Tuple[str, ...] = ()

    def describe(self) -> str:
        return "status line + " + ", ".join(self.header_names)

    def headers_match(self, expected: Response, actual: Response) -> bool:
        for name in self.header_names:
            expected_value = expected.headers.get(name)
            actual_value = actual.headers.get(name)
            if expected_value is None or actual_value is None:
                return False
            if expected_value != actual_value:
                return False
        return True


def matches(policy: MatchPolicy, expected: Response, actual: Optional[Response]) -> bool:
    """
    Compare a live response against the recorded one.

    A missing live response never matches. Under StatusAndHeaders a header
    missing on either side fails the match.

    Args:
        policy: Match policy for the run
        expected: Response recorded in the transcript
        actual: Response received during replay

    Returns:
        True if the live response is a successful replay

    Raises:
        TypeError: If policy is not a MatchPolicy
    """
    if not isinstance(policy, MatchPolicy):
        raise TypeError(f"Expected a MatchPolicy, got {type(policy).__name__}")

    if actual is None:
        return False

    if expected.status_line != actual.status_line:
        return False

    return policy.headers_match(expected, actual)
