"""
ReplayPerf Statistics

Per-worker results and their aggregation into per-concurrency-level and
per-request statistics.

Samples are pooled, never averaged of averages, so merging worker results in
any order or grouping gives the same numbers.
"""

import math
import statistics
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Iterable, Optional, Tuple

from ..common import STATUS_CLASSES
from .models import Session
from .replay_config import ReplayConfig


@dataclass(frozen=True)
class Distribution:
    """Pooled timing samples (seconds) with summary statistics."""

    samples: Tuple[float, ...] = ()

    @classmethod
    def of(cls, values: Iterable[float]) -> 'Distribution':
        return cls(tuple(sorted(values)))

    def merge(self, other: 'Distribution') -> 'Distribution':
        return Distribution.of(self.samples + other.samples)

    @property
    def count(self) -> int:
        return len(self.samples)

    @property
    def min(self) -> float:
        return self.samples[0] if self.samples else 0.0

    @property
    def max(self) -> float:
        return self.samples[-1] if self.samples else 0.0

    @property
    def mean(self) -> float:
        if not self.samples:
            return 0.0
        return math.fsum(self.samples) / len(self.samples)

    @property
    def stddev(self) -> float:
        """Sample standard deviation, 0.0 below two samples."""
        if len(self.samples) < 2:
            return 0.0
        return statistics.stdev(self.samples)

    @property
    def median(self) -> float:
        if not self.samples:
            return 0.0
        return statistics.median(self.samples)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'count': self.count,
            'min': round(self.min, 6),
            'max': round(self.max, 6),
            'mean': round(self.mean, 6),
            'stddev': round(self.stddev, 6),
            'median': round(self.median, 6),
        }


def _empty_status_counts() -> Dict[str, int]:
    return {label: 0 for label in STATUS_CLASSES}


@dataclass
class WorkerResult:
    """
    Everything one worker measured over all of its passes.

    Positions are 1-based session positions; ``position_times[p]`` holds one
    elapsed time per pass for the request at position p.
    """

    failed_requests: int = 0
    successful_requests: int = 0
    bytes_sent: int = 0
    bytes_received: int = 0
    status_counts: Dict[str, int] = field(default_factory=_empty_status_counts)
    run_totals: List[float] = field(default_factory=list)
    position_times: Dict[int, List[float]] = field(default_factory=dict)
    position_errors: Dict[int, int] = field(default_factory=dict)

    def record_time(self, position: int, elapsed: float):
        self.position_times.setdefault(position, []).append(elapsed)

    def record_failure(self, position: int):
        self.failed_requests += 1
        self.position_errors[position] = self.position_errors.get(position, 0) + 1

    def record_status(self, label: Optional[str]):
        if label:
            self.status_counts[label] = self.status_counts.get(label, 0) + 1

    def combine(self, other: 'WorkerResult') -> 'WorkerResult':
        """New result pooling this one and ``other``; neither is modified."""
        status_counts = dict(self.status_counts)
        for label, count in other.status_counts.items():
            status_counts[label] = status_counts.get(label, 0) + count

        position_times = {p: list(times) for p, times in self.position_times.items()}
        for position, times in other.position_times.items():
            position_times.setdefault(position, []).extend(times)

        position_errors = dict(self.position_errors)
        for position, count in other.position_errors.items():
            position_errors[position] = position_errors.get(position, 0) + count

        return WorkerResult(
            failed_requests=self.failed_requests + other.failed_requests,
            successful_requests=self.successful_requests + other.successful_requests,
            bytes_sent=self.bytes_sent + other.bytes_sent,
            bytes_received=self.bytes_received + other.bytes_received,
            status_counts=status_counts,
            run_totals=self.run_totals + other.run_totals,
            position_times=position_times,
            position_errors=position_errors,
        )


@dataclass
class LevelStats:
    """Aggregate of all workers at one concurrency level."""

    concurrency: int
    started: Optional[datetime] = None
    elapsed: float = 0.0
    totals: WorkerResult = field(default_factory=WorkerResult)
    workers_completed: int = 0
    failed_workers: int = 0
    worker_errors: List[str] = field(default_factory=list)

    def merge(self, result: WorkerResult):
        """Fold one worker's result into the level."""
        self.totals = self.totals.combine(result)
        self.workers_completed += 1

    def record_worker_failure(self, error: BaseException):
        """Count a worker that produced no result; it stays out of the distributions."""
        self.failed_workers += 1
        self.worker_errors.append(str(error))

    @property
    def run_times(self) -> Distribution:
        """Distribution of total request time per pass, pooled over workers."""
        return Distribution.of(self.totals.run_totals)

    @property
    def position_distributions(self) -> Dict[int, Distribution]:
        return {p: Distribution.of(times) for p, times in sorted(self.totals.position_times.items())}

    @property
    def position_errors(self) -> Dict[int, int]:
        return dict(sorted(self.totals.position_errors.items()))

    @property
    def counts(self) -> Dict[str, int]:
        counts = {
            'successful_requests': self.totals.successful_requests,
            'failed_requests': self.totals.failed_requests,
            'bytes_sent': self.totals.bytes_sent,
            'bytes_received': self.totals.bytes_received,
        }
        counts.update(self.totals.status_counts)
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            'concurrency': self.concurrency,
            'started': self.started.isoformat() if self.started else None,
            'elapsed_sec': round(self.elapsed, 6),
            'times': self.run_times.to_dict(),
            'counts': self.counts,
            'workers_completed': self.workers_completed,
            'failed_workers': self.failed_workers,
            'worker_errors': list(self.worker_errors),
        }


@dataclass(frozen=True)
class UrlStats:
    """Timing and errors of one session position at one concurrency level."""

    concurrency: int
    position: int
    url: str
    times: Distribution
    errors: int

    def to_dict(self) -> Dict[str, Any]:
        data = {'concurrency': self.concurrency, 'position': self.position, 'url': self.url}
        data.update(self.times.to_dict())
        data['errors'] = self.errors
        return data


@dataclass
class RunReport:
    """
    Results of a full run across all concurrency levels.

    Read-only input for whatever renders or exports the results.
    """

    session: Session
    config: ReplayConfig
    levels: Dict[int, LevelStats] = field(default_factory=dict)
    started: datetime = field(default_factory=datetime.now)
    elapsed: float = 0.0

    @property
    def urls_tested(self) -> int:
        return self.session.urls_tested

    @property
    def total_delay(self) -> float:
        """Delay time included in a single pass."""
        return self.session.total_delay

    @property
    def requests_sent(self) -> int:
        return self.urls_tested * self.config.repeat * sum(self.levels)

    @property
    def failed_requests(self) -> int:
        return sum(level.totals.failed_requests for level in self.levels.values())

    @property
    def failed_workers(self) -> int:
        return sum(level.failed_workers for level in self.levels.values())

    @property
    def has_failures(self) -> bool:
        return bool(self.failed_requests or self.failed_workers)

    def url_stats(self) -> List[UrlStats]:
        """Per-request rows, ordered by session position then concurrency."""
        rows = []
        for position, entry in self.session.requests():
            for concurrency, level in self.levels.items():
                rows.append(UrlStats(
                    concurrency=concurrency,
                    position=position,
                    url=entry.url,
                    times=Distribution.of(level.totals.position_times.get(position, ())),
                    errors=level.totals.position_errors.get(position, 0),
                ))
        return rows

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'summary': {
                'test_run_at': self.started.isoformat(),
                'urls_tested': self.urls_tested,
                'total_delay_sec': round(self.total_delay, 3),
                'requests_sent': self.requests_sent,
                'elapsed_sec': round(self.elapsed, 3),
            },
            'configuration': self.config.to_dict(),
            'levels': [level.to_dict() for level in self.levels.values()],
            'urls': [row.to_dict() for row in self.url_stats()],
        }
