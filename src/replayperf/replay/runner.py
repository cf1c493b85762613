"""
ReplayPerf Concurrency Runner

Runs the session at each configured concurrency level in turn. Each level
starts exactly N workers in a thread pool, waits for all of them, then folds
their results into the level's statistics on the calling thread.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Callable, List, Optional

from .models import Session
from .replay_config import ReplayConfig
from .stats import LevelStats, RunReport, WorkerResult
from .worker import run_worker

logger = logging.getLogger("replayperf.runner")

WorkerFn = Callable[[Session, ReplayConfig, int], WorkerResult]


class ConcurrencyRunner:
    """
    Drive the replay over the concurrency schedule and build the RunReport.

    Levels never overlap. A worker that fails outright (WorkerFatalError or
    any other exception) is left out of the level's distributions and counts
    and recorded in ``LevelStats.failed_workers``; the other workers of the
    level still count.

    Example:
        session = TranscriptParser(config).parse_file('session.txt')
        report = ConcurrencyRunner(session, config).run()
        for level in report.levels.values():
            print(level.concurrency, level.run_times.median)
    """

    def __init__(
        self,
        session: Session,
        config: ReplayConfig,
        worker_fn: Optional[WorkerFn] = None
    ):
        """
        Initialize runner.

        Args:
            session: Parsed session to replay
            config: Replay configuration
            worker_fn: Callable running one worker, defaults to run_worker
        """
        self.session = session
        self.config = config
        self.levels = config.resolve_concurrency_levels()
        self.worker_fn = worker_fn or run_worker

        logging.getLogger("replayperf").setLevel(getattr(logging, config.log_level.upper()))

    def run_level(self, concurrency: int) -> LevelStats:
        """
        Run ``concurrency`` workers at once and merge their results.

        Args:
            concurrency: Number of parallel workers

        Returns:
            LevelStats for this level
        """
        logger.info(f"Running with concurrency of {concurrency}")
        stats = LevelStats(concurrency=concurrency, started=datetime.now())
        start_time = time.perf_counter()

        results: List[WorkerResult] = []
        with ThreadPoolExecutor(max_workers=concurrency) as executor:
            future_to_worker = {
                executor.submit(self.worker_fn, self.session, self.config, worker_id): worker_id
                for worker_id in range(1, concurrency + 1)
            }

            for future in as_completed(future_to_worker):
                worker_id = future_to_worker[future]
                try:
                    results.append(future.result())
                    logger.info(f"Finished worker {worker_id}")
                except Exception as e:
                    logger.error(f"Worker {worker_id} failed: {e}")
                    stats.record_worker_failure(e)

        stats.elapsed = time.perf_counter() - start_time

        for result in results:
            stats.merge(result)

        logger.info(f"Finished testing concurrency {concurrency} in {stats.elapsed:.2f}s "
                    f"({stats.totals.failed_requests} failed requests)")
        return stats

    def run(self) -> RunReport:
        """
        Run every concurrency level in ascending order.

        Returns:
            RunReport with one LevelStats per level
        """
        report = RunReport(session=self.session, config=self.config)
        start_time = time.perf_counter()

        for concurrency in self.levels:
            report.levels[concurrency] = self.run_level(concurrency)

        report.elapsed = time.perf_counter() - start_time
        return report
