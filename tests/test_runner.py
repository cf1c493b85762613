"""
Tests for ReplayPerf Concurrency Runner

Tests fanning out workers per concurrency level including:
- Worker count per level and level order
- Merging worker results
- Failed worker handling
- End-to-end run with a mocked transport
"""

import threading

import pytest
from unittest.mock import Mock, patch

from src.replayperf.common.errors import WorkerFatalError
from src.replayperf.replay.replay_config import ReplayConfig
from src.replayperf.replay.runner import ConcurrencyRunner
from src.replayperf.replay.stats import WorkerResult


def fake_worker(session, config, worker_id):
    result = WorkerResult(successful_requests=config.repeat, run_totals=[0.1] * config.repeat)
    result.record_time(1, 0.1)
    return result


class TestConcurrencyRunner:
    """Test running concurrency levels."""

    def test_levels_from_config(self, single_request_session):
        config = ReplayConfig(concurrency_step=5, concurrency_max=12)

        runner = ConcurrencyRunner(single_request_session, config, worker_fn=fake_worker)

        assert runner.levels == [1, 5, 10, 12]

    def test_spawns_one_worker_per_concurrency(self, single_request_session):
        """Test each level runs exactly N workers."""
        calls = []
        lock = threading.Lock()

        def counting_worker(session, config, worker_id):
            with lock:
                calls.append(worker_id)
            return fake_worker(session, config, worker_id)

        runner = ConcurrencyRunner(single_request_session, ReplayConfig(concurrency=[3]), worker_fn=counting_worker)
        stats = runner.run_level(3)

        assert sorted(calls) == [1, 2, 3]
        assert stats.workers_completed == 3

    def test_run_merges_results(self, single_request_session):
        config = ReplayConfig(repeat=2, concurrency=[2, 1])

        report = ConcurrencyRunner(single_request_session, config, worker_fn=fake_worker).run()

        assert list(report.levels) == [1, 2]
        assert report.levels[1].counts['successful_requests'] == 2
        assert report.levels[2].counts['successful_requests'] == 4
        assert report.levels[2].run_times.count == 4
        assert report.levels[2].position_distributions[1].count == 2
        assert report.levels[2].started is not None
        assert report.levels[2].elapsed >= 0
        assert report.elapsed >= 0

    def test_levels_do_not_overlap(self, single_request_session):
        """Test a level only starts after the previous one has finished."""
        active = []
        peak = {}
        lock = threading.Lock()

        def tracking_worker(session, config, worker_id):
            with lock:
                active.append(worker_id)
                peak['max'] = max(peak.get('max', 0), len(active))
            result = fake_worker(session, config, worker_id)
            with lock:
                active.remove(worker_id)
            return result

        ConcurrencyRunner(single_request_session, ReplayConfig(concurrency=[1, 2]),
                          worker_fn=tracking_worker).run()

        assert peak['max'] <= 2
        assert active == []

    def test_failed_worker_excluded(self, single_request_session):
        """Test a fatal worker failure doesn't abort the level."""
        def flaky_worker(session, config, worker_id):
            if worker_id == 2:
                raise WorkerFatalError(worker_id, "Can't create HTTP transport")
            return fake_worker(session, config, worker_id)

        config = ReplayConfig(repeat=1, concurrency=[3])
        report = ConcurrencyRunner(single_request_session, config, worker_fn=flaky_worker).run()
        level = report.levels[3]

        assert level.workers_completed == 2
        assert level.failed_workers == 1
        assert "Worker 2" in level.worker_errors[0]
        assert level.counts['successful_requests'] == 2
        assert level.run_times.count == 2
        assert report.has_failures is True

    def test_requests_sent(self, single_request_session):
        config = ReplayConfig(repeat=3, concurrency=[1, 2])

        report = ConcurrencyRunner(single_request_session, config, worker_fn=fake_worker).run()

        assert report.requests_sent == 1 * 3 * 3

    def test_sets_log_level(self, single_request_session):
        with patch('src.replayperf.replay.runner.logging.getLogger') as mock_get_logger:
            ConcurrencyRunner(single_request_session, ReplayConfig(log_level='debug'), worker_fn=fake_worker)

        mock_get_logger.assert_called_with('replayperf')
        mock_get_logger.return_value.setLevel.assert_called_once_with(10)


class TestEndToEnd:
    """Test the runner with real workers and a mocked HTTP transport."""

    @patch('src.replayperf.replay.worker.requests.Session')
    def test_full_run(self, mock_session_class, single_request_session):
        mock_session = Mock()
        mock_session.request.return_value = Mock(
            status_code=200, reason='OK', headers={'Content-Length': '10'}, content=b''
        )
        mock_session_class.return_value = mock_session

        config = ReplayConfig(repeat=2, concurrency=[1, 2])
        report = ConcurrencyRunner(single_request_session, config).run()

        assert report.levels[1].counts['successful_requests'] == 2
        assert report.levels[2].counts['successful_requests'] == 4
        assert report.levels[2].counts['bytes_received'] == 40
        assert report.levels[2].counts['2xx'] == 4
        assert report.failed_requests == 0
        assert report.has_failures is False

    @patch('src.replayperf.replay.worker.requests.Session')
    def test_full_run_with_mismatch(self, mock_session_class, single_request_session):
        mock_session = Mock()
        mock_session.request.return_value = Mock(
            status_code=503, reason='Service Unavailable', headers={}, content=b''
        )
        mock_session_class.return_value = mock_session

        config = ReplayConfig(repeat=2, concurrency=[2])
        report = ConcurrencyRunner(single_request_session, config).run()
        level = report.levels[2]

        assert level.counts['failed_requests'] == 4
        assert level.counts['5xx'] == 4
        assert level.position_errors == {1: 4}
        assert report.url_stats()[0].errors == 4


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
