"""
ReplayPerf Replay Worker

One worker replays the whole session ``repeat`` times against the live
server, timing every request and checking every response.
"""

import logging
import time
from enum import Enum
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from requests.cookies import RequestsCookieJar
from requests.structures import CaseInsensitiveDict
from urllib3.util.retry import Retry

from ..common import status_class
from ..common.errors import RequestFailure, WorkerFatalError
from .matcher import matches
from .models import Delay, Request, RequestResponse, Response, Session
from .replay_config import ReplayConfig
from .stats import WorkerResult

logger = logging.getLogger("replayperf.worker")


class CookieJarPolicy(Enum):
    """
    How long cookies set by the server live inside one worker.

    PER_PASS: every pass starts with an empty jar, like a new visitor.
    PER_WORKER: one jar for all passes of the worker (cookie reuse).
    """

    PER_PASS = 'per_pass'
    PER_WORKER = 'per_worker'

    @classmethod
    def for_config(cls, config: ReplayConfig) -> 'CookieJarPolicy':
        return cls.PER_WORKER if config.reuse_cookies else cls.PER_PASS


class ReplayWorker:
    """
    Replay a Session ``config.repeat`` times and collect a WorkerResult.

    Every pass gets a fresh transport. Failed requests are counted and the
    pass goes on; nothing is retried.

    Example:
        worker = ReplayWorker(session, ReplayConfig(repeat=2), worker_id=1)
        result = worker.run()
        print(f"{result.failed_requests} failed")
    """

    def __init__(self, session: Session, config: ReplayConfig, worker_id: int = 1):
        """
        Initialize worker.

        Args:
            session: Parsed session, shared read-only with other workers
            config: Replay configuration (repeat, timeout, matching, cookies)
            worker_id: Number used in log tags
        """
        self.session = session
        self.config = config
        self.worker_id = worker_id
        self.match_policy = config.match_policy()
        self.cookie_policy = CookieJarPolicy.for_config(config)
        self._worker_jar: Optional[RequestsCookieJar] = None

    def cookie_jar_for_pass(self) -> RequestsCookieJar:
        """Cookie jar for the next pass, according to the cookie policy."""
        if self.cookie_policy is CookieJarPolicy.PER_WORKER:
            if self._worker_jar is None:
                self._worker_jar = RequestsCookieJar()
            return self._worker_jar
        return RequestsCookieJar()

    def _create_transport(self) -> requests.Session:
        """
        Create the HTTP session for one pass.

        Raises:
            WorkerFatalError: If the transport can't be set up
        """
        try:
            transport = requests.Session()
            # Only the recorded headers go on the wire
            transport.headers.clear()

            adapter = HTTPAdapter(
                pool_connections=1,
                pool_maxsize=self.session.keep_alive or 1,
                max_retries=Retry(total=0, redirect=0, raise_on_redirect=False, raise_on_status=False),
            )
            transport.mount("http://", adapter)
            transport.mount("https://", adapter)
            transport.cookies = self.cookie_jar_for_pass()
        except (OSError, ValueError, TypeError, requests.RequestException) as e:
            raise WorkerFatalError(self.worker_id, f"Can't create HTTP transport: {e}") from e

        return transport

    def _send(self, transport: requests.Session, request: Request) -> Response:
        """
        Send one request.

        Raises:
            RequestFailure: On transport error, timeout or missing response
        """
        headers = CaseInsensitiveDict(request.headers)
        if not self.session.keep_alive:
            headers['Connection'] = 'close'

        try:
            live = transport.request(
                method=request.method,
                url=request.url,
                headers=headers,
                data=request.body or None,
                timeout=self.config.timeout,
                allow_redirects=False
            )
        except requests.RequestException as e:
            raise RequestFailure(f"{type(e).__name__}: {e}") from e

        if live is None:
            raise RequestFailure("No response")

        return Response.from_requests(live)

    def _replay_entry(
        self,
        transport: requests.Session,
        entry: RequestResponse,
        position: int,
        tag: str,
        result: WorkerResult
    ) -> float:
        """Replay one request, record its outcome and return its elapsed time."""
        logger.debug(f"{tag} REQ: {entry.request.method} {entry.request.url}")

        response = None
        failure = None
        start_time = time.perf_counter()
        try:
            response = self._send(transport, entry.request)
        except RequestFailure as e:
            failure = e
        elapsed = time.perf_counter() - start_time

        result.record_time(position, elapsed)

        if response is not None:
            result.bytes_received += response.received_bytes()
            result.record_status(status_class(response.status_code))

            if not matches(self.match_policy, entry.expected_response, response):
                failure = RequestFailure(
                    f"expected {entry.expected_response.status_line!r}, got {response.status_line!r}",
                    status_line=response.status_line
                )

        if failure is not None:
            result.record_failure(position)
            logger.warning(f"{tag} RES FAILED: {failure}")
        else:
            result.successful_requests += 1
            logger.debug(f"{tag} RES: {response.status_line} ({elapsed * 1000:.0f}ms)")

        return elapsed

    def _run_pass(self, transport: requests.Session, run_no: int, result: WorkerResult) -> float:
        """Replay every session entry once; returns the summed request time."""
        pass_total = 0.0

        for position, entry in self.session.positions():
            tag = f"[{self.worker_id}.{run_no}.{position}]"

            if isinstance(entry, Delay):
                logger.debug(f"{tag} Waiting for {entry.seconds:g}s")
                time.sleep(entry.seconds)
                continue

            result.bytes_sent += entry.request_bytes
            pass_total += self._replay_entry(transport, entry, position, tag, result)

        return pass_total

    def run(self) -> WorkerResult:
        """
        Run all passes.

        Returns:
            WorkerResult for this worker

        Raises:
            WorkerFatalError: If a pass can't get a transport
        """
        result = WorkerResult()

        for run_no in range(1, self.config.repeat + 1):
            logger.info(f"Starting run {run_no} (worker {self.worker_id})")
            transport = self._create_transport()
            try:
                result.run_totals.append(self._run_pass(transport, run_no, result))
            finally:
                transport.close()
            logger.info(f"Finished run {run_no} (worker {self.worker_id})")

        return result


def run_worker(session: Session, config: ReplayConfig, worker_id: int) -> WorkerResult:
    """Entry point for pool submission."""
    return ReplayWorker(session, config, worker_id).run()
