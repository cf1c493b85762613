"""
ReplayPerf Replay Module

Session replay and measurement engine.

This module provides:
- Transcript parsing into replayable sessions with inferred delays
- Response matching policies
- Replay workers with per-request timing
- Concurrency runner and aggregated statistics
"""

from .models import Request, Response, RequestResponse, Delay, Session
from .matcher import MatchPolicy, StatusOnly, StatusAndHeaders, matches
from .replay_config import ReplayConfig
from .transcript import TranscriptLexer, TranscriptParser, extract_body, load_session
from .stats import Distribution, WorkerResult, LevelStats, RunReport, UrlStats
from .worker import ReplayWorker, CookieJarPolicy
from .runner import ConcurrencyRunner

__all__ = [
    'Request',
    'Response',
    'RequestResponse',
    'Delay',
    'Session',
    'MatchPolicy',
    'StatusOnly',
    'StatusAndHeaders',
    'matches',
    'ReplayConfig',
    'TranscriptLexer',
    'TranscriptParser',
    'extract_body',
    'load_session',
    'Distribution',
    'WorkerResult',
    'LevelStats',
    'RunReport',
    'UrlStats',
    'ReplayWorker',
    'CookieJarPolicy',
    'ConcurrencyRunner',
]
