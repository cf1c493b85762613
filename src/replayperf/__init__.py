"""
ReplayPerf - real life web performance testing

Replays a captured browsing session against a server at increasing
concurrency and reports latency, throughput and failures per level.
"""

__version__ = '1.0.0'
