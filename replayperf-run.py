#!/usr/bin/env python3
"""
ReplayPerf CLI

Replay a session recorded with the LiveHTTP headers browser extension
against a web server, at one or more concurrency levels.

Examples:
    # Cap delays at 1 second, run with concurrency 1, 5, 10, 15 and 20
    python3 replayperf-run.py -md 1 -cm 20 -o results.json < session.txt

    # No delays, Content-Length must match too, concurrency 20 and 50
    python3 replayperf-run.py -nd -m Content-Length -t 5 -c 20 -c 50 -i session.txt

    # Options from a YAML file, hostname overridden on the command line
    python3 replayperf-run.py --config perf.yaml -H staging.example.com
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from replayperf import __version__
from replayperf.common import ReplayPerfError, save_report
from replayperf.replay import ReplayConfig, ConcurrencyRunner, load_session


def build_config(args) -> ReplayConfig:
    """
    Build the run configuration from a YAML file and command-line flags.

    Flags given on the command line win over the YAML file.
    """
    config = ReplayConfig.from_yaml(args.config) if args.config else ReplayConfig()

    if args.quiet:
        log_level = 'error'
    elif args.verbose:
        log_level = 'info' if args.verbose == 1 else 'debug'
    else:
        log_level = None

    return config.with_overrides(
        input=args.input,
        use_delay=False if args.no_delay else None,
        max_delay=args.max_delay,
        hostname=args.hostname,
        reuse_cookies=True if args.reuse_cookies else None,
        match_headers=args.match,
        concurrency=args.concurrency,
        concurrency_max=args.concurrency_max,
        concurrency_step=args.concurrency_step,
        repeat=args.repeat,
        timeout=args.timeout,
        max_entries=args.max_entries,
        log_level=log_level,
    ).validate()


def print_summary(report):
    """Print the run summary and per-level numbers."""
    print()
    print("📊 Summary:")
    print(f"   Test run at:            {report.started:%Y-%m-%d %H:%M:%S}")
    print(f"   URLs tested:            {report.urls_tested}")
    print(f"   Total delays (per run): {report.total_delay:g}s")
    print(f"   Requests sent:          {report.requests_sent}")
    print(f"   Test elapsed time:      {report.elapsed:.2f}s")

    for level in report.levels.values():
        times = level.run_times
        counts = level.counts
        print()
        print(f"   Concurrency {level.concurrency}: "
              f"{counts['successful_requests']} ok, {counts['failed_requests']} failed, "
              f"median run {times.median:.3f}s (min {times.min:.3f}s, max {times.max:.3f}s)")
        if level.failed_workers:
            print(f"   ⚠️  {level.failed_workers} worker(s) failed to run")


def main():
    parser = argparse.ArgumentParser(
        description='Real life web performance testing from recorded sessions',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    # Input
    parser.add_argument('-i', '--input', help='Recorded session file (default: stdin)')
    parser.add_argument('--config', help='YAML configuration file')
    parser.add_argument('-nd', '--no-delay', action='store_true',
                        help='Send requests one after another without detected delays')
    parser.add_argument('-md', '--max-delay', type=float,
                        help='Wait at most this many seconds between requests')
    parser.add_argument('-H', '--hostname', help='Override hostname in requests and Host header')
    parser.add_argument('-rc', '--reuse-cookies', action='store_true',
                        help='Use Cookie/Set-Cookie headers from the recorded session')
    parser.add_argument('--max-entries', type=int,
                        help='Stop reading the session after this many entries')

    # Sessions
    parser.add_argument('-n', '--repeat', type=int, help='Repeat recorded session NUM times (default: 10)')
    parser.add_argument('-t', '--timeout', type=float, help='Request timeout in seconds (default: 10)')
    parser.add_argument('-m', '--match', action='append',
                        help='Header that must match too (can be repeated)')
    parser.add_argument('-c', '--concurrency', type=int, action='append',
                        help='Run NUM concurrent workers (can be repeated, default: 1)')
    parser.add_argument('-cm', '--concurrency-max', type=int, help='Maximum concurrency')
    parser.add_argument('-cs', '--concurrency-step', type=int, help='Concurrency step (default: 5)')

    # Results
    parser.add_argument('-o', '--output', help='Save results to JSON file')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='Repeat to increase verbosity (INFO, DEBUG)')
    parser.add_argument('-q', '--quiet', action='store_true', help='Display only results')
    parser.add_argument('--version', action='version', version=f'replayperf {__version__}')

    args = parser.parse_args()

    try:
        config = build_config(args)
    except (OSError, ReplayPerfError) as e:
        print(f"❌ Invalid configuration: {e}")
        sys.exit(1)

    logging.basicConfig(format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    try:
        session = load_session(config)
    except (OSError, ReplayPerfError) as e:
        print(f"❌ Failed to load session: {e}")
        sys.exit(1)

    if not session.urls_tested:
        print("❌ No requests found in the recorded session")
        sys.exit(1)

    if not args.quiet:
        print(f"🚀 Replaying {session.urls_tested} requests "
              f"at concurrency {', '.join(map(str, config.resolve_concurrency_levels()))}")

    report = ConcurrencyRunner(session, config).run()

    print_summary(report)

    if args.output:
        save_report(report.to_dict(), args.output)
        print(f"\n✅ Saved results to {args.output}")

    if report.has_failures:
        sys.exit(1)


if __name__ == '__main__':
    main()
