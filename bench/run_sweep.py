#!/usr/bin/env python3
"""
Run produce_latency.py over a grid of inter-send delays and linger.ms
values and summarise the per-pass results.
"""
import argparse
import itertools
import re
import subprocess
import sys
import time
from pathlib import Path

DEFAULT_DELAYS = [0, 10, 100]
DEFAULT_LINGERS = ['0', '5', '50']

STATS_LINE = re.compile(r'^diff=(?P<diff>[-+0-9.eE]+)us eagain=(?P<eagain>\d+)$')


def parse_stats(output):
    """Return (diff, eagain) for every statistics line in the output."""
    results = []
    for line in output.splitlines():
        m = STATS_LINE.match(line.strip())
        if m:
            results.append((float(m.group('diff')), int(m.group('eagain'))))
    return results


def summarize(results):
    diffs = [d for d, _ in results]
    return {
        'passes': len(results),
        'mean': sum(diffs) / len(diffs),
        'min': min(diffs),
        'max': max(diffs),
        'eagain': sum(e for _, e in results),
    }


def run_case(delay, linger, extra_args=(), timeout=600):
    """Run one benchmark invocation; return parsed stats or None on failure."""
    print(f"\n{'='*60}")
    print(f"Running: delay={delay}us linger.ms={linger}")
    print('='*60)

    script = Path(__file__).parent / 'produce_latency.py'
    python_cmd = sys.executable if sys.executable else 'python3'

    try:
        result = subprocess.run(
            [python_cmd, str(script), str(delay), str(linger), *extra_args],
            capture_output=True,
            text=True,
            timeout=timeout
        )
    except subprocess.TimeoutExpired:
        print(f"\n❌ delay={delay} linger={linger} TIMEOUT (exceeded {timeout}s)")
        return None

    if result.stdout:
        print(result.stdout, end='')
    if result.stderr:
        print("STDERR:", result.stderr)

    if result.returncode != 0:
        print(f"\n❌ delay={delay} linger={linger} FAILED (exit code: {result.returncode})")
        return None

    results = parse_stats(result.stdout)
    if not results:
        print(f"\n❌ delay={delay} linger={linger} produced no statistics")
        return None
    return results


def format_row(delay, linger, summary):
    if summary is None:
        return f"{delay:>8} {linger:>8} {'FAILED':>12}"
    return (f"{delay:>8} {linger:>8} {summary['mean']:>12.3f} "
            f"{summary['min']:>10.3f} {summary['max']:>10.3f} {summary['eagain']:>8}")


def main(argv=None, runner=run_case):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('--delays', type=int, nargs='+', default=DEFAULT_DELAYS,
                        help='inter-send delays, microseconds')
    parser.add_argument('--lingers', nargs='+', default=DEFAULT_LINGERS,
                        help='linger.ms values')
    parser.add_argument('--broker', default='localhost')
    parser.add_argument('--topic', default='foo')
    parser.add_argument('--passes', type=int, default=10)
    parser.add_argument('--samples', type=int, default=10000)
    parser.add_argument('--timeout', type=int, default=600,
                        help='per-case timeout, seconds')
    args = parser.parse_args(argv)

    extra = ['--broker', args.broker, '--topic', args.topic,
             '--passes', str(args.passes), '--samples', str(args.samples)]
    cases = list(itertools.product(args.delays, args.lingers))

    print("="*60)
    print("PRODUCE LATENCY SWEEP")
    print("="*60)
    print(f"Running {len(cases)} cases against {args.broker} topic {args.topic}...")

    rows = []
    failed = 0
    start_time = time.time()
    for delay, linger in cases:
        results = runner(delay, linger, extra, args.timeout)
        summary = summarize(results) if results else None
        if summary is None:
            failed += 1
        rows.append(format_row(delay, linger, summary))
    elapsed = time.time() - start_time

    print(f"\n{'='*60}")
    print("SWEEP SUMMARY")
    print('='*60)
    print(f"{'delay':>8} {'linger':>8} {'mean(us)':>12} {'min':>10} {'max':>10} {'eagain':>8}")
    for row in rows:
        print(row)
    print(f"\nTime: {elapsed:.1f}s")

    if failed == 0:
        print(f"\n✅ All {len(cases)} cases completed")
        return 0
    print(f"\n⚠️  {failed} cases failed")
    return 1


if __name__ == '__main__':
    sys.exit(main())
