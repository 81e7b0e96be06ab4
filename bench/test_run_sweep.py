#!/usr/bin/env python3
from contextlib import redirect_stdout
import io
import unittest

import run_sweep
from run_sweep import format_row, parse_stats, summarize


class TestParseStats(unittest.TestCase):
    def test_picks_statistics_lines_only(self):
        output = (
            "diff=12.345000us eagain=0\n"
            "some other line\n"
            "diff=3.500000us eagain=17\n"
        )
        self.assertEqual(parse_stats(output), [(12.345, 0), (3.5, 17)])

    def test_empty_output(self):
        self.assertEqual(parse_stats(''), [])


class TestSummarize(unittest.TestCase):
    def test_summary(self):
        summary = summarize([(2.0, 1), (4.0, 0), (6.0, 5)])
        self.assertEqual(summary['passes'], 3)
        self.assertAlmostEqual(summary['mean'], 4.0)
        self.assertEqual(summary['min'], 2.0)
        self.assertEqual(summary['max'], 6.0)
        self.assertEqual(summary['eagain'], 6)

    def test_failed_row(self):
        self.assertIn('FAILED', format_row(10, '5', None))


class TestMain(unittest.TestCase):
    def test_runs_every_combination(self):
        calls = []

        def runner(delay, linger, extra, timeout):
            calls.append((delay, linger))
            self.assertIn('--passes', extra)
            return [(1.0, 0), (3.0, 2)]

        out = io.StringIO()
        with redirect_stdout(out):
            rc = run_sweep.main(['--delays', '0', '10', '--lingers', '0', '5'], runner=runner)

        self.assertEqual(rc, 0)
        self.assertEqual(calls, [(0, '0'), (0, '5'), (10, '0'), (10, '5')])
        self.assertIn('All 4 cases completed', out.getvalue())

    def test_failed_case_sets_exit_status(self):
        def runner(delay, linger, extra, timeout):
            return None if linger == '5' else [(1.0, 0)]

        out = io.StringIO()
        with redirect_stdout(out):
            rc = run_sweep.main(['--delays', '0', '--lingers', '0', '5'], runner=runner)

        self.assertEqual(rc, 1)
        self.assertIn('FAILED', out.getvalue())
        self.assertIn('1 cases failed', out.getvalue())


if __name__ == '__main__':
    unittest.main()
