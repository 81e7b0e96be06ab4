#!/usr/bin/env python3
"""
End-to-end run against a real broker. Set BENCH_BOOTSTRAP_SERVERS
(e.g. 127.0.0.1:9092) to enable.
"""
from pathlib import Path
import os
import re
import subprocess
import sys
import unittest

import init_topic

BROKER = os.environ.get('BENCH_BOOTSTRAP_SERVERS')
STATS_LINE = re.compile(r'^diff=\d+\.\d+us eagain=\d+$')


@unittest.skipUnless(BROKER, 'BENCH_BOOTSTRAP_SERVERS not set')
class TestBrokerLatency(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        init_topic.ensure_topic(BROKER, 'foo')

    def run_script(self, *args):
        script = Path(__file__).parent / 'produce_latency.py'
        return subprocess.run(
            [sys.executable, str(script), *args, '--broker', BROKER],
            capture_output=True,
            text=True,
            timeout=600
        )

    def test_ten_passes(self):
        result = self.run_script('0', '0')

        self.assertEqual(result.returncode, 0, result.stderr)
        lines = result.stdout.splitlines()
        self.assertEqual(len(lines), 10)
        for line in lines:
            self.assertRegex(line, STATS_LINE)

    def test_with_delay_and_linger(self):
        result = self.run_script('10', '5', '--samples', '2000', '--passes', '2')

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertEqual(len(result.stdout.splitlines()), 2)

    def test_oversized_payload_is_fatal(self):
        # larger than the default message.max.bytes, rejected at produce()
        result = self.run_script('0', '0', '--samples', '10', '--passes', '1',
                                 '--payload-size', str(2 * 1024 * 1024))

        self.assertEqual(result.returncode, 1)
        self.assertIn('TRY(producer.produce(topic, payload)) failed', result.stderr)


if __name__ == '__main__':
    unittest.main()
