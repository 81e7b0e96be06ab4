#!/usr/bin/env python3
"""
Produce latency benchmark: times the produce() handoff call and counts
buffer-full rejections under a given inter-send delay and linger.ms.
"""
from confluent_kafka import Producer, KafkaException
from array import array
import argparse
import inspect
import logging
import os
import sys
import threading
import time

logger = logging.getLogger(__name__)

N_PKTS = 10000
N_PASSES = 10
BUFLEN = 512
ANY_PARTITION = -1
DEBUG_CONTEXTS = 'broker,topic,msg'

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
USAGE = "Usage: %(prog)s <usleep-time> <linger-time>"


class CheckFailed(Exception):
    """A required condition did not hold. Fatal for the benchmark."""

    def __init__(self, expr, location, rc=None):
        self.expr = expr
        self.location = location
        self.rc = rc
        self.errno = _last_errno()
        kind = 'TRY' if rc is not None else 'TEST'
        super().__init__(f"{kind}({expr}) failed at {location[0]}:{location[1]}")

    def report(self, log=logger):
        if self.rc is not None:
            log.error("ERROR: TRY(%s) failed", self.expr)
            log.error("ERROR: at %s:%d", *self.location)
            log.error("ERROR: rc=%d errno=%d (%s)",
                      self.rc, self.errno, os.strerror(self.errno))
        else:
            log.error("ERROR: TEST(%s) failed", self.expr)
            log.error("ERROR: at %s:%d", *self.location)
            log.error("ERROR: errno=%d (%s)", self.errno, os.strerror(self.errno))


def _last_errno():
    # errno of the exception being handled, if it carries one
    exc = sys.exc_info()[1]
    if isinstance(exc, OSError) and exc.errno is not None:
        return exc.errno
    return 0


def _caller(depth=2):
    frame = inspect.currentframe()
    try:
        for _ in range(depth):
            frame = frame.f_back
        return os.path.basename(frame.f_code.co_filename), frame.f_lineno
    finally:
        del frame


def check(cond, expr):
    if not cond:
        raise CheckFailed(expr, _caller())


def fail_rc(rc, expr):
    raise CheckFailed(expr, _caller(), rc=rc)


class DeliveryStats:
    """Per-pass counters shared between the send loop and delivery callbacks."""

    def __init__(self):
        self._lock = threading.Lock()
        self._finished = 0
        self._eagain = 0

    @property
    def finished(self):
        with self._lock:
            return self._finished

    @property
    def eagain(self):
        with self._lock:
            return self._eagain

    def delivered(self):
        with self._lock:
            self._finished += 1

    def rejected(self):
        with self._lock:
            self._eagain += 1

    def reset(self):
        with self._lock:
            self._finished = 0
            self._eagain = 0


def make_payload(size=BUFLEN):
    buf = bytearray(size)
    hello = b'hello'[:size]
    buf[:len(hello)] = hello
    return bytes(buf)


def avg_diff(diffs, n=None):
    """Mean of the samples past the first tenth, divided by the full count."""
    n = len(diffs) if n is None else n
    return sum(diffs[n // 10:n]) / n


class LatencySampler:
    def __init__(self, producer, topic, stats, n_pkts=N_PKTS, payload=None):
        check(n_pkts > 0, 'n_pkts > 0')
        self.producer = producer
        self.topic = topic
        self.stats = stats
        self.n_pkts = n_pkts
        self.payload = make_payload() if payload is None else payload
        self.diffs = array('q', bytes(8 * n_pkts))

    def delivery_report(self, err, msg):
        if err is not None:
            logger.error("Message delivery failed: %s", err)
            check(False, 'err is None')
        self.stats.delivered()

    def produce_one(self):
        try:
            self.producer.produce(self.topic, self.payload,
                                  partition=ANY_PARTITION,
                                  callback=self.delivery_report)
        except BufferError:
            self.stats.rejected()
            return False
        except KafkaException as e:
            kerr = e.args[0] if e.args else None
            logger.error("produce to %s failed: %s", self.topic, e)
            fail_rc(kerr.code() if hasattr(kerr, 'code') else -1,
                    'producer.produce(topic, payload)')
        return True

    def run(self, sleep_time=0):
        """Run one pass of n_pkts accepted sends and return avg_diff()."""
        check(sleep_time >= 0, 'sleep_time >= 0')
        diffs = self.diffs
        i = 0
        while i < self.n_pkts:
            if sleep_time:
                time.sleep(sleep_time / 1e6)

            start = time.perf_counter_ns()
            ok = self.produce_one()
            end = time.perf_counter_ns()
            if not ok:
                self.producer.poll(0)
            else:
                diffs[i] = (end - start) // 1000
                i += 1

        logger.debug("accepted %d messages, waiting for delivery", self.n_pkts)
        while self.stats.finished < self.n_pkts:
            self.producer.poll(0)

        return avg_diff(diffs)


def print_stats(diff, stats, out=None):
    out = sys.stdout if out is None else out
    print(f"diff={diff:f}us eagain={stats.eagain}", file=out, flush=True)
    stats.reset()


def producer_config(broker, linger, debug=None):
    config = {
        'bootstrap.servers': broker,
        'linger.ms': linger,
    }
    if debug:
        config['debug'] = debug
    return config


def create_producer(config):
    try:
        return Producer(config)
    except KafkaException as e:
        logger.error("producer configuration rejected: %s", e)
        check(False, 'rk = Producer(conf)')


class _Parser(argparse.ArgumentParser):
    def error(self, message):
        print(USAGE % {'prog': self.prog})
        self.exit(1, f"{self.prog}: error: {message}\n")


def parse_args(argv=None):
    parser = _Parser(prog='produce_latency.py')
    parser.add_argument('sleep_time', type=int, help='delay between sends, microseconds')
    parser.add_argument('linger', help='linger.ms, passed to the client verbatim')
    parser.add_argument('--broker', default='localhost')
    parser.add_argument('--topic', default='foo')
    parser.add_argument('--samples', type=int, default=N_PKTS)
    parser.add_argument('--passes', type=int, default=N_PASSES)
    parser.add_argument('--payload-size', type=int, default=BUFLEN)
    parser.add_argument('--debug', action='store_const', const=DEBUG_CONTEXTS, default=None,
                        help='enable librdkafka debug logging (%(const)s)')
    args = parser.parse_args(argv)
    if args.sleep_time < 0 or args.samples <= 0 or args.passes <= 0 or args.payload_size <= 0:
        parser.error('numeric arguments must be positive')
    return args


def main(argv=None, producer_factory=create_producer):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format=LOG_FORMAT,
    )

    stats = DeliveryStats()
    try:
        rk = producer_factory(producer_config(args.broker, args.linger, args.debug))
        check(rk is not None, 'rk = Producer(conf)')
        check(bool(args.topic), 'rkt = topic')
        sampler = LatencySampler(rk, args.topic, stats, n_pkts=args.samples,
                                 payload=make_payload(args.payload_size))

        for _ in range(args.passes):
            diff = sampler.run(args.sleep_time)
            print_stats(diff, stats)
    except CheckFailed as e:
        e.report()
        return 1

    rk.flush()
    return 0


if __name__ == '__main__':
    sys.exit(main())
