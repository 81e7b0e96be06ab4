#!/usr/bin/env python3
"""Create the benchmark topic and check the broker lists it"""

from confluent_kafka.admin import AdminClient, NewTopic
from kafka import KafkaConsumer
import argparse
import logging
import sys

logger = logging.getLogger(__name__)


def ensure_topic(broker, topic_name, partitions=1):
    admin = AdminClient({'bootstrap.servers': broker})

    topic = NewTopic(topic_name, num_partitions=partitions, replication_factor=1)
    fs = admin.create_topics([topic])
    for topic, f in fs.items():
        try:
            f.result()
            print(f"✓ Created topic {topic}")
        except Exception as e:
            # TOPIC_ALREADY_EXISTS is fine, anything else shows up in verify
            logger.info("create_topics(%s): %s", topic, e)


def list_topics(broker):
    consumer = KafkaConsumer(bootstrap_servers=broker)
    try:
        return consumer.topics()
    finally:
        consumer.close()


def verify_topic(broker, topic_name, lister=list_topics):
    topics = lister(broker)
    if topic_name in topics:
        print(f"✓ Topic {topic_name} is available")
        return True
    print(f"✗ Topic {topic_name} missing, broker has: {sorted(topics)}")
    return False


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('--broker', default='localhost:9092')
    parser.add_argument('--topic', default='foo')
    parser.add_argument('--partitions', type=int, default=1)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    print(f"Initializing topic {args.topic} on {args.broker}...")
    ensure_topic(args.broker, args.topic, args.partitions)
    return 0 if verify_topic(args.broker, args.topic) else 1


if __name__ == '__main__':
    sys.exit(main())
