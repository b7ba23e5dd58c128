"""
Demo driver: wires a repository, broker, topics, consumers and producers,
publishes a batch of delivery orders and reconciles them once the
visibility window has elapsed.
"""
import argparse
import logging
import signal
import sys
import time
from typing import Dict, List, Optional

from .broker import Broker
from .config import initialize_config
from .consumer import Consumer
from .memory_repository import InMemoryMessageRepository
from .message import Message
from .producer import Producer
from .redis_repository import RedisMessageRepository
from .repository import MessageRepository, VisibilityWindow
from .topic import Topic


logger = logging.getLogger(__name__)

FAST_DELIVERY = 'queue/fast-delivery-items'
LONG_DISTANCE = 'queue/long-distance-items'

# producer name -> topic it feeds
PRODUCERS = {
    'FoodDeliveryProducer': FAST_DELIVERY,
    'PhysicPersonDeliveryProducer': FAST_DELIVERY,
    'PyMarketPlaceProducer': LONG_DISTANCE,
    'FastDeliveryProducer': LONG_DISTANCE,
}

ORDERS = [
    ('FoodDeliveryProducer', "Double burger order with fries and soda"),
    ('PhysicPersonDeliveryProducer', "Business cards and gifts for a corporate event"),
    ('PyMarketPlaceProducer', "Item: gaming laptop, includes extended warranty"),
    ('FastDeliveryProducer', "Convenience store restock, deliver within 45 minutes"),
]


def build_repository(backend: str, visibility: VisibilityWindow) -> MessageRepository:
    if backend == 'redis':
        repository = RedisMessageRepository(visibility=visibility)
        for topic_name in (FAST_DELIVERY, LONG_DISTANCE):
            repository.track_topic(topic_name)
        repository.clear_all_data()
        return repository
    return InMemoryMessageRepository(visibility=visibility)


def setup_topics(broker: Broker, repository: MessageRepository) -> None:
    """Create the delivery topics and subscribe one consumer to each"""
    for topic_name, consumer_name in ((FAST_DELIVERY, 'FastDeliveryConsumer'),
                                      (LONG_DISTANCE, 'LongDistanceConsumer')):
        broker.create_topic(Topic(topic_name, repository))
        broker.subscribe(topic_name, Consumer(consumer_name, _log_consumption(consumer_name)))


def create_producers(broker: Broker) -> Dict[str, Producer]:
    """One producer instance per name, registered on the topic it feeds"""
    producers = {}
    for name, topic_name in PRODUCERS.items():
        producer = Producer(name, broker)
        producer.add_topic(broker.get_topic(topic_name))
        producers[name] = producer
    return producers


def produce_messages(producers: Dict[str, Producer]) -> List[Message]:
    messages = []
    for producer_name, content in ORDERS:
        producer = producers[producer_name]
        messages.extend(producer.send_message(content))
        logger.info(f"{producer_name} sent: {content}")
    return messages


def report(repository: MessageRepository, consumed: bool) -> None:
    label = 'consumed' if consumed else 'not consumed'
    for topic_name in (FAST_DELIVERY, LONG_DISTANCE):
        if consumed:
            messages = repository.get_all_consumed_messages_by_topic(topic_name)
        else:
            messages = repository.get_all_not_consumed_messages_by_topic(topic_name)
        logger.info(f"{len(messages)} {label} message(s) in {topic_name}")
        for message in messages:
            logger.info(f" - {message.content}")


def _log_consumption(consumer_name: str):
    def process(message: Message) -> bool:
        logger.info(f"{consumer_name}: consuming message - {message.content}")
        return True
    return process


def signal_handler(signum, frame):
    """Handle shutdown signals"""
    logger.info(f"Received signal {signum}, shutting down...")
    sys.exit(0)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='Delayed-visibility message broker demo')
    parser.add_argument('--backend', choices=['memory', 'redis'], default='memory',
                        help='Repository backend')
    parser.add_argument('--config', help='JSON configuration file')
    parser.add_argument('--window', type=float, help='Visibility window in seconds')
    parser.add_argument('--wait', type=float,
                        help='Seconds to wait before reconciling (defaults to the window)')
    args = parser.parse_args(argv)

    config = initialize_config(args.config)
    logging.basicConfig(
        level=getattr(logging, str(config.get('logging.level', 'INFO')).upper()),
        format=config.get('logging.format'),
    )

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    visibility = VisibilityWindow(window_seconds=args.window)
    wait = args.wait if args.wait is not None else visibility.window_seconds

    try:
        with build_repository(args.backend, visibility) as repository:
            broker = Broker()
            setup_topics(broker, repository)
            producers = create_producers(broker)

            produce_messages(producers)
            report(repository, consumed=False)

            logger.info(f"Waiting {wait:g}s for the visibility window to elapse")
            time.sleep(wait)

            broker.reconcile()
            report(repository, consumed=True)
            report(repository, consumed=False)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        return 130
    except Exception as e:
        logger.error(f"Error during demo: {e}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
