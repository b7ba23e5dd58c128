"""
Producer role: creates messages and feeds them to topics.
"""
import threading
import logging
from typing import TYPE_CHECKING, Dict, List, Optional

from .exceptions import TopicNotFoundError
from .message import Message

if TYPE_CHECKING:
    from .broker import Broker
    from .topic import Topic


logger = logging.getLogger(__name__)


class Producer:
    """
    Named message producer.

    A producer publishes through the broker it was given, or directly to
    the topics it is registered on.
    """

    def __init__(self, name: str, broker: Optional['Broker'] = None):
        self.name = name
        self.broker = broker
        self._topics: Dict[str, 'Topic'] = {}
        self._lock = threading.RLock()

    def add_topic(self, topic: 'Topic') -> None:
        with self._lock:
            self._topics[topic.name] = topic
        logger.info(f"Producer {self.name} registered on topic {topic.name}")

    def remove_topic(self, topic: 'Topic') -> None:
        with self._lock:
            removed = self._topics.pop(topic.name, None)
        if removed is not None:
            logger.info(f"Producer {self.name} removed from topic {topic.name}")

    @property
    def topics(self) -> List['Topic']:
        with self._lock:
            return list(self._topics.values())

    def produce(self, content: str, topic_name: str) -> Message:
        """Create a message and submit it to the named topic"""
        message = Message(self, content)

        with self._lock:
            topic = self._topics.get(topic_name)

        if topic is not None:
            topic.add_message(message)
        elif self.broker is not None:
            self.broker.publish(topic_name, message)
        else:
            raise TopicNotFoundError(topic_name)

        logger.debug(f"Producer {self.name} sent message {message.id} to {topic_name}")
        return message

    def send_message(self, content: str) -> List[Message]:
        """Broadcast content to every topic this producer is registered on"""
        return [self.produce(content, topic.name) for topic in self.topics]

    def __repr__(self) -> str:
        return f"Producer(name={self.name})"
