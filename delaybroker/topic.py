"""
Topic: a named channel pairing a repository partition with subscribed consumers.
"""
import logging
import threading
from typing import List, Tuple

from .consumer import Consumer
from .exceptions import ValidationError
from .message import Message
from .repository import MessageRepository


logger = logging.getLogger(__name__)


class Topic:
    """Named channel that persists messages and fans them out to consumers"""

    def __init__(self, name: str, repository: MessageRepository):
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Topic name can't be None or blank")
        if repository is None:
            raise ValidationError(f"Topic '{name}' needs a repository")

        self.name = name
        self.repository = repository
        self._consumers: List[Consumer] = []
        self._lock = threading.RLock()

    def add_message(self, message: Message) -> List[Tuple[Consumer, bool]]:
        """Persist the message, then notify every subscribed consumer"""
        self.repository.append(self.name, message)
        return self.notify_consumers(message)

    def notify_consumers(self, message: Message) -> List[Tuple[Consumer, bool]]:
        """
        Deliver a message to each consumer in subscription order.

        A consumer that returns False or raises is logged and skipped; the
        remaining consumers are still notified. Returns one (consumer, success)
        pair per consumer notified, in the order they were called.
        """
        results: List[Tuple[Consumer, bool]] = []

        for consumer in self.consumers:
            try:
                consumed = consumer.consume(message)
            except Exception as e:
                logger.error(f"Error notifying consumer {consumer.name} on {self.name}: {e}")
                consumed = False
            else:
                if consumed:
                    message.add_consumption(consumer)
                    logger.debug(f"Message {message.id} consumed by {consumer.name}")
                else:
                    logger.warning(f"Consumer {consumer.name} failed to consume message {message.id}")

            results.append((consumer, bool(consumed)))

        return results

    def subscribe(self, consumer: Consumer) -> None:
        if consumer is None:
            raise ValidationError("Consumer can't be None")
        with self._lock:
            if consumer in self._consumers:
                return
            self._consumers.append(consumer)
        logger.info(f"Consumer {consumer.name} subscribed to {self.name}")

    def unsubscribe(self, consumer: Consumer) -> None:
        with self._lock:
            if consumer not in self._consumers:
                return
            self._consumers.remove(consumer)
        logger.info(f"Consumer {consumer.name} unsubscribed from {self.name}")

    @property
    def consumers(self) -> List[Consumer]:
        with self._lock:
            return list(self._consumers)

    def __repr__(self) -> str:
        return f"Topic(name={self.name}, consumers={len(self._consumers)})"
