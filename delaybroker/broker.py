"""
Main message broker implementation.
Routes subscribe and publish requests to topics by name and runs the
periodic reconciliation of their repositories.
"""
import threading
import logging
from typing import Dict, List, Optional, Tuple

from .config import get_config
from .consumer import Consumer
from .exceptions import TopicAlreadyExistsError, TopicNotFoundError
from .message import Message
from .repository import MessageRepository
from .topic import Topic


logger = logging.getLogger(__name__)


class Broker:
    """Registry of topics keyed by unique name"""

    def __init__(self, reconcile_interval: Optional[float] = None):
        self.config = get_config()
        self.reconcile_interval = float(reconcile_interval if reconcile_interval is not None
                                        else self.config.get('broker.reconcile_interval'))

        self._topics: Dict[str, Topic] = {}
        self._lock = threading.RLock()

        self._running = False
        self._stop_event = threading.Event()
        self._reconcile_thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the background reconciliation worker"""
        with self._lock:
            if self._running:
                return

            self._running = True
            self._stop_event.clear()
            self._reconcile_thread = threading.Thread(
                target=self._reconcile_worker,
                daemon=True,
                name="ReconcileWorker"
            )
            self._reconcile_thread.start()

            logger.info(f"Message broker started (reconcile every {self.reconcile_interval}s)")

    def stop(self) -> None:
        """Stop the background reconciliation worker"""
        with self._lock:
            if not self._running:
                return

            self._running = False
            self._stop_event.set()
            thread = self._reconcile_thread
            self._reconcile_thread = None

        if thread and thread.is_alive():
            thread.join(timeout=5)

        logger.info("Message broker stopped")

    @property
    def running(self) -> bool:
        return self._running

    def create_topic(self, topic: Topic) -> Topic:
        """Register a topic under its name"""
        with self._lock:
            if topic.name in self._topics:
                raise TopicAlreadyExistsError(topic.name)
            self._topics[topic.name] = topic

        logger.info(f"Created topic '{topic.name}'")
        return topic

    def remove_topic(self, name: str) -> Topic:
        with self._lock:
            topic = self._topics.pop(name, None)
        if topic is None:
            raise TopicNotFoundError(name)

        logger.info(f"Removed topic '{name}'")
        return topic

    def get_topic(self, name: str) -> Topic:
        with self._lock:
            topic = self._topics.get(name)
        if topic is None:
            raise TopicNotFoundError(name)
        return topic

    def list_topics(self) -> List[str]:
        with self._lock:
            return list(self._topics.keys())

    def subscribe(self, topic_name: str, consumer: Consumer) -> None:
        self.get_topic(topic_name).subscribe(consumer)

    def unsubscribe(self, topic_name: str, consumer: Consumer) -> None:
        self.get_topic(topic_name).unsubscribe(consumer)

    def publish(self, topic_name: str, message: Message) -> List[Tuple[Consumer, bool]]:
        """Persist and fan out a message; returns (consumer, success) pairs"""
        topic = self.get_topic(topic_name)
        results = topic.add_message(message)
        logger.debug(f"Published message {message.id} to {topic_name}")
        return results

    def reconcile(self) -> Dict[str, int]:
        """
        Run one reconciliation pass: every topic moves its eligible messages
        to the consumed state, then each distinct repository is swept once.
        Returns topic name -> messages consumed.
        """
        with self._lock:
            topics = list(self._topics.values())

        consumed: Dict[str, int] = {}
        repositories: List[MessageRepository] = []

        for topic in topics:
            consumed[topic.name] = topic.repository.consume_message(topic.name)
            if not any(topic.repository is repo for repo in repositories):
                repositories.append(topic.repository)

        for repository in repositories:
            purged = repository.remove_expired_messages()
            if purged:
                logger.info(f"Purged {purged} expired message(s) from {type(repository).__name__}")

        return consumed

    def _reconcile_worker(self) -> None:
        """Background worker running reconciliation passes"""
        while not self._stop_event.wait(self.reconcile_interval):
            try:
                self.reconcile()
            except Exception as e:
                logger.error(f"Reconcile worker error: {e}")
