"""
In-memory message repository.
Every topic keeps an ordered list of stored messages guarded by one lock.
"""
import threading
import logging
from collections import defaultdict
from typing import Dict, List, Optional

from .message import Message
from .repository import MessageRepository, VisibilityWindow


logger = logging.getLogger(__name__)


class InMemoryMessageRepository(MessageRepository):
    """Thread-safe repository keeping messages in process memory"""

    def __init__(self, visibility: Optional[VisibilityWindow] = None):
        super().__init__(visibility)
        self._messages: Dict[str, List[Message]] = defaultdict(list)
        self._next_offset: Dict[str, int] = defaultdict(int)
        self._lock = threading.RLock()

    def append(self, topic: str, message: Message) -> str:
        """Store a copy of the message and return its offset within the topic"""
        self._validate_append(topic, message)
        with self._lock:
            self._ensure_open()

            offset = self._next_offset[topic]
            self._next_offset[topic] += 1

            message.storage_id = str(offset)
            self._messages[topic].append(message.copy())

            logger.debug(f"Appended message {message.id} to {topic} at offset {offset}")
            return message.storage_id

    def consume_message(self, topic: str, message_id: Optional[str] = None) -> int:
        """
        Mark one message consumed by id, or with no id move every message
        past the visibility window into the consumed state.
        """
        with self._lock:
            self._ensure_open()

            if topic not in self._messages:
                return 0

            if message_id is not None:
                for stored in self._messages[topic]:
                    if stored.id == message_id:
                        if stored.consumed:
                            return 0
                        stored.mark_consumed()
                        logger.debug(f"Message consumed - topic: {topic}, id: {message_id}")
                        return 1
                logger.debug(f"Message {message_id} not found in {topic}")
                return 0

            now = self.visibility.now()
            count = 0
            for stored in self._messages[topic]:
                if not stored.consumed and self.visibility.is_eligible(stored.created_at, now):
                    stored.mark_consumed()
                    count += 1

            if count:
                logger.info(f"Reconciled {count} message(s) in {topic}")
            return count

    def get_all_not_consumed_messages_by_topic(self, topic: str) -> List[Message]:
        with self._lock:
            self._ensure_open()
            now = self.visibility.now()
            return [stored.copy() for stored in self._messages.get(topic, [])
                    if not stored.consumed and self.visibility.is_pending(stored.created_at, now)]

    def get_all_consumed_messages_by_topic(self, topic: str) -> List[Message]:
        with self._lock:
            self._ensure_open()
            return [stored.copy() for stored in self._messages.get(topic, [])
                    if stored.consumed]

    def remove_expired_messages(self) -> int:
        with self._lock:
            self._ensure_open()
            now = self.visibility.now()
            removed = 0

            for topic, stored_messages in self._messages.items():
                kept = [m for m in stored_messages
                        if not self.visibility.is_purgeable(m.created_at, now)]
                purged = len(stored_messages) - len(kept)
                if purged:
                    self._messages[topic] = kept
                    removed += purged
                    logger.debug(f"Purged {purged} expired message(s) from {topic}")

            return removed

    def list_topics(self) -> List[str]:
        with self._lock:
            self._ensure_open()
            return list(self._messages.keys())

    def get_message_count(self, topic: str) -> int:
        with self._lock:
            self._ensure_open()
            return len(self._messages.get(topic, []))

    def _release(self) -> None:
        with self._lock:
            self._messages.clear()
            self._next_offset.clear()
        logger.info("In-memory repository closed and messages cleared")
