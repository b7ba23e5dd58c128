"""
Durable message repository backed by Redis Streams.

Each topic is a stream keyed by the topic name. Consumed entries are
relocated to a sibling stream '<topic>:consumed'. Visibility is computed
from the 'created_at' field stored with every entry; no auxiliary TTL keys
are used.
"""
import threading
import logging
from typing import Dict, List, Optional, Set, Tuple

import redis

from .config import get_config
from .exceptions import StorageError, ValidationError
from .message import Message
from .producer import Producer
from .repository import MessageRepository, VisibilityWindow


logger = logging.getLogger(__name__)

StreamEntry = Tuple[str, Dict[str, str]]


class RedisMessageRepository(MessageRepository):
    """Repository storing each topic as a Redis stream"""

    def __init__(self,
                 client: Optional[redis.Redis] = None,
                 visibility: Optional[VisibilityWindow] = None,
                 consumed_suffix: Optional[str] = None):
        super().__init__(visibility)
        config = get_config()

        if client is None:
            client = redis.Redis(
                host=config.get('redis.host'),
                port=config.get('redis.port'),
                db=config.get('redis.db'),
                password=config.get('redis.password'),
                socket_timeout=config.get('redis.socket_timeout'),
                socket_connect_timeout=config.get('redis.socket_timeout'),
                decode_responses=True,
            )
            logger.info(f"Redis repository using {config.get('redis.host')}:{config.get('redis.port')} "
                        f"(db={config.get('redis.db')})")

        self.client = client
        self.consumed_suffix = consumed_suffix or config.get('redis.consumed_suffix')

        self._topics: Set[str] = set()
        self._producers: Dict[str, Producer] = {}
        self._lock = threading.RLock()

    def consumed_key(self, topic: str) -> str:
        return f"{topic}{self.consumed_suffix}"

    def append(self, topic: str, message: Message) -> str:
        """XADD the message fields to the topic stream"""
        self._validate_append(topic, message)
        self._ensure_open()
        self._track(topic)

        try:
            entry_id = self.client.xadd(topic, message.to_fields())
        except redis.RedisError as e:
            logger.error(f"Failed to append message {message.id} to {topic}: {e}")
            raise StorageError(f"Failed to append to stream '{topic}': {e}") from e

        message.storage_id = entry_id
        logger.debug(f"Appended message {message.id} to {topic} with entry id {entry_id}")
        return entry_id

    def consume_message(self, topic: str, message_id: Optional[str] = None) -> int:
        """
        Move every entry past the visibility window into the consumed stream.

        message_id is accepted for contract compatibility but the whole topic
        is always reconciled. The scan, copy and delete run under the
        repository lock so concurrent passes in this process never copy the
        same entry twice. Entries already present in the consumed stream are
        not copied again, so an interrupted pass can be re-run.
        """
        self._ensure_open()
        self._track(topic)

        with self._lock:
            return self._reconcile(topic)

    def _reconcile(self, topic: str) -> int:
        consumed_key = self.consumed_key(topic)
        now = self.visibility.now()
        moved = 0

        entries = self._read_stream(topic)
        if not entries:
            return 0

        already_moved = {fields.get('source_id') for _, fields in self._read_stream(consumed_key)}

        for entry_id, fields in entries:
            if not self.visibility.is_eligible(self._created_at(entry_id, fields), now):
                continue

            try:
                if entry_id not in already_moved:
                    self.client.xadd(consumed_key, dict(fields, source_id=entry_id))
                    already_moved.add(entry_id)
                self.client.xdel(topic, entry_id)
            except redis.RedisError as e:
                logger.error(f"Failed to move entry {entry_id} to {consumed_key}: {e}")
                raise StorageError(f"Failed to reconcile stream '{topic}': {e}") from e

            moved += 1
            logger.debug(f"Expired message moved to {consumed_key}: {entry_id}")

        if moved:
            logger.info(f"Reconciled {moved} message(s) in {topic}")
        return moved

    def get_all_not_consumed_messages_by_topic(self, topic: str) -> List[Message]:
        self._ensure_open()
        now = self.visibility.now()
        messages = []

        for entry_id, fields in self._read_stream(topic):
            if not self.visibility.is_pending(self._created_at(entry_id, fields), now):
                continue
            message = self._to_message(topic, entry_id, fields)
            if message is not None:
                messages.append(message)

        return messages

    def get_all_consumed_messages_by_topic(self, topic: str) -> List[Message]:
        self._ensure_open()
        consumed_key = self.consumed_key(topic)
        messages = []

        for entry_id, fields in self._read_stream(consumed_key):
            message = self._to_message(consumed_key, fields.get('source_id', entry_id), fields)
            if message is not None:
                message.mark_consumed()
                messages.append(message)

        return messages

    def remove_expired_messages(self) -> int:
        """XDEL entries older than window + grace from every known stream"""
        self._ensure_open()
        now = self.visibility.now()
        removed = 0

        with self._lock:
            for topic in list(self._topics):
                for key in (topic, self.consumed_key(topic)):
                    expired = [entry_id for entry_id, fields in self._read_stream(key)
                               if self.visibility.is_purgeable(self._created_at(entry_id, fields), now)]
                    if not expired:
                        continue
                    try:
                        removed += self.client.xdel(key, *expired)
                    except redis.RedisError as e:
                        raise StorageError(f"Failed to purge stream '{key}': {e}") from e
                    logger.debug(f"Purged {len(expired)} expired entries from {key}")

        return removed

    def clear_all_data(self) -> None:
        """Delete every stream this repository has touched"""
        self._ensure_open()
        with self._lock:
            keys = [key for topic in self._topics
                    for key in (topic, self.consumed_key(topic))]
        if not keys:
            return
        try:
            self.client.delete(*keys)
        except redis.RedisError as e:
            raise StorageError(f"Failed to clear streams: {e}") from e
        logger.info(f"Cleared {len(keys)} stream(s)")

    def track_topic(self, topic: str) -> None:
        """Register a topic so sweeps and clears cover it before any append"""
        self._track(topic)

    def _track(self, topic: str) -> None:
        with self._lock:
            self._topics.add(topic)

    def _read_stream(self, key: str) -> List[StreamEntry]:
        try:
            return self.client.xrange(key, '-', '+')
        except redis.RedisError as e:
            logger.error(f"Failed to read stream {key}: {e}")
            raise StorageError(f"Failed to read stream '{key}': {e}") from e

    def _to_message(self, key: str, entry_id: str, fields: Dict[str, str]) -> Optional[Message]:
        producer_name = fields.get('producer') or 'unknown'
        with self._lock:
            producer = self._producers.get(producer_name)
            if producer is None:
                producer = self._producers[producer_name] = Producer(producer_name)

        try:
            message = Message.from_fields(fields, producer, self._created_at(entry_id, fields))
        except (ValidationError, ValueError) as e:
            logger.warning(f"Skipping malformed entry {entry_id} in {key}: {e}")
            return None

        message.storage_id = entry_id
        return message

    @staticmethod
    def _created_at(entry_id: str, fields: Dict[str, str]) -> float:
        """Stored creation time, falling back to the millisecond part of the entry id"""
        created_at = fields.get('created_at')
        if created_at:
            try:
                return float(created_at)
            except ValueError:
                pass
        return int(entry_id.split('-', 1)[0]) / 1000.0

    def _release(self) -> None:
        try:
            self.client.close()
        except redis.RedisError as e:
            logger.warning(f"Error closing Redis connection: {e}")
        logger.info("Redis repository closed")
