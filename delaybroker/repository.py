"""
Message repository contract and the visibility window shared by all backends.
"""
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from .config import get_config
from .exceptions import RepositoryClosedError, ValidationError
from .message import Message, MessageState


Clock = Callable[[], float]


class VisibilityWindow:
    """
    Timestamp predicate deciding where a message sits in the visibility
    state machine. Nothing is scheduled; the predicate is evaluated on
    every read or reconciliation.

    A message is pending while age < window, and eligible for
    reconciliation once age >= window. The sweep purges entries whose age
    exceeds window + grace.
    """

    def __init__(self,
                 window_seconds: Optional[float] = None,
                 grace_seconds: Optional[float] = None,
                 clock: Clock = time.time):
        config = get_config()
        self.window_seconds = float(window_seconds if window_seconds is not None
                                    else config.visibility_window)
        self.grace_seconds = float(grace_seconds if grace_seconds is not None
                                   else config.grace_period)
        if self.window_seconds < 0 or self.grace_seconds < 0:
            raise ValidationError("Visibility window and grace period must be non-negative")
        self.clock = clock

    def now(self) -> float:
        return self.clock()

    def is_pending(self, created_at: float, now: Optional[float] = None) -> bool:
        if now is None:
            now = self.clock()
        return now - created_at < self.window_seconds

    def is_eligible(self, created_at: float, now: Optional[float] = None) -> bool:
        return not self.is_pending(created_at, now)

    def is_purgeable(self, created_at: float, now: Optional[float] = None) -> bool:
        if now is None:
            now = self.clock()
        return now - created_at > self.window_seconds + self.grace_seconds

    def state_of(self, message: Message, now: Optional[float] = None) -> MessageState:
        """State of a message that is still stored"""
        if message.consumed:
            return MessageState.CONSUMED
        if self.is_pending(message.created_at, now):
            return MessageState.PENDING
        return MessageState.NOT_CONSUMED


class MessageRepository(ABC):
    """
    Persistence contract for topic-partitioned messages.

    Repositories own their storage handle and must be closed; they can be
    used as context managers.
    """

    def __init__(self, visibility: Optional[VisibilityWindow] = None):
        self.visibility = visibility or VisibilityWindow()
        self._closed = False

    @abstractmethod
    def append(self, topic: str, message: Message) -> str:
        """Persist a message under the topic and return its storage id"""

    @abstractmethod
    def consume_message(self, topic: str, message_id: Optional[str] = None) -> int:
        """Reconcile the topic, returning how many messages became consumed"""

    @abstractmethod
    def get_all_not_consumed_messages_by_topic(self, topic: str) -> List[Message]:
        """Messages still inside the visibility window, in storage order"""

    @abstractmethod
    def get_all_consumed_messages_by_topic(self, topic: str) -> List[Message]:
        """Consumed messages, in storage order"""

    @abstractmethod
    def remove_expired_messages(self) -> int:
        """Purge entries older than window + grace, returning the count removed"""

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._release()

    def _release(self) -> None:
        """Release the storage handle; called once by close()"""

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise RepositoryClosedError(f"{type(self).__name__} is closed")

    @staticmethod
    def _validate_append(topic: str, message: Message) -> None:
        if not topic or not isinstance(topic, str) or not topic.strip():
            raise ValidationError("Topic name can't be None or blank")
        if not isinstance(message, Message):
            raise ValidationError(f"Expected a Message, got {type(message).__name__}")

    def __enter__(self) -> 'MessageRepository':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
