"""
Message entity with provenance and consumption history.
Messages are mapped to flat string fields for storage in a stream entry.
"""
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import ValidationError


class MessageState(Enum):
    """Visibility states of a stored message"""
    PENDING = 'pending'                 # still inside the visibility window
    NOT_CONSUMED = 'not_consumed'       # window elapsed, awaiting reconciliation
    CONSUMED = 'consumed'
    EXPIRED_PURGED = 'expired_purged'


@dataclass(frozen=True)
class MessageConsumption:
    """A consumer that processed a message, and when"""
    consumer: Any
    consumed_at: float = field(default_factory=time.time)

    def __post_init__(self):
        if self.consumer is None:
            raise ValidationError("Consumer can't be None in a consumption")


class Message:
    """
    Unit of content published to a topic.

    Stored fields:
        id          uuid4 string, fixed at creation
        producer    producer name
        created_at  epoch seconds
        message     the content
    """

    FIELDS = ('id', 'producer', 'created_at', 'message')

    def __init__(self,
                 producer: Any,
                 content: str,
                 message_id: Optional[str] = None,
                 created_at: Optional[float] = None):
        self._validate_producer(producer)
        self._validate_content(content)

        self._id = message_id or str(uuid.uuid4())
        self.producer = producer
        self._content = content
        self.created_at = created_at if created_at is not None else time.time()
        self.consumed = False
        self.consumptions: List[MessageConsumption] = []
        self.storage_id: Optional[str] = None

    @property
    def id(self) -> str:
        return self._id

    @property
    def content(self) -> str:
        return self._content

    @content.setter
    def content(self, value: str) -> None:
        self._validate_content(value)
        self._content = value

    @property
    def producer_name(self) -> str:
        return getattr(self.producer, 'name', str(self.producer))

    def add_consumption(self, consumer: Any) -> MessageConsumption:
        """Record that a consumer processed this message"""
        consumption = MessageConsumption(consumer)
        self.consumptions.append(consumption)
        return consumption

    def mark_consumed(self) -> None:
        self.consumed = True

    def age(self, now: Optional[float] = None) -> float:
        if now is None:
            now = time.time()
        return now - self.created_at

    def copy(self) -> 'Message':
        """Independent copy; the consumption list is not shared"""
        clone = Message(self.producer, self._content,
                        message_id=self._id, created_at=self.created_at)
        clone.consumed = self.consumed
        clone.consumptions = list(self.consumptions)
        clone.storage_id = self.storage_id
        return clone

    def to_fields(self) -> Dict[str, str]:
        """Map the message to the string fields of a stream entry"""
        return {
            'id': self._id,
            'producer': self.producer_name,
            'created_at': repr(self.created_at),
            'message': self._content,
        }

    @classmethod
    def from_fields(cls, fields: Dict[str, str], producer: Any,
                    created_at: Optional[float] = None) -> 'Message':
        """
        Rebuild a message from stream entry fields.

        An explicit created_at takes precedence over the stored field, so a
        repository can supply the same timestamp it judges visibility by.
        """
        if 'message' not in fields:
            raise ValidationError("Stream entry has no 'message' field")

        if created_at is None and fields.get('created_at'):
            created_at = float(fields['created_at'])
        return cls(
            producer=producer,
            content=fields['message'],
            message_id=fields.get('id'),
            created_at=created_at,
        )

    @staticmethod
    def _validate_producer(producer: Any) -> None:
        if producer is None:
            raise ValidationError("The message's producer can't be None")

    @staticmethod
    def _validate_content(content: Optional[str]) -> None:
        if content is None or not isinstance(content, str) or not content.strip():
            raise ValidationError("The message content can't be None, empty or blank")

    def __eq__(self, other) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __str__(self) -> str:
        return (f"Message(id={self._id}, producer={self.producer_name}, "
                f"consumed={self.consumed}, consumptions={len(self.consumptions)})")

    __repr__ = __str__
