"""
Consumer role: a name plus the function that processes a message.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from .message import Message


logger = logging.getLogger(__name__)

ProcessFunction = Callable[[Message], bool]


def accept_message(message: Message) -> bool:
    """Default processing: log the content and report success"""
    logger.info(f"Consuming message - {message.content}")
    return True


@dataclass(eq=False)
class Consumer:
    """Represents a subscriber that processes messages delivered by a topic"""
    name: str
    process: Optional[ProcessFunction] = field(default=None, repr=False)

    def consume(self, message: Message) -> bool:
        """
        Process a message. Returns True on success and False on a handled
        failure; unexpected errors propagate to the caller.
        """
        handler = self.process or accept_message
        result = bool(handler(message))
        logger.debug(f"{self.name}: processed message {message.id} -> {result}")
        return result
