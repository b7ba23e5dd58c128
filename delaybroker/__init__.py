"""
Topic-based message broker with time-delayed visibility.
"""

from .message import Message, MessageConsumption, MessageState
from .config import Config, get_config, initialize_config
from .exceptions import (
    BrokerError, ValidationError, TopicNotFoundError, TopicAlreadyExistsError,
    RepositoryClosedError, StorageError,
)
from .repository import MessageRepository, VisibilityWindow
from .memory_repository import InMemoryMessageRepository
from .redis_repository import RedisMessageRepository
from .producer import Producer
from .consumer import Consumer
from .topic import Topic
from .broker import Broker

__all__ = [
    'Message', 'MessageConsumption', 'MessageState',
    'Config', 'get_config', 'initialize_config',
    'BrokerError', 'ValidationError', 'TopicNotFoundError', 'TopicAlreadyExistsError',
    'RepositoryClosedError', 'StorageError',
    'MessageRepository', 'VisibilityWindow',
    'InMemoryMessageRepository', 'RedisMessageRepository',
    'Producer', 'Consumer',
    'Topic', 'Broker',
]
