"""
Broker exceptions.
"""


class BrokerError(Exception):
    """Base exception for broker errors."""

    pass


class ValidationError(BrokerError, ValueError):
    """Raised when a message, consumption or argument is invalid."""

    pass


class TopicNotFoundError(BrokerError, LookupError):
    """Raised when a topic name is not registered with the broker."""

    def __init__(self, topic_name: str):
        super().__init__(f"Topic '{topic_name}' does not exist")
        self.topic_name = topic_name


class TopicAlreadyExistsError(BrokerError, ValueError):
    """Raised when registering a topic name twice."""

    def __init__(self, topic_name: str):
        super().__init__(f"Topic '{topic_name}' already exists")
        self.topic_name = topic_name


class RepositoryClosedError(BrokerError):
    """Raised when a repository is used after close()."""

    pass


class StorageError(BrokerError):
    """Raised when the storage backend fails a read or write."""

    pass
