"""
Unit tests for the topic module.
Tests subscription membership, persistence and per-consumer failure isolation.
"""
import unittest
from unittest.mock import Mock

from delaybroker.consumer import Consumer
from delaybroker.exceptions import ValidationError
from delaybroker.memory_repository import InMemoryMessageRepository
from delaybroker.message import Message
from delaybroker.producer import Producer
from delaybroker.repository import VisibilityWindow
from delaybroker.topic import Topic

from helpers import FakeClock


class TestTopic(unittest.TestCase):
    """Test cases for Topic"""

    def setUp(self):
        """Set up test fixtures"""
        self.clock = FakeClock()
        self.repository = InMemoryMessageRepository(VisibilityWindow(300, 300, clock=self.clock))
        self.topic = Topic("test-topic", self.repository)
        self.producer = Producer("topic-producer")

    def tearDown(self):
        self.repository.close()

    def make_message(self, content: str = "hello") -> Message:
        return Message(self.producer, content, created_at=self.clock.now)

    def test_topic_creation(self):
        self.assertEqual(self.topic.name, "test-topic")
        self.assertIs(self.topic.repository, self.repository)
        self.assertEqual(self.topic.consumers, [])

    def test_invalid_topic(self):
        with self.assertRaises(ValidationError):
            Topic("", self.repository)
        with self.assertRaises(ValidationError):
            Topic(None, self.repository)
        with self.assertRaises(ValidationError):
            Topic(123, self.repository)
        with self.assertRaises(ValidationError):
            Topic("name", None)

    def test_subscribe_twice_is_noop(self):
        consumer = Consumer("c1")
        self.topic.subscribe(consumer)
        self.topic.subscribe(consumer)

        self.assertEqual(self.topic.consumers, [consumer])

    def test_same_name_different_consumers(self):
        """Test that consumers are distinct by identity, not by name"""
        first = Consumer("same")
        second = Consumer("same")
        self.topic.subscribe(first)
        self.topic.subscribe(second)

        self.assertEqual(len(self.topic.consumers), 2)

    def test_same_name_consumers_report_separately(self):
        """Test that consumers sharing a name each get their own result"""
        accepting = Consumer("same", Mock(return_value=True))
        rejecting = Consumer("same", Mock(return_value=False))
        self.topic.subscribe(accepting)
        self.topic.subscribe(rejecting)

        with self.assertLogs('delaybroker.topic', level='WARNING'):
            results = self.topic.notify_consumers(self.make_message())

        self.assertEqual(len(results), 2)
        self.assertIs(results[0][0], accepting)
        self.assertIs(results[1][0], rejecting)
        self.assertEqual([ok for _, ok in results], [True, False])

    def test_subscribe_none(self):
        with self.assertRaises(ValidationError):
            self.topic.subscribe(None)

    def test_unsubscribe(self):
        first = Consumer("c1")
        second = Consumer("c2")
        self.topic.subscribe(first)
        self.topic.subscribe(second)

        self.topic.unsubscribe(first)
        self.assertEqual(self.topic.consumers, [second])

    def test_unsubscribe_absent_is_noop(self):
        subscribed = Consumer("c1")
        self.topic.subscribe(subscribed)

        self.topic.unsubscribe(Consumer("stranger"))
        self.assertEqual(self.topic.consumers, [subscribed])

    def test_consumers_is_defensive_copy(self):
        consumer = Consumer("c1")
        self.topic.subscribe(consumer)

        returned = self.topic.consumers
        returned.clear()
        returned.append(Consumer("intruder"))

        self.assertEqual(self.topic.consumers, [consumer])

    def test_add_message_persists_then_notifies(self):
        """Test that the message is stored before consumers see it"""
        seen = []

        def process(message):
            seen.append(len(self.repository.get_all_not_consumed_messages_by_topic(self.topic.name)))
            return True

        checker = Consumer("checker", process)
        self.topic.subscribe(checker)
        message = self.make_message()
        results = self.topic.add_message(message)

        self.assertEqual(seen, [1])
        self.assertEqual(results, [(checker, True)])
        self.assertIsNotNone(message.storage_id)

    def test_add_message_without_consumers(self):
        message = self.make_message()
        self.assertEqual(self.topic.add_message(message), [])
        self.assertEqual(len(self.repository.get_all_not_consumed_messages_by_topic(self.topic.name)), 1)

    def test_notify_in_subscription_order(self):
        order = []
        for name in ("first", "second", "third"):
            self.topic.subscribe(Consumer(name, lambda m, name=name: order.append(name) or True))

        self.topic.notify_consumers(self.make_message())
        self.assertEqual(order, ["first", "second", "third"])

    def test_successful_consumption_is_recorded(self):
        consumer = Consumer("recorder")
        self.topic.subscribe(consumer)
        message = self.make_message()

        self.topic.notify_consumers(message)

        self.assertEqual([c.consumer for c in message.consumptions], [consumer])
        self.assertFalse(message.consumed)

    def test_raising_consumer_does_not_block_others(self):
        """Test failure isolation when a consumer raises"""
        healthy = Mock(return_value=True)
        self.topic.subscribe(Consumer("broken", Mock(side_effect=RuntimeError("boom"))))
        self.topic.subscribe(Consumer("healthy", healthy))
        message = self.make_message()

        with self.assertLogs('delaybroker.topic', level='ERROR') as log:
            results = self.topic.notify_consumers(message)

        healthy.assert_called_once_with(message)
        self.assertEqual([(c.name, ok) for c, ok in results], [("broken", False), ("healthy", True)])
        self.assertTrue(any("broken" in line for line in log.output))
        self.assertEqual([c.consumer.name for c in message.consumptions], ["healthy"])

    def test_rejecting_consumer_does_not_block_others(self):
        """Test failure isolation when a consumer reports failure"""
        healthy = Mock(return_value=True)
        self.topic.subscribe(Consumer("rejecting", Mock(return_value=False)))
        self.topic.subscribe(Consumer("healthy", healthy))

        with self.assertLogs('delaybroker.topic', level='WARNING'):
            results = self.topic.notify_consumers(self.make_message())

        healthy.assert_called_once()
        self.assertEqual([(c.name, ok) for c, ok in results], [("rejecting", False), ("healthy", True)])

    def test_consumer_unsubscribing_during_fanout(self):
        """Test that membership changes during fan-out don't disturb the loop"""
        later = Mock(return_value=True)

        def leave(message):
            self.topic.unsubscribe(leaver)
            return True

        leaver = Consumer("leaver", leave)
        self.topic.subscribe(leaver)
        self.topic.subscribe(Consumer("later", later))

        self.topic.notify_consumers(self.make_message())

        later.assert_called_once()
        self.assertEqual([c.name for c in self.topic.consumers], ["later"])


class TestConsumer(unittest.TestCase):
    """Test cases for Consumer"""

    def setUp(self):
        self.message = Message(Producer("p"), "content")

    def test_default_process_accepts(self):
        self.assertTrue(Consumer("default").consume(self.message))

    def test_process_function_result(self):
        process = Mock(return_value=False)
        consumer = Consumer("custom", process)

        self.assertFalse(consumer.consume(self.message))
        process.assert_called_once_with(self.message)

    def test_result_coerced_to_bool(self):
        self.assertIs(Consumer("truthy", lambda m: "yes").consume(self.message), True)
        self.assertIs(Consumer("falsy", lambda m: None).consume(self.message), False)

    def test_unexpected_errors_propagate(self):
        consumer = Consumer("raises", Mock(side_effect=KeyError("k")))
        with self.assertRaises(KeyError):
            consumer.consume(self.message)

    def test_identity_equality(self):
        self.assertNotEqual(Consumer("a"), Consumer("a"))


if __name__ == '__main__':
    unittest.main()
