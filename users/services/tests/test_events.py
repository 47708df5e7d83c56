"""Tests for :mod:`users.services.events`."""

import json
import threading
from unittest import TestCase, mock

import dateutil.parser

from .. import events
from ... import domain


class RecordingBus(object):
    """Keeps everything that it is asked to publish."""

    def __init__(self) -> None:
        self.published = []

    def publish(self, topic, key, envelope):
        self.published.append((topic, key, envelope))


class BlockingBus(RecordingBus):
    """Blocks in ``publish`` until released."""

    def __init__(self) -> None:
        super(BlockingBus, self).__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def publish(self, topic, key, envelope):
        self.started.set()
        self.release.wait(5)
        super(BlockingBus, self).publish(topic, key, envelope)


class TestEventPublisher(TestCase):
    """:class:`.EventPublisher` hands events to the bus in the background."""

    def setUp(self):
        self.bus = RecordingBus()
        self.publisher = events.EventPublisher(self.bus)

    def tearDown(self):
        self.publisher.close(timeout=5)

    def test_envelope(self):
        """Events are wrapped in the standard envelope, keyed by user."""
        self.publisher.publish('USER_CREATED', 'u1', {'id': 'u1'})
        self.assertTrue(self.publisher.flush(timeout=5))

        topic, key, envelope = self.bus.published[0]
        self.assertEqual(topic, 'quckapp.users.events')
        self.assertEqual(key, 'u1')
        self.assertEqual(envelope['eventType'], 'USER_CREATED')
        self.assertEqual(envelope['userId'], 'u1')
        self.assertEqual(envelope['data'], {'id': 'u1'})
        self.assertEqual(envelope['source'], 'user-service')
        timestamp = dateutil.parser.parse(envelope['timestamp'])
        self.assertIsNotNone(timestamp.tzinfo)

    def test_order(self):
        """Events are handed over in the order they were published."""
        for i in range(10):
            self.publisher.publish('USER_UPDATED', f'u{i}', {})
        self.publisher.flush(timeout=5)
        self.assertEqual([key for _, key, _ in self.bus.published],
                         [f'u{i}' for i in range(10)])

    def test_payloads(self):
        """Convenience methods build the documented payloads."""
        user = domain.User(user_id='u1', email='jane@example.com',
                           username='jane')
        self.publisher.user_created(user)
        self.publisher.user_updated(user)
        self.publisher.user_deactivated(user)
        self.publisher.user_suspended(user)
        self.publisher.profile_updated(domain.Profile(user_id='u1'))
        self.publisher.profile_updated(domain.Profile(user_id='u1',
                                                      custom_status='Away'))
        self.publisher.preferences_updated(domain.Preferences(user_id='u1'))
        self.publisher.flush(timeout=5)

        published = [(e['eventType'], e['data'])
                     for _, _, e in self.bus.published]
        self.assertEqual(published, [
            ('USER_CREATED', {'id': 'u1', 'email': 'jane@example.com',
                              'username': 'jane'}),
            ('USER_UPDATED', {'id': 'u1', 'email': 'jane@example.com',
                              'displayName': ''}),
            ('USER_DEACTIVATED', {'id': 'u1', 'email': 'jane@example.com'}),
            ('USER_SUSPENDED', {'id': 'u1', 'email': 'jane@example.com'}),
            ('PROFILE_UPDATED', {'userId': 'u1'}),
            ('PROFILE_UPDATED', {'userId': 'u1', 'customStatus': 'Away'}),
            ('PREFERENCES_UPDATED', {'userId': 'u1', 'theme': 'system'}),
        ])

    def test_close(self):
        """Pending events are drained on close; later ones are dropped."""
        self.publisher.publish('USER_CREATED', 'u1', {})
        self.publisher.close(timeout=5)
        self.assertEqual(len(self.bus.published), 1)
        with self.assertLogs(events.__name__, level='WARNING'):
            self.publisher.publish('USER_CREATED', 'u2', {})
        self.assertEqual(len(self.bus.published), 1)


class TestBusFailure(TestCase):
    """Bus failures are absorbed."""

    def test_failure_is_logged(self):
        """The caller never sees the failure; later events still go out."""
        bus = mock.MagicMock()
        bus.publish.side_effect = [ConnectionError('bus is down'), None]
        publisher = events.EventPublisher(bus)
        try:
            with self.assertLogs(events.__name__, level='ERROR') as logs:
                publisher.publish('USER_CREATED', 'u1', {})
                self.assertTrue(publisher.flush(timeout=5))
            self.assertIn('USER_CREATED', logs.output[0])

            publisher.publish('USER_UPDATED', 'u1', {})
            self.assertTrue(publisher.flush(timeout=5))
            self.assertEqual(bus.publish.call_count, 2)
        finally:
            publisher.close(timeout=5)


class TestBackpressure(TestCase):
    """When the queue is full, the oldest pending event is dropped."""

    def test_drop_oldest(self):
        bus = BlockingBus()
        publisher = events.EventPublisher(bus, capacity=2)
        try:
            publisher.publish('USER_UPDATED', 'u1', {})
            self.assertTrue(bus.started.wait(5))     # u1 is in flight.

            publisher.publish('USER_UPDATED', 'u2', {})
            publisher.publish('USER_UPDATED', 'u3', {})
            with self.assertLogs(events.__name__, level='WARNING') as logs:
                publisher.publish('USER_UPDATED', 'u4', {})
            self.assertIn('u2', logs.output[0])

            bus.release.set()
            self.assertTrue(publisher.flush(timeout=5))
            self.assertEqual([key for _, key, _ in bus.published],
                             ['u1', 'u3', 'u4'])
        finally:
            bus.release.set()
            publisher.close(timeout=5)


class TestRedisStreamBus(TestCase):
    """:class:`.RedisStreamBus` appends to a capped stream."""

    def test_publish(self):
        connection = mock.MagicMock()
        bus = events.RedisStreamBus(connection, maxlen=50)
        envelope = {'eventType': 'USER_CREATED', 'userId': 'u1'}
        bus.publish('quckapp.users.events', 'u1', envelope)

        args, kwargs = connection.xadd.call_args
        self.assertEqual(args[0], 'quckapp.users.events')
        self.assertEqual(args[1]['key'], 'u1')
        self.assertEqual(json.loads(args[1]['value']), envelope)
        self.assertEqual(kwargs, {'maxlen': 50, 'approximate': True})
