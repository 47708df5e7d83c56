"""
Best-effort publication of account lifecycle events.

:class:`EventPublisher` puts events on a bounded in-process queue and returns
immediately. A daemon worker thread hands them to the message bus. Nothing is
retried: if the bus fails, the event is logged and discarded. If the queue is
full, the oldest pending event is discarded to make room.

The bus is anything with a ``publish(topic, key, envelope)`` method; see
:class:`RedisStreamBus`.
"""

import json
import logging
import threading
from collections import deque
from typing import Any, Deque, Dict, Optional, Tuple

from flask import Flask, current_app, has_app_context

from .. import domain
from ..context import get_application_config
from .cache import connect_redis

logger = logging.getLogger(__name__)

SOURCE = 'user-service'
DEFAULT_TOPIC = 'quckapp.users.events'
DEFAULT_CAPACITY = 1000
DEFAULT_MAXLEN = 100000


class EventType(object):
    """Account lifecycle event types."""

    USER_CREATED = 'USER_CREATED'
    USER_UPDATED = 'USER_UPDATED'
    USER_DEACTIVATED = 'USER_DEACTIVATED'
    USER_SUSPENDED = 'USER_SUSPENDED'
    PROFILE_UPDATED = 'PROFILE_UPDATED'
    PREFERENCES_UPDATED = 'PREFERENCES_UPDATED'


class RedisStreamBus(object):
    """Appends events to a capped Redis stream named for the topic."""

    def __init__(self, connection: Any, maxlen: int = DEFAULT_MAXLEN) -> None:
        self.r = connection
        self.maxlen = maxlen

    def publish(self, topic: str, key: str, envelope: dict) -> None:
        """Append ``envelope`` to the stream ``topic``."""
        self.r.xadd(topic, {'key': key, 'value': json.dumps(envelope)},
                    maxlen=self.maxlen, approximate=True)


class EventPublisher(object):
    """
    Fire-and-forget publisher of user events.

    Parameters
    ----------
    bus : object
        Must provide ``publish(topic, key, envelope)``.
    topic : str
    source : str
        Written to the ``source`` field of every envelope.
    capacity : int
        Maximum number of pending events.

    """

    def __init__(self, bus: Any, topic: str = DEFAULT_TOPIC,
                 source: str = SOURCE,
                 capacity: int = DEFAULT_CAPACITY) -> None:
        self.bus = bus
        self.topic = topic
        self.source = source
        self.capacity = capacity
        self._queue: Deque[Tuple[str, dict]] = deque()
        self._pending = 0
        self._closed = False
        self._lock = threading.Condition()
        self._worker = threading.Thread(target=self._run,
                                        name='user-events', daemon=True)
        self._worker.start()

    def publish(self, event_type: str, user_id: str,
                data: Dict[str, Any]) -> None:
        """Enqueue an event keyed by ``user_id``; never blocks or raises."""
        envelope = {
            'eventType': event_type,
            'userId': user_id,
            'data': data,
            'timestamp': domain.now().isoformat(),
            'source': self.source
        }
        with self._lock:
            if self._closed:
                logger.warning('Publisher is closed; dropped %s for user %s',
                               event_type, user_id)
                return
            if len(self._queue) >= self.capacity:
                _, dropped = self._queue.popleft()
                self._pending -= 1
                logger.warning('Event queue full; dropped %s for user %s',
                               dropped['eventType'], dropped['userId'])
            self._queue.append((user_id, envelope))
            self._pending += 1
            self._lock.notify_all()

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until every pending event has been handed to the bus."""
        with self._lock:
            return self._lock.wait_for(lambda: self._pending == 0, timeout)

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop accepting events, and stop the worker once it has drained."""
        with self._lock:
            self._closed = True
            self._lock.notify_all()
        self._worker.join(timeout)

    def _run(self) -> None:
        while True:
            with self._lock:
                while not self._queue and not self._closed:
                    self._lock.wait()
                if not self._queue:
                    return
                key, envelope = self._queue.popleft()
            try:
                self.bus.publish(self.topic, key, envelope)
                logger.debug('Published %s for user %s',
                             envelope['eventType'], key)
            except Exception:
                logger.exception('Failed to publish %s for user %s',
                                 envelope['eventType'], key)
            finally:
                with self._lock:
                    self._pending -= 1
                    self._lock.notify_all()

    def user_created(self, user: domain.User) -> None:
        self.publish(EventType.USER_CREATED, user.user_id, {
            'id': user.user_id,
            'email': user.email,
            'username': user.username
        })

    def user_updated(self, user: domain.User) -> None:
        self.publish(EventType.USER_UPDATED, user.user_id, {
            'id': user.user_id,
            'email': user.email,
            'displayName': user.display_name or ''
        })

    def user_deactivated(self, user: domain.User) -> None:
        self.publish(EventType.USER_DEACTIVATED, user.user_id, {
            'id': user.user_id,
            'email': user.email
        })

    def user_suspended(self, user: domain.User) -> None:
        self.publish(EventType.USER_SUSPENDED, user.user_id, {
            'id': user.user_id,
            'email': user.email
        })

    def profile_updated(self, profile: domain.Profile) -> None:
        data = {'userId': profile.user_id}
        if profile.custom_status is not None:
            data['customStatus'] = profile.custom_status
        self.publish(EventType.PROFILE_UPDATED, profile.user_id, data)

    def preferences_updated(self, preferences: domain.Preferences) -> None:
        self.publish(EventType.PREFERENCES_UPDATED, preferences.user_id, {
            'userId': preferences.user_id,
            'theme': preferences.theme
        })


def init_app(app: Flask) -> None:
    """Set configuration defaults and start a publisher for ``app``."""
    app.config.setdefault('USER_EVENTS_TOPIC', DEFAULT_TOPIC)
    app.config.setdefault('EVENT_QUEUE_CAPACITY', str(DEFAULT_CAPACITY))
    app.config.setdefault('EVENT_STREAM_MAXLEN', str(DEFAULT_MAXLEN))
    app.extensions['user_events'] = get_publisher(app)


def get_publisher(app: object = None) -> EventPublisher:
    """Get a new :class:`.EventPublisher` backed by a Redis stream."""
    config = get_application_config(app)
    maxlen = int(config.get('EVENT_STREAM_MAXLEN', DEFAULT_MAXLEN))
    return EventPublisher(
        RedisStreamBus(connect_redis(app), maxlen=maxlen),
        topic=config.get('USER_EVENTS_TOPIC', DEFAULT_TOPIC),
        capacity=int(config.get('EVENT_QUEUE_CAPACITY', DEFAULT_CAPACITY))
    )


_publisher: Optional[EventPublisher] = None


def current_publisher() -> EventPublisher:
    """Get the publisher of the current application, or a process-wide one."""
    global _publisher
    if has_app_context() and 'user_events' in current_app.extensions:
        return current_app.extensions['user_events']  # type: ignore
    if _publisher is None:
        _publisher = get_publisher()
    return _publisher
