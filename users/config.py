"""Flask configuration for the user service."""

import os

VERSION = '0.1.0'

LOGLEVEL = os.environ.get('LOGLEVEL', 'INFO')

#################### Account store ####################
SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI',
                                         'sqlite:///users.db')
SQLALCHEMY_TRACK_MODIFICATIONS = False

CREATE_DB = bool(int(os.environ.get('CREATE_DB', '0')))
"""If 1, create the tables on startup (dev and test only)."""

#################### Cache ####################
REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')
REDIS_CLUSTER = os.environ.get('REDIS_CLUSTER', '0')
"""If 1, expects a redis cluster; otherwise expects a single redis node."""

REDIS_FAKE = os.environ.get('REDIS_FAKE', False)
"""Use the FakeRedis library instead of a redis service.

Useful for testing and local development."""

USER_CACHE_TTL = os.environ.get('USER_CACHE_TTL', '900')
"""Seconds before a cached user expires, regardless of invalidation."""

#################### Events ####################
USER_EVENTS_TOPIC = os.environ.get('USER_EVENTS_TOPIC', 'quckapp.users.events')
EVENT_QUEUE_CAPACITY = os.environ.get('EVENT_QUEUE_CAPACITY', '1000')
"""Pending events held in memory; the oldest is dropped when full."""

EVENT_STREAM_MAXLEN = os.environ.get('EVENT_STREAM_MAXLEN', '100000')

#################### Bearer tokens ####################
JWT_SECRET = os.environ.get('JWT_SECRET')
"""Base64-encoded HMAC key shared with the identity service."""

JWT_ISSUER = os.environ.get('JWT_ISSUER', 'quckapp-auth-local')
