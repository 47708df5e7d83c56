"""Testing helpers."""

from contextlib import contextmanager

import fakeredis
from flask import Flask

from ..services.cache import UserCache
from ..services.datastore import util


@contextmanager
def temporary_db(database_url: str = 'sqlite:///:memory:',
                 create: bool = True, drop: bool = True):
    """Provide an in-memory sqlite database for testing purposes."""
    app = Flask('test')
    app.config['SQLALCHEMY_DATABASE_URI'] = database_url
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    with app.app_context():
        util.init_app(app)
        if create:
            util.create_all()
        try:
            yield util.current_session()
        finally:
            util.current_session().remove()
            if drop:
                util.drop_all()


def fake_cache(ttl: int = 900) -> UserCache:
    """Get a :class:`.UserCache` backed by its own fake Redis server."""
    return UserCache(fakeredis.FakeStrictRedis(server=fakeredis.FakeServer()),
                     ttl=ttl)
