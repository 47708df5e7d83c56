"""Helpers and Flask application integration."""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Generator, Iterable, Optional

from flask import Flask
from pytz import UTC
from sqlalchemy import text
from sqlalchemy.orm.session import Session

from .models import db

logger = logging.getLogger(__name__)


@contextmanager
def transaction() -> Generator:
    """Context manager for database transaction."""
    try:
        yield db.session
        # The caller may have explicitly committed already, in order to
        # implement exception handling logic. We only want to commit here if
        # there is anything remaining that is not flushed.
        if db.session.new or db.session.dirty or db.session.deleted:
            db.session.commit()
    except Exception as e:
        logger.error('Commit failed, rolling back: %s', str(e))
        db.session.rollback()
        raise


def init_app(app: Flask) -> None:
    """Set configuration defaults and attach session to the application."""
    app.config.setdefault('SQLALCHEMY_DATABASE_URI', 'sqlite:///users.db')
    app.config.setdefault('SQLALCHEMY_TRACK_MODIFICATIONS', False)
    db.init_app(app)


def current_session() -> Session:
    """Get/create database session for this context."""
    return db.session


def create_all() -> None:
    """Create all tables in the database."""
    db.create_all()


def drop_all() -> None:
    """Drop all tables in the database."""
    db.drop_all()


def is_available(**kwargs: Any) -> bool:
    """Check our connection to the database."""
    try:
        db.session.execute(text('SELECT 1')).all()
    except Exception as e:
        logger.error('Encountered an error talking to database: %s', e)
        return False
    return True


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Some backends (e.g. SQLite) drop tzinfo; stored datetimes are UTC."""
    if value is not None and value.tzinfo is None:
        return UTC.localize(value)
    return value


def to_domain(cls: type, db_obj: Any) -> Any:
    """Build a domain NamedTuple from the like-named columns of a row."""
    data = {}
    for field in cls._fields:  # type: ignore
        value = getattr(db_obj, field)
        if isinstance(value, datetime):
            value = as_utc(value)
        data[field] = value
    return cls(**data)


def copy_columns(obj: tuple, db_obj: Any,
                 exclude: Iterable[str] = ()) -> None:
    """Write the fields of a domain NamedTuple onto a row."""
    for field, value in obj._asdict().items():  # type: ignore
        if field not in exclude:
            setattr(db_obj, field, value)
