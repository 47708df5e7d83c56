"""Database integration for persisting user accounts."""

import logging
import re
import uuid
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from . import util, models
from ... import domain
from ...exceptions import ResourceNotFound

logger = logging.getLogger(__name__)


class UniqueConstraintViolated(RuntimeError):
    """A write collided with an existing email or username."""

    def __init__(self, field: str) -> None:
        self.field = field
        super(UniqueConstraintViolated, self).__init__(
            f'Unique constraint on {field} violated'
        )


init_app = util.init_app
create_all = util.create_all
drop_all = util.drop_all
is_available = util.is_available

# How each backend names the violated constraint in its error message.
UNIQUE_VIOLATION_PATTERNS = [
    re.compile(r"unique constraint failed: users\.(email|username)\b"),
    re.compile(r'constraint "users_(email|username)_key"'),
    re.compile(r"for key '(?:users\.)?(email|username)'")
]


def get_user(user_id: str) -> Optional[domain.User]:
    """Load a :class:`domain.User` by id, or ``None``."""
    db_user = _get_dbuser(user_id)
    if db_user is None:
        return None
    return util.to_domain(domain.User, db_user)


def get_user_by_email(email: str) -> Optional[domain.User]:
    """Load a :class:`domain.User` by (normalized) email, or ``None``."""
    db_user = util.current_session().query(models.DBUser) \
        .filter(models.DBUser.email == email) \
        .first()
    if db_user is None:
        return None
    return util.to_domain(domain.User, db_user)


def get_user_by_username(username: str) -> Optional[domain.User]:
    """Load a :class:`domain.User` by (normalized) username, or ``None``."""
    db_user = util.current_session().query(models.DBUser) \
        .filter(models.DBUser.username == username) \
        .first()
    if db_user is None:
        return None
    return util.to_domain(domain.User, db_user)


def email_exists(email: str) -> bool:
    """Check whether an account already uses ``email``."""
    query = util.current_session().query(models.DBUser.user_id) \
        .filter(models.DBUser.email == email)
    return util.current_session().query(query.exists()).scalar()


def username_exists(username: str) -> bool:
    """Check whether an account already uses ``username``."""
    query = util.current_session().query(models.DBUser.user_id) \
        .filter(models.DBUser.username == username)
    return util.current_session().query(query.exists()).scalar()


def get_users(user_ids: Iterable[str]) -> List[domain.User]:
    """Load the users that exist among ``user_ids``, in no particular order."""
    user_ids = list(set(user_ids))
    if not user_ids:
        return []
    db_users = util.current_session().query(models.DBUser) \
        .filter(models.DBUser.user_id.in_(user_ids)) \
        .all()
    return [util.to_domain(domain.User, db_user) for db_user in db_users]


def search_users(query: Optional[str], status: Optional[str] = None,
                 page: int = 0, size: int = 20) \
        -> Tuple[List[domain.User], int]:
    """
    Find users by case-insensitive substring of username, name, or email.

    Parameters
    ----------
    query : str
        Substring to match. If empty, all users match.
    status : str
        If provided, only users in this status are returned.
    page : int
        Zero-indexed page number.
    size : int
        Number of users per page.

    Returns
    -------
    list
        Items are :class:`domain.User` instances, ordered by display name
        (or username, where there is no display name).
    int
        Total number of matching users.

    """
    q = util.current_session().query(models.DBUser)
    if query:
        needle = query.lower()
        q = q.filter(or_(
            func.lower(models.DBUser.username).contains(needle,
                                                        autoescape=True),
            func.lower(models.DBUser.display_name).contains(needle,
                                                            autoescape=True),
            func.lower(models.DBUser.email).contains(needle, autoescape=True)
        ))
    if status is not None:
        q = q.filter(models.DBUser.status == status)
    total = q.count()
    display_name = func.coalesce(models.DBUser.display_name,
                                 models.DBUser.username)
    db_users = q.order_by(display_name.asc(), models.DBUser.username.asc()) \
        .offset(page * size) \
        .limit(size) \
        .all()
    return [util.to_domain(domain.User, u) for u in db_users], total


def create_user(user: domain.User) \
        -> Tuple[domain.User, domain.Profile, domain.Preferences]:
    """
    Persist a new user along with an empty profile and default preferences.

    The three rows are written in a single transaction; if any write fails,
    none of them are persisted.

    Parameters
    ----------
    user : :class:`domain.User`
        If ``user_id`` is not set, a new UUID is assigned. Timestamps are
        set here.

    Returns
    -------
    tuple
        The persisted :class:`domain.User`, :class:`domain.Profile`, and
        :class:`domain.Preferences`.

    Raises
    ------
    :class:`UniqueConstraintViolated`
        Raised if the email or username is already in use.

    """
    created = domain.now()
    user = user._replace(
        user_id=user.user_id or str(uuid.uuid4()),
        created_at=created,
        updated_at=created
    )
    profile = domain.Profile(user_id=user.user_id, updated_at=created)
    preferences = domain.Preferences(user_id=user.user_id, custom_settings={},
                                     updated_at=created)
    db_user = models.DBUser()
    util.copy_columns(user, db_user)
    db_profile = models.DBProfile()
    util.copy_columns(profile, db_profile)
    db_preferences = models.DBPreferences()
    util.copy_columns(preferences, db_preferences)
    try:
        with util.transaction() as session:
            session.add(db_user)
            session.add(db_profile)
            session.add(db_preferences)
    except IntegrityError as e:
        raise UniqueConstraintViolated(_violated_field(e)) from e
    logger.debug('Created user %s', user.user_id)
    return user, profile, preferences


def save_user(user: domain.User) -> domain.User:
    """Write the mutable fields of an existing user."""
    db_user = _get_dbuser(user.user_id)
    if db_user is None:
        raise ResourceNotFound(f'No such user: {user.user_id}')
    try:
        with util.transaction() as session:
            util.copy_columns(user, db_user,
                              exclude=('user_id', 'created_at'))
            session.add(db_user)
    except IntegrityError as e:
        raise UniqueConstraintViolated(_violated_field(e)) from e
    return util.to_domain(domain.User, db_user)


def get_profile(user_id: str) -> Optional[domain.Profile]:
    """Load the profile of a user, or ``None``."""
    db_profile = util.current_session().get(models.DBProfile, user_id)
    if db_profile is None:
        return None
    return util.to_domain(domain.Profile, db_profile)


def save_profile(profile: domain.Profile) -> domain.Profile:
    """Insert or update a profile."""
    with util.transaction() as session:
        db_profile = session.get(models.DBProfile, profile.user_id)
        if db_profile is None:
            db_profile = models.DBProfile()
        util.copy_columns(profile, db_profile)
        session.add(db_profile)
    return util.to_domain(domain.Profile, db_profile)


def ensure_profile(user_id: str) -> domain.Profile:
    """Get the profile of a user, creating an empty one if it is missing."""
    profile = get_profile(user_id)
    if profile is not None:
        return profile
    logger.info('Creating missing profile for user %s', user_id)
    return save_profile(domain.Profile(user_id=user_id,
                                       updated_at=domain.now()))


def get_preferences(user_id: str) -> Optional[domain.Preferences]:
    """Load the preferences of a user, or ``None``."""
    db_preferences = util.current_session().get(models.DBPreferences,
                                                user_id)
    if db_preferences is None:
        return None
    preferences = util.to_domain(domain.Preferences, db_preferences)
    if preferences.custom_settings is None:
        preferences = preferences._replace(custom_settings={})
    return preferences


def save_preferences(preferences: domain.Preferences) -> domain.Preferences:
    """Insert or update preferences."""
    if preferences.custom_settings is None:
        preferences = preferences._replace(custom_settings={})
    with util.transaction() as session:
        db_preferences = session.get(models.DBPreferences,
                                     preferences.user_id)
        if db_preferences is None:
            db_preferences = models.DBPreferences()
        util.copy_columns(preferences, db_preferences)
        session.add(db_preferences)
    return util.to_domain(domain.Preferences, db_preferences)


def ensure_preferences(user_id: str) -> domain.Preferences:
    """Get the preferences of a user, creating defaults if missing."""
    preferences = get_preferences(user_id)
    if preferences is not None:
        return preferences
    logger.info('Creating missing preferences for user %s', user_id)
    return save_preferences(domain.Preferences(user_id=user_id,
                                               custom_settings={},
                                               updated_at=domain.now()))


def _get_dbuser(user_id: Optional[str]) -> Optional[models.DBUser]:
    if user_id is None:
        return None
    return util.current_session().get(models.DBUser, user_id)


def _violated_field(error: IntegrityError) -> str:
    message = str(error.orig).lower()
    for pattern in UNIQUE_VIOLATION_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return 'unknown'
