"""
Account lifecycle operations.

These functions are the core of the service: they keep a user, its profile,
and its preferences consistent, use the cache on the primary lookup path,
and announce changes on the message bus. They are called by the routes in
:mod:`users.routes`, but have no dependency on the transport.

Writes go to the account store first. Only once the store has committed is
the cached copy of the user evicted and the event enqueued.
"""

import logging
from typing import Iterable, List, Optional

from . import domain
from .exceptions import DuplicateResource, InvalidField, ResourceNotFound
from .services import datastore
from .services.cache import current_cache
from .services.events import current_publisher

logger = logging.getLogger(__name__)


def create_account(email: str, username: str,
                   display_name: Optional[str] = None,
                   avatar_url: Optional[str] = None,
                   phone: Optional[str] = None,
                   timezone: Optional[str] = None,
                   locale: Optional[str] = None) -> domain.User:
    """
    Create a new user, with an empty profile and default preferences.

    Parameters
    ----------
    email : str
        Stored in lowercase; must not already be in use.
    username : str
        Stored in lowercase; letters, digits, underscores, and hyphens.
    display_name : str
    avatar_url : str
    phone : str
    timezone : str
        Defaults to ``UTC``.
    locale : str
        Defaults to ``en``.

    Returns
    -------
    :class:`domain.User`

    Raises
    ------
    :class:`DuplicateResource`
        Raised if the email or the username is already in use. Nothing is
        written in that case.
    :class:`InvalidField`
        Raised if the username contains illegal characters.

    """
    if not email or not email.strip():
        raise InvalidField('email', 'Email is required')
    if not username or not username.strip():
        raise InvalidField('username', 'Username is required')
    email = domain.normalize_email(email)
    username = domain.normalize_username(username)
    logger.info('Creating account for username %s', username)
    domain.check_username(username)

    if datastore.email_exists(email):
        logger.info('Email already in use; rejecting %s', username)
        raise DuplicateResource('email')
    if datastore.username_exists(username):
        logger.info('Username already in use: %s', username)
        raise DuplicateResource('username')

    user = domain.User(
        email=email,
        username=username,
        display_name=display_name,
        avatar_url=avatar_url,
        phone=phone,
        timezone=timezone or 'UTC',
        locale=locale or 'en'
    )
    try:
        user, _, _ = datastore.create_user(user)
    except datastore.UniqueConstraintViolated as e:
        # Another request claimed the email or username after our probe.
        logger.info('Lost creation race on %s for %s', e.field, username)
        raise DuplicateResource(e.field) from e

    logger.info('Created user %s', user.user_id)
    current_publisher().user_created(user)
    return user


def get_by_id(user_id: str) -> domain.User:
    """
    Get a user by id, consulting the cache first.

    Raises
    ------
    :class:`ResourceNotFound`

    """
    logger.debug('Get user by id %s', user_id)
    cache = current_cache()
    user = cache.get(user_id)
    if user is not None:
        return user
    user = datastore.get_user(user_id)
    if user is None:
        raise ResourceNotFound(f'User not found: {user_id}')
    cache.set(user)
    return user


def get_by_email(email: str) -> domain.User:
    """Get a user by email, case-insensitively."""
    logger.debug('Get user by email')
    user = datastore.get_user_by_email(domain.normalize_email(email))
    if user is None:
        raise ResourceNotFound(f'User not found with email: {email}')
    return user


def get_by_username(username: str) -> domain.User:
    """Get a user by username, case-insensitively."""
    logger.debug('Get user by username %s', username)
    user = datastore.get_user_by_username(domain.normalize_username(username))
    if user is None:
        raise ResourceNotFound(f'User not found with username: {username}')
    return user


def update_account(user_id: str, update: domain.UserUpdate) -> domain.User:
    """
    Apply a partial update to a user.

    Only the fields provided on ``update`` are changed. Email and username
    cannot be changed.
    """
    logger.info('Updating user %s', user_id)
    user = _require_user(user_id)
    user = update.apply(user)._replace(updated_at=domain.now())
    user = datastore.save_user(user)
    current_cache().evict(user_id)
    current_publisher().user_updated(user)
    return user


def deactivate_account(user_id: str) -> domain.User:
    """Move a user to ``INACTIVE``, whatever its current status."""
    logger.info('Deactivating user %s', user_id)
    user = _set_status(user_id, domain.UserStatus.INACTIVE)
    current_publisher().user_deactivated(user)
    return user


def suspend_account(user_id: str) -> domain.User:
    """Move a user to ``SUSPENDED``, whatever its current status."""
    logger.info('Suspending user %s', user_id)
    user = _set_status(user_id, domain.UserStatus.SUSPENDED)
    current_publisher().user_suspended(user)
    return user


def record_login(user_id: str, ip_address: Optional[str]) -> domain.User:
    """Stamp the time and address of a successful login."""
    logger.info('Recording login for user %s', user_id)
    user = _require_user(user_id)
    stamp = domain.now()
    user = datastore.save_user(user._replace(last_login_at=stamp,
                                             last_login_ip=ip_address,
                                             updated_at=stamp))
    current_cache().evict(user_id)
    return user


def search_accounts(query: Optional[str], status: Optional[str] = None,
                    page: int = 0, size: int = 20) -> domain.Page:
    """
    Find users by username, display name, or email.

    Parameters
    ----------
    query : str
        Case-insensitive substring.
    status : str
        If provided, one of :attr:`domain.UserStatus.STATUSES`.
    page : int
        Zero-indexed.
    size : int
        Must be at least 1.

    Returns
    -------
    :class:`domain.Page`
        Content items are :class:`domain.UserSummary`, ordered by display
        name.

    """
    logger.debug('Search users: query=%s status=%s page=%s size=%s',
                 query, status, page, size)
    if page < 0:
        raise InvalidField('page', 'Page must not be negative')
    if size < 1:
        raise InvalidField('size', 'Size must be at least 1')
    status = domain.UserStatus.coerce(status)
    users, total = datastore.search_users(query, status, page, size)
    content = [domain.UserSummary.from_user(user) for user in users]
    return domain.Page.build(content, page, size, total)


def get_accounts_by_ids(user_ids: Iterable[str]) -> List[domain.UserSummary]:
    """Summarize the users among ``user_ids`` that exist."""
    user_ids = list(user_ids or [])
    if not user_ids:
        return []
    logger.debug('Get %i users by id', len(user_ids))
    return [domain.UserSummary.from_user(user)
            for user in datastore.get_users(user_ids)]


def get_profile(user_id: str) -> domain.Profile:
    """Get the profile of a user, creating an empty one if it is missing."""
    logger.debug('Get profile for user %s', user_id)
    _require_user(user_id)
    return datastore.ensure_profile(user_id)


def update_profile(user_id: str,
                   update: domain.ProfileUpdate) -> domain.Profile:
    """Apply a partial update to the profile of a user."""
    logger.info('Updating profile for user %s', user_id)
    _require_user(user_id)
    profile = datastore.ensure_profile(user_id)
    profile = update.apply(profile)._replace(updated_at=domain.now())
    profile = datastore.save_profile(profile)
    current_cache().evict(user_id)
    current_publisher().profile_updated(profile)
    return profile


def get_preferences(user_id: str) -> domain.Preferences:
    """Get the preferences of a user, creating defaults if they are missing."""
    logger.debug('Get preferences for user %s', user_id)
    _require_user(user_id)
    return datastore.ensure_preferences(user_id)


def update_preferences(user_id: str,
                       update: domain.PreferencesUpdate) -> domain.Preferences:
    """
    Apply a partial update to the preferences of a user.

    Raises
    ------
    :class:`InvalidField`
        Raised if ``theme`` is not a known theme, or ``font_size`` is out of
        bounds.
    :class:`ResourceNotFound`

    """
    logger.info('Updating preferences for user %s', user_id)
    update.validate()
    _require_user(user_id)
    preferences = datastore.ensure_preferences(user_id)
    preferences = update.apply(preferences)._replace(updated_at=domain.now())
    preferences = datastore.save_preferences(preferences)
    current_cache().evict(user_id)
    current_publisher().preferences_updated(preferences)
    return preferences


def _require_user(user_id: str) -> domain.User:
    user = datastore.get_user(user_id)
    if user is None:
        raise ResourceNotFound(f'User not found: {user_id}')
    return user


def _set_status(user_id: str, status: str) -> domain.User:
    user = _require_user(user_id)
    user = datastore.save_user(user._replace(status=status,
                                             updated_at=domain.now()))
    current_cache().evict(user_id)
    return user
