"""Defines user account concepts for use in the user service."""

import math
import re
from datetime import datetime, time
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Union, \
    get_type_hints, get_origin, get_args

import dateutil.parser
from pytz import UTC

from .exceptions import InvalidField


class _Unset(object):
    """Marks a patch field that was not provided."""

    def __repr__(self) -> str:
        return 'UNSET'

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()
"""Sentinel for "leave this field unchanged" in partial updates."""


USERNAME_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')


class UserStatus(object):
    """Known account statuses."""

    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'
    SUSPENDED = 'SUSPENDED'
    DELETED = 'DELETED'
    STATUSES = [ACTIVE, INACTIVE, SUSPENDED, DELETED]

    @classmethod
    def coerce(cls, value: Optional[str]) -> Optional[str]:
        """Normalize a status label, or raise :class:`.InvalidField`."""
        if value is None:
            return None
        status = value.strip().upper()
        if status not in cls.STATUSES:
            raise InvalidField('status', f'Unknown status: {value}')
        return status


class Theme(object):
    """UI themes."""

    LIGHT = 'light'
    DARK = 'dark'
    SYSTEM = 'system'
    THEMES = [LIGHT, DARK, SYSTEM]


MIN_FONT_SIZE = 10
MAX_FONT_SIZE = 24


def now() -> datetime:
    """Get the current UTC datetime."""
    return datetime.now(tz=UTC)


def normalize_email(email: str) -> str:
    """Emails are compared and stored in lowercase."""
    return email.strip().lower()


def normalize_username(username: str) -> str:
    """Usernames are compared and stored in lowercase."""
    return username.strip().lower()


def check_username(username: str) -> None:
    """Raise :class:`.InvalidField` if ``username`` has illegal characters."""
    if not USERNAME_PATTERN.match(username):
        raise InvalidField('username', 'Username may contain only letters,'
                                       ' digits, underscores, and hyphens')


class User(NamedTuple):
    """Represents a user account."""

    email: str
    """The user's primary e-mail address, in lowercase."""

    username: str
    """Slug-like username, in lowercase."""

    user_id: Optional[str] = None
    """Unique identifier for the user. If ``None``, the user does not exist."""

    display_name: Optional[str] = None
    """Name shown in the UI."""

    avatar_url: Optional[str] = None
    phone: Optional[str] = None

    timezone: str = 'UTC'
    """IANA timezone identifier."""

    locale: str = 'en'

    status: str = UserStatus.ACTIVE
    """One of :attr:`UserStatus.STATUSES`."""

    email_verified: bool = False
    phone_verified: bool = False
    last_login_at: Optional[datetime] = None
    last_login_ip: Optional[str] = None

    created_at: Optional[datetime] = None
    """Set once, when the account is created."""

    updated_at: Optional[datetime] = None
    """Set on every mutation."""

    @property
    def effective_display_name(self) -> str:
        """The display name, falling back to the username."""
        return self.display_name if self.display_name is not None \
            else self.username

    @property
    def is_active(self) -> bool:
        """Whether the account is in the ACTIVE state."""
        return self.status == UserStatus.ACTIVE


class Profile(NamedTuple):
    """Extended profile data, one-to-one with :class:`.User`."""

    user_id: str
    title: Optional[str] = None
    department: Optional[str] = None
    location: Optional[str] = None
    bio: Optional[str] = None
    custom_status: Optional[str] = None
    status_emoji: Optional[str] = None
    status_expiry: Optional[datetime] = None
    pronouns: Optional[str] = None
    birthday: Optional[datetime] = None
    linkedin_url: Optional[str] = None
    twitter_url: Optional[str] = None
    github_url: Optional[str] = None
    updated_at: Optional[datetime] = None


class Preferences(NamedTuple):
    """Notification, UI, privacy and accessibility settings for a user."""

    user_id: str

    push_enabled: bool = True
    email_enabled: bool = True
    sms_enabled: bool = False
    desktop_notifications: bool = True
    sound_enabled: bool = True

    quiet_hours_start: Optional[time] = None
    quiet_hours_end: Optional[time] = None
    quiet_hours_enabled: bool = False

    theme: str = Theme.SYSTEM
    """One of :attr:`Theme.THEMES`."""

    language: str = 'en'
    compact_mode: bool = False
    sidebar_collapsed: bool = False
    show_unread_only: bool = False
    message_preview: bool = True
    enter_to_send: bool = True
    markdown_enabled: bool = True
    emoji_suggestions_enabled: bool = True

    show_online_status: bool = True
    show_typing_indicator: bool = True
    show_read_receipts: bool = True

    reduced_motion: bool = False
    high_contrast: bool = False

    font_size: int = 14
    """Font size in pixels, between 10 and 24."""

    custom_settings: Optional[Dict[str, Any]] = None
    """Open-ended bag of forward-compatible settings."""

    updated_at: Optional[datetime] = None


class UserSummary(NamedTuple):
    """Abbreviated user information for listings and search results."""

    user_id: str
    username: str
    display_name: str
    avatar_url: Optional[str] = None
    status: str = UserStatus.ACTIVE

    @classmethod
    def from_user(cls, user: User) -> 'UserSummary':
        """Summarize a :class:`.User`."""
        return cls(
            user_id=user.user_id,
            username=user.username,
            display_name=user.effective_display_name,
            avatar_url=user.avatar_url,
            status=user.status
        )


class Page(NamedTuple):
    """A zero-indexed slice of a larger result set."""

    content: List[Any]
    page: int
    size: int
    total_elements: int
    total_pages: int
    first: bool
    last: bool

    @classmethod
    def build(cls, content: List[Any], page: int, size: int,
              total: int) -> 'Page':
        """Derive page metadata from the slice and the total count."""
        total_pages = int(math.ceil(total / size)) if size else 0
        return cls(
            content=content,
            page=page,
            size=size,
            total_elements=total,
            total_pages=total_pages,
            first=page == 0,
            last=page + 1 >= total_pages
        )


class Principal(NamedTuple):
    """The verified identity attached to an authenticated request."""

    user_id: str
    email: Optional[str] = None
    external_id: Optional[str] = None
    session_id: Optional[str] = None
    authorities: tuple = ('ROLE_USER',)


# Partial updates.


def _changes(patch: tuple) -> Dict[str, Any]:
    """Get the fields of a patch that were explicitly provided."""
    return {field: value for field, value
            in patch._asdict().items()  # type: ignore
            if value is not UNSET}


def _apply(patch: tuple, obj: Any) -> Any:
    """Merge the provided fields of ``patch`` onto ``obj``."""
    return obj._replace(**_changes(patch))  # type: ignore


def _from_payload(cls: type, payload: Optional[dict]) -> Any:
    """
    Build a patch from a decoded JSON payload.

    Keys may be ``camelCase`` or ``snake_case``. Keys that are missing or
    ``null`` leave the target field unchanged; unknown keys are ignored.
    """
    hints = get_type_hints(cls)
    data = {}
    for key, value in (payload or {}).items():
        field = _snake_case(key)
        if field not in cls._fields or value is None:  # type: ignore
            continue
        data[field] = _cast(hints[field], value, field)
    return cls(**data)


class UserUpdate(NamedTuple):
    """Partial update of a :class:`.User`; email/username are immutable."""

    display_name: Optional[str] = UNSET
    avatar_url: Optional[str] = UNSET
    phone: Optional[str] = UNSET
    timezone: str = UNSET
    locale: str = UNSET

    changes = _changes
    apply = _apply
    from_payload = classmethod(_from_payload)


class ProfileUpdate(NamedTuple):
    """Partial update of a :class:`.Profile`."""

    title: Optional[str] = UNSET
    department: Optional[str] = UNSET
    location: Optional[str] = UNSET
    bio: Optional[str] = UNSET
    custom_status: Optional[str] = UNSET
    status_emoji: Optional[str] = UNSET
    status_expiry: Optional[datetime] = UNSET
    pronouns: Optional[str] = UNSET
    birthday: Optional[datetime] = UNSET
    linkedin_url: Optional[str] = UNSET
    twitter_url: Optional[str] = UNSET
    github_url: Optional[str] = UNSET

    changes = _changes
    apply = _apply
    from_payload = classmethod(_from_payload)


class PreferencesUpdate(NamedTuple):
    """Partial update of :class:`.Preferences`."""

    push_enabled: bool = UNSET
    email_enabled: bool = UNSET
    sms_enabled: bool = UNSET
    desktop_notifications: bool = UNSET
    sound_enabled: bool = UNSET
    quiet_hours_start: Optional[time] = UNSET
    quiet_hours_end: Optional[time] = UNSET
    quiet_hours_enabled: bool = UNSET
    theme: str = UNSET
    language: str = UNSET
    compact_mode: bool = UNSET
    sidebar_collapsed: bool = UNSET
    show_unread_only: bool = UNSET
    message_preview: bool = UNSET
    enter_to_send: bool = UNSET
    markdown_enabled: bool = UNSET
    emoji_suggestions_enabled: bool = UNSET
    show_online_status: bool = UNSET
    show_typing_indicator: bool = UNSET
    show_read_receipts: bool = UNSET
    reduced_motion: bool = UNSET
    high_contrast: bool = UNSET
    font_size: int = UNSET
    custom_settings: Dict[str, Any] = UNSET

    changes = _changes
    apply = _apply
    from_payload = classmethod(_from_payload)

    def validate(self) -> None:
        """Check the bounded fields, raising :class:`.InvalidField`."""
        if self.theme is not UNSET and self.theme not in Theme.THEMES:
            raise InvalidField('theme', f'Theme must be one of {Theme.THEMES}')
        if self.font_size is not UNSET and not (
                isinstance(self.font_size, int)
                and MIN_FONT_SIZE <= self.font_size <= MAX_FONT_SIZE):
            raise InvalidField('font_size', f'Font size must be between'
                                            f' {MIN_FONT_SIZE} and'
                                            f' {MAX_FONT_SIZE}')


# Helpers and private functions.


def to_dict(obj: tuple) -> dict:
    """
    Generate a dict representation of a NamedTuple instance.

    This just uses the built-in ``_asdict`` method on the instance, but also
    calls this on any child NamedTuple instances (recursively) so that the
    entire tree is cast to ``dict``. Datetimes and times are rendered as
    ISO-8601 strings.

    Parameters
    ----------
    obj : tuple
        A NamedTuple instance.

    Returns
    -------
    dict

    """
    if not hasattr(obj, '_asdict'):  # NamedTuple-generated classes have this.
        return {}
    return {key: _serialize(value)
            for key, value in obj._asdict().items()}  # type: ignore


def from_dict(cls: type, data: dict) -> Any:
    """
    Generate a NamedTuple instance from a dict, with recursion.

    This is the inverse of :func:`to_dict`. ISO-8601 strings are parsed back
    into :class:`datetime` or :class:`time` where the field annotation calls
    for one, and nested dicts are instantiated as the expected NamedTuple.

    Parameters
    ----------
    cls: type
        Any NamedTuple class.

    data: dict
        Data with which to instantiate ``cls`` and its children.

    Returns
    -------
    NamedTuple
        An instance of ``cls``.
    """
    hints = get_type_hints(cls)
    _data = {}
    for field in cls._fields:  # type: ignore
        if field not in data:
            continue
        _data[field] = _cast(hints.get(field, Any), data[field], field)
    return cls(**_data)


def to_json(obj: tuple) -> dict:
    """Like :func:`to_dict`, but with ``camelCase`` keys for the wire."""
    if not hasattr(obj, '_asdict'):
        return {}
    return {_camel_case(key): _serialize(value, to_json)
            for key, value in obj._asdict().items()}  # type: ignore


def _serialize(value: Any, render: Callable = to_dict) -> Any:
    if hasattr(value, '_asdict'):
        return render(value)
    if isinstance(value, (datetime, time)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_serialize(v, render) for v in value]
    if isinstance(value, dict):
        return {k: _serialize(v, render) for k, v in value.items()}
    return value


def _parse_datetime(value: str) -> datetime:
    parsed = dateutil.parser.parse(value)
    if parsed.tzinfo is None:
        parsed = UTC.localize(parsed)
    return parsed


def _parse_time(value: str) -> time:
    return time.fromisoformat(value)


def _base_type(field_type: Any) -> Any:
    """Strip ``Optional`` from a field type."""
    if get_origin(field_type) is Union:
        candidates = [t for t in get_args(field_type) if t is not type(None)]
        return candidates[0] if len(candidates) == 1 else Any
    return field_type


def _cast(field_type: Any, value: Any, field: Optional[str] = None) -> Any:
    """
    Coerce a decoded JSON value to the type of its field.

    Raises
    ------
    :class:`.InvalidField`
        Raised if the value is not of, and cannot be parsed as, the field
        type.

    """
    if value is None:
        return None
    field_type = _base_type(field_type)
    if field_type is datetime or field_type is time:
        if isinstance(value, field_type):
            return value
        if isinstance(value, str):
            parse = _parse_datetime if field_type is datetime else _parse_time
            try:
                return parse(value)
            except (ValueError, OverflowError) as e:
                raise InvalidField(field, f'Invalid value: {value}') from e
        raise InvalidField(field, f'Expected an ISO-8601 string: {value!r}')
    if hasattr(field_type, '_fields'):
        if isinstance(value, field_type):
            return value
        if isinstance(value, dict):
            return from_dict(field_type, value)
        raise InvalidField(field, f'Expected an object: {value!r}')
    if field_type is bool and not isinstance(value, bool):
        raise InvalidField(field, f'Expected a boolean: {value!r}')
    if field_type is int and (isinstance(value, bool)
                              or not isinstance(value, int)):
        raise InvalidField(field, f'Expected an integer: {value!r}')
    if field_type is str and not isinstance(value, str):
        raise InvalidField(field, f'Expected a string: {value!r}')
    if (field_type is dict or get_origin(field_type) is dict) \
            and not isinstance(value, dict):
        raise InvalidField(field, f'Expected an object: {value!r}')
    return value


def _snake_case(key: str) -> str:
    """Convert ``camelCase`` payload keys to ``snake_case`` field names."""
    return re.sub(r'(?<!^)(?=[A-Z])', '_', key).lower()


def _camel_case(key: str) -> str:
    head, *rest = key.split('_')
    return head + ''.join(part.capitalize() for part in rest)
