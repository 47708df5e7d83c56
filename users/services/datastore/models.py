"""SQLAlchemy models for the account store."""

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, \
    String, Text, Time, text
from sqlalchemy.orm import relationship

from ...domain import Theme, UserStatus

db: SQLAlchemy = SQLAlchemy()


class DBUser(db.Model):  # type: ignore
    """Persistence for :class:`domain.User`."""

    __tablename__ = 'users'

    user_id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    username = Column(String(50), nullable=False, unique=True)
    display_name = Column(String(100), index=True)
    avatar_url = Column(String(500))
    phone = Column(String(20))
    timezone = Column(String(50), nullable=False, server_default=text("'UTC'"))
    locale = Column(String(10), nullable=False, server_default=text("'en'"))
    status = Column(String(32), nullable=False, index=True,
                    default=UserStatus.ACTIVE)
    email_verified = Column(Boolean, nullable=False, default=False)
    phone_verified = Column(Boolean, nullable=False, default=False)
    last_login_at = Column(DateTime(timezone=True))
    last_login_ip = Column(String(45))
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    profile = relationship('DBProfile', uselist=False,
                           back_populates='user')
    preferences = relationship('DBPreferences', uselist=False,
                               back_populates='user')


class DBProfile(db.Model):  # type: ignore
    """Persistence for :class:`domain.Profile`."""

    __tablename__ = 'user_profiles'

    user_id = Column(ForeignKey('users.user_id'), primary_key=True)
    title = Column(String(100))
    department = Column(String(100))
    location = Column(String(100))
    bio = Column(Text)
    custom_status = Column(String(100))
    status_emoji = Column(String(10))
    status_expiry = Column(DateTime(timezone=True))
    pronouns = Column(String(50))
    birthday = Column(DateTime(timezone=True))
    linkedin_url = Column(String(500))
    twitter_url = Column(String(500))
    github_url = Column(String(500))
    updated_at = Column(DateTime(timezone=True))

    user = relationship('DBUser', back_populates='profile')


class DBPreferences(db.Model):  # type: ignore
    """Persistence for :class:`domain.Preferences`."""

    __tablename__ = 'user_preferences'

    user_id = Column(ForeignKey('users.user_id'), primary_key=True)

    # Notifications.
    push_enabled = Column(Boolean, nullable=False, default=True)
    email_enabled = Column(Boolean, nullable=False, default=True)
    sms_enabled = Column(Boolean, nullable=False, default=False)
    desktop_notifications = Column(Boolean, nullable=False, default=True)
    sound_enabled = Column(Boolean, nullable=False, default=True)
    quiet_hours_start = Column(Time)
    quiet_hours_end = Column(Time)
    quiet_hours_enabled = Column(Boolean, nullable=False, default=False)

    # Interface.
    theme = Column(String(10), nullable=False, default=Theme.SYSTEM)
    language = Column(String(10), nullable=False, default='en')
    compact_mode = Column(Boolean, nullable=False, default=False)
    sidebar_collapsed = Column(Boolean, nullable=False, default=False)
    font_size = Column(Integer, nullable=False, default=14)

    # Messaging.
    show_unread_only = Column(Boolean, nullable=False, default=False)
    message_preview = Column(Boolean, nullable=False, default=True)
    enter_to_send = Column(Boolean, nullable=False, default=True)
    markdown_enabled = Column(Boolean, nullable=False, default=True)
    emoji_suggestions_enabled = Column(Boolean, nullable=False, default=True)

    # Privacy.
    show_online_status = Column(Boolean, nullable=False, default=True)
    show_typing_indicator = Column(Boolean, nullable=False, default=True)
    show_read_receipts = Column(Boolean, nullable=False, default=True)

    # Accessibility.
    reduced_motion = Column(Boolean, nullable=False, default=False)
    high_contrast = Column(Boolean, nullable=False, default=False)

    custom_settings = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True))

    user = relationship('DBUser', back_populates='preferences')
