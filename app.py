"""Provides application for development purposes."""

from users.factory import create_web_app

app = create_web_app()
