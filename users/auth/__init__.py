"""Provides tools for working with authenticated callers."""

import logging
from typing import Optional

from flask import Flask, request

from . import decorators, middleware, tokens
from .. import domain

logger = logging.getLogger(__name__)


class Auth(object):
    """
    Attaches the caller's principal to the request.

    Intended for use in a Flask application factory, for example:

    .. code-block:: python

       from flask import Flask
       from users.auth import Auth
       from users.auth.middleware import AuthMiddleware


       def create_web_app() -> Flask:
          app = Flask('someapp')
          app.config.from_pyfile('config.py')
          Auth(app)
          app.wsgi_app = AuthMiddleware(app.wsgi_app, app.config)
          return app

    """

    def __init__(self, app: Optional[Flask] = None) -> None:
        """
        Initialize ``app``.

        Parameters
        ----------
        app : :class:`Flask`

        """
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Attach :meth:`.load_principal` to the Flask app."""
        self.app = app
        self.app.before_request(self.load_principal)
        self.app.config.setdefault('JWT_ISSUER', middleware.DEFAULT_ISSUER)

    def load_principal(self) -> None:
        """
        Attach the principal unpacked by the middleware to the request.

        The :class:`.middleware.AuthMiddleware` puts the verified principal
        (or ``None``) in the WSGI environ under ``auth``.
        """
        principal: Optional[domain.Principal] = request.environ.get('auth')
        request.auth = principal
