"""Middleware for verifying bearer tokens on requests."""

import logging
import os
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple

from . import tokens
from ..domain import Principal
from ..exceptions import AuthenticationRejected, ConfigurationError

logger = logging.getLogger(__name__)

WSGIRequest = Tuple[dict, Callable]

PUBLIC_PATHS: List[str] = [
    '/actuator/**',
    '/health',
    '/v3/api-docs/**',
    '/swagger-ui/**',
    '/swagger-ui.html'
]
"""Paths that are served without verifying the caller."""

DEFAULT_ISSUER = 'quckapp-auth-local'


def is_public(path: str, patterns: Iterable[str] = PUBLIC_PATHS) -> bool:
    """Check ``path`` against the allow-list; ``/**`` matches a subtree."""
    for pattern in patterns:
        if pattern.endswith('/**'):
            prefix = pattern[:-3]
            if path == prefix or path.startswith(prefix + '/'):
                return True
        elif path == pattern:
            return True
    return False


def bearer_token(header: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer`` header value."""
    if not header:
        return None
    scheme, _, token = header.strip().partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


class AuthMiddleware(object):
    """
    Middleware to establish the caller's identity on requests.

    Before the request is handled by the application, the ``Authorization``
    header is parsed for a bearer token. If the token verifies and is an
    access token, a :class:`.domain.Principal` is attached to the request.

    This can be accessed in the application via
    ``flask.request.environ['auth']``. If the path is public, the header is
    missing, or the token is rejected, that value will be ``None``; it is up
    to the application to decide whether the route requires a principal.
    """

    def __init__(self, wsgi_app: Callable,
                 config: Optional[Mapping[str, Any]] = None) -> None:
        """
        Wrap ``wsgi_app``.

        Parameters
        ----------
        wsgi_app : callable
            The WSGI application to protect.
        config : dict-like
            Source of ``JWT_SECRET`` and ``JWT_ISSUER``; falls back to
            ``os.environ``.

        """
        self.app = wsgi_app
        self.config = config if config is not None else os.environ

    def __call__(self, environ: dict, start_response: Callable) -> Iterable:
        """Handle a WSGI request."""
        environ, start_response = self.before(environ, start_response)
        return self.app(environ, start_response)

    @property
    def secret(self) -> str:
        secret = self.config.get('JWT_SECRET')
        if not secret:
            raise ConfigurationError('Missing JWT_SECRET')
        return secret

    @property
    def issuer(self) -> str:
        return self.config.get('JWT_ISSUER') or DEFAULT_ISSUER

    def before(self, environ: dict, start_response: Callable) -> WSGIRequest:
        """Verify the bearer token on the request, if there is one."""
        environ['auth'] = None      # Create the auth key, at a minimum.
        environ['token'] = None
        path = environ.get('PATH_INFO', '')
        if is_public(path):
            return environ, start_response

        token = bearer_token(environ.get('HTTP_AUTHORIZATION'))
        if token is None:
            logger.debug('No bearer token on request to %s', path)
            return environ, start_response

        secret = self.secret
        try:
            claims = tokens.verify(token, secret, self.issuer)
        except AuthenticationRejected as e:     # Let the application decide.
            logger.warning('Bearer token rejected: %s', e)
            return environ, start_response

        if claims.token_type != tokens.ACCESS:
            logger.debug('Not an access token: %s', claims.token_type)
            return environ, start_response

        environ['auth'] = Principal(
            user_id=claims.subject,
            email=claims.email,
            external_id=claims.external_id,
            session_id=claims.session_id
        )
        # Attach the raw token so that it can be used in subrequests.
        environ['token'] = token
        return environ, start_response
