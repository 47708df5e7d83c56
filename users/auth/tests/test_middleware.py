"""Tests for :mod:`users.auth.middleware` and :class:`users.auth.Auth`."""

import base64
from datetime import datetime, timedelta
from unittest import TestCase

from flask import Flask, jsonify, request
from pytz import UTC

from .. import Auth, middleware, tokens
from ... import domain
from ...exceptions import ConfigurationError

SECRET = base64.b64encode(b'a-shared-secret-of-at-least-32-bytes!').decode()
ISSUER = 'quckapp-auth-local'
CONFIG = {'JWT_SECRET': SECRET, 'JWT_ISSUER': ISSUER}


def _environ(path: str = '/api/users/u1',
             authorization: str = None) -> dict:
    environ = {'PATH_INFO': path}
    if authorization is not None:
        environ['HTTP_AUTHORIZATION'] = authorization
    return environ


class TestPublicPaths(TestCase):
    """Tests for :func:`middleware.is_public`."""

    def test_public(self):
        for path in ['/health', '/actuator', '/actuator/health',
                     '/actuator/info/git', '/v3/api-docs', '/v3/api-docs/x',
                     '/swagger-ui/index.html', '/swagger-ui.html']:
            self.assertTrue(middleware.is_public(path), path)

    def test_protected(self):
        for path in ['/', '/api/users', '/healthz', '/actuatorx',
                     '/health/deep', '/swagger-ui.htm']:
            self.assertFalse(middleware.is_public(path), path)


class TestBearerToken(TestCase):
    """Tests for :func:`middleware.bearer_token`."""

    def test_bearer(self):
        self.assertEqual(middleware.bearer_token('Bearer abc.def'), 'abc.def')
        self.assertEqual(middleware.bearer_token('bearer abc'), 'abc')

    def test_not_bearer(self):
        for header in [None, '', 'Bearer', 'Bearer ', 'Basic abc', 'abc']:
            self.assertIsNone(middleware.bearer_token(header), header)


class TestAuthMiddleware(TestCase):
    """The middleware attaches a principal for valid access tokens only."""

    def setUp(self):
        self.wsgi = middleware.AuthMiddleware(lambda e, s: [], CONFIG)

    def _auth(self, environ: dict):
        environ, _ = self.wsgi.before(environ, lambda *a: None)
        return environ['auth']

    def test_access_token(self):
        """A valid access token yields a principal with ROLE_USER."""
        token = tokens.encode('u1', SECRET, ISSUER, email='jane@example.com',
                              external_id='ext-1', session_id='s-1')
        principal = self._auth(_environ(authorization=f'Bearer {token}'))
        self.assertEqual(principal, domain.Principal(
            user_id='u1',
            email='jane@example.com',
            external_id='ext-1',
            session_id='s-1'
        ))
        self.assertEqual(principal.authorities, ('ROLE_USER',))

    def test_no_header(self):
        """No header, no principal."""
        self.assertIsNone(self._auth(_environ()))

    def test_refresh_token(self):
        """Refresh tokens do not authenticate requests."""
        token = tokens.encode('u1', SECRET, ISSUER, token_type='refresh')
        self.assertIsNone(self._auth(
            _environ(authorization=f'Bearer {token}')
        ))

    def test_rejected_tokens(self):
        """Rejected tokens are logged, not raised."""
        expired = tokens.encode(
            'u1', SECRET, ISSUER, expires_in=60,
            issued_at=datetime.now(UTC) - timedelta(hours=1)
        )
        foreign = tokens.encode('u1', SECRET, 'someone-else')
        for token in [expired, foreign, 'garbage']:
            with self.assertLogs(middleware.__name__, level='WARNING'):
                self.assertIsNone(self._auth(
                    _environ(authorization=f'Bearer {token}')
                ))

    def test_public_path(self):
        """Public paths are not checked at all."""
        environ = _environ('/health', authorization='Bearer garbage')
        self.assertIsNone(self._auth(environ))

    def test_missing_secret(self):
        """A token cannot be verified without the shared secret."""
        wsgi = middleware.AuthMiddleware(lambda e, s: [], {})
        with self.assertRaises(ConfigurationError):
            wsgi.before(_environ(authorization='Bearer foo'),
                        lambda *a: None)


class TestAuthExtension(TestCase):
    """:class:`.Auth` copies the principal to ``request.auth``."""

    def setUp(self):
        self.app = Flask('test')
        self.app.config.update(CONFIG)
        Auth(self.app)

        @self.app.route('/whoami')
        def whoami():
            principal = request.auth
            return jsonify(user_id=principal.user_id if principal else None)

        self.app.wsgi_app = middleware.AuthMiddleware(self.app.wsgi_app,
                                                      self.app.config)
        self.client = self.app.test_client()

    def test_authenticated(self):
        token = tokens.encode('u1', SECRET, ISSUER)
        headers = {'Authorization': f'Bearer {token}'}
        response = self.client.get('/whoami', headers=headers)
        self.assertEqual(response.get_json(), {'user_id': 'u1'})

    def test_anonymous(self):
        response = self.client.get('/whoami')
        self.assertEqual(response.get_json(), {'user_id': None})
