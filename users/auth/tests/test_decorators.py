"""Tests for :mod:`users.auth.decorators`."""

from unittest import TestCase

from flask import Flask, request
from werkzeug.exceptions import Unauthorized

from .. import decorators
from ... import domain


class TestAuthenticated(TestCase):
    """Tests for :func:`.decorators.authenticated`."""

    def setUp(self):
        self.app = Flask('test')

        @decorators.authenticated()
        def protected(user_id):
            """A protected function."""
            return user_id

        self.protected = protected

    def test_no_principal(self):
        """No principal is present on the request."""
        with self.app.test_request_context('/api/users/u2'):
            request.auth = None
            with self.assertRaises(Unauthorized):
                self.protected('u2')

    def test_no_auth_attribute(self):
        """The request was never seen by the middleware."""
        with self.app.test_request_context('/api/users/u2'):
            with self.assertRaises(Unauthorized):
                self.protected('u2')

    def test_principal(self):
        """A principal is present on the request."""
        with self.app.test_request_context('/api/users/u2'):
            request.auth = domain.Principal(user_id='u1')
            self.assertEqual(self.protected('u2'), 'u2')
            self.assertEqual(self.protected(user_id='u3'), 'u3')
