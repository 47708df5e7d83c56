"""
Helper script for generating a bearer token for dev/testing purposes.

Be sure that you are using the same secret and issuer when running this
script as when you run the app. The secret must be base64-encoded.

.. code-block:: bash

   $ export JWT_SECRET=$(head -c 32 /dev/urandom | base64)
   $ generate-token
   User ID: 4f7c1e2a-0b1d-4c55-9d2e-7a4a3c1f9e10
   Email address [jane@example.com]:
   Token lifetime in seconds [36000]:

   eyJ0eXAiOiJKV1QiLCJhbGciOiJIUzI1NiJ9...

Start the dev server with:

.. code-block:: bash

   $ CREATE_DB=1 REDIS_FAKE=1 FLASK_APP=app.py flask run

Use the token in requests to ``/api/users``, with the header
``Authorization: Bearer [token]``.
"""

import os
import uuid

import click

from .auth import tokens


@click.command()
@click.option('--user-id', prompt='User ID')
@click.option('--email', prompt='Email address', default='jane@example.com')
@click.option('--expires-in', prompt='Token lifetime in seconds',
              default=36000, type=int)
@click.option('--refresh', is_flag=True, default=False,
              help='Mint a refresh token instead of an access token.')
def generate_token(user_id: str, email: str, expires_in: int = 36000,
                   refresh: bool = False) -> None:
    """Generate a bearer token for dev/testing purposes."""
    token = tokens.encode(
        user_id,
        os.environ['JWT_SECRET'],
        os.environ.get('JWT_ISSUER', 'quckapp-auth-local'),
        email=email,
        token_type=tokens.REFRESH if refresh else tokens.ACCESS,
        session_id=str(uuid.uuid4()),
        expires_in=expires_in
    )
    click.echo(token)


if __name__ == '__main__':
    generate_token()
