"""Functions for working with bearer tokens issued by the identity service."""

import base64
import binascii
import logging
from datetime import datetime, timedelta
from typing import NamedTuple, Optional

import jwt
from pytz import UTC

from ..exceptions import ConfigurationError, ExpiredToken, InvalidToken

logger = logging.getLogger(__name__)

ALGORITHM = 'HS256'
ACCESS = 'access'
REFRESH = 'refresh'
REQUIRED_CLAIMS = ['exp', 'iss', 'sub']


class Claims(NamedTuple):
    """The claims carried by a verified token."""

    subject: str
    """The ``sub`` claim; the user id."""

    email: Optional[str] = None
    external_id: Optional[str] = None
    session_id: Optional[str] = None
    token_type: Optional[str] = None
    """The ``type`` claim; only ``access`` tokens authenticate requests."""


def signing_key(secret: str) -> bytes:
    """The HMAC key is the base64-decoded shared secret."""
    if not secret:
        raise ConfigurationError('Missing token secret')
    try:
        return base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError('Token secret is not valid base64') from e


def encode(subject: str, secret: str, issuer: str,
           email: Optional[str] = None, token_type: str = ACCESS,
           external_id: Optional[str] = None,
           session_id: Optional[str] = None, expires_in: int = 3600,
           issued_at: Optional[datetime] = None) -> str:
    """Mint a signed token, in the same shape as the identity service."""
    if issued_at is None:
        issued_at = datetime.now(tz=UTC)
    payload = {
        'sub': subject,
        'iss': issuer,
        'type': token_type,
        'iat': issued_at,
        'exp': issued_at + timedelta(seconds=expires_in)
    }
    if email is not None:
        payload['email'] = email
    if external_id is not None:
        payload['externalId'] = external_id
    if session_id is not None:
        payload['sessionId'] = session_id
    return jwt.encode(payload, signing_key(secret), algorithm=ALGORITHM)


def verify(token: str, secret: str, issuer: str) -> Claims:
    """
    Verify a bearer token and extract its claims.

    Parameters
    ----------
    token : str
        The compact JWT, without the ``Bearer`` prefix.
    secret : str
        Base64-encoded HMAC secret shared with the identity service.
    issuer : str
        Expected value of the ``iss`` claim.

    Returns
    -------
    :class:`.Claims`

    Raises
    ------
    :class:`.ExpiredToken`
        The ``exp`` claim is in the past.
    :class:`.InvalidToken`
        The token is malformed, badly signed, signed with an unexpected
        algorithm, missing a required claim, or from another issuer.

    """
    key = signing_key(secret)
    try:
        data: dict = jwt.decode(token, key, algorithms=[ALGORITHM],
                                issuer=issuer,
                                options={'require': REQUIRED_CLAIMS})
    except jwt.exceptions.ExpiredSignatureError as e:
        raise ExpiredToken('Token has expired') from e
    except jwt.exceptions.InvalidIssuerError as e:
        raise InvalidToken('Unexpected token issuer') from e
    except jwt.exceptions.InvalidTokenError as e:
        raise InvalidToken(f'Not a valid token: {e}') from e

    return Claims(
        subject=data['sub'],
        email=data.get('email'),
        external_id=data.get('externalId'),
        session_id=data.get('sessionId'),
        token_type=data.get('type')
    )
