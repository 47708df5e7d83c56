"""HTTP routes for the user service."""

from http import HTTPStatus
import logging
from typing import Any, Optional, Tuple

from flask import Blueprint, Response, jsonify, request
from werkzeug.exceptions import BadRequest

from . import accounts, domain
from .auth.decorators import authenticated
from .services import datastore

logger = logging.getLogger(__name__)

blueprint = Blueprint('users', __name__, url_prefix='/api/users')
health = Blueprint('health', __name__)

ResponseData = Tuple[Response, int]


def respond(data: Any = None, message: Optional[str] = None,
            code: int = HTTPStatus.OK) -> ResponseData:
    """Wrap ``data`` in the standard response envelope."""
    if hasattr(data, '_asdict'):
        data = domain.to_json(data)
    elif isinstance(data, list):
        data = [domain.to_json(item) for item in data]
    return jsonify({
        'success': code < 400,
        'message': message,
        'data': data,
        'timestamp': domain.now().isoformat()
    }), code


def _payload() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise BadRequest('Expected a JSON object')
    return payload


@health.route('/health', methods=['GET'])
def get_health() -> ResponseData:
    """Report whether the account store is reachable."""
    if datastore.is_available():
        return jsonify({'status': 'UP'}), HTTPStatus.OK
    return jsonify({'status': 'DOWN'}), HTTPStatus.SERVICE_UNAVAILABLE


@blueprint.route('', methods=['POST'])
@blueprint.route('/', methods=['POST'])
@authenticated()
def create_user() -> ResponseData:
    """Create a user."""
    payload = _payload()
    user = accounts.create_account(
        email=payload.get('email') or '',
        username=payload.get('username') or '',
        display_name=payload.get('displayName'),
        avatar_url=payload.get('avatarUrl'),
        phone=payload.get('phone'),
        timezone=payload.get('timezone'),
        locale=payload.get('locale')
    )
    return respond(user, 'User created', HTTPStatus.CREATED)


@blueprint.route('/<string:user_id>', methods=['GET'])
@authenticated()
def get_user(user_id: str) -> ResponseData:
    """Get a user by id."""
    return respond(accounts.get_by_id(user_id))


@blueprint.route('/email/<string:email>', methods=['GET'])
@authenticated()
def get_user_by_email(email: str) -> ResponseData:
    """Get a user by email."""
    return respond(accounts.get_by_email(email))


@blueprint.route('/username/<string:username>', methods=['GET'])
@authenticated()
def get_user_by_username(username: str) -> ResponseData:
    """Get a user by username."""
    return respond(accounts.get_by_username(username))


@blueprint.route('/<string:user_id>', methods=['PUT'])
@authenticated()
def update_user(user_id: str) -> ResponseData:
    """Apply a partial update to a user."""
    update = domain.UserUpdate.from_payload(_payload())
    return respond(accounts.update_account(user_id, update), 'User updated')


@blueprint.route('/<string:user_id>', methods=['DELETE'])
@authenticated()
def deactivate_user(user_id: str) -> ResponseData:
    """Deactivate a user."""
    accounts.deactivate_account(user_id)
    return respond(message='User deactivated')


@blueprint.route('/<string:user_id>/suspend', methods=['POST'])
@authenticated()
def suspend_user(user_id: str) -> ResponseData:
    """Suspend a user."""
    accounts.suspend_account(user_id)
    return respond(message='User suspended')


@blueprint.route('/search', methods=['GET'])
@authenticated()
def search_users() -> ResponseData:
    """Search users by username, display name, or email."""
    page = accounts.search_accounts(
        request.args.get('query', ''),
        status=request.args.get('status') or None,
        page=request.args.get('page', 0, type=int),
        size=request.args.get('size', 20, type=int)
    )
    return respond(page)


@blueprint.route('/batch', methods=['POST'])
@authenticated()
def get_users_batch() -> ResponseData:
    """Summarize the users with the given ids."""
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        payload = payload.get('ids')
    if not isinstance(payload, list):
        raise BadRequest('Expected a JSON list of user ids')
    return respond(accounts.get_accounts_by_ids(
        [str(user_id) for user_id in payload]
    ))


@blueprint.route('/<string:user_id>/profile', methods=['GET'])
@authenticated()
def get_profile(user_id: str) -> ResponseData:
    """Get the profile of a user."""
    return respond(accounts.get_profile(user_id))


@blueprint.route('/<string:user_id>/profile', methods=['PATCH'])
@authenticated()
def update_profile(user_id: str) -> ResponseData:
    """Apply a partial update to the profile of a user."""
    update = domain.ProfileUpdate.from_payload(_payload())
    return respond(accounts.update_profile(user_id, update),
                   'Profile updated')


@blueprint.route('/<string:user_id>/preferences', methods=['GET'])
@authenticated()
def get_preferences(user_id: str) -> ResponseData:
    """Get the preferences of a user."""
    return respond(accounts.get_preferences(user_id))


@blueprint.route('/<string:user_id>/preferences', methods=['PATCH'])
@authenticated()
def update_preferences(user_id: str) -> ResponseData:
    """Apply a partial update to the preferences of a user."""
    update = domain.PreferencesUpdate.from_payload(_payload())
    return respond(accounts.update_preferences(user_id, update),
                   'Preferences updated')
