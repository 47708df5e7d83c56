"""Application factory for the user service."""

from http import HTTPStatus
import logging
from typing import Any, Mapping, Optional

from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException, BadRequest, \
    InternalServerError, MethodNotAllowed, NotFound, Unauthorized

from . import app_logging, auth, domain, routes
from .auth.middleware import AuthMiddleware
from .exceptions import DuplicateResource, InvalidField, ResourceNotFound
from .services import cache, datastore, events

logger = logging.getLogger(__name__)


def create_web_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    """
    Initialize and configure the user service application.

    Parameters
    ----------
    config : dict
        Overrides for the parameters in :mod:`users.config`.

    """
    app = Flask('users')
    app.config.from_pyfile('config.py')
    if config:
        app.config.update(config)
    app_logging.setup_logger(app.config.get('LOGLEVEL', 'INFO'))

    datastore.init_app(app)
    cache.init_app(app)
    events.init_app(app)

    auth.Auth(app)  # Attaches the principal to the request.
    app.register_blueprint(routes.health)
    app.register_blueprint(routes.blueprint)
    app.wsgi_app = AuthMiddleware(app.wsgi_app, app.config)  # type: ignore

    if app.config['CREATE_DB']:
        with app.app_context():
            datastore.create_all()

    register_error_handlers(app)
    return app


def register_error_handlers(app: Flask) -> None:
    """Register error handlers for the Flask app."""
    app.errorhandler(Unauthorized)(jsonify_exception)
    app.errorhandler(BadRequest)(jsonify_exception)
    app.errorhandler(InternalServerError)(jsonify_exception)
    app.errorhandler(NotFound)(jsonify_exception)
    app.errorhandler(MethodNotAllowed)(jsonify_exception)
    app.errorhandler(DuplicateResource)(handle_duplicate)
    app.errorhandler(ResourceNotFound)(handle_not_found)
    app.errorhandler(InvalidField)(handle_invalid)


def error_response(message: str, code: int) -> Response:
    """Render an error in the standard response envelope."""
    response: Response = jsonify({
        'success': False,
        'message': message,
        'data': None,
        'timestamp': domain.now().isoformat()
    })
    response.status_code = code
    return response


def jsonify_exception(error: HTTPException) -> Response:
    """Render exceptions as JSON."""
    exc_resp = error.get_response()
    return error_response(error.description, exc_resp.status_code)


def handle_duplicate(error: DuplicateResource) -> Response:
    return error_response(str(error), HTTPStatus.CONFLICT)


def handle_not_found(error: ResourceNotFound) -> Response:
    return error_response(str(error), HTTPStatus.NOT_FOUND)


def handle_invalid(error: InvalidField) -> Response:
    return error_response(str(error), HTTPStatus.BAD_REQUEST)
