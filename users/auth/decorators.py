"""
Protection of routes that require a verified caller.

This module provides :func:`authenticated`, a decorator used to protect Flask
routes that must not be served to anonymous callers. The only decision made
here is whether :class:`.AuthMiddleware` attached a principal to the request.

.. code-block:: python

   from users.auth.decorators import authenticated


   @blueprint.route('/<string:user_id>', methods=['GET'])
   @authenticated()
   def get_user(user_id: str):
       ...

"""

import logging
from functools import wraps
from typing import Any, Callable

from flask import request
from werkzeug.exceptions import Unauthorized

logger = logging.getLogger(__name__)


def authenticated() -> Callable:
    """Generate a decorator that requires a principal on the request."""
    def protector(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            """
            Check for a principal before executing the route.

            Raises
            ------
            :class:`.Unauthorized`
                Raised when no principal is available.

            """
            if getattr(request, 'auth', None) is None:
                logger.debug('No principal on request; aborting')
                raise Unauthorized('Authentication required')
            return func(*args, **kwargs)
        return wrapper
    return protector
