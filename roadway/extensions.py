"""
Shared Flask extension instances.

`limiter` is bound to the app in create_app(); blueprints import it from here
to decorate endpoints, which keeps the routes free of app-factory imports.
"""

from flask import current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Clients are anonymous at this layer, so limits are keyed on the caller's address
limiter = Limiter(key_func=get_remote_address)


def config_limit(config_key: str, default: str):
    """Limit string resolved from app config at request time (e.g. POST_SUBMIT_RATE_LIMIT)."""
    return lambda: current_app.config.get(config_key, default)
