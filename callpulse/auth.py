"""
Request identity — the authenticated user id comes from the upstream auth
gateway in the X-User-Id header. Nothing here verifies credentials.
"""
from flask import g, request

from callpulse.services.store import StoreError

USER_HEADER = 'X-User-Id'


def load_user():
    """before_request hook: stash the caller's user id on flask.g."""
    g.user_id = (request.headers.get(USER_HEADER) or '').strip() or None


def current_user_id():
    """User id for the current request. Raises StoreError when unauthenticated."""
    user_id = g.get('user_id')
    if not user_id:
        raise StoreError('not_authenticated', 'User not authenticated')
    return user_id
