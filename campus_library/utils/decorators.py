from functools import wraps

from flask import g
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from campus_library.errors import AuthorizationError, ValidationError
from campus_library.services.user_service import UserService


def current_actor_id() -> int:
    identity = get_jwt_identity()
    try:
        return int(identity)
    except (TypeError, ValueError):
        raise ValidationError("Token identity is not a user id")


def role_required(*roles):
    """Verifies the JWT, resolves the acting user and checks their role; sets g.actor."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            actor = UserService.resolve_actor(current_actor_id())
            if roles and actor.role not in roles:
                raise AuthorizationError("Unauthorized")
            g.actor = actor
            return fn(*args, **kwargs)
        return wrapper
    return decorator
