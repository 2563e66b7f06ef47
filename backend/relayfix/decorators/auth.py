from functools import wraps
from flask import abort
from flask_jwt_extended import verify_jwt_in_request
from relayfix.services.policy import has_permissions, current_relay_point_id


def require_permissions(*codes: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if not has_permissions(*codes):
                abort(403, description=f"Missing permission: {', '.join(codes)}")
            return fn(*args, **kwargs)
        return wrapper
    return outer


def relay_terminal(fn):
    """Pass the caller's relay point (from the token claim) as ``relay_point_id``.

    Must sit below require_permissions so the JWT is already verified.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        kwargs['relay_point_id'] = current_relay_point_id()
        return fn(*args, **kwargs)
    return wrapper
