# Overview: Request decorators for API routes.

import hmac
from functools import wraps

from flask import current_app, g, jsonify, request

from .errors import InvalidActorError
from .services import identity_service

# Set by the upstream authentication layer once it has verified the caller.
ACTOR_HEADER = "X-Identity-Id"
GATEWAY_TOKEN_HEADER = "X-Gateway-Token"


def require_actor(*roles: str):
    """
    Resolve the acting identity and optionally enforce its role.

    Session and login mechanics live outside this service; the caller
    arrives here already authenticated and identified by ACTOR_HEADER.
    Sets g.actor to the resolved Identity.

    Returns 401 if the header is missing or malformed, 403 if the identity
    is unknown, inactive, or holds none of roles.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            raw = (request.headers.get(ACTOR_HEADER) or "").strip()
            if not raw.isdigit():
                return jsonify({"error": "Actor identity required"}), 401

            try:
                actor = identity_service.require_actor(int(raw), *roles)
            except InvalidActorError as e:
                return jsonify({"error": str(e), "code": e.code}), e.status_code

            g.actor = actor
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def require_gateway_token(f):
    """Authenticate payment gateway callbacks with the shared token."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        presented = request.headers.get(GATEWAY_TOKEN_HEADER) or ""
        expected = current_app.config.get("GATEWAY_CALLBACK_TOKEN") or ""
        if not expected or not hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
            current_app.logger.warning("Rejected gateway callback from %s", request.remote_addr)
            return jsonify({"error": "Invalid gateway token"}), 401
        return f(*args, **kwargs)

    return decorated_function
