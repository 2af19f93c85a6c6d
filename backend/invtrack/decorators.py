# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

ACTOR_HEADER = "X-Actor-Id"
MAX_ACTOR_LENGTH = 64


def require_actor(f):
    """
    Require an explicit actor on mutating requests.

    Sets g.actor_id from the X-Actor-Id header. Authentication happens in front
    of this service; the header carries the already-authenticated user id so
    every ledger row records who made the change.

    Returns 400 if the header is missing, blank or too long.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor = (request.headers.get(ACTOR_HEADER) or "").strip()

        if not actor:
            return jsonify({"error": f"{ACTOR_HEADER} header is required"}), 400
        if len(actor) > MAX_ACTOR_LENGTH:
            return jsonify({"error": f"{ACTOR_HEADER} exceeds max length {MAX_ACTOR_LENGTH}"}), 400

        g.actor_id = actor
        return f(*args, **kwargs)

    return decorated_function
