"""The authenticated identity of the current request."""

import uuid
from dataclasses import dataclass


@dataclass(frozen=True)
class AuthContext:
    """Who is making this request.

    Learn: Derived from a verified access token and passed explicitly to
    route handlers and services. Never persisted, never attached to the
    request object. Every owned-entity query is scoped by `user_id`.
    """

    user_id: uuid.UUID
    email: str
