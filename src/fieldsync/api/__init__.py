"""fieldsync HTTP API."""

from .app import create_app
from .session import ACTOR_HEADER, HeaderSessionLookup, SessionLookup

__all__ = ["create_app", "SessionLookup", "HeaderSessionLookup", "ACTOR_HEADER"]
