"""
Request handlers: the business logic behind the routes.
"""

from .users import SUPPORTED_METHODS, UsersHandler, parse_user_id

__all__ = [
    "SUPPORTED_METHODS",
    "UsersHandler",
    "parse_user_id",
]
