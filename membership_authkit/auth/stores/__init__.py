"""
SQL persistence for users and roles (Peewee: SQLite, PostgreSQL, MySQL).
"""

from .database import get_or_create_application, initialize_schema, open_database
from .roles import RoleStore
from .users import UserStore

__all__ = [
    "RoleStore",
    "UserStore",
    "get_or_create_application",
    "initialize_schema",
    "open_database",
]
