"""
Provider façades: the public entry points for membership and roles.
"""

from .membership import MembershipProvider
from .roles import RoleProvider

__all__ = [
    "MembershipProvider",
    "RoleProvider",
]
