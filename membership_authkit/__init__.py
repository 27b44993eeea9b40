"""
membership-authkit

Membership, credential and role management over SQL databases.
"""

__version__ = "0.1.0"

from .auth.codec import PasswordFormat
from .auth.models import MembershipUser, UserPage
from .auth.providers import MembershipProvider, RoleProvider
from .utils.config import ProviderConfig

# Primary entrypoints for the package
__all__ = [
    "__version__",
    "MembershipProvider",
    "MembershipUser",
    "PasswordFormat",
    "ProviderConfig",
    "RoleProvider",
    "UserPage",
]
