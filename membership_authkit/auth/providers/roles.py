"""
Role Provider

Application-scoped roles and user-role membership. Bulk changes are
all-or-nothing.
"""

import logging
from typing import List, Sequence

from membership_authkit.auth.providers.base import ProviderBase
from membership_authkit.auth.stores.database import translate_storage_errors
from membership_authkit.auth.stores.roles import RoleStore
from membership_authkit.auth.validation import (
    MAX_NAME_LENGTH,
    check_array_parameter,
    check_parameter,
)

logger = logging.getLogger(__name__)


def _check_role_name(role_name, name: str = "role_name") -> str:
    return check_parameter(role_name, name, check_for_commas=True, max_size=MAX_NAME_LENGTH)


def _check_username(username, name: str = "username") -> str:
    return check_parameter(username, name, check_for_commas=True, max_size=MAX_NAME_LENGTH)


class RoleProvider(ProviderBase):
    """
    Usage:
        roles = RoleProvider(ProviderConfig())
        roles.create_role("Admins")
        roles.add_users_to_roles(["alice", "bob"], ["Admins"])
        roles.is_user_in_role("alice", "admins")  # True
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.store = RoleStore(self.db, self.application)

    # ========================================
    # Roles
    # ========================================

    @translate_storage_errors()
    def create_role(self, role_name: str, performed_by: str = "system") -> None:
        """
        Raises:
            DuplicateRoleError: The role already exists
        """
        role_name = _check_role_name(role_name)
        self.store.create_role(role_name)

        logger.info(f"Role '{role_name}' created in application '{self.application_name}'")
        self.audit.role_created(role_name, performed_by)

    @translate_storage_errors()
    def delete_role(
        self, role_name: str, throw_on_populated_role: bool = True, performed_by: str = "system"
    ) -> bool:
        """
        Delete a role. With ``throw_on_populated_role=False`` the role's
        memberships are removed along with it.

        Raises:
            RoleNotFoundError: No such role
            PopulatedRoleError: The role has members and throw_on_populated_role
        """
        role_name = _check_role_name(role_name)

        deleted = self.store.delete_role(role_name, throw_on_populated_role)
        logger.info(f"Role '{role_name}' deleted")
        self.audit.role_deleted(role_name, performed_by)
        return deleted

    @translate_storage_errors()
    def role_exists(self, role_name: str) -> bool:
        role_name = _check_role_name(role_name)
        return self.store.role_exists(role_name)

    @translate_storage_errors()
    def get_all_roles(self) -> List[str]:
        return self.store.get_all_roles()

    # ========================================
    # Membership queries
    # ========================================

    @translate_storage_errors()
    def get_roles_for_user(self, username: str) -> List[str]:
        username = _check_username(username)
        return self.store.get_roles_for_user(username)

    @translate_storage_errors()
    def get_users_in_role(self, role_name: str) -> List[str]:
        role_name = _check_role_name(role_name)
        return self.store.get_users_in_role(role_name)

    @translate_storage_errors()
    def find_users_in_role(self, role_name: str, username_to_match: str) -> List[str]:
        role_name = _check_role_name(role_name)
        username_to_match = check_parameter(
            username_to_match, "username_to_match", max_size=MAX_NAME_LENGTH
        )
        return self.store.find_users_in_role(role_name, username_to_match)

    @translate_storage_errors()
    def is_user_in_role(self, username: str, role_name: str) -> bool:
        """An empty user name is never in any role."""
        role_name = _check_role_name(role_name)
        username = check_parameter(
            username, "username", check_if_empty=False, check_for_commas=True,
            max_size=MAX_NAME_LENGTH,
        )
        if username == "":
            return False
        return self.store.is_user_in_role(username, role_name)

    # ========================================
    # Membership changes
    # ========================================

    @translate_storage_errors()
    def add_users_to_roles(
        self, usernames: Sequence[str], role_names: Sequence[str], performed_by: str = "system"
    ) -> None:
        """
        Add every user to every role in one transaction.

        Raises:
            RoleNotFoundError / UserNotFoundError: A named entity is missing
            UserAlreadyInRoleError: A user is already in one of the roles
        """
        role_names = check_array_parameter(
            role_names, "role_names", check_for_commas=True, max_size=MAX_NAME_LENGTH
        )
        usernames = check_array_parameter(
            usernames, "usernames", check_for_commas=True, max_size=MAX_NAME_LENGTH
        )

        self.store.add_users_to_roles(usernames, role_names)
        self.audit.role_membership_changed(usernames, role_names, True, performed_by)

    def add_user_to_role(self, username: str, role_name: str, performed_by: str = "system") -> None:
        self.add_users_to_roles([username], [role_name], performed_by)

    @translate_storage_errors()
    def remove_users_from_roles(
        self, usernames: Sequence[str], role_names: Sequence[str], performed_by: str = "system"
    ) -> None:
        """
        Remove every user from every role in one transaction.

        Raises:
            RoleNotFoundError / UserNotFoundError: A named entity is missing
            UserNotInRoleError: A user is not in one of the roles
        """
        role_names = check_array_parameter(
            role_names, "role_names", check_for_commas=True, max_size=MAX_NAME_LENGTH
        )
        usernames = check_array_parameter(
            usernames, "usernames", check_for_commas=True, max_size=MAX_NAME_LENGTH
        )

        self.store.remove_users_from_roles(usernames, role_names)
        self.audit.role_membership_changed(usernames, role_names, False, performed_by)

    def remove_user_from_role(
        self, username: str, role_name: str, performed_by: str = "system"
    ) -> None:
        self.remove_users_from_roles([username], [role_name], performed_by)
