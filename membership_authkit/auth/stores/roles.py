"""
Role store: roles and user-role links for one application.
"""

import logging
import uuid
from typing import Dict, List, Optional, Sequence

from peewee import Database, IntegrityError

from membership_authkit.auth.stores.database import serialized_write
from membership_authkit.auth.stores.schema import (
    ApplicationTable,
    RoleTable,
    UserInRoleTable,
    UserTable,
)
from membership_authkit.errors import (
    DuplicateRoleError,
    PopulatedRoleError,
    RoleNotFoundError,
    UserAlreadyInRoleError,
    UserNotFoundError,
    UserNotInRoleError,
)

logger = logging.getLogger(__name__)


class RoleStore:
    def __init__(self, db: Database, application: ApplicationTable):
        self.db = db
        self.application = application

    # ========================================
    # Lookups
    # ========================================

    def _role(self, role_name: str) -> Optional[RoleTable]:
        return RoleTable.get_or_none(
            (RoleTable.application == self.application)
            & (RoleTable.lowered_role_name == role_name.lower())
        )

    def _user(self, username: str) -> Optional[UserTable]:
        return UserTable.get_or_none(
            (UserTable.application == self.application)
            & (UserTable.lowered_username == username.lower())
        )

    def _require_role(self, role_name: str) -> RoleTable:
        role = self._role(role_name)
        if role is None:
            raise RoleNotFoundError(role_name)
        return role

    def _require_user(self, username: str) -> UserTable:
        user = self._user(username)
        if user is None:
            raise UserNotFoundError(username)
        return user

    def _linked(self, user_id: uuid.UUID, role_id: uuid.UUID) -> bool:
        return (
            UserInRoleTable.select()
            .where((UserInRoleTable.user == user_id) & (UserInRoleTable.role == role_id))
            .exists()
        )

    def role_exists(self, role_name: str) -> bool:
        return self._role(role_name) is not None

    def get_all_roles(self) -> List[str]:
        query = (
            RoleTable.select(RoleTable.role_name)
            .where(RoleTable.application == self.application)
            .order_by(RoleTable.lowered_role_name)
        )
        return [role.role_name for role in query]

    def get_roles_for_user(self, username: str) -> List[str]:
        user = self._require_user(username)
        query = (
            RoleTable.select(RoleTable.role_name)
            .join(UserInRoleTable)
            .where(UserInRoleTable.user == user.id)
            .order_by(RoleTable.lowered_role_name)
        )
        return [role.role_name for role in query]

    def _users_in(self, role: RoleTable):
        return (
            UserTable.select(UserTable.username)
            .join(UserInRoleTable)
            .where(UserInRoleTable.role == role.id)
            .order_by(UserTable.lowered_username)
        )

    def get_users_in_role(self, role_name: str) -> List[str]:
        role = self._require_role(role_name)
        return [user.username for user in self._users_in(role)]

    def find_users_in_role(self, role_name: str, username_to_match: str) -> List[str]:
        role = self._require_role(role_name)
        query = self._users_in(role).where(
            UserTable.lowered_username.contains(username_to_match.lower())
        )
        return [user.username for user in query]

    def is_user_in_role(self, username: str, role_name: str) -> bool:
        user = self._require_user(username)
        role = self._require_role(role_name)
        return self._linked(user.id, role.id)

    # ========================================
    # Writes
    # ========================================

    def create_role(self, role_name: str) -> None:
        try:
            with self.db.atomic():
                if self._role(role_name) is not None:
                    raise DuplicateRoleError(role_name)
                RoleTable.create(
                    application=self.application,
                    role_name=role_name,
                    lowered_role_name=role_name.lower(),
                )
        except IntegrityError as e:
            raise DuplicateRoleError(role_name) from e

    def delete_role(self, role_name: str, throw_on_populated_role: bool = True) -> bool:
        """
        Delete the role and any user links to it.

        Raises:
            RoleNotFoundError: No such role
            PopulatedRoleError: The role has members and throw_on_populated_role
        """
        with serialized_write(self.db, self.application):
            role = self._require_role(role_name)
            populated = UserInRoleTable.select().where(UserInRoleTable.role == role.id).exists()
            if throw_on_populated_role and populated:
                raise PopulatedRoleError(role_name)
            UserInRoleTable.delete().where(UserInRoleTable.role == role.id).execute()
            return RoleTable.delete().where(RoleTable.id == role.id).execute() > 0

    def add_users_to_roles(self, usernames: Sequence[str], role_names: Sequence[str]) -> int:
        """
        Link every user to every role, all or nothing.

        Raises:
            RoleNotFoundError / UserNotFoundError: An entity is missing
            UserAlreadyInRoleError: A pair is already linked
        """
        try:
            with serialized_write(self.db, self.application):
                roles = self._resolve_roles(role_names)
                users = self._resolve_users(usernames)

                rows = []
                for username, user in users.items():
                    for role_name, role in roles.items():
                        if self._linked(user.id, role.id):
                            raise UserAlreadyInRoleError(username, role_name)
                        rows.append({"user": user.id, "role": role.id})

                UserInRoleTable.insert_many(rows).execute()
        except IntegrityError as e:
            # Another writer linked one of the pairs after our check
            raise UserAlreadyInRoleError() from e

        logger.debug(f"Linked {len(usernames)} user(s) to {len(role_names)} role(s)")
        return len(rows)

    def remove_users_from_roles(self, usernames: Sequence[str], role_names: Sequence[str]) -> int:
        """
        Unlink every user from every role, all or nothing.

        Raises:
            RoleNotFoundError / UserNotFoundError: An entity is missing
            UserNotInRoleError: A pair is not linked
        """
        with serialized_write(self.db, self.application):
            roles = self._resolve_roles(role_names)
            users = self._resolve_users(usernames)

            removed = 0
            for username, user in users.items():
                for role_name, role in roles.items():
                    if not self._linked(user.id, role.id):
                        raise UserNotInRoleError(username, role_name)
                    removed += (
                        UserInRoleTable.delete()
                        .where((UserInRoleTable.user == user.id) & (UserInRoleTable.role == role.id))
                        .execute()
                    )

        logger.debug(f"Unlinked {len(usernames)} user(s) from {len(role_names)} role(s)")
        return removed

    def _resolve_roles(self, role_names: Sequence[str]) -> Dict[str, RoleTable]:
        return {name: self._require_role(name) for name in role_names}

    def _resolve_users(self, usernames: Sequence[str]) -> Dict[str, UserTable]:
        return {name: self._require_user(name) for name in usernames}
