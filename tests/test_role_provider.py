"""
Functional tests for RoleProvider against a temporary SQLite database.
"""

import threading

import pytest
from peewee import PeeweeException

from membership_authkit.auth.providers import RoleProvider
from membership_authkit.auth.stores.schema import UserInRoleTable
from membership_authkit.errors import (
    DuplicateRoleError,
    InvalidArgumentError,
    MissingArgumentError,
    PopulatedRoleError,
    RoleNotFoundError,
    StorageError,
    UserAlreadyInRoleError,
    UserNotFoundError,
    UserNotInRoleError,
)

PASSWORD = "Passw0rd!"


@pytest.fixture
def people(membership):
    for name in ("alice", "bob", "carol"):
        membership.create_user(name, PASSWORD, email=f"{name}@example.com")
    return membership


class TestRoles:
    def test_create_and_exists(self, roles):
        roles.create_role("Admins")

        assert roles.role_exists("Admins") is True
        assert roles.role_exists("ADMINS") is True
        assert roles.role_exists("Editors") is False
        assert roles.get_all_roles() == ["Admins"]

    def test_duplicate_role(self, roles):
        roles.create_role("Admins")
        with pytest.raises(DuplicateRoleError, match="The role 'admins' already exists."):
            roles.create_role("admins")

    def test_role_name_validation(self, roles):
        with pytest.raises(MissingArgumentError):
            roles.create_role(None)
        with pytest.raises(InvalidArgumentError, match="must not contain commas"):
            roles.create_role("a,b")
        with pytest.raises(InvalidArgumentError, match="too long"):
            roles.create_role("r" * 257)

    def test_roles_are_ordered(self, roles):
        for name in ("beta", "Alpha", "gamma"):
            roles.create_role(name)
        assert roles.get_all_roles() == ["Alpha", "beta", "gamma"]

    def test_delete_missing_role(self, roles):
        with pytest.raises(RoleNotFoundError, match="The role 'Ghosts' was not found."):
            roles.delete_role("Ghosts")

    def test_delete_empty_role(self, roles):
        roles.create_role("Admins")
        assert roles.delete_role("Admins") is True
        assert roles.role_exists("Admins") is False

    def test_delete_populated_role_requires_force(self, people, roles):
        roles.create_role("Admins")
        roles.add_users_to_roles(["alice", "bob"], ["Admins"])

        with pytest.raises(PopulatedRoleError):
            roles.delete_role("Admins")
        assert roles.get_users_in_role("Admins") == ["alice", "bob"]

        assert roles.delete_role("Admins", throw_on_populated_role=False) is True
        assert roles.role_exists("Admins") is False
        assert roles.get_roles_for_user("alice") == []
        assert UserInRoleTable.select().count() == 0


class TestMembershipQueries:
    @pytest.fixture
    def staffed(self, people, roles):
        roles.create_role("Admins")
        roles.create_role("Editors")
        roles.add_users_to_roles(["alice", "bob"], ["Editors"])
        roles.add_user_to_role("alice", "Admins")
        return roles

    def test_roles_for_user(self, staffed):
        assert staffed.get_roles_for_user("ALICE") == ["Admins", "Editors"]
        assert staffed.get_roles_for_user("carol") == []

    def test_roles_for_missing_user(self, staffed):
        with pytest.raises(UserNotFoundError):
            staffed.get_roles_for_user("nobody")

    def test_users_in_role(self, staffed):
        assert staffed.get_users_in_role("editors") == ["alice", "bob"]
        with pytest.raises(RoleNotFoundError):
            staffed.get_users_in_role("Ghosts")

    def test_find_users_in_role(self, staffed):
        assert staffed.find_users_in_role("Editors", "BO") == ["bob"]
        assert staffed.find_users_in_role("Editors", "zz") == []

    def test_is_user_in_role(self, staffed):
        assert staffed.is_user_in_role("alice", "Admins") is True
        assert staffed.is_user_in_role("bob", "Admins") is False
        assert staffed.is_user_in_role("", "Admins") is False

    def test_is_user_in_role_names_missing_entity(self, staffed):
        with pytest.raises(UserNotFoundError, match="nobody"):
            staffed.is_user_in_role("nobody", "Admins")
        with pytest.raises(RoleNotFoundError, match="Ghosts"):
            staffed.is_user_in_role("alice", "Ghosts")


class TestBulkChanges:
    def test_add_many_to_many(self, people, roles):
        roles.create_role("Admins")
        roles.create_role("Editors")

        roles.add_users_to_roles(["alice", "bob"], ["Admins", "Editors"])

        assert UserInRoleTable.select().count() == 4

    def test_one_missing_user_adds_nothing(self, people, roles):
        roles.create_role("Admins")

        with pytest.raises(UserNotFoundError, match="The user 'mallory' was not found."):
            roles.add_users_to_roles(["alice", "mallory", "bob"], ["Admins"])

        assert UserInRoleTable.select().count() == 0

    def test_missing_role_adds_nothing(self, people, roles):
        roles.create_role("Admins")

        with pytest.raises(RoleNotFoundError, match="The role 'Ghosts' was not found."):
            roles.add_users_to_roles(["alice"], ["Admins", "Ghosts"])

        assert UserInRoleTable.select().count() == 0

    def test_already_in_role_adds_nothing(self, people, roles):
        roles.create_role("Admins")
        roles.add_user_to_role("bob", "Admins")

        with pytest.raises(UserAlreadyInRoleError) as exc:
            roles.add_users_to_roles(["alice", "bob"], ["Admins"])

        assert str(exc.value) == "The user 'bob' is already in role 'Admins'."
        assert roles.get_users_in_role("Admins") == ["bob"]

    def test_remove(self, people, roles):
        roles.create_role("Admins")
        roles.add_users_to_roles(["alice", "bob"], ["Admins"])

        roles.remove_users_from_roles(["alice"], ["Admins"])

        assert roles.get_users_in_role("Admins") == ["bob"]

    def test_remove_not_in_role_removes_nothing(self, people, roles):
        roles.create_role("Admins")
        roles.add_user_to_role("alice", "Admins")

        with pytest.raises(UserNotInRoleError) as exc:
            roles.remove_users_from_roles(["alice", "carol"], ["Admins"])

        assert str(exc.value) == "The user 'carol' is already not in role 'Admins'."
        assert roles.get_users_in_role("Admins") == ["alice"]

    def test_remove_names_missing_role_accurately(self, people, roles):
        with pytest.raises(RoleNotFoundError):
            roles.remove_user_from_role("alice", "Ghosts")

    def test_array_validation(self, roles):
        with pytest.raises(MissingArgumentError, match="role_names"):
            roles.add_users_to_roles(["alice"], None)
        with pytest.raises(InvalidArgumentError, match="should not be empty"):
            roles.add_users_to_roles([], ["Admins"])
        with pytest.raises(InvalidArgumentError, match="contains duplicate values"):
            roles.remove_users_from_roles(["alice", "Alice"], ["Admins"])
        with pytest.raises(InvalidArgumentError, match=r"usernames\[ 0 \]"):
            roles.add_users_to_roles(["a,b"], ["Admins"])


class TestApplicationScope:
    def test_roles_are_per_application(self, make_config, database, roles):
        roles.create_role("Admins")
        other = RoleProvider(make_config(application_name="/other"), database=database)

        assert other.get_all_roles() == []
        other.create_role("Admins")
        assert other.role_exists("Admins") is True


class TestConcurrentWrites:
    def test_populated_check_shares_the_delete_transaction(self, people, roles, monkeypatch):
        roles.create_role("Admins")
        in_transaction = []
        real_require = roles.store._require_role

        def spy(role_name):
            in_transaction.append(roles.db.in_transaction())
            return real_require(role_name)

        monkeypatch.setattr(roles.store, "_require_role", spy)
        assert roles.delete_role("Admins") is True
        assert in_transaction == [True]

    def test_delete_and_add_do_not_interleave(self, people, roles):
        roles.create_role("Admins")
        barrier = threading.Barrier(2)
        outcomes = {}

        def run(name, func):
            barrier.wait()
            try:
                func()
                outcomes[name] = "ok"
            except (PopulatedRoleError, RoleNotFoundError) as e:
                outcomes[name] = type(e).__name__
            finally:
                roles.db.close()

        threads = [
            threading.Thread(target=run, args=("delete", lambda: roles.delete_role("Admins"))),
            threading.Thread(
                target=run, args=("add", lambda: roles.add_user_to_role("alice", "Admins"))
            ),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert outcomes in (
            {"delete": "ok", "add": "RoleNotFoundError"},
            {"delete": "PopulatedRoleError", "add": "ok"},
        )
        if outcomes["add"] == "ok":
            assert roles.get_users_in_role("Admins") == ["alice"]
        else:
            assert roles.role_exists("Admins") is False

    def test_link_written_by_a_concurrent_caller(self, people, roles, monkeypatch):
        roles.create_role("Admins")
        roles.add_user_to_role("alice", "Admins")
        # The membership check misses the link another caller just wrote
        monkeypatch.setattr(roles.store, "_linked", lambda user_id, role_id: False)

        with pytest.raises(UserAlreadyInRoleError) as exc:
            roles.add_users_to_roles(["bob", "alice"], ["Admins"])

        assert str(exc.value) == "One of the users is already in one of the roles."
        assert exc.value.username is None
        assert roles.get_users_in_role("Admins") == ["alice"]


class TestStorageErrors:
    def test_datastore_failure_surfaces_as_storage_error(self, people, roles):
        UserInRoleTable.drop_table()

        with pytest.raises(StorageError) as exc:
            roles.get_roles_for_user("alice")
        assert isinstance(exc.value.__cause__, PeeweeException)
