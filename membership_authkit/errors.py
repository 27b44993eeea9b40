"""
Provider Error Taxonomy

Every failure a provider raises is a MembershipError subclass.
Authentication failures are NOT errors: validate_user() returns False.
"""

from typing import Optional


class MembershipError(Exception):
    """Base class for all membership/role provider errors."""


# ========================================
# ARGUMENT ERRORS (raised before any store access)
# ========================================


class MissingArgumentError(MembershipError, ValueError):
    """A required argument was None."""

    def __init__(self, param_name: str):
        self.param_name = param_name
        super().__init__(f"Value cannot be null. Parameter name: {param_name}")


class InvalidArgumentError(MembershipError, ValueError):
    """An argument was empty, too long, contained a comma or was out of range."""

    def __init__(self, message: str, param_name: Optional[str] = None):
        self.param_name = param_name
        super().__init__(message)


# ========================================
# ENTITY ERRORS
# ========================================


class EntityNotFoundError(MembershipError):
    """A named user or role does not exist."""


class UserNotFoundError(EntityNotFoundError):
    def __init__(self, username: Optional[str] = None, message: Optional[str] = None):
        self.username = username
        if message is None:
            message = (
                f"The user '{username}' was not found."
                if username
                else "The user was not found in the database."
            )
        super().__init__(message)


class RoleNotFoundError(EntityNotFoundError):
    def __init__(self, role_name: str):
        self.role_name = role_name
        super().__init__(f"The role '{role_name}' was not found.")


class EntityAlreadyExistsError(MembershipError):
    """A user, role or unique value collides with an existing one."""


class DuplicateUserNameError(EntityAlreadyExistsError):
    def __init__(self, username: str):
        self.username = username
        super().__init__(f"The username '{username}' is already in use.")


class DuplicateEmailError(EntityAlreadyExistsError):
    def __init__(self, email: Optional[str] = None):
        self.email = email
        super().__init__("The E-mail supplied is invalid or is already in use.")


class DuplicateProviderUserKeyError(EntityAlreadyExistsError):
    def __init__(self, provider_user_key):
        self.provider_user_key = provider_user_key
        super().__init__(f"The provider user key '{provider_user_key}' is already in use.")


class DuplicateRoleError(EntityAlreadyExistsError):
    def __init__(self, role_name: str):
        self.role_name = role_name
        super().__init__(f"The role '{role_name}' already exists.")


# ========================================
# ROLE MEMBERSHIP ERRORS
# ========================================


class MembershipConflictError(MembershipError):
    """A user is already (or already not) in a role."""

    def __init__(self, message: str, username: str, role_name: str):
        self.username = username
        self.role_name = role_name
        super().__init__(message)


class UserAlreadyInRoleError(MembershipConflictError):
    """Without a pair, the conflicting link was written by a concurrent caller."""

    def __init__(self, username: Optional[str] = None, role_name: Optional[str] = None):
        if username is None or role_name is None:
            message = "One of the users is already in one of the roles."
        else:
            message = f"The user '{username}' is already in role '{role_name}'."
        super().__init__(message, username, role_name)


class UserNotInRoleError(MembershipConflictError):
    def __init__(self, username: str, role_name: str):
        super().__init__(
            f"The user '{username}' is already not in role '{role_name}'.", username, role_name
        )


class PopulatedRoleError(MembershipError):
    def __init__(self, role_name: str):
        self.role_name = role_name
        super().__init__("This role cannot be deleted because there are users present in it.")


# ========================================
# CREDENTIAL ERRORS
# ========================================


class CredentialRejectedError(MembershipError):
    """Wrong password answer on a retrieval/reset entry point."""


class AccountLockedError(CredentialRejectedError):
    def __init__(self, username: str):
        self.username = username
        super().__init__(f"The user '{username}' is locked out.")


class UnsupportedOperationError(MembershipError):
    """Operation disabled by configuration or impossible for the stored format."""


class StorageError(MembershipError):
    """The datastore failed (unreachable, timeout, unclassified constraint)."""
