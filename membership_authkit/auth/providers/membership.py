"""
Membership Provider

User lifecycle over the user store: credential validation with lockout,
creation, lookup and enumeration, password change/retrieval/reset and
account unlock. Arguments are validated before any store access; driver
errors surface as StorageError.
"""

import logging
import uuid
from datetime import timedelta
from typing import Optional, Union

from membership_authkit.auth.codec import CredentialCodec, PasswordFormat
from membership_authkit.auth.lockout import AttemptKind, LockoutPolicy, LockoutTracker
from membership_authkit.auth.models import CredentialRecord, MembershipUser, UserPage
from membership_authkit.auth.providers.base import ProviderBase
from membership_authkit.auth.stores.database import translate_storage_errors
from membership_authkit.auth.stores.users import UserStore
from membership_authkit.auth.validation import (
    MAX_NAME_LENGTH,
    MAX_PASSWORD_LENGTH,
    check_paging,
    check_parameter,
    check_password_strength,
)
from membership_authkit.errors import (
    AccountLockedError,
    CredentialRejectedError,
    InvalidArgumentError,
    MissingArgumentError,
    UnsupportedOperationError,
    UserNotFoundError,
)

logger = logging.getLogger(__name__)

GENERATED_PASSWORD_LENGTH = 14
GENERATE_PASSWORD_ATTEMPTS = 20


def _normalize_answer(answer: Optional[str]) -> Optional[str]:
    """Answers are compared case-insensitively and without surrounding blanks."""
    return answer.strip().lower() if answer is not None else None


class MembershipProvider(ProviderBase):
    """
    Usage:
        provider = MembershipProvider(ProviderConfig())
        provider.create_user("alice", "s3cret!pw", email="alice@example.com")
        provider.validate_user("alice", "s3cret!pw")  # True
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)

        self.codec = CredentialCodec(
            encryption_key=self.config.ENCRYPTION_KEY, hash_rounds=self.config.HASH_ROUNDS
        )
        self.store = UserStore(self.db, self.application, provider_name=self.name)
        self.lockout = LockoutTracker(
            self.store,
            LockoutPolicy(
                self.config.MAX_INVALID_PASSWORD_ATTEMPTS, self.config.PASSWORD_ATTEMPT_WINDOW
            ),
            self.clock,
        )

    # ========================================
    # Argument helpers
    # ========================================

    @staticmethod
    def _check_username(username: Optional[str], name: str = "username") -> str:
        return check_parameter(
            username, name, check_for_commas=True, max_size=MAX_NAME_LENGTH
        )

    @staticmethod
    def _check_password(password: Optional[str], name: str = "password") -> str:
        return check_parameter(password, name, max_size=MAX_PASSWORD_LENGTH, trim=False)

    def _page_size(self, page_size: Optional[int]) -> int:
        return self.config.DEFAULT_PAGE_SIZE if page_size is None else page_size

    def _enforce_password_policy(self, password: str, name: str) -> None:
        check_password_strength(
            password,
            name,
            self.config.MIN_REQUIRED_PASSWORD_LENGTH,
            self.config.MIN_REQUIRED_NON_ALPHANUMERIC_CHARACTERS,
            self.config.PASSWORD_STRENGTH_REGULAR_EXPRESSION,
        )

    @staticmethod
    def _parse_key(provider_user_key: Union[uuid.UUID, str], name: str) -> uuid.UUID:
        if isinstance(provider_user_key, uuid.UUID):
            return provider_user_key
        try:
            return uuid.UUID(str(provider_user_key))
        except ValueError:
            raise InvalidArgumentError(
                f"The parameter '{name}' is not a valid provider user key.", name
            )

    # ========================================
    # Credential checks
    # ========================================

    def _check_credentials(
        self, username: str, password: str, update_last_login: bool
    ) -> Optional[CredentialRecord]:
        """
        Verify ``password`` and record the outcome with the lockout tracker.

        Returns the credential record on success, None otherwise. Locked or
        unapproved accounts fail without touching the counters.
        """
        record = self.store.get_credentials(username)
        if record is None:
            self.audit.login_attempt(username, False, "unknown user")
            return None

        if record.is_locked_out:
            self.audit.login_attempt(username, False, "locked out")
            return None

        fmt = PasswordFormat.parse(record.password_format)
        if self.codec.verify(password, record.password, fmt):
            if not record.is_approved:
                self.audit.login_attempt(username, False, "not approved")
                return None

            fields = {"last_login_date": self.clock()} if update_last_login else {}
            state = self.lockout.record_success(record.user_id, AttemptKind.PASSWORD, **fields)
            if state is None or state.is_locked_out:
                # Locked (or removed) by a concurrent caller after the read above
                self.audit.login_attempt(username, False, "locked out")
                return None
            self.audit.login_attempt(username, True)
            return record

        self._record_failure(record, AttemptKind.PASSWORD)
        self.audit.login_attempt(username, False, "invalid password")
        return None

    def _record_failure(self, record: CredentialRecord, kind: AttemptKind) -> None:
        state = self.lockout.record_failure(record.user_id, kind)
        if state is not None and state.is_locked_out:
            self.audit.account_locked(record.user_name, kind.value)

    def _check_answer(self, record: CredentialRecord, answer: Optional[str]) -> None:
        """
        Raises:
            CredentialRejectedError: After recording the failed answer
            AccountLockedError: The account was locked while the answer was checked
        """
        fmt = PasswordFormat.parse(record.password_format)
        if self.codec.verify(_normalize_answer(answer) or "", record.password_answer, fmt):
            state = self.lockout.record_success(record.user_id, AttemptKind.PASSWORD_ANSWER)
            if state is None or state.is_locked_out:
                raise AccountLockedError(record.user_name)
            return

        self._record_failure(record, AttemptKind.PASSWORD_ANSWER)
        raise CredentialRejectedError("Incorrect password answer.")

    # ========================================
    # Validation and creation
    # ========================================

    @translate_storage_errors()
    def validate_user(self, username: str, password: str) -> bool:
        """
        Check a user's credentials.

        A wrong password counts towards lockout; exceeding
        MAX_INVALID_PASSWORD_ATTEMPTS within PASSWORD_ATTEMPT_WINDOW locks the
        account. Authentication failure is a False return, not an error.
        """
        username = self._check_username(username)
        password = self._check_password(password)

        record = self._check_credentials(username, password, update_last_login=True)
        if record is None:
            return False

        self.store.touch_activity(record.user_id, self.clock())
        return True

    @translate_storage_errors()
    def create_user(
        self,
        username: str,
        password: str,
        email: Optional[str] = None,
        password_question: Optional[str] = None,
        password_answer: Optional[str] = None,
        is_approved: bool = True,
        provider_user_key: Optional[Union[uuid.UUID, str]] = None,
        performed_by: str = "system",
    ) -> MembershipUser:
        """
        Create a user with an encoded password (and answer).

        Raises:
            MissingArgumentError / InvalidArgumentError: Bad arguments or a
                password that violates the configured policy
            DuplicateUserNameError: The user name is taken
            DuplicateEmailError: REQUIRES_UNIQUE_EMAIL and the e-mail is taken
            DuplicateProviderUserKeyError: The key is taken
        """
        config = self.config
        password = self._check_password(password)
        password_answer = check_parameter(
            password_answer,
            "password_answer",
            check_for_null=config.REQUIRES_QUESTION_AND_ANSWER,
            check_if_empty=config.REQUIRES_QUESTION_AND_ANSWER,
            max_size=MAX_PASSWORD_LENGTH,
        )
        username = self._check_username(username)
        email = check_parameter(
            email,
            "email",
            check_for_null=config.REQUIRES_UNIQUE_EMAIL,
            check_if_empty=config.REQUIRES_UNIQUE_EMAIL,
            max_size=MAX_NAME_LENGTH,
        )
        password_question = check_parameter(
            password_question,
            "password_question",
            check_for_null=config.REQUIRES_QUESTION_AND_ANSWER,
            check_if_empty=config.REQUIRES_QUESTION_AND_ANSWER,
            max_size=MAX_NAME_LENGTH,
        )
        if provider_user_key is not None:
            provider_user_key = self._parse_key(provider_user_key, "provider_user_key")

        self._enforce_password_policy(password, "password")

        fmt = config.PASSWORD_FORMAT
        encoded_answer = None
        if password_answer:
            encoded_answer = self.codec.encode(_normalize_answer(password_answer), fmt)

        user = self.store.create(
            username,
            self.codec.encode(password, fmt),
            fmt,
            email or None,
            password_question or None,
            encoded_answer,
            is_approved,
            user_id=provider_user_key,
            now=self.clock(),
            unique_email=config.REQUIRES_UNIQUE_EMAIL,
        )

        logger.info(f"User '{username}' created in application '{self.application_name}'")
        self.audit.user_created(username, user.provider_user_key, performed_by)
        return user

    @translate_storage_errors()
    def delete_user(
        self, username: str, delete_all_related_data: bool = True, performed_by: str = "system"
    ) -> bool:
        """
        Remove the user's membership; with ``delete_all_related_data`` also
        their role memberships and identity row.

        Raises:
            UserNotFoundError: No such user
        """
        username = self._check_username(username)

        user_id = self.store.user_id_for(username)
        if user_id is None:
            raise UserNotFoundError(username)

        self.store.delete(user_id, delete_all_related_data)
        logger.info(f"User '{username}' deleted (all related data: {delete_all_related_data})")
        self.audit.user_deleted(username, performed_by, delete_all_related_data)
        return True

    # ========================================
    # Lookups
    # ========================================

    @translate_storage_errors()
    def get_user(self, username: str, user_is_online: bool = False) -> Optional[MembershipUser]:
        username = self._check_username(username)

        user = self.store.get_by_name(username)
        if user is not None and user_is_online:
            user.last_activity_date = self.clock()
            self.store.touch_activity(user.provider_user_key, user.last_activity_date)
        return user

    @translate_storage_errors()
    def get_user_by_key(
        self, provider_user_key: Union[uuid.UUID, str], user_is_online: bool = False
    ) -> Optional[MembershipUser]:
        if provider_user_key is None:
            raise MissingArgumentError("provider_user_key")
        key = self._parse_key(provider_user_key, "provider_user_key")

        user = self.store.get_by_id(key)
        if user is not None and user_is_online:
            user.last_activity_date = self.clock()
            self.store.touch_activity(key, user.last_activity_date)
        return user

    @translate_storage_errors()
    def get_user_name_by_email(self, email: Optional[str]) -> str:
        """User name owning ``email``, or "" when none does (or email is None)."""
        email = check_parameter(
            email, "email", check_for_null=False, check_if_empty=False, max_size=MAX_NAME_LENGTH
        )
        if email is None:
            return ""
        return self.store.get_user_name_by_email(email)

    @translate_storage_errors()
    def find_users_by_name(
        self, username_to_match: str, page_index: int = 0, page_size: Optional[int] = None
    ) -> UserPage:
        username_to_match = check_parameter(
            username_to_match, "username_to_match", max_size=MAX_NAME_LENGTH
        )
        page_size = self._page_size(page_size)
        check_paging(page_index, page_size)

        users, total = self.store.find_by_name(username_to_match, page_index, page_size)
        return UserPage(users, total)

    @translate_storage_errors()
    def find_users_by_email(
        self, email_to_match: Optional[str], page_index: int = 0, page_size: Optional[int] = None
    ) -> UserPage:
        """Substring match on e-mail; None matches every user."""
        email_to_match = check_parameter(
            email_to_match,
            "email_to_match",
            check_for_null=False,
            check_if_empty=False,
            max_size=MAX_NAME_LENGTH,
        )
        page_size = self._page_size(page_size)
        check_paging(page_index, page_size)

        if email_to_match is None:
            users, total = self.store.get_all(page_index, page_size)
        else:
            users, total = self.store.find_by_email(email_to_match, page_index, page_size)
        return UserPage(users, total)

    @translate_storage_errors()
    def get_all_users(self, page_index: int = 0, page_size: Optional[int] = None) -> UserPage:
        page_size = self._page_size(page_size)
        check_paging(page_index, page_size)

        users, total = self.store.get_all(page_index, page_size)
        return UserPage(users, total)

    @translate_storage_errors()
    def get_number_of_users_online(self) -> int:
        since = self.clock() - timedelta(minutes=self.config.USER_IS_ONLINE_TIME_WINDOW)
        return self.store.count_online(since)

    # ========================================
    # Password lifecycle
    # ========================================

    @translate_storage_errors()
    def change_password(self, username: str, old_password: str, new_password: str) -> bool:
        """
        Replace the password after verifying the old one.

        Returns False when the old password is wrong (counted towards lockout).

        Raises:
            InvalidArgumentError: The new password violates the policy
        """
        username = self._check_username(username)
        old_password = self._check_password(old_password, "old_password")
        new_password = self._check_password(new_password, "new_password")

        self._enforce_password_policy(new_password, "new_password")

        record = self._check_credentials(username, old_password, update_last_login=False)
        if record is None:
            return False

        # The user's stored format is kept so the encoded answer stays readable
        fmt = PasswordFormat.parse(record.password_format)
        self.store.set_password(record.user_id, self.codec.encode(new_password, fmt), self.clock())

        logger.info(f"Password changed for '{username}'")
        self.audit.password_changed(username, performed_by=username, self_service=True)
        return True

    @translate_storage_errors()
    def change_password_question_and_answer(
        self, username: str, password: str, new_question: Optional[str], new_answer: Optional[str]
    ) -> bool:
        """Returns False when the password is wrong."""
        required = self.config.REQUIRES_QUESTION_AND_ANSWER
        username = self._check_username(username)
        password = self._check_password(password)
        new_question = check_parameter(
            new_question,
            "new_password_question",
            check_for_null=required,
            check_if_empty=required,
            max_size=MAX_NAME_LENGTH,
        )
        new_answer = check_parameter(
            new_answer,
            "new_password_answer",
            check_for_null=required,
            check_if_empty=required,
            max_size=MAX_PASSWORD_LENGTH,
        )

        record = self._check_credentials(username, password, update_last_login=False)
        if record is None:
            return False

        encoded_answer = None
        if new_answer:
            fmt = PasswordFormat.parse(record.password_format)
            encoded_answer = self.codec.encode(_normalize_answer(new_answer), fmt)

        self.store.set_question_and_answer(record.user_id, new_question or None, encoded_answer)
        self.audit.password_question_changed(username)
        return True

    def _load_for_recovery(self, username: str) -> CredentialRecord:
        record = self.store.get_credentials(username)
        if record is None:
            raise UserNotFoundError(username)
        return record

    @translate_storage_errors()
    def get_password(self, username: str, answer: Optional[str] = None) -> str:
        """
        Return the plaintext password of a CLEAR or ENCRYPTED user.

        Raises:
            UnsupportedOperationError: Retrieval disabled or password hashed
            UserNotFoundError: No such user
            AccountLockedError: The account is locked
            CredentialRejectedError: Wrong answer (the failure is recorded)
        """
        if not self.config.ENABLE_PASSWORD_RETRIEVAL:
            raise UnsupportedOperationError(
                "This provider is not configured to allow password retrieval."
            )
        username = self._check_username(username)
        answer = check_parameter(
            answer, "answer", check_for_null=False, check_if_empty=False,
            max_size=MAX_PASSWORD_LENGTH,
        )

        record = self._load_for_recovery(username)
        fmt = PasswordFormat.parse(record.password_format)
        if fmt == PasswordFormat.HASHED:
            self.audit.password_retrieved(username, False, "hashed password")
            raise UnsupportedOperationError("Cannot retrieve hashed passwords.")

        if record.is_locked_out:
            self.audit.password_retrieved(username, False, "locked out")
            raise AccountLockedError(username)

        if self.config.REQUIRES_QUESTION_AND_ANSWER:
            try:
                self._check_answer(record, answer)
            except CredentialRejectedError:
                self.audit.password_retrieved(username, False, "incorrect answer")
                raise

        password = self.codec.decode(record.password, fmt)
        self.audit.password_retrieved(username, True)
        return password

    @translate_storage_errors()
    def reset_password(self, username: str, answer: Optional[str] = None) -> str:
        """
        Replace the password with a generated one and return it.

        Raises:
            UnsupportedOperationError: Reset disabled by configuration
            MissingArgumentError: An answer is required but None was given
            UserNotFoundError: No such user
            AccountLockedError: The account is locked
            CredentialRejectedError: Wrong answer (the failure is recorded)
        """
        if not self.config.ENABLE_PASSWORD_RESET:
            raise UnsupportedOperationError("This provider is not configured to allow password reset.")
        required = self.config.REQUIRES_QUESTION_AND_ANSWER
        username = self._check_username(username)
        answer = check_parameter(
            answer, "answer", check_for_null=required, check_if_empty=False,
            max_size=MAX_PASSWORD_LENGTH,
        )

        record = self._load_for_recovery(username)
        if record.is_locked_out:
            self.audit.password_reset(username, False, "locked out")
            raise AccountLockedError(username)

        if required:
            try:
                self._check_answer(record, answer)
            except CredentialRejectedError:
                self.audit.password_reset(username, False, "incorrect answer")
                raise

        new_password = self._generate_password()
        fmt = PasswordFormat.parse(record.password_format)
        self.store.set_password(record.user_id, self.codec.encode(new_password, fmt), self.clock())

        logger.info(f"Password reset for '{username}'")
        self.audit.password_reset(username, True)
        return new_password

    def _generate_password(self) -> str:
        length = max(self.config.MIN_REQUIRED_PASSWORD_LENGTH, GENERATED_PASSWORD_LENGTH)
        for _ in range(GENERATE_PASSWORD_ATTEMPTS):
            candidate = self.codec.generate_password(
                length, self.config.MIN_REQUIRED_NON_ALPHANUMERIC_CHARACTERS
            )
            try:
                self._enforce_password_policy(candidate, "new_password")
            except InvalidArgumentError:
                continue
            return candidate

        raise UnsupportedOperationError(
            "Could not generate a password matching PASSWORD_STRENGTH_REGULAR_EXPRESSION."
        )

    # ========================================
    # Account maintenance
    # ========================================

    @translate_storage_errors()
    def unlock_user(self, username: str, performed_by: str = "system") -> bool:
        """Clear the lock and all failure counters (no-op for unlocked users)."""
        username = self._check_username(username)

        user_id = self.store.user_id_for(username)
        if user_id is None:
            raise UserNotFoundError(username)

        self.lockout.unlock(user_id)
        logger.info(f"User '{username}' unlocked")
        self.audit.account_unlocked(username, performed_by)
        return True

    @translate_storage_errors()
    def update_user(self, user: MembershipUser, performed_by: str = "system") -> None:
        """
        Persist email, comment, is_approved, last_login_date and
        last_activity_date from ``user``.

        Raises:
            UserNotFoundError: The user no longer exists
            DuplicateEmailError: REQUIRES_UNIQUE_EMAIL and the e-mail is taken
        """
        if user is None:
            raise MissingArgumentError("user")
        username = self._check_username(user.user_name, "user.user_name")
        email = check_parameter(
            user.email, "user.email", check_for_null=False, check_if_empty=False,
            max_size=MAX_NAME_LENGTH,
        )

        user_id = self.store.user_id_for(username)
        if user_id is None:
            raise UserNotFoundError(username)

        self.store.update(
            user_id,
            email or None,
            user.comment,
            user.is_approved,
            user.last_login_date,
            user.last_activity_date,
            unique_email=self.config.REQUIRES_UNIQUE_EMAIL,
        )
        self.audit.user_updated(username, performed_by)
