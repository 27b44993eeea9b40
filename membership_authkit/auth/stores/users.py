"""
User store: identity and membership rows for one application.

Every query is scoped by the application row passed to the constructor.
Usernames and e-mails are matched on their lowered copies.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from peewee import Database, IntegrityError

from membership_authkit.auth.lockout import AttemptTrack, LockoutState
from membership_authkit.auth.models import CredentialRecord, MembershipUser
from membership_authkit.auth.stores.database import serialized_write
from membership_authkit.auth.stores.schema import (
    ApplicationTable,
    MembershipTable,
    UserInRoleTable,
    UserTable,
    utcnow,
)
from membership_authkit.errors import (
    DuplicateEmailError,
    DuplicateProviderUserKeyError,
    DuplicateUserNameError,
)

logger = logging.getLogger(__name__)


class UserStore:
    """
    Persistence for users of a single application.

    Usage:
        store = UserStore(db, application, provider_name="MembershipProvider")
        store.create("alice", stored, 1, "a@example.com", None, None, True, now=now)
        store.get_by_name("ALICE")  # case-insensitive
    """

    def __init__(self, db: Database, application: ApplicationTable, provider_name: str):
        self.db = db
        self.application = application
        self.provider_name = provider_name

    # ========================================
    # Queries
    # ========================================

    def _members(self):
        return (
            MembershipTable.select(MembershipTable, UserTable)
            .join(UserTable)
            .where(MembershipTable.application == self.application)
        )

    def _identity(self, username: str) -> Optional[UserTable]:
        return UserTable.get_or_none(
            (UserTable.application == self.application)
            & (UserTable.lowered_username == username.lower())
        )

    def _key_holder(self, user_id: uuid.UUID) -> Optional[UserTable]:
        return UserTable.get_or_none(UserTable.id == user_id)

    def _to_user(self, row: MembershipTable) -> MembershipUser:
        return MembershipUser(
            provider_name=self.provider_name,
            user_name=row.user.username,
            provider_user_key=row.user.id,
            email=row.email,
            password_question=row.password_question,
            comment=row.comment,
            is_approved=row.is_approved,
            is_locked_out=row.is_locked_out,
            creation_date=row.create_date,
            last_login_date=row.last_login_date,
            last_activity_date=row.user.last_activity_date,
            last_password_changed_date=row.last_password_changed_date,
            last_lockout_date=row.last_lockout_date,
        )

    def _page(self, query, page_index: int, page_size: int) -> Tuple[List[MembershipUser], int]:
        total = query.count()
        rows = query.order_by(UserTable.lowered_username, UserTable.id).paginate(
            page_index + 1, page_size
        )
        return [self._to_user(row) for row in rows], total

    def user_id_for(self, username: str) -> Optional[uuid.UUID]:
        """Id of the user holding a membership row, or None."""
        row = self._members().where(UserTable.lowered_username == username.lower()).first()
        return row.user.id if row else None

    def get_by_name(self, username: str) -> Optional[MembershipUser]:
        row = self._members().where(UserTable.lowered_username == username.lower()).first()
        return self._to_user(row) if row else None

    def get_by_id(self, user_id: uuid.UUID) -> Optional[MembershipUser]:
        row = self._members().where(UserTable.id == user_id).first()
        return self._to_user(row) if row else None

    def get_credentials(self, username: str) -> Optional[CredentialRecord]:
        row = self._members().where(UserTable.lowered_username == username.lower()).first()
        if row is None:
            return None
        return CredentialRecord(
            user_id=row.user.id,
            user_name=row.user.username,
            password=row.password,
            password_format=row.password_format,
            password_answer=row.password_answer,
            is_approved=row.is_approved,
            is_locked_out=row.is_locked_out,
        )

    def get_user_name_by_email(self, email: str) -> str:
        row = (
            self._members()
            .where(MembershipTable.lowered_email == email.lower())
            .order_by(UserTable.lowered_username)
            .first()
        )
        return row.user.username if row else ""

    def email_in_use(self, email: str, exclude_user_id: Optional[uuid.UUID] = None) -> bool:
        query = self._members().where(MembershipTable.lowered_email == email.lower())
        if exclude_user_id is not None:
            query = query.where(UserTable.id != exclude_user_id)
        return query.exists()

    def find_by_name(self, pattern: str, page_index: int, page_size: int):
        query = self._members().where(UserTable.lowered_username.contains(pattern.lower()))
        return self._page(query, page_index, page_size)

    def find_by_email(self, pattern: str, page_index: int, page_size: int):
        query = self._members().where(MembershipTable.lowered_email.contains(pattern.lower()))
        return self._page(query, page_index, page_size)

    def get_all(self, page_index: int, page_size: int):
        return self._page(self._members(), page_index, page_size)

    def count_online(self, since: datetime) -> int:
        return self._members().where(UserTable.last_activity_date > since).count()

    # ========================================
    # Writes
    # ========================================

    def create(
        self,
        username: str,
        password: str,
        password_format: int,
        email: Optional[str],
        password_question: Optional[str],
        password_answer: Optional[str],
        is_approved: bool,
        user_id: Optional[uuid.UUID] = None,
        now: Optional[datetime] = None,
        unique_email: bool = False,
    ) -> MembershipUser:
        """
        Insert the identity (unless an identity without membership already
        exists under that name) and the membership row in one transaction.

        The e-mail check runs inside the same serialized transaction, so two
        concurrent creates cannot both claim an address.

        Raises:
            DuplicateUserNameError: The name already has a membership row
            DuplicateProviderUserKeyError: ``user_id`` is taken
            DuplicateEmailError: ``unique_email`` and the e-mail is taken
        """
        now = now or utcnow()
        try:
            with serialized_write(self.db, self.application):
                if unique_email and email is not None and self.email_in_use(email):
                    raise DuplicateEmailError(email)

                identity = self._identity(username)
                if identity is not None:
                    has_membership = (
                        MembershipTable.select().where(MembershipTable.user == identity.id).exists()
                    )
                    if has_membership or (user_id is not None and user_id != identity.id):
                        raise DuplicateUserNameError(username)
                    identity.last_activity_date = now
                    identity.save()
                else:
                    if user_id is not None and self._key_holder(user_id) is not None:
                        raise DuplicateProviderUserKeyError(user_id)
                    identity = UserTable.create(
                        id=user_id or uuid.uuid4(),
                        application=self.application,
                        username=username,
                        lowered_username=username.lower(),
                        last_activity_date=now,
                    )

                MembershipTable.create(
                    user=identity,
                    application=self.application,
                    password=password,
                    password_format=int(password_format),
                    email=email,
                    lowered_email=email.lower() if email is not None else None,
                    password_question=password_question,
                    password_answer=password_answer,
                    is_approved=is_approved,
                    create_date=now,
                    last_login_date=now,
                    last_password_changed_date=now,
                )
        except IntegrityError as e:
            logger.debug(f"Integrity error creating '{username}': {e}")
            raise self._classify_conflict(username, user_id) from e

        logger.debug(f"User '{username}' stored with id {identity.id}")
        return self.get_by_id(identity.id)

    def _classify_conflict(self, username: str, user_id: Optional[uuid.UUID]):
        """Name the key a concurrent writer took: the provider key, else the user name."""
        if user_id is not None:
            holder = self._key_holder(user_id)
            if holder is not None and holder.lowered_username != username.lower():
                return DuplicateProviderUserKeyError(user_id)
        return DuplicateUserNameError(username)

    def update(
        self,
        user_id: uuid.UUID,
        email: Optional[str],
        comment: Optional[str],
        is_approved: bool,
        last_login_date: Optional[datetime],
        last_activity_date: Optional[datetime],
        unique_email: bool = False,
    ) -> bool:
        """
        Raises:
            DuplicateEmailError: ``unique_email`` and another user holds the e-mail
        """
        with serialized_write(self.db, self.application):
            if unique_email and email is not None and self.email_in_use(email, user_id):
                raise DuplicateEmailError(email)

            fields = {
                MembershipTable.email: email,
                MembershipTable.lowered_email: email.lower() if email is not None else None,
                MembershipTable.comment: comment,
                MembershipTable.is_approved: is_approved,
                MembershipTable.version: MembershipTable.version + 1,
            }
            if last_login_date is not None:
                fields[MembershipTable.last_login_date] = last_login_date
            updated = MembershipTable.update(fields).where(MembershipTable.user == user_id).execute()

            if last_activity_date is not None:
                self.touch_activity(user_id, last_activity_date)
        return updated > 0

    def touch_activity(self, user_id: uuid.UUID, now: datetime) -> None:
        UserTable.update(last_activity_date=now).where(UserTable.id == user_id).execute()

    def set_password(self, user_id: uuid.UUID, password: str, now: datetime) -> bool:
        query = MembershipTable.update(
            password=password,
            last_password_changed_date=now,
            version=MembershipTable.version + 1,
        ).where(MembershipTable.user == user_id)
        return query.execute() > 0

    def set_question_and_answer(
        self, user_id: uuid.UUID, question: Optional[str], answer: Optional[str]
    ) -> bool:
        query = MembershipTable.update(
            password_question=question,
            password_answer=answer,
            version=MembershipTable.version + 1,
        ).where(MembershipTable.user == user_id)
        return query.execute() > 0

    def delete(self, user_id: uuid.UUID, delete_all_related_data: bool) -> bool:
        """
        Remove the membership row; with ``delete_all_related_data`` also the
        user's role links and identity row.
        """
        with self.db.atomic():
            deleted = MembershipTable.delete().where(MembershipTable.user == user_id).execute()
            if delete_all_related_data:
                UserInRoleTable.delete().where(UserInRoleTable.user == user_id).execute()
                UserTable.delete().where(UserTable.id == user_id).execute()
        return deleted > 0

    # ========================================
    # Lockout state (compare-and-set on version)
    # ========================================

    def load_lockout_state(self, user_id: uuid.UUID) -> Optional[Tuple[LockoutState, int]]:
        row = MembershipTable.get_or_none(MembershipTable.user == user_id)
        if row is None:
            return None

        state = LockoutState(
            is_locked_out=row.is_locked_out,
            last_lockout_date=row.last_lockout_date,
            password=AttemptTrack(
                row.failed_password_attempt_count, row.failed_password_attempt_window_start
            ),
            password_answer=AttemptTrack(
                row.failed_password_answer_attempt_count,
                row.failed_password_answer_attempt_window_start,
            ),
        )
        return state, row.version

    def save_lockout_state(
        self, user_id: uuid.UUID, version: int, state: LockoutState, **fields
    ) -> bool:
        """
        Write ``state`` (plus extra membership ``fields``) only if the row is
        still at ``version``.
        """
        query = MembershipTable.update(
            is_locked_out=state.is_locked_out,
            last_lockout_date=state.last_lockout_date,
            failed_password_attempt_count=state.password.count,
            failed_password_attempt_window_start=state.password.window_start,
            failed_password_answer_attempt_count=state.password_answer.count,
            failed_password_answer_attempt_window_start=state.password_answer.window_start,
            version=version + 1,
            **fields,
        ).where((MembershipTable.user == user_id) & (MembershipTable.version == version))
        return query.execute() == 1
