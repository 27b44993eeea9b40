"""
Peewee models for membership persistence.

Tables: applications, users (identity), memberships (credentials and
lockout counters, 1:1 with users), roles, users_in_roles.
"""

import uuid
from datetime import datetime, timezone

from peewee import (
    BooleanField,
    CharField,
    CompositeKey,
    DateTimeField,
    ForeignKeyField,
    IntegerField,
    Model,
    TextField,
    UUIDField,
)


def utcnow() -> datetime:
    """Naive UTC timestamp (peewee DateTimeField round-trips naive values)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel(Model):
    """Unbound base; the database is attached at runtime by initialize_schema()."""


class ApplicationTable(BaseModel):
    id = UUIDField(primary_key=True, default=uuid.uuid4)
    name = CharField(max_length=256)
    lowered_name = CharField(max_length=256, unique=True)
    description = CharField(max_length=256, null=True)

    class Meta:
        table_name = "applications"


class UserTable(BaseModel):
    """
    Identity row. The id is the provider user key and never changes.
    """

    id = UUIDField(primary_key=True, default=uuid.uuid4)
    application = ForeignKeyField(ApplicationTable, backref="users", on_delete="CASCADE")
    username = CharField(max_length=256)
    lowered_username = CharField(max_length=256)
    is_anonymous = BooleanField(default=False)
    last_activity_date = DateTimeField(default=utcnow)

    class Meta:
        table_name = "users"
        indexes = ((("application", "lowered_username"), True),)


class MembershipTable(BaseModel):
    """
    Credential row. ``version`` is bumped by every lockout/credential write
    so concurrent writers can detect lost updates.
    """

    user = ForeignKeyField(UserTable, primary_key=True, backref="memberships", on_delete="CASCADE")
    application = ForeignKeyField(ApplicationTable, on_delete="CASCADE")
    password = TextField()
    password_format = IntegerField(default=1)
    email = CharField(max_length=256, null=True)
    lowered_email = CharField(max_length=256, null=True, index=True)
    password_question = CharField(max_length=256, null=True)
    password_answer = TextField(null=True)
    is_approved = BooleanField(default=True)
    is_locked_out = BooleanField(default=False)
    create_date = DateTimeField(default=utcnow)
    last_login_date = DateTimeField(default=utcnow)
    last_password_changed_date = DateTimeField(default=utcnow)
    last_lockout_date = DateTimeField(null=True)
    failed_password_attempt_count = IntegerField(default=0)
    failed_password_attempt_window_start = DateTimeField(null=True)
    failed_password_answer_attempt_count = IntegerField(default=0)
    failed_password_answer_attempt_window_start = DateTimeField(null=True)
    comment = TextField(null=True)
    version = IntegerField(default=0)

    class Meta:
        table_name = "memberships"


class RoleTable(BaseModel):
    id = UUIDField(primary_key=True, default=uuid.uuid4)
    application = ForeignKeyField(ApplicationTable, backref="roles", on_delete="CASCADE")
    role_name = CharField(max_length=256)
    lowered_role_name = CharField(max_length=256)
    description = CharField(max_length=256, null=True)

    class Meta:
        table_name = "roles"
        indexes = ((("application", "lowered_role_name"), True),)


class UserInRoleTable(BaseModel):
    user = ForeignKeyField(UserTable, backref="role_links", on_delete="CASCADE")
    role = ForeignKeyField(RoleTable, backref="user_links", on_delete="CASCADE")

    class Meta:
        table_name = "users_in_roles"
        primary_key = CompositeKey("user", "role")


ALL_MODELS = [ApplicationTable, UserTable, MembershipTable, RoleTable, UserInRoleTable]
