"""
Membership data objects returned by the providers.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

# ========================================
# MEMBERSHIP USER (read model)
# ========================================


@dataclass
class MembershipUser:
    """
    Snapshot of a user's identity and membership record.

    Mutating the object has no effect until it is passed to
    MembershipProvider.update_user(); only email, comment, is_approved,
    last_login_date and last_activity_date are written back.

    Attributes:
        provider_name: Name of the provider that produced the object
        user_name: Username, original casing
        provider_user_key: Immutable user id
        email: E-mail address (optional)
        password_question: Question for retrieval/reset (optional)
        is_locked_out: True while the account is locked
    """

    provider_name: str
    user_name: str
    provider_user_key: uuid.UUID
    email: Optional[str] = None
    password_question: Optional[str] = None
    comment: Optional[str] = None
    is_approved: bool = True
    is_locked_out: bool = False
    creation_date: Optional[datetime] = None
    last_login_date: Optional[datetime] = None
    last_activity_date: Optional[datetime] = None
    last_password_changed_date: Optional[datetime] = None
    last_lockout_date: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Plain dict with ISO timestamps, for `list-users --json`."""
        data = {}
        for key, value in self.__dict__.items():
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, uuid.UUID):
                value = str(value)
            data[key] = value
        return data


@dataclass
class UserPage:
    """One page of an enumeration plus the total number of matches."""

    users: List[MembershipUser] = field(default_factory=list)
    total_records: int = 0

    def __iter__(self):
        return iter(self.users)

    def __len__(self):
        return len(self.users)


@dataclass
class CredentialRecord:
    """Internal view of a membership row used for credential checks."""

    user_id: uuid.UUID
    user_name: str
    password: str
    password_format: int
    password_answer: Optional[str]
    is_approved: bool
    is_locked_out: bool
