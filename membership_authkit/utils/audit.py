"""
Audit Logging System

Structured JSON logging for membership and role events.
Compatible with Datadog, Splunk, CloudWatch, ELK, etc.

Credentials (passwords, answers, stored hashes) are never part of an event.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Audit logger that emits one JSON object per event.

    Tracked events:
    - LOGIN_ATTEMPT (success/failure)
    - ACCOUNT_LOCKED / ACCOUNT_UNLOCKED
    - USER_CREATED / USER_DELETED / USER_UPDATED
    - PASSWORD_CHANGED / PASSWORD_RESET / PASSWORD_RETRIEVED
    - PASSWORD_QUESTION_CHANGED
    - ROLE_CREATED / ROLE_DELETED
    - USERS_ADDED_TO_ROLES / USERS_REMOVED_FROM_ROLES
    """

    def __init__(self, enabled: bool = True, application: Optional[str] = None):
        """
        Args:
            enabled: If False, audit logs are silenced
            application: Application scope stamped on every event
        """
        self.enabled = enabled
        self.application = application

    def _emit(self, event: Dict[str, Any]) -> None:
        if not self.enabled:
            return

        if "timestamp" not in event:
            event["timestamp"] = datetime.now(timezone.utc).isoformat()
        if self.application is not None:
            event.setdefault("application", self.application)

        # Single-line JSON (parseable)
        logger.info(json.dumps(event, ensure_ascii=False, default=str))

    def login_attempt(self, username: str, success: bool, reason: Optional[str] = None) -> None:
        """
        Log a credential validation.

        Args:
            username: Username
            success: True if the credentials were accepted
            reason: Failure reason (optional)
        """
        event: Dict[str, Union[str, bool]] = {
            "event_type": "LOGIN_ATTEMPT",
            "username": username,
            "status": "SUCCESS" if success else "FAILURE",
        }

        if not success and reason:
            event["reason"] = reason

        self._emit(event)

    def account_locked(self, username: str, attempt_kind: str) -> None:
        self._emit(
            {"event_type": "ACCOUNT_LOCKED", "username": username, "attempt_kind": attempt_kind}
        )

    def account_unlocked(self, username: str, performed_by: str = "system") -> None:
        self._emit(
            {"event_type": "ACCOUNT_UNLOCKED", "username": username, "performed_by": performed_by}
        )

    def user_created(self, username: str, provider_user_key: Any, performed_by: str) -> None:
        """
        Log user creation.

        Args:
            username: User created
            provider_user_key: Id assigned to the user
            performed_by: Who created
        """
        event: Dict[str, str] = {
            "event_type": "USER_CREATED",
            "username": username,
            "provider_user_key": str(provider_user_key),
            "performed_by": performed_by,
        }

        self._emit(event)

    def user_deleted(
        self, username: str, performed_by: str, delete_all_related_data: bool = True
    ) -> None:
        event: Dict[str, Union[str, bool]] = {
            "event_type": "USER_DELETED",
            "username": username,
            "performed_by": performed_by,
            "delete_all_related_data": delete_all_related_data,
        }

        self._emit(event)

    def user_updated(self, username: str, performed_by: str) -> None:
        self._emit({"event_type": "USER_UPDATED", "username": username, "performed_by": performed_by})

    def password_changed(self, username: str, performed_by: str, self_service: bool = False) -> None:
        """
        Log password change.

        Args:
            username: User whose password was changed
            performed_by: Who changed the password
            self_service: True if user changed their own password
        """
        event: Dict[str, Union[str, bool]] = {
            "event_type": "PASSWORD_CHANGED",
            "username": username,
            "performed_by": performed_by,
            "self_service": self_service,
        }

        self._emit(event)

    def password_question_changed(self, username: str) -> None:
        self._emit({"event_type": "PASSWORD_QUESTION_CHANGED", "username": username})

    def password_reset(self, username: str, success: bool, reason: Optional[str] = None) -> None:
        event: Dict[str, Union[str, bool]] = {
            "event_type": "PASSWORD_RESET",
            "username": username,
            "status": "SUCCESS" if success else "FAILURE",
        }
        if reason:
            event["reason"] = reason
        self._emit(event)

    def password_retrieved(self, username: str, success: bool, reason: Optional[str] = None) -> None:
        event: Dict[str, Union[str, bool]] = {
            "event_type": "PASSWORD_RETRIEVED",
            "username": username,
            "status": "SUCCESS" if success else "FAILURE",
        }
        if reason:
            event["reason"] = reason
        self._emit(event)

    def role_created(self, role_name: str, performed_by: str) -> None:
        self._emit({"event_type": "ROLE_CREATED", "role": role_name, "performed_by": performed_by})

    def role_deleted(self, role_name: str, performed_by: str) -> None:
        self._emit({"event_type": "ROLE_DELETED", "role": role_name, "performed_by": performed_by})

    def role_membership_changed(
        self,
        usernames: Sequence[str],
        role_names: Sequence[str],
        added: bool,
        performed_by: str,
    ) -> None:
        """
        Log a bulk add/remove of users to/from roles.

        Args:
            usernames: Users affected
            role_names: Roles affected
            added: True for add, False for remove
            performed_by: Who made the change
        """
        event: Dict[str, Union[str, List[str]]] = {
            "event_type": "USERS_ADDED_TO_ROLES" if added else "USERS_REMOVED_FROM_ROLES",
            "usernames": list(usernames),
            "roles": list(role_names),
            "performed_by": performed_by,
        }

        self._emit(event)

    def custom_event(self, event_type: str, **kwargs: Any) -> None:
        """
        Log custom event.

        Args:
            event_type: Event type
            **kwargs: Additional fields
        """
        event: Dict[str, Any] = {"event_type": event_type, **kwargs}

        self._emit(event)
