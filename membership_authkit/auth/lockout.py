"""
Lockout Tracker - Brute Force Protection

Per-user failure counters for two independent kinds of attempt (password
and password answer) with a sliding window. Both kinds share one locked
flag.

State is persisted on the membership row; transitions are computed by
LockoutPolicy (pure) and written by LockoutTracker with a version check so
concurrent failures are never lost.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional, Tuple

from membership_authkit.errors import StorageError

logger = logging.getLogger(__name__)


class AttemptKind(Enum):
    PASSWORD = "password"
    PASSWORD_ANSWER = "password_answer"


@dataclass(frozen=True)
class AttemptTrack:
    count: int = 0
    window_start: Optional[datetime] = None

    def window_expired(self, now: datetime, window: timedelta) -> bool:
        if self.count == 0 or self.window_start is None:
            return True
        return now > self.window_start + window


@dataclass(frozen=True)
class LockoutState:
    is_locked_out: bool = False
    last_lockout_date: Optional[datetime] = None
    password: AttemptTrack = field(default_factory=AttemptTrack)
    password_answer: AttemptTrack = field(default_factory=AttemptTrack)

    def track(self, kind: AttemptKind) -> AttemptTrack:
        return getattr(self, kind.value)

    def with_track(self, kind: AttemptKind, track: AttemptTrack) -> "LockoutState":
        return replace(self, **{kind.value: track})


# ========================================
# Policy (pure transitions)
# ========================================


class LockoutPolicy:
    """
    Lockout transitions.

    A failure inside the window increments the counter; the account locks
    once the counter exceeds ``max_invalid_attempts``. A failure after the
    window has elapsed starts a new window at 1. Failures against a locked
    account change nothing.
    """

    def __init__(self, max_invalid_attempts: int, attempt_window_minutes: int):
        self.max_invalid_attempts = max_invalid_attempts
        self.window = timedelta(minutes=attempt_window_minutes)

    def register_failure(
        self, state: LockoutState, kind: AttemptKind, now: datetime
    ) -> LockoutState:
        if state.is_locked_out:
            return state

        track = state.track(kind)
        if track.window_expired(now, self.window):
            track = AttemptTrack(count=1, window_start=now)
        else:
            track = AttemptTrack(count=track.count + 1, window_start=track.window_start)

        state = state.with_track(kind, track)
        if track.count > self.max_invalid_attempts:
            state = replace(state, is_locked_out=True, last_lockout_date=now)
        return state

    def register_success(self, state: LockoutState, kind: AttemptKind) -> LockoutState:
        if state.is_locked_out:
            return state
        return state.with_track(kind, AttemptTrack())

    def unlock(self, state: LockoutState) -> LockoutState:
        return replace(
            state,
            is_locked_out=False,
            password=AttemptTrack(),
            password_answer=AttemptTrack(),
        )


# ========================================
# Tracker (persistence)
# ========================================


class LockoutTracker:
    """
    Applies LockoutPolicy transitions through a store exposing
    ``load_lockout_state(user_id) -> (state, version) | None`` and
    ``save_lockout_state(user_id, version, state, **fields) -> bool``.

    Each transition is a compare-and-set on the row version; a lost race is
    re-read and re-applied.
    """

    MAX_RETRIES = 10

    def __init__(self, store, policy: LockoutPolicy, clock: Callable[[], datetime]):
        self.store = store
        self.policy = policy
        self.clock = clock

    def record_failure(self, user_id, kind: AttemptKind) -> Optional[LockoutState]:
        now = self.clock()
        state = self._apply(user_id, lambda s: self.policy.register_failure(s, kind, now))
        if state is not None and state.is_locked_out and state.last_lockout_date == now:
            logger.warning(f"User {user_id} locked out after repeated {kind.value} failures")
        return state

    def record_success(self, user_id, kind: AttemptKind, **fields) -> Optional[LockoutState]:
        """
        Reset the ``kind`` counter and write ``fields``. If the account was
        locked in the meantime, nothing is written and the locked state is
        returned.
        """
        return self._apply(user_id, lambda s: self.policy.register_success(s, kind), **fields)

    def unlock(self, user_id) -> bool:
        return self._apply(user_id, self.policy.unlock) is not None

    def _apply(
        self, user_id, transition: Callable[[LockoutState], LockoutState], **fields
    ) -> Optional[LockoutState]:
        for attempt in range(self.MAX_RETRIES):
            snapshot: Optional[Tuple[LockoutState, int]] = self.store.load_lockout_state(user_id)
            if snapshot is None:
                return None

            state, version = snapshot
            new_state = transition(state)
            # A locked row is left untouched by transitions that do not change it
            if new_state == state and (not fields or state.is_locked_out):
                return state

            if self.store.save_lockout_state(user_id, version, new_state, **fields):
                return new_state

            logger.debug(f"Lockout update for {user_id} lost a race (attempt {attempt + 1})")

        raise StorageError(
            f"Could not update lockout state for {user_id}: too many concurrent updates"
        )
