"""
Login Throttling Service

WHY: Prevent brute-force password attacks by limiting failed login attempts.
After too many failures, the account is temporarily locked.

SECURITY FEATURES:
- Failure counter kept on the user row (failed_attempts)
- Lockout once MAX_FAILED_ATTEMPTS is reached
- Lockout duration: LOCKOUT_DURATION minutes
- Counter is cumulative; only a successful login clears it
- Callers commit: these helpers only mutate the user
"""

import math
from datetime import timedelta

from ..models import User
from ..time_utils import utcnow


# Configuration constants
MAX_FAILED_ATTEMPTS = 5
LOCKOUT_DURATION = timedelta(minutes=15)


def minutes_remaining(user: User) -> int | None:
    """
    Minutes (rounded up) until the lockout ends, or None if not locked.
    """
    if user.locked_until is None:
        return None
    remaining = (user.locked_until - utcnow()).total_seconds()
    if remaining <= 0:
        return None
    return max(1, math.ceil(remaining / 60))


def is_account_locked(user: User) -> bool:
    return minutes_remaining(user) is not None


def record_failed_attempt(user: User) -> bool:
    """
    Count a wrong password.

    Returns True when this failure triggered the lockout.
    """
    user.failed_attempts = (user.failed_attempts or 0) + 1
    if user.failed_attempts >= MAX_FAILED_ATTEMPTS:
        user.locked_until = utcnow() + LOCKOUT_DURATION
        return True
    return False


def record_successful_login(user: User) -> None:
    user.failed_attempts = 0
    user.locked_until = None
    user.last_login_at = utcnow()
