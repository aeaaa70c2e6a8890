"""
Seat registration for conferences.

Registering links a profile to a conference and consumes one seat;
unregistering is the exact inverse. Both run as a single unit of work over
the (profile, conference) pair, so either both records change or neither
does. Failures inside the unit of work are captured as a
``RegistrationResult``; ``raise_for_result`` is the one place that turns a
failed result into a typed API error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from conference_central.db import (
    DbClient,
    PairTransaction,
    ProfileRecord,
    TransactionConflictError,
)
from conference_central.errors import Conflict, Forbidden, NotFound
from conference_central.identity import User
from conference_central.keys import is_conference_key
from conference_central.types import RegistrationOutcome, TeeShirtSize

logger = logging.getLogger(__name__)

ALREADY_REGISTERED = "Already registered"
NO_SEATS_AVAILABLE = "No seats available"
NOT_REGISTERED = "User not registered"
UNKNOWN_EXCEPTION = "Unknown exception"


@dataclass(frozen=True)
class RegistrationResult:
    result: bool
    reason: str
    outcome: RegistrationOutcome


def default_display_name(email: str | None) -> str | None:
    """lemoncake@example.com -> lemoncake"""
    if not email:
        return None
    return email.split("@", 1)[0]


def profile_from_user(user: User, profile: ProfileRecord | None) -> ProfileRecord:
    """Return the stored profile, or a new default one (not yet saved)."""
    if profile is not None:
        return profile
    return ProfileRecord(
        user_id=user.user_id,
        display_name=default_display_name(user.email),
        main_email=user.email,
        tee_shirt_size=TeeShirtSize.NOT_SPECIFIED,
    )


def _not_found(conference_key: str) -> RegistrationResult:
    return RegistrationResult(
        False,
        f"No Conference found with key: {conference_key}",
        RegistrationOutcome.NOT_FOUND,
    )


def _run(
    db: DbClient,
    user: User,
    conference_key: str,
    body: Callable[[PairTransaction, ProfileRecord], RegistrationResult],
) -> RegistrationResult:
    if not is_conference_key(conference_key):
        return _not_found(conference_key)

    def work(txn: PairTransaction) -> RegistrationResult:
        try:
            if txn.conference is None:
                return _not_found(conference_key)
            profile = profile_from_user(user, txn.profile)
            return body(txn, profile)
        except Exception:
            logger.exception(
                "Registration change failed for user %s on %s",
                user.user_id,
                conference_key,
            )
            return RegistrationResult(
                False, UNKNOWN_EXCEPTION, RegistrationOutcome.UNKNOWN_ERROR
            )

    try:
        return db.transact(user.user_id, conference_key, work)
    except TransactionConflictError:
        logger.exception(
            "Registration change for user %s on %s did not commit",
            user.user_id,
            conference_key,
        )
        return RegistrationResult(
            False, UNKNOWN_EXCEPTION, RegistrationOutcome.UNKNOWN_ERROR
        )


def register(db: DbClient, user: User, conference_key: str) -> RegistrationResult:
    """Book one seat at the conference for the user."""

    def body(txn: PairTransaction, profile: ProfileRecord) -> RegistrationResult:
        conference = txn.conference
        if profile.is_attending(conference_key):
            return RegistrationResult(
                False, ALREADY_REGISTERED, RegistrationOutcome.ALREADY_REGISTERED
            )
        if conference.seats_available <= 0:
            return RegistrationResult(
                False, NO_SEATS_AVAILABLE, RegistrationOutcome.NO_SEATS_AVAILABLE
            )
        profile.add_conference(conference_key)
        conference.book_seats(1)
        txn.put(profile, conference)
        return RegistrationResult(
            True, "Registration successful", RegistrationOutcome.SUCCESS
        )

    result = _run(db, user, conference_key, body)
    logger.info(
        "register user=%s conference=%s outcome=%s",
        user.user_id,
        conference_key,
        result.outcome.value,
    )
    return result


def unregister(db: DbClient, user: User, conference_key: str) -> RegistrationResult:
    """Give back the user's seat at the conference."""

    def body(txn: PairTransaction, profile: ProfileRecord) -> RegistrationResult:
        conference = txn.conference
        if not profile.is_attending(conference_key):
            return RegistrationResult(
                False, NOT_REGISTERED, RegistrationOutcome.NOT_REGISTERED
            )
        profile.unregister_from_conference(conference_key)
        conference.give_back_seats(1)
        txn.put(profile, conference)
        return RegistrationResult(
            True, "Un-registration successful", RegistrationOutcome.SUCCESS
        )

    result = _run(db, user, conference_key, body)
    logger.info(
        "unregister user=%s conference=%s outcome=%s",
        user.user_id,
        conference_key,
        result.outcome.value,
    )
    return result


def raise_for_result(result: RegistrationResult) -> None:
    if result.result:
        return
    if result.outcome == RegistrationOutcome.NOT_FOUND:
        raise NotFound(result.reason)
    if result.outcome == RegistrationOutcome.ALREADY_REGISTERED:
        raise Conflict("You have already registered")
    if result.outcome == RegistrationOutcome.NO_SEATS_AVAILABLE:
        raise Conflict("There are no seats available")
    if result.outcome == RegistrationOutcome.NOT_REGISTERED:
        raise Conflict("You have not registered yet")
    raise Forbidden(UNKNOWN_EXCEPTION)
