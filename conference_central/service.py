"""
Conference API operations.

Every operation receives the caller identity explicitly (``None`` for an
anonymous caller); operations that need a signed-in user raise
``Unauthenticated`` when it is missing.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable, Optional

from conference_central.announcements import cache_announcement, get_announcement
from conference_central.cache import CacheClient
from conference_central.db import ConferenceRecord, DbClient, PairTransaction, ProfileRecord
from conference_central.errors import BadRequest, NotFound
from conference_central.identity import User, require_user
from conference_central.keys import is_conference_key, make_conference_key
from conference_central.queries import build_query
from conference_central.queue import (
    CACHE_ANNOUNCEMENT,
    SEND_CONFIRMATION_EMAIL,
    Task,
    TaskQueue,
)
from conference_central.registration import (
    default_display_name,
    profile_from_user,
    raise_for_result,
    register,
    unregister,
)
from conference_central.schemas import (
    AnnouncementResponse,
    BooleanMessage,
    ConferenceForm,
    ConferenceForms,
    ConferenceQueryForms,
    ConferenceResponse,
    ProfileForm,
    ProfileMiniForm,
)
from conference_central.types import TeeShirtSize

logger = logging.getLogger(__name__)

DEFAULTS = {
    "city": "Default City",
    "max_attendees": 0,
    "topics": ["Default", "Topic"],
}


def _profile_to_form(profile: ProfileRecord) -> ProfileForm:
    return ProfileForm(
        user_id=profile.user_id,
        display_name=profile.display_name,
        main_email=profile.main_email,
        tee_shirt_size=profile.tee_shirt_size,
        conference_keys_to_attend=list(profile.conference_keys_to_attend),
    )


def _conference_to_form(
    conference: ConferenceRecord, display_name: Optional[str]
) -> ConferenceResponse:
    return ConferenceResponse(
        websafe_key=conference.conference_id,
        organizer_user_id=conference.organizer_user_id,
        organizer_display_name=display_name,
        name=conference.name,
        description=conference.description,
        topics=list(conference.topics),
        city=conference.city,
        start_date=conference.start_date,
        end_date=conference.end_date,
        month=conference.month,
        max_attendees=conference.max_attendees,
        seats_available=conference.seats_available,
    )


class ConferenceService:
    def __init__(self, db: DbClient, cache: CacheClient, queue: TaskQueue):
        self.db = db
        self.cache = cache
        self.queue = queue

    def _display_names(self, conferences: Iterable[ConferenceRecord]) -> dict[str, Optional[str]]:
        # One batch get for all organizers instead of one read per conference.
        organizer_ids = [c.organizer_user_id for c in conferences]
        return {p.user_id: p.display_name for p in self.db.get_profiles(organizer_ids)}

    def _to_forms(self, conferences: list[ConferenceRecord]) -> ConferenceForms:
        names = self._display_names(conferences)
        return ConferenceForms(
            items=[_conference_to_form(c, names.get(c.organizer_user_id)) for c in conferences]
        )

    # - - - Profiles - - - - - - - - - - - - - - - - - - - - - - - - - - -

    def save_profile(
        self, user: Optional[User], form: Optional[ProfileMiniForm] = None
    ) -> ProfileForm:
        user = require_user(user)
        form = form or ProfileMiniForm()

        def work(txn: PairTransaction) -> ProfileRecord:
            if txn.profile is None:
                profile = ProfileRecord(
                    user_id=user.user_id,
                    display_name=form.display_name or default_display_name(user.email),
                    main_email=user.email,
                    tee_shirt_size=form.tee_shirt_size or TeeShirtSize.NOT_SPECIFIED,
                )
            else:
                profile = txn.profile
                profile.update(form.display_name, form.tee_shirt_size)
            txn.put(profile)
            return profile

        profile = self.db.transact(user.user_id, None, work)
        return _profile_to_form(profile)

    def get_profile(self, user: Optional[User]) -> Optional[ProfileForm]:
        user = require_user(user)
        profile = self.db.get_profile(user.user_id)
        return _profile_to_form(profile) if profile else None

    # - - - Conferences - - - - - - - - - - - - - - - - - - - - - - - - - -

    def create_conference(
        self, user: Optional[User], form: ConferenceForm
    ) -> ConferenceResponse:
        user = require_user(user)
        if not form.name:
            raise BadRequest("Conference 'name' field required")

        max_attendees = (
            form.max_attendees if form.max_attendees is not None else DEFAULTS["max_attendees"]
        )
        conference_key = make_conference_key(user.user_id)

        def work(txn: PairTransaction) -> tuple[ProfileRecord, ConferenceRecord]:
            profile = profile_from_user(user, txn.profile)
            conference = ConferenceRecord(
                conference_id=conference_key,
                organizer_user_id=user.user_id,
                name=form.name,
                description=form.description,
                topics=list(form.topics) if form.topics else list(DEFAULTS["topics"]),
                city=form.city or DEFAULTS["city"],
                start_date=form.start_date,
                end_date=form.end_date,
                month=form.start_date.month if form.start_date else 0,
                max_attendees=max_attendees,
                seats_available=max_attendees,
            )
            txn.put(profile, conference)
            return profile, conference

        profile, conference = self.db.transact(user.user_id, conference_key, work)
        logger.info("User %s created conference %s", user.user_id, conference_key)
        self._enqueue_confirmation(profile, conference)
        return _conference_to_form(conference, profile.display_name)

    def _enqueue_confirmation(
        self, profile: ProfileRecord, conference: ConferenceRecord
    ) -> None:
        if not profile.main_email:
            logger.info(
                "No email on profile %s; skipping confirmation", profile.user_id
            )
            return
        task = Task(
            name=SEND_CONFIRMATION_EMAIL,
            params={
                "email": profile.main_email,
                "conference_info": json.dumps(conference.as_dict()),
            },
        )
        try:
            self.queue.enqueue(task)
        except Exception:
            # The conference is already committed; a lost email must not fail the request.
            logger.exception(
                "Failed to enqueue confirmation email for %s", conference.conference_id
            )

    def _enqueue_announcement_refresh(self, conference_key: str) -> None:
        try:
            self.queue.enqueue(Task(name=CACHE_ANNOUNCEMENT))
        except Exception:
            logger.exception(
                "Failed to enqueue announcement refresh after change to %s", conference_key
            )

    def query_conferences(
        self, form: Optional[ConferenceQueryForms] = None
    ) -> ConferenceForms:
        query = build_query(form.filters if form else [])
        return self._to_forms(self.db.query_conferences(query))

    def get_conferences_created(self, user: Optional[User]) -> ConferenceForms:
        user = require_user(user)
        return self._to_forms(self.db.list_conferences_by_organizer(user.user_id))

    def get_conference(self, websafe_conference_key: str) -> ConferenceResponse:
        conference = None
        if is_conference_key(websafe_conference_key):
            conference = self.db.get_conference(websafe_conference_key)
        if conference is None:
            raise NotFound(f"No Conference found with key: {websafe_conference_key}")
        organizer = self.db.get_profile(conference.organizer_user_id)
        return _conference_to_form(
            conference, organizer.display_name if organizer else None
        )

    # - - - Registration - - - - - - - - - - - - - - - - - - - - - - - - -

    def register_for_conference(
        self, user: Optional[User], websafe_conference_key: str
    ) -> BooleanMessage:
        user = require_user(user)
        result = register(self.db, user, websafe_conference_key)
        raise_for_result(result)
        self._enqueue_announcement_refresh(websafe_conference_key)
        return BooleanMessage(result=True, reason=result.reason)

    def unregister_from_conference(
        self, user: Optional[User], websafe_conference_key: str
    ) -> BooleanMessage:
        user = require_user(user)
        result = unregister(self.db, user, websafe_conference_key)
        raise_for_result(result)
        self._enqueue_announcement_refresh(websafe_conference_key)
        return BooleanMessage(result=True, reason=result.reason)

    def get_conferences_to_attend(self, user: Optional[User]) -> ConferenceForms:
        user = require_user(user)
        profile = profile_from_user(user, self.db.get_profile(user.user_id))
        return self._to_forms(self.db.get_conferences(profile.conference_keys_to_attend))

    # - - - Announcements - - - - - - - - - - - - - - - - - - - - - - - - -

    def get_announcement(self) -> Optional[AnnouncementResponse]:
        message = get_announcement(self.cache)
        if message is None:
            return None
        return AnnouncementResponse(message=message)

    def put_announcement(self, user: Optional[User]) -> AnnouncementResponse:
        require_user(user)
        return AnnouncementResponse(message=cache_announcement(self.db, self.cache))
