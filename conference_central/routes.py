"""
HTTP routes for the conference API.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from conference_central.dependencies import get_conference_service
from conference_central.identity import User, get_current_user
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
from conference_central.service import ConferenceService

router = APIRouter()


# - - - Profile objects - - - - - - - - - - - - - - - - - - - - - - - - - -


@router.get("/profile", response_model=Optional[ProfileForm])
def get_profile(
    user: Optional[User] = Depends(get_current_user),
    service: ConferenceService = Depends(get_conference_service),
):
    return service.get_profile(user)


@router.post("/profile", response_model=ProfileForm)
def save_profile(
    form: Optional[ProfileMiniForm] = None,
    user: Optional[User] = Depends(get_current_user),
    service: ConferenceService = Depends(get_conference_service),
):
    return service.save_profile(user, form)


# - - - Conference objects - - - - - - - - - - - - - - - - - - - - - - - -


@router.post("/conference", response_model=ConferenceResponse)
def create_conference(
    form: ConferenceForm,
    user: Optional[User] = Depends(get_current_user),
    service: ConferenceService = Depends(get_conference_service),
):
    return service.create_conference(user, form)


@router.post("/queryConferences", response_model=ConferenceForms)
def query_conferences(
    form: Optional[ConferenceQueryForms] = None,
    service: ConferenceService = Depends(get_conference_service),
):
    return service.query_conferences(form)


@router.post("/getConferencesCreated", response_model=ConferenceForms)
def get_conferences_created(
    user: Optional[User] = Depends(get_current_user),
    service: ConferenceService = Depends(get_conference_service),
):
    return service.get_conferences_created(user)


@router.get("/conference/{websafe_conference_key}", response_model=ConferenceResponse)
def get_conference(
    websafe_conference_key: str,
    service: ConferenceService = Depends(get_conference_service),
):
    return service.get_conference(websafe_conference_key)


# - - - Registration - - - - - - - - - - - - - - - - - - - - - - - - - - -


@router.post(
    "/conference/{websafe_conference_key}/registration", response_model=BooleanMessage
)
def register_for_conference(
    websafe_conference_key: str,
    user: Optional[User] = Depends(get_current_user),
    service: ConferenceService = Depends(get_conference_service),
):
    return service.register_for_conference(user, websafe_conference_key)


@router.delete(
    "/conference/{websafe_conference_key}/registration", response_model=BooleanMessage
)
def unregister_from_conference(
    websafe_conference_key: str,
    user: Optional[User] = Depends(get_current_user),
    service: ConferenceService = Depends(get_conference_service),
):
    return service.unregister_from_conference(user, websafe_conference_key)


@router.get("/getConferencesToAttend", response_model=ConferenceForms)
def get_conferences_to_attend(
    user: Optional[User] = Depends(get_current_user),
    service: ConferenceService = Depends(get_conference_service),
):
    return service.get_conferences_to_attend(user)


# - - - Announcements - - - - - - - - - - - - - - - - - - - - - - - - - - -


@router.get("/announcement", response_model=Optional[AnnouncementResponse])
def get_announcement(service: ConferenceService = Depends(get_conference_service)):
    return service.get_announcement()


@router.put("/announcement", response_model=AnnouncementResponse)
def put_announcement(
    user: Optional[User] = Depends(get_current_user),
    service: ConferenceService = Depends(get_conference_service),
):
    return service.put_announcement(user)
