"""
Pydantic schemas for the conference API.
"""

from __future__ import annotations

from datetime import date
from typing import Optional, Union

from pydantic import BaseModel, Field

from conference_central.types import TeeShirtSize


class ProfileMiniForm(BaseModel):
    display_name: Optional[str] = Field(default=None, max_length=256)
    tee_shirt_size: Optional[TeeShirtSize] = None


class ProfileForm(BaseModel):
    user_id: str
    display_name: Optional[str] = None
    main_email: Optional[str] = None
    tee_shirt_size: TeeShirtSize = TeeShirtSize.NOT_SPECIFIED
    conference_keys_to_attend: list[str] = Field(default_factory=list)


class ConferenceForm(BaseModel):
    # ``name`` is checked by the service so a missing name is a 400, not a 422.
    name: Optional[str] = Field(default=None, max_length=512)
    description: Optional[str] = None
    topics: Optional[list[str]] = None
    city: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    max_attendees: Optional[int] = Field(default=None, ge=0)


class ConferenceResponse(BaseModel):
    websafe_key: str
    organizer_user_id: str
    organizer_display_name: Optional[str] = None
    name: str
    description: Optional[str] = None
    topics: list[str] = Field(default_factory=list)
    city: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    month: int = 0
    max_attendees: int = 0
    seats_available: int = 0


class ConferenceForms(BaseModel):
    items: list[ConferenceResponse]


class ConferenceQueryForm(BaseModel):
    field: str
    operator: str
    value: Union[int, str]


class ConferenceQueryForms(BaseModel):
    filters: list[ConferenceQueryForm] = Field(default_factory=list)


class BooleanMessage(BaseModel):
    result: bool
    reason: str = ""


class AnnouncementResponse(BaseModel):
    message: str
