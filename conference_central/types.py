"""
Shared enums for profiles and registration results.
"""

from __future__ import annotations

from enum import StrEnum


class TeeShirtSize(StrEnum):
    NOT_SPECIFIED = "NOT_SPECIFIED"
    XS_M = "XS_M"
    XS_W = "XS_W"
    S_M = "S_M"
    S_W = "S_W"
    M_M = "M_M"
    M_W = "M_W"
    L_M = "L_M"
    L_W = "L_W"
    XL_M = "XL_M"
    XL_W = "XL_W"
    XXL_M = "XXL_M"
    XXL_W = "XXL_W"
    XXXL_M = "XXXL_M"
    XXXL_W = "XXXL_W"


class RegistrationOutcome(StrEnum):
    SUCCESS = "SUCCESS"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_REGISTERED = "ALREADY_REGISTERED"
    NO_SEATS_AVAILABLE = "NO_SEATS_AVAILABLE"
    NOT_REGISTERED = "NOT_REGISTERED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
