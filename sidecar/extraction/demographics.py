"""Member demographics used by the condition validator (age, gender)."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Union

_GENDER_MAP = {
    "m": "male",
    "male": "male",
    "man": "male",
    "f": "female",
    "female": "female",
    "woman": "female",
}


def calculate_age(
    dob: Union[date, datetime, str, None],
    today: Optional[date] = None,
) -> Optional[int]:
    """Whole years between a date of birth and today (birthday-aware).

    Accepts ISO date strings. Returns None for missing, unparsable or
    future dates.
    """
    if dob is None or dob == "":
        return None
    if isinstance(dob, str):
        try:
            dob = datetime.fromisoformat(dob.strip())
        except ValueError:
            return None
    if isinstance(dob, datetime):
        dob = dob.date()

    today = today or date.today()
    age = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        age -= 1
    if 0 <= age <= 120:
        return age
    return None


def normalize_gender(gender: Optional[str]) -> Optional[str]:
    """Map free-text gender labels ("F", "Woman", "MALE") to male/female.

    Labels outside the map are lower-cased and passed through.
    """
    if not gender or not gender.strip():
        return None
    raw = gender.strip().lower()
    return _GENDER_MAP.get(raw, raw)
