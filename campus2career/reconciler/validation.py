"""Validation of student application submissions."""

import re
from typing import Any, List, Mapping, Optional

from campus2career.domain.models import ApplicationForm

from .exceptions import ValidationError

LISTING_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

MIN_COVER_LETTER_LENGTH = 20
MIN_INTEREST_REASON_LENGTH = 10
MIN_COURSEWORK_LENGTH = 3
MIN_REFERENCES_LENGTH = 5


def _text(fields: Mapping[str, Any], key: str) -> str:
    value = fields.get(key)
    return value.strip() if isinstance(value, str) else ""


def _skills(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [skill.strip() for skill in value if isinstance(skill, str) and skill.strip()]


def _hours(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def validate_listing_id(listing_id: Optional[str]) -> str:
    """Return the trimmed listing id.

    Raises:
        ValidationError: If it is missing or not a UUID
    """
    listing_id = (listing_id or "").strip()
    if not listing_id:
        raise ValidationError("listingId is required.", field="listingId")
    if not LISTING_ID_PATTERN.match(listing_id):
        raise ValidationError("Invalid listing ID format.", field="listingId")
    return listing_id


def validate_submission(listing_id: Optional[str], form_fields: Mapping[str, Any]) -> ApplicationForm:
    """Check a submission in a fixed order and return the trimmed form.

    The first failing check wins, so the caller always sees one message.

    Args:
        listing_id: Target listing id
        form_fields: snake_case form fields as entered by the student

    Raises:
        ValidationError: With the user-facing message and offending field
    """
    validate_listing_id(listing_id)

    cover_letter = _text(form_fields, "cover_letter")
    if len(cover_letter) < MIN_COVER_LETTER_LENGTH:
        raise ValidationError("Cover letter must be at least 20 characters.", field="coverLetter")

    interest_reason = _text(form_fields, "interest_reason")
    if len(interest_reason) < MIN_INTEREST_REASON_LENGTH:
        raise ValidationError(
            "Please explain why you are interested in this project.", field="interestReason"
        )

    skills = _skills(form_fields.get("skills"))
    if not skills:
        raise ValidationError("Please select at least one relevant skill.", field="skills")

    availability_date = _text(form_fields, "availability_date")
    if not availability_date:
        raise ValidationError("Please provide your availability start date.", field="availabilityDate")

    hours_per_week = _hours(form_fields.get("hours_per_week"))
    if hours_per_week is None or hours_per_week < 1:
        raise ValidationError("Please enter hours available per week.", field="hoursPerWeek")

    relevant_coursework = _text(form_fields, "relevant_coursework")
    if len(relevant_coursework) < MIN_COURSEWORK_LENGTH:
        raise ValidationError("Please list your relevant coursework.", field="relevantCoursework")

    references_text = _text(form_fields, "references_text")
    if len(references_text) < MIN_REFERENCES_LENGTH:
        raise ValidationError("Please provide at least one reference.", field="referencesText")

    gpa = form_fields.get("gpa")
    if gpa is not None:
        gpa = str(gpa).strip() or None

    return ApplicationForm(
        cover_letter=cover_letter,
        interest_reason=interest_reason,
        skills=skills,
        availability_date=availability_date,
        hours_per_week=hours_per_week,
        relevant_coursework=relevant_coursework,
        gpa=gpa,
        references_text=references_text,
    )
