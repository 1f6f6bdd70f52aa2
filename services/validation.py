"""
Field validators for expense and category input.

Each ``validate_*`` function raises ``django.core.exceptions.ValidationError``
with a stable ``code`` and the message shown next to the field. The same
functions back the Django forms (on submit) and the JSON blur endpoint.
"""
import re
import zoneinfo
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone

from .formatting import normalize_amount_string, parse_date

TITLE_MIN_LENGTH = 2
TITLE_MAX_LENGTH = 100
CATEGORY_NAME_MIN_LENGTH = 2
CATEGORY_NAME_MAX_LENGTH = 50
MAX_AMOUNT = Decimal("999999.99")
MIN_DATE = "1900-01-01"

HEX_COLOR_RE = re.compile(r"^#[0-9A-F]{6}$", re.IGNORECASE)
# Plain ASCII digits with at most one point; no exponents, separators or other scripts
AMOUNT_RE = re.compile(r"^-?[0-9]*\.?[0-9]*$")
DIGITS_RE = re.compile(r"^[0-9]*\.?[0-9]*$")

EXPENSE_FIELDS = ["title", "amount", "date", "category"]


def reference_today():
    """Today's date (YYYY-MM-DD) in the configured reference time zone."""
    tz_name = getattr(settings, "EXPENSE_REFERENCE_TIME_ZONE", "America/Phoenix")
    return timezone.localdate(timezone=zoneinfo.ZoneInfo(tz_name)).isoformat()


def validate_title(value):
    title = (value or "").strip()
    if not title:
        raise ValidationError("Title is required", code="required")
    if len(title) < TITLE_MIN_LENGTH:
        raise ValidationError("Title must be at least 2 characters", code="too_short")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError("Title must be less than 100 characters", code="too_long")


def validate_amount(value):
    raw = (value or "").strip()
    if not raw:
        raise ValidationError("Amount is required", code="required")
    if not AMOUNT_RE.match(raw):
        raise ValidationError("Please enter a valid number", code="not_a_number")
    try:
        amount = Decimal(raw)
    except InvalidOperation:
        raise ValidationError("Please enter a valid number", code="not_a_number")
    if amount < 0:
        raise ValidationError("Amount cannot be negative", code="negative")
    if "." in raw and len(raw.split(".", 1)[1]) > 2:
        raise ValidationError("Amount can have maximum 2 decimal places", code="too_precise")
    if amount > MAX_AMOUNT:
        raise ValidationError("Amount cannot exceed $999,999.99", code="too_large")


def validate_date(value, today=None):
    # YYYY-MM-DD is fixed width, so string order is chronological order
    raw = (value or "").strip()
    if not raw:
        raise ValidationError("Date is required", code="required")
    if len(raw) != 10 or parse_date(raw) is None:
        raise ValidationError("Invalid date format. Please use YYYY-MM-DD.", code="invalid")
    if raw > (today or reference_today()):
        raise ValidationError("Date cannot be in the future", code="future")
    if raw < MIN_DATE:
        raise ValidationError("Date cannot be before 1900", code="too_old")


def validate_category(value):
    if not (value or "").strip():
        raise ValidationError("Category is required", code="required")


def validate_category_name(value, existing_names=(), exclude=None):
    """
    Validate a new or renamed category.

    ``existing_names`` are compared case-insensitively; ``exclude`` is the
    current name of the category being edited so it doesn't clash with itself.
    """
    name = (value or "").strip()
    if not name:
        raise ValidationError("Category name is required", code="required")
    if len(name) < CATEGORY_NAME_MIN_LENGTH:
        raise ValidationError("Category name must be at least 2 characters", code="too_short")
    if len(name) > CATEGORY_NAME_MAX_LENGTH:
        raise ValidationError("Category name must be less than 50 characters", code="too_long")
    taken = {n.lower() for n in existing_names if n}
    if exclude:
        taken.discard(exclude.lower())
    if name.lower() in taken:
        raise ValidationError("Category already exists", code="duplicate")


def validate_color(value):
    if not value:
        raise ValidationError("Color is required", code="required")
    if not HEX_COLOR_RE.match(value):
        raise ValidationError("Please enter a valid hex color", code="invalid")


def validate_field(field, value, today=None):
    """Run a single expense field validator. Returns the error message or None."""
    try:
        if field == "title":
            validate_title(value)
        elif field == "amount":
            validate_amount(value)
        elif field == "date":
            validate_date(value, today=today)
        elif field == "category":
            validate_category(value)
    except ValidationError as e:
        return e.messages[0]
    return None


def blur_field(field, value, today=None):
    """
    What happens when a field loses focus: an amount made of plain digits is
    canonicalized to two decimals first, then the field is re-validated.
    Anything else is left as typed so the error describes what the user sees.

    Returns ``(value, error_message_or_None)``.
    """
    if field == "amount" and value and DIGITS_RE.match(value.strip()):
        value = normalize_amount_string(value)
    return value, validate_field(field, value, today=today)


def validate_expense(data, today=None):
    """Validate every required expense field. Returns {field: message} for failures."""
    errors = {}
    for field in EXPENSE_FIELDS:
        message = validate_field(field, data.get(field), today=today)
        if message:
            errors[field] = message
    return errors
