from datetime import date
from typing import Any, Dict, List, Optional
import re

from salon_booking.core.exceptions import BookingValidationError
from salon_booking.utils.time_of_day import TimeOfDay, is_valid_hhmm


def validate_phone_number(phone: str) -> bool:
    """Validate phone number format (international or local)."""
    if not phone:
        return True  # Allow empty/null

    phone_pattern = r'^[\+]?[1-9][\d\-\s\(\)\.]{7,15}$'
    return bool(re.match(phone_pattern, phone.replace(' ', '')))


def validate_email_format(email: str) -> bool:
    """Validate email format."""
    if not email:
        return True  # Allow empty/null

    email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(email_pattern, email))


def validate_rule_window(start_time: str, end_time: str) -> List[str]:
    """Validate the HH:MM bounds of an availability rule."""
    errors = []

    if not is_valid_hhmm(start_time):
        errors.append("start_time must be a zero padded 24h time (HH:MM)")
    if not is_valid_hhmm(end_time):
        errors.append("end_time must be a zero padded 24h time (HH:MM)")
    if errors:
        return errors

    # 00:00-00:00 is the full-day-off convention
    if TimeOfDay.parse(end_time) < TimeOfDay.parse(start_time):
        errors.append("end_time must not be before start_time")

    return errors


def validate_availability_rule(rule_data: Dict[str, Any]) -> List[str]:
    """Comprehensive availability rule validation."""
    errors = []

    day = rule_data.get('day_of_week')
    if day is None or not isinstance(day, int) or not 0 <= day <= 6:
        errors.append("day_of_week must be an integer between 0 (Sunday) and 6 (Saturday)")

    errors.extend(
        validate_rule_window(rule_data.get('start_time'), rule_data.get('end_time'))
    )

    is_exception = bool(rule_data.get('is_exception'))
    exception_date: Optional[date] = rule_data.get('exception_date')
    if is_exception and exception_date is None:
        errors.append("exception_date is required for exception rules")
    if not is_exception and exception_date is not None:
        errors.append("exception_date is only allowed on exception rules")

    return errors


def validate_and_raise(rule_data: Dict[str, Any]) -> None:
    """Validate availability rule data and raise if errors are found."""
    errors = validate_availability_rule(rule_data)
    if errors:
        raise BookingValidationError(
            f"Availability rule validation failed: {'; '.join(errors)}"
        )
