"""Validation utilities for the application."""
import re
from typing import Dict, List, Any

from campus_attendance.utils.errors import ValidationError

ACADEMIC_YEAR_PATTERN = re.compile(r'^(\d{4})-(\d{4})$')

class Validator:
    """Validation helper class."""

    @staticmethod
    def validate_email(email: str) -> bool:
        """Validate email format."""
        if not email:
            return False
        pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        return bool(re.match(pattern, email))

    @staticmethod
    def require_fields(data: Dict, required_fields: List[str]) -> None:
        """Raise if any field is absent, None or an empty string.

        Zero is a legitimate value (a coordinate on the equator) and passes.
        """
        missing = [
            field for field in required_fields
            if data.get(field) is None or (isinstance(data.get(field), str) and not data[field].strip())
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    @staticmethod
    def parse_id(value: Any, field: str = 'id') -> int:
        """Parse an identifier that crossed the JSON boundary as a string."""
        if isinstance(value, bool):
            raise ValidationError(f"Invalid {field}")
        try:
            parsed = int(str(value).strip())
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid {field}")
        if parsed <= 0:
            raise ValidationError(f"Invalid {field}")
        return parsed

    @staticmethod
    def parse_float(value: Any, field: str) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{field} must be a number")

    @staticmethod
    def validate_coordinates(latitude: float, longitude: float) -> None:
        """Latitude in [-90, 90] and longitude in [-180, 180]."""
        if not -90 <= latitude <= 90:
            raise ValidationError("Latitude must be between -90 and 90")
        if not -180 <= longitude <= 180:
            raise ValidationError("Longitude must be between -180 and 180")

    @staticmethod
    def validate_academic_year(value: Any, field: str = 'academic_year') -> str:
        """Academic years look like 2024-2025 with consecutive years."""
        match = ACADEMIC_YEAR_PATTERN.match(str(value or '').strip())
        if not match or int(match.group(2)) != int(match.group(1)) + 1:
            raise ValidationError(f"{field} must look like 2024-2025")
        return match.group(0)
