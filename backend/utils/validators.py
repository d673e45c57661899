"""
Input Validators
"""
import re
from typing import Tuple

from config import settings


def validate_email(email: str) -> Tuple[bool, str]:
    """Validate email format"""
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    if re.match(pattern, email):
        return True, ""
    return False, "Invalid email format"


def validate_password(password: str) -> Tuple[bool, str]:
    """
    Validate password strength
    - At least 6 characters
    - At least one letter
    - At least one number
    """
    if len(password) < 6:
        return False, "Password must be at least 6 characters long"

    if not re.search(r'[A-Za-z]', password):
        return False, "Password must contain at least one letter"

    if not re.search(r'\d', password):
        return False, "Password must contain at least one number"

    return True, ""


def validate_username(username: str) -> Tuple[bool, str]:
    if not re.match(r'^[A-Za-z0-9_.-]{2,100}$', username):
        return False, "Username may only contain letters, numbers, '.', '_' and '-'"
    return True, ""


def validate_language(language: str) -> bool:
    """Validate a supported UI language code"""
    return language.lower() in settings.SUPPORTED_LANGUAGES


def validate_country(country: str) -> bool:
    """Validate an ISO 3166 alpha-2 country code shape"""
    return bool(re.match(r'^[A-Za-z]{2}$', country))


def sanitize_string(text: str) -> str:
    """Basic string sanitization"""
    # Remove any HTML tags
    clean = re.sub(r'<[^>]+>', '', text)
    # Remove multiple spaces
    clean = re.sub(r'\s+', ' ', clean)
    return clean.strip()
