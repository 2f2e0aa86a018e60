"""
Module name rules.

validate_module_name reports every rule a name breaks, so callers can show
one combined message.
"""
import re
from typing import List

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50

_ALLOWED_CHARACTERS = re.compile(r"[A-Za-z0-9 _\-]+")
_STARTS_WITH_LETTER = re.compile(r"^[A-Za-z]")


def validate_module_name(name: str) -> List[str]:
    """
    Check a module name against all naming rules.
    
    Returns:
        List of violated rules, empty when the name is valid.
    
    Example:
        >>> validate_module_name("1")
        ['Module name must be at least 2 characters long', 'Module name must start with a letter']
    """
    errors: List[str] = []

    if len(name) < MIN_NAME_LENGTH:
        errors.append(f"Module name must be at least {MIN_NAME_LENGTH} characters long")

    if len(name) > MAX_NAME_LENGTH:
        errors.append(f"Module name must not exceed {MAX_NAME_LENGTH} characters")

    if name and not _ALLOWED_CHARACTERS.fullmatch(name):
        errors.append("Module name can only contain letters, numbers, spaces, hyphens, and underscores")

    if not _STARTS_WITH_LETTER.match(name):
        errors.append("Module name must start with a letter")

    return errors
