"""
Validation Exceptions

All exceptions related to operator request validation

Author: System Architect
Date: 2025-12-08
"""

from agrotrack_cache.core.exceptions.base import AgroTrackError


class ValidationError(AgroTrackError):
    """
    Raised when request validation fails.

    This is the base class for all validation-related errors and is
    rendered as HTTP 400.
    """
    pass


class InvalidInputError(ValidationError):
    """
    Raised when input validation fails.

    Common causes:
    - Empty tag list on a tag clear
    - Unknown cache type
    - user_id missing for a per-user preset
    - Missing value on a key write
    """
    pass
