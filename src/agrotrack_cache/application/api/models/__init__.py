"""
API Models Package
==================

Pydantic models for the operator endpoints' request and error bodies.

ORGANIZATION:
-------------
- cache.py: /cache admin endpoint models
"""

from agrotrack_cache.application.api.models.cache import (
    ClearTagsRequest,
    ClearTypeRequest,
    ConfirmRequest,
    ErrorResponse,
    SetKeyRequest,
)

__all__ = [
    "ConfirmRequest",
    "ClearTagsRequest",
    "ClearTypeRequest",
    "SetKeyRequest",
    "ErrorResponse",
]
