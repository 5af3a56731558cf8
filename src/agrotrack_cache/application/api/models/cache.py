"""
Cache Admin API Models - Educational Documentation
===================================================

WHAT ARE THESE MODELS?
----------------------
Pydantic classes describing the bodies accepted and returned by the
operator endpoints under /cache.

THE PREVIEW / CONFIRM CONTRACT:
-------------------------------
Every destructive endpoint (pattern delete, tag clear, type clear, flush)
takes a `confirm` flag:

    confirm=false (default) → preview: report what WOULD be deleted
    confirm=true            → perform the deletion

So a mistyped pattern costs one extra request, not a cold cache.

RESPONSE ENVELOPE:
------------------
    {"success": true, "preview": true, "data": {...}}

`preview` is only present on preview responses.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# REQUEST BODIES
# ============================================================================


class ConfirmRequest(BaseModel):
    """Body of destructive endpoints."""

    confirm: bool = Field(default=False, description="Perform the deletion instead of previewing it")


class ClearTagsRequest(ConfirmRequest):
    """Body of POST /cache/tags/clear."""

    tags: list[str] = Field(default_factory=list, description="Tags whose keys should be deleted")


class ClearTypeRequest(ConfirmRequest):
    """Body of DELETE /cache/type/{type}."""

    user_id: str | None = Field(default=None, description="Narrows user-scoped presets")


class SetKeyRequest(BaseModel):
    """
    Body of PUT /cache/key/{key}.

    `value` is required but may be any JSON value; presence is checked in the
    route so a missing value yields the 400 envelope instead of a 422.
    """

    model_config = ConfigDict(extra="ignore")

    value: Any = Field(default=None, description="Value to store (any JSON value)")
    ttl: int | None = Field(default=None, gt=0, description="Seconds to live")


# ============================================================================
# ERROR BODY
# ============================================================================


class ErrorResponse(BaseModel):
    """Error body produced by the exception handlers."""

    success: bool = Field(default=False)
    error: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(default_factory=dict)
