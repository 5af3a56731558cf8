"""
AgroTrack Cache Service

Two-tier response caching for the AgroTrack plant-care API: a Redis tier
shared by every process, a per-process fallback map, response caching and
invalidation middleware, and an operator admin surface.
"""

__version__ = "1.0.0"
