"""
Exception Module

Structured exception hierarchy for the AgroTrack cache service.

Module Structure:
-----------------
- **base.py**: AgroTrackError base class + ConfigurationError
- **cache.py**: Cache-related exceptions (Redis tier, codec)
- **validation.py**: Operator request validation exceptions

Usage:
------
```python
from agrotrack_cache.core.exceptions import CacheConnectionError, InvalidInputError
```

Author: System Architect
Date: 2025-12-08
"""

from agrotrack_cache.core.exceptions.base import AgroTrackError, ConfigurationError
from agrotrack_cache.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
)
from agrotrack_cache.core.exceptions.validation import InvalidInputError, ValidationError

__all__ = [
    # Base
    "AgroTrackError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "CacheSerializationError",
    # Validation
    "ValidationError",
    "InvalidInputError",
]
