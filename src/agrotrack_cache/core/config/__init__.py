"""
Configuration Module

This module provides centralized, type-safe configuration management
for the AgroTrack cache service.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: System-wide constants, enums, and thresholds

Usage:
------
```python
from agrotrack_cache.core.config import get_settings
from agrotrack_cache.core.config.constants import HealthStatus, KNOWN_KEY_PATTERNS

settings = get_settings()
print(settings.cache.CACHE_DEFAULT_TTL)
```
"""

from .settings import Settings, get_settings, reload_settings

__all__ = ["Settings", "get_settings", "reload_settings"]
